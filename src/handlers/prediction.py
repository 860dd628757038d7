"""
Lambda handler for pain predictions.
"""
from typing import Any, Dict, Optional

from aws_lambda_powertools import Tracer

from src.models.requests import PredictPainRequest
from src.services.pain_model import PainPredictor, predict_pain
from src.services.record_store import get_record_store
from src.utils.logging import logger
from src.utils.middleware import require_auth

tracer = Tracer()

# Learned pain model, registered by the deployment that ships one
_pain_predictor: Optional[PainPredictor] = None

def set_pain_predictor(predictor: Optional[PainPredictor]) -> None:
    """Register (or clear) the learned pain model used when use_ml is set."""
    global _pain_predictor
    _pain_predictor = predictor

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """
    Handle pain prediction request.

    Returns:
        Forecast with predictions, high/medium pain days, quality and
        confidence
    """
    request = PredictPainRequest(**payload)
    return predict_pain(
        get_record_store(),
        user_id,
        use_ml=request.use_ml,
        ml_predictor=_pain_predictor
    )
