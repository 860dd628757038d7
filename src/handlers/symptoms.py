"""
Lambda handlers for symptom logging and analysis.
"""
from typing import Any, Dict

from aws_lambda_powertools import Tracer

from src.models.requests import LogSymptomRequest, SymptomHistoryRequest
from src.services.record_store import get_record_store
from src.services.symptoms import analyze_symptoms, get_symptom_history, log_symptom
from src.utils.logging import logger
from src.utils.middleware import require_auth

tracer = Tracer()

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def log_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """
    Handle symptom log request.

    Returns:
        symptom_id
    """
    request = LogSymptomRequest(**payload)
    return log_symptom(
        get_record_store(),
        user_id,
        symptom_type=request.symptom_type,
        intensity=request.intensity,
        date=request.date,
        notes=request.notes,
        cycle_id=request.cycle_id
    )

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def history_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """Handle symptom history request."""
    request = SymptomHistoryRequest(**payload)
    return get_symptom_history(
        get_record_store(),
        user_id,
        symptom_type=request.symptom_type,
        limit=request.limit,
        start_date=request.start_date,
        end_date=request.end_date
    )

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def analyze_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """Handle symptom analysis request."""
    return analyze_symptoms(get_record_store(), user_id)
