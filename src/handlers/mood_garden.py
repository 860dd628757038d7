"""
Lambda handlers for the mood garden.
"""
from typing import Any, Dict

from aws_lambda_powertools import Tracer

from src.models.requests import LogMoodRequest
from src.services.mood_garden import get_mood_garden, log_mood_entry
from src.services.record_store import get_record_store
from src.utils.logging import logger
from src.utils.middleware import require_auth

tracer = Tracer()

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def log_mood_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """
    Handle mood log request.

    Returns:
        mood_logged, total_plants and new_plant when one was planted
    """
    request = LogMoodRequest(**payload)
    return log_mood_entry(
        get_record_store(),
        user_id,
        mood_score=request.mood_score,
        date=request.date,
        notes=request.notes,
        completed_activities=[a.model_dump() for a in request.completed_activities]
    )

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def garden_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """Handle mood garden summary request."""
    return get_mood_garden(get_record_store(), user_id)
