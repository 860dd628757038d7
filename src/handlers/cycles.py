"""
Lambda handlers for cycle tracking.
"""
from typing import Any, Dict

from aws_lambda_powertools import Tracer

from src.models.requests import CycleHistoryRequest, EndCycleRequest, StartCycleRequest
from src.services.cycle_tracker import (
    end_cycle,
    get_current_cycle_stats,
    get_cycle_history,
    start_cycle,
)
from src.services.record_store import get_record_store
from src.utils.logging import logger
from src.utils.middleware import require_auth

tracer = Tracer()

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def start_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """
    Handle cycle start request.

    Returns:
        cycle_id and predicted_end_date
    """
    request = StartCycleRequest(**payload)
    return start_cycle(
        get_record_store(),
        user_id,
        start_date=request.start_date,
        symptoms=[s.model_dump() for s in request.symptoms],
        notes=request.notes
    )

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def end_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """
    Handle cycle end request.

    Returns:
        cycle_length and new_average_cycle_length
    """
    request = EndCycleRequest(**payload)
    return end_cycle(
        get_record_store(),
        user_id,
        cycle_id=request.cycle_id,
        end_date=request.end_date
    )

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def history_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """Handle cycle history request."""
    request = CycleHistoryRequest(**payload)
    return get_cycle_history(get_record_store(), user_id, limit=request.limit)

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def current_stats_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """Handle current cycle stats request."""
    return get_current_cycle_stats(get_record_store(), user_id)
