"""
Lambda handlers for user profile management.
"""
from typing import Any, Dict

from aws_lambda_powertools import Tracer

from src.models.requests import RecordBiosensorRequest, UpdateProfileRequest
from src.services.profile import (
    get_user_profile,
    record_biosensor_data,
    update_user_profile,
)
from src.services.record_store import get_record_store
from src.utils.auth import get_caller_email
from src.utils.logging import logger
from src.utils.middleware import require_auth

tracer = Tracer()

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def update_profile_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """
    Handle profile create/update request.

    The first call creates the profile with default cycle settings.
    """
    request = UpdateProfileRequest(**payload)
    return update_user_profile(
        get_record_store(),
        user_id,
        email=get_caller_email(event) or "",
        full_name=request.full_name,
        birth_date=request.birth_date,
        cycle_info=request.cycle_info.model_dump() if request.cycle_info else None
    )

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def get_profile_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """Handle profile read request."""
    return get_user_profile(get_record_store(), user_id)

@logger.inject_lambda_context
@tracer.capture_lambda_handler
@require_auth
def record_biosensor_handler(user_id: str, payload: Dict[str, Any], event: Dict) -> Dict[str, Any]:
    """Handle wearable reading request."""
    request = RecordBiosensorRequest(**payload)
    return record_biosensor_data(get_record_store(), user_id, **request.model_dump())
