"""
Caller identity resolution.

Token verification happens upstream in the API Gateway authorizer; this
module only reads the identity the authorizer attached to the event.
"""
from typing import Any, Dict, Optional

from src.services.exceptions import UnauthenticatedError
from src.utils.logging import logger

def _authorizer(event: Dict[str, Any]) -> Dict[str, Any]:
    request_context = event.get("requestContext") or {}
    return request_context.get("authorizer") or {}

def get_caller_id(event: Dict[str, Any]) -> str:
    """
    Get the caller's user ID from an API Gateway event.

    Reads Cognito/JWT claims ("sub") first, then a Lambda authorizer's
    principalId.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        Stable user identifier

    Raises:
        UnauthenticatedError: If the event carries no identity
    """
    authorizer = _authorizer(event)
    claims = authorizer.get("claims") or (authorizer.get("jwt") or {}).get("claims") or {}

    user_id = claims.get("sub") or authorizer.get("principalId")
    if not user_id:
        logger.warning("Request without caller identity", extra={
            "has_request_context": "requestContext" in event,
            "authorizer_keys": sorted(authorizer.keys())
        })
        raise UnauthenticatedError("User must be logged in")
    return str(user_id)

def get_caller_email(event: Dict[str, Any]) -> Optional[str]:
    """Email claim of the caller, if the authorizer provided one."""
    authorizer = _authorizer(event)
    claims = authorizer.get("claims") or (authorizer.get("jwt") or {}).get("claims") or {}
    return claims.get("email")
