"""
Middleware functions for request processing.
"""
import json
from functools import wraps
from typing import Any, Callable, Dict

from pydantic import ValidationError

from src.services.exceptions import InternalError, InvalidArgumentError, ServiceError
from src.utils.auth import get_caller_id
from src.utils.logging import logger, request_keys

def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str),
        "isBase64Encoded": False
    }

def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Get the JSON payload of a Lambda proxy event.

    Raises:
        InvalidArgumentError: If the body is not a JSON object
    """
    body = event.get("body") or {}
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            raise InvalidArgumentError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise InvalidArgumentError("Request body must be a JSON object")
    return body

def _error_response(handler: str, error: ServiceError) -> Dict[str, Any]:
    logger.info("Request failed", extra={
        "handler": handler,
        "error_code": error.code,
        "error": error.message
    })
    return _response(error.status_code, {"success": False, "error": error.to_dict()})

def _validation_error(error: ValidationError) -> InvalidArgumentError:
    return InvalidArgumentError(
        "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in error.errors()
        )
    )

def require_auth(f: Callable) -> Callable:
    """
    Decorator for API handlers.

    Resolves the caller, parses the JSON body and calls
    f(user_id, payload, event). A returned dict becomes
    {"success": true, ...result}; failures become
    {"success": false, "error": {"code", "message"}} with the status of
    the error kind.

    Args:
        f: Handler function to wrap

    Returns:
        Wrapped handler function
    """
    @wraps(f)
    def wrapped(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        try:
            user_id = get_caller_id(event)
        except ServiceError as e:
            return _error_response(f.__name__, e)

        with request_keys(user_id=user_id):
            try:
                payload = parse_body(event)
                logger.debug("Processing request", extra={
                    "handler": f.__name__,
                    "payload_keys": sorted(payload.keys())
                })
                result = f(user_id, payload, event)
                return _response(200, {"success": True, **result})

            except ValidationError as e:
                return _error_response(f.__name__, _validation_error(e))

            except ServiceError as e:
                return _error_response(f.__name__, e)

            except Exception as e:
                logger.exception("Unhandled error in handler", extra={
                    "handler": f.__name__,
                    "error": str(e),
                    "error_type": e.__class__.__name__
                })
                return _error_response(f.__name__, InternalError(str(e)))

    return wrapped
