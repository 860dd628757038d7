"""
Shared logging configuration.

Every module logs through `logger` with structured `extra={...}` fields.
Lambda base keys (region, function, version) are attached once at import;
per-request keys such as the caller's user_id are attached for the
duration of one invocation with `request_keys`.
"""
import os
import sys
import json
import traceback
from contextlib import contextmanager
from functools import partial
from typing import Iterator
from aws_lambda_powertools import Logger

def format_exception(exc_info):
    """Format exception info into a single line."""
    if exc_info is True:  # When exc_info=True is passed to logger.exception
        exc_info = sys.exc_info()

    if exc_info and isinstance(exc_info, tuple) and len(exc_info) == 3:
        try:
            trace = ''.join(traceback.format_exception(*exc_info))
            # CloudWatch splits records on newlines
            return trace.replace('\n', ' | ').strip()
        except Exception as e:
            return f"Error formatting exception: {str(e)}"
    return None

class SingleLineLogger(Logger):
    """Powertools logger that keeps exception traces on the record's line."""

    def exception(self, message, *args, **kwargs):
        """Log at ERROR level with the current traceback as one field."""
        exc_info = kwargs.pop('exc_info', True)
        extra = kwargs.pop('extra', {})
        extra['exception'] = format_exception(exc_info)
        kwargs['exc_info'] = False
        kwargs['extra'] = extra
        super().exception(message, *args, **kwargs)

logger = SingleLineLogger(
    service=os.environ.get('POWERTOOLS_SERVICE_NAME', 'cycle_tracker'),
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    log_uncaught_exceptions=True,
    # datetimes and Decimals from DynamoDB items appear in extra fields
    json_serializer=partial(json.dumps, default=str),
    use_rfc3339=True
)

logger.append_keys(
    region=os.environ.get('AWS_REGION'),
    function=os.environ.get('AWS_LAMBDA_FUNCTION_NAME'),
    version=os.environ.get('AWS_LAMBDA_FUNCTION_VERSION')
)

@contextmanager
def request_keys(**keys) -> Iterator[None]:
    """
    Attach keys to every record logged inside the block.

    Example:
        with request_keys(user_id=user_id):
            logger.info("Processing request")
    """
    logger.append_keys(**keys)
    try:
        yield
    finally:
        logger.remove_keys(list(keys))
