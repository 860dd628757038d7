"""
Service-level exceptions.

This module contains exceptions that can be raised by various services
in the application. Each ServiceError carries the error kind reported to
the caller and the HTTP status the handler middleware answers with.
"""

class ServiceError(Exception):
    """Base exception for failures surfaced to the caller."""
    code = "internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Serialize the error for a response body."""
        return {"code": self.code, "message": self.message}

class UnauthenticatedError(ServiceError):
    """Raised when the request carries no valid caller identity."""
    code = "unauthenticated"
    status_code = 401

class InvalidArgumentError(ServiceError):
    """Raised for out-of-range or missing request fields."""
    code = "invalid-argument"
    status_code = 400

class NotFoundError(ServiceError):
    """Raised when a referenced user or cycle record is absent."""
    code = "not-found"
    status_code = 404

class PreconditionFailedError(ServiceError):
    """Raised when an operation requires state that is not present."""
    code = "precondition-failed"
    status_code = 412

class InternalError(ServiceError):
    """Raised for unexpected failures in the store or a computation."""
    code = "internal"
    status_code = 500

class ConcurrentUpdateError(Exception):
    """Raised when a versioned profile write loses a race with another writer."""
    pass
