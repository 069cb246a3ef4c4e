"""Domain errors raised by the service layer.

``core.error_handlers.domain_exception_handler`` renders them with the same
error envelope as ``HTTPException``, so services never import FastAPI.
"""


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError, ValueError):
    status_code = 400


class NotFoundError(DomainError, LookupError):
    status_code = 404


class ConflictError(DomainError):
    status_code = 409


class ForbiddenError(DomainError, PermissionError):
    status_code = 403
