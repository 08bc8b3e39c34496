"""Domain error taxonomy and its HTTP rendering"""
import logging
from typing import Any, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFoundError(DomainError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource_name: str, resource_id: Optional[Any] = None):
        self.resource_name = resource_name
        self.resource_id = resource_id
        if resource_id is not None:
            message = f"{resource_name} with id {resource_id} not found"
        else:
            message = f"{resource_name} not found"
        super().__init__(message, {"resource": resource_name, "id": resource_id})


class InvalidTransitionError(DomainError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Invalid state transition from {current} to {requested}",
            {"current": str(current), "requested": str(requested)},
        )


class ValidationFailedError(DomainError):
    code = "VALIDATION_FAILED"
    status_code = 422


class ConflictError(DomainError):
    code = "CONFLICT"
    status_code = 409

    def __init__(self, message: str, conflicting_ids: Iterable[str] = ()):
        self.conflicting_ids = list(conflicting_ids)
        super().__init__(message, {"conflicting_ids": self.conflicting_ids})


class PreconditionFailedError(DomainError):
    code = "PRECONDITION_FAILED"
    status_code = 412


class ForbiddenError(DomainError):
    code = "FORBIDDEN"
    status_code = 403


class ConcurrentModificationError(DomainError):
    code = "CONCURRENT_MODIFICATION"
    status_code = 409

    def __init__(self, resource_name: str, resource_id: Any):
        super().__init__(
            f"{resource_name} {resource_id} was modified by another request; reload and retry",
            {"resource": resource_name, "id": resource_id},
        )


def setup_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
