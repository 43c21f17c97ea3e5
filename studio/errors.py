"""Error taxonomy shared by routers, adapters and the publish orchestrator.

Every error renders as ``{"error": message}`` with the class status code.
Adapters raise these; the orchestrator turns them into failed per-platform
results instead of letting one platform abort the others.
"""

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class StudioError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(StudioError):
    status_code = 400


class NotConnectedError(StudioError):
    """No SocialAccount exists for the requested (user, platform)."""
    status_code = 400


class AuthExpiredError(StudioError):
    """Platform token invalid or expired; the user has to reconnect."""
    status_code = 401


class OwnershipError(StudioError):
    status_code = 403


class NotFoundError(StudioError):
    status_code = 404


class PublishConflictError(StudioError):
    status_code = 400


class PlatformAPIError(StudioError):
    status_code = 502


class ConfigurationError(StudioError):
    status_code = 500


class InfrastructureError(StudioError):
    status_code = 500


def _request_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    field = ".".join(loc)
    if first.get("type") == "missing" and field:
        return f"{field} is required"
    msg = first.get("msg", "Invalid request")
    return f"{field}: {msg}" if field else msg


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StudioError)
    async def _studio_error(request: Request, exc: StudioError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, status=exc.status_code, error=exc.message)
        else:
            logger.info("request_rejected", path=request.url.path, status=exc.status_code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _request_validation_message(exc)})
