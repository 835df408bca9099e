"""
Global exception handlers.
Record validation and constraint failures raised by the ORM layer are turned
into the API's error envelope instead of surfacing as 500s.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from tortoise.exceptions import DoesNotExist, IntegrityError, ValidationError

logger = logging.getLogger("uvicorn.error")


class SessionStateError(Exception):
    """Raised when a lifecycle transition is not allowed from a session's current state."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def error_body(code: str, message: str) -> dict:
    return {"success": False, "error": {"code": code, "message": message}}


def register_exception_handlers(app: FastAPI) -> None:
    """Attach ORM-level exception handlers to the FastAPI app."""

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.info("[errors] validation failed on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body("VALIDATION_FAILED", str(exc)),
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        logger.warning("[errors] constraint violation on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body("CONFLICT", "Record conflicts with an existing one"),
        )

    @app.exception_handler(SessionStateError)
    async def handle_session_state_error(request: Request, exc: SessionStateError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body(exc.code, exc.message),
        )

    @app.exception_handler(DoesNotExist)
    async def handle_does_not_exist(request: Request, exc: DoesNotExist):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=error_body("NOT_FOUND", str(exc)),
        )
