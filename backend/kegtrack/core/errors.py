"""
Taxonomía de errores del dominio.
Los servicios lanzan estas excepciones; main.create_app registra los handlers
que las traducen a respuestas HTTP.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask


logger = logging.getLogger(__name__)


class KegTrackError(Exception):
    status_code = 400
    code = "error"
    # Errores que se registran en app_logs además de devolverse al cliente
    audit = False

    def __init__(self, message: str, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class NotFound(KegTrackError):
    status_code = 404
    code = "not_found"


class InvalidTransition(KegTrackError):
    status_code = 409
    code = "invalid_transition"


class ValidationError(KegTrackError):
    status_code = 422
    code = "validation_error"


class IndexRequired(KegTrackError):
    status_code = 400
    code = "index_required"
    audit = True


class PermissionDenied(KegTrackError):
    status_code = 403
    code = "permission_denied"


class TransientStoreError(KegTrackError):
    status_code = 503
    code = "store_unavailable"
    audit = True


class TransactionConflict(KegTrackError):
    status_code = 409
    code = "transaction_conflict"
    audit = True


def _user_email(request: Request) -> Optional[str]:
    return getattr(request.state, "user_email", None)


def setup_exception_handlers(app: FastAPI) -> None:
    from kegtrack.core.audit import log_app_event, log_exception

    @app.exception_handler(KegTrackError)
    async def kegtrack_error_handler(request: Request, exc: KegTrackError):
        content = {"detail": exc.message, "code": exc.code}
        if exc.detail:
            content["context"] = exc.detail
        background = None
        if exc.audit:
            background = BackgroundTask(
                log_app_event, "ERROR", exc.message, request.url.path, None, _user_email(request)
            )
        return JSONResponse(content=content, status_code=exc.status_code, background=background)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s", request.url.path)
        return JSONResponse(
            content={"detail": "Error interno. Por favor, inténtalo de nuevo.", "code": "internal_error"},
            status_code=500,
            background=BackgroundTask(log_exception, exc, request.url.path, _user_email(request)),
        )
