"""
Registro de auditoría en la colección app_logs.
Es de mejor esfuerzo: un fallo al escribir el log nunca debe afectar la operación que describe.
"""
import logging
import traceback
from typing import Optional

from kegtrack.models.app_log import AppLog


logger = logging.getLogger(__name__)


def log_app_event(
    level: str,
    message: str,
    component: str,
    stack: Optional[str] = None,
    user_email: Optional[str] = None,
    session_factory=None,
) -> None:
    if session_factory is None:
        from kegtrack.core.database import SessionLocal
        session_factory = SessionLocal
    try:
        with session_factory() as db:
            db.add(AppLog(
                level=level,
                message=message,
                component=component,
                stack=stack,
                user_email=user_email or "anonymous",
            ))
            db.commit()
    except Exception:
        logger.exception("Failed to write to app_logs: %s", message)


def log_exception(exc: BaseException, component: str, user_email: Optional[str] = None) -> None:
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    log_app_event("ERROR", str(exc) or type(exc).__name__, component, stack=stack, user_email=user_email)
