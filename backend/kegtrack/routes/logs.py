from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from kegtrack.core.database import get_db
from kegtrack.core.deps import require_admin
from kegtrack.core.serialization_helpers import serialize_datetime
from kegtrack.models.app_log import AppLog
from kegtrack.models.user import User


router = APIRouter()


class AppLogOut(BaseModel):
    id: int
    timestamp: str
    level: str
    message: str
    component: str
    stack: Optional[str]
    user_email: str


@router.get("/", response_model=List[AppLogOut])
def list_logs(
    level: Optional[str] = Query(None, description="ERROR, WARNING o INFO"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(AppLog)
    if level:
        query = query.filter(AppLog.level == level)
    logs = query.order_by(AppLog.timestamp.desc(), AppLog.id.desc()).limit(limit).all()
    return [
        {
            "id": log.id,
            "timestamp": serialize_datetime(log.timestamp),
            "level": log.level,
            "message": log.message,
            "component": log.component,
            "stack": log.stack,
            "user_email": log.user_email,
        }
        for log in logs
    ]
