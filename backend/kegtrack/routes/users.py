from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from kegtrack.core.database import get_db
from kegtrack.core.deps import get_current_user, require_admin
from kegtrack.core.errors import NotFound, ValidationError
from kegtrack.core.roles import Role
from kegtrack.models.user import User


router = APIRouter()


class UserOut(BaseModel):
    id: str
    email: Optional[str]
    role: str

    class Config:
        from_attributes = True


class RoleUpdate(BaseModel):
    role: str


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.get("/", response_model=List[UserOut])
def list_users(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return db.query(User).order_by(User.email.asc()).all()


@router.put("/{user_id}/role", response_model=UserOut)
def update_role(user_id: str, data: RoleUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if data.role not in {r.value for r in Role}:
        raise ValidationError(f"Rol inválido: {data.role}")
    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise NotFound(f"Usuario {user_id} no encontrado")
    target.role = data.role
    db.commit()
    db.refresh(target)
    return target
