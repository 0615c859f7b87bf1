#!/usr/bin/env python3
"""
Script para dar el rol Admin a un usuario.
Los usuarios se crean como Operador en su primer acceso; el primer Admin se asigna con:
    python create_admin.py <sub-del-token> [email]
"""
import sys
import os

# Add the package directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from kegtrack.core.database import SessionLocal, init_db
from kegtrack.core.roles import Role
from kegtrack.models.user import User


def create_admin(subject: str, email: str = None):
    init_db()
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == subject).first()
        if user:
            user.role = Role.admin.value
            if email:
                user.email = email
            print(f"✓ Usuario '{subject}' actualizado a Admin")
        else:
            user = User(id=subject, email=email, role=Role.admin.value)
            db.add(user)
            print(f"✓ Usuario Admin '{subject}' creado")
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == '__main__':
    if len(sys.argv) < 2:
        print("Uso: python create_admin.py <sub> [email]")
        sys.exit(1)
    create_admin(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
