from typing import Optional
from sqlalchemy.orm import Session

from app.models.user import User, UserRole


def get_user(db: Session, user_id: int) -> Optional[User]:
    """
    Obtiene un usuario por su ID.
    """
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """
    Obtiene un usuario por su email.
    """
    return db.query(User).filter(User.email == email).first()


def create_user(
    db: Session,
    email: str,
    username: str = None,
    full_name: str = None,
    role: str = UserRole.USER.value,
) -> User:
    """
    Registra un usuario ya autenticado por el proveedor externo.
    """
    db_user = User(
        email=email,
        username=username or email.split('@')[0],  # Usar email como fallback
        full_name=full_name,
        role=role,
        is_active=True
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user
