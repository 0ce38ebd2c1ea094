# app/scripts/create_admin.py
import argparse
import logging
from app.core.security import create_access_token
from app.db.session import SessionLocal
from app.crud.crud_user import get_user_by_email, create_user
from app.models.user import UserRole

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Crea un usuario administrador para el panel de progreso")
    parser.add_argument("--email", default="admin@example.com")
    parser.add_argument("--full-name", default=None)
    parser.add_argument("--super", action="store_true", help="Crear como SUPER_ADMIN")
    args = parser.parse_args()

    logger.info("Iniciando creación de usuario administrador...")
    role = UserRole.SUPER_ADMIN.value if args.super else UserRole.ADMIN.value
    db = SessionLocal()
    try:
        user = get_user_by_email(db, email=args.email)
        if not user:
            user = create_user(db, email=args.email, full_name=args.full_name, role=role)
            logger.info(f"Usuario administrador '{args.email}' creado exitosamente.")
        else:
            logger.info(f"El usuario administrador '{args.email}' ya existe.")
        logger.info(f"Token de acceso: {create_access_token(subject=user.email)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
