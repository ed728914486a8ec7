import sys
import os
import logging
from sqlalchemy.orm import Session

# Ensure we can import okrapp modules
sys.path.append(os.getcwd())

from okrapp.database import SessionLocal, init_db
from okrapp.models.user import User, UserRole
from okrapp.services.auth import create_access_token

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def create_admin_user(email: str = "admin@example.com"):
    """Creates (or reuses) an Admin user and prints a bearer token for local use."""
    init_db()
    db: Session = SessionLocal()
    try:
        admin_user = db.query(User).filter(User.email == email).first()
        if admin_user:
            logger.warning(f"Admin user '{email}' already exists.")
        else:
            admin_user = User(
                email=email,
                full_name="System Administrator",
                role=UserRole.ADMIN,
                is_active=True,
            )
            db.add(admin_user)
            db.commit()
            db.refresh(admin_user)
            logger.info(f"Admin user created: {email}")

        token = create_access_token(data={"sub": admin_user.id, "role": admin_user.role.value})
        logger.info(f"Bearer token: {token}")
    except Exception as e:
        logger.error(f"Error creating admin user: {e}")
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    create_admin_user(*sys.argv[1:2])
