"""
RBAC dependencies.
Resolves the bearer token into a User and the ActingUser context the
review services expect.
"""
import logging
from typing import Callable, List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from okrapp.core.context import ActingUser
from okrapp.database import get_db
from okrapp.models.user import User, UserRole
from okrapp.services import auth as auth_service
from okrapp.services.employee_service import EmployeeService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """
    Extracts and validates the current user from the JWT token.
    """
    payload = auth_service.decode_access_token(token)

    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="TOKEN_EXPIRED",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        logger.warning("Authentication failed: Missing subject in token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing subject in token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.get(User, int(subject))
    if user is None:
        logger.warning(f"Authentication failed: User {subject} not found in database")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        logger.warning(f"Authentication failed: User {subject} is inactive")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive"
        )
    return user


def get_acting_user(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> ActingUser:
    employee = EmployeeService(db).employee_for_user(current_user.id)
    return ActingUser(
        user_id=current_user.id,
        role=current_user.role,
        employee_id=employee.id if employee else None,
    )


def require_role(allowed_roles: List[UserRole]) -> Callable:
    """
    Dependency factory that checks if the user has one of the allowed roles.

    Usage:
        @router.post("/templates")
        def create(actor: ActingUser = Depends(require_role([UserRole.ADMIN]))):
            ...
    """
    def role_checker(actor: ActingUser = Depends(get_acting_user)) -> ActingUser:
        if not actor.is_in_role(*allowed_roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return actor
    return role_checker


def require_admin():
    return require_role([UserRole.ADMIN])


def require_hr_or_admin():
    return require_role([UserRole.ADMIN, UserRole.HR])


def require_manager():
    """Managers plus HR/admin, who can act on any team."""
    return require_role([UserRole.ADMIN, UserRole.HR, UserRole.MANAGER])
