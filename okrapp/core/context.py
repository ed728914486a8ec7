"""
Explicit acting-user context threaded into every workflow call.
"""
from dataclasses import dataclass
from typing import Optional

from okrapp.core.exceptions import NotFoundError
from okrapp.models.user import UserRole


@dataclass(frozen=True)
class ActingUser:
    user_id: int
    role: UserRole
    employee_id: Optional[int] = None

    def is_in_role(self, *roles: UserRole) -> bool:
        return self.role in roles

    @property
    def is_hr_or_admin(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.HR)

    def require_employee_id(self) -> int:
        if self.employee_id is None:
            raise NotFoundError("Employee record not found.")
        return self.employee_id
