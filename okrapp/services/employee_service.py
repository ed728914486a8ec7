from typing import List, Optional, Set

from sqlalchemy import func

from okrapp.core.context import ActingUser
from okrapp.core.exceptions import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    ValidationFailedError,
)
from okrapp.models.employee import Employee, EmployeeRole
from okrapp.models.user import UserRole
from okrapp.schemas.employee import EmployeeCreate, EmployeeUpdate, RoleCreate, RoleUpdate
from okrapp.services.base import BaseService


def visible_employees(query):
    """The one place that decides which employees are visible: active ones."""
    return query.filter(Employee.is_active == True)


class EmployeeService(BaseService):
    # --- Roles ---

    def list_roles(self, active_only: bool = False) -> List[EmployeeRole]:
        query = self.db.query(EmployeeRole)
        if active_only:
            query = query.filter(EmployeeRole.is_active == True)
        return query.order_by(EmployeeRole.name).all()

    def get_role(self, role_id: int) -> EmployeeRole:
        role = self.db.get(EmployeeRole, role_id)
        if not role:
            raise NotFoundError("Role not found.")
        return role

    def _ensure_unique_role_name(self, name: str, exclude_id: Optional[int] = None):
        query = self.db.query(EmployeeRole).filter(func.lower(EmployeeRole.name) == name.lower())
        if exclude_id is not None:
            query = query.filter(EmployeeRole.id != exclude_id)
        if query.first():
            raise ConflictError("A role with this name already exists.")

    def create_role(self, data: RoleCreate) -> EmployeeRole:
        self._ensure_unique_role_name(data.name)
        role = EmployeeRole(name=data.name, description=data.description, is_active=data.is_active)
        self.db.add(role)
        self.commit()
        self.db.refresh(role)
        return role

    def update_role(self, role_id: int, data: RoleUpdate) -> EmployeeRole:
        role = self.get_role(role_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            self._ensure_unique_role_name(changes["name"], exclude_id=role.id)
        for field, value in changes.items():
            setattr(role, field, value)
        self.commit()
        self.db.refresh(role)
        return role

    def delete_role(self, role_id: int):
        role = self.get_role(role_id)
        in_use = self.db.query(Employee.id).filter(Employee.role_id == role.id).first()
        if in_use:
            raise ConflictError(f"Cannot delete role '{role.name}' because it is currently assigned to employees.")
        self.db.delete(role)
        self.commit()

    # --- Employees ---

    def get_employee(self, employee_id: int) -> Employee:
        employee = self.db.get(Employee, employee_id)
        if not employee:
            raise NotFoundError("Employee not found.")
        return employee

    def employee_for_user(self, user_id: int) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.user_id == user_id).first()

    def list_employees(self) -> List[Employee]:
        return visible_employees(self.db.query(Employee)).order_by(Employee.last_name, Employee.first_name).all()

    def list_team(self, manager_id: int) -> List[Employee]:
        return visible_employees(self.db.query(Employee)).filter(
            Employee.manager_id == manager_id
        ).order_by(Employee.last_name, Employee.first_name).all()

    def _reports_of(self, employee_id: int) -> Set[int]:
        """Transitive direct/indirect report ids."""
        seen: Set[int] = set()
        frontier = [employee_id]
        while frontier:
            rows = self.db.query(Employee.id).filter(Employee.manager_id.in_(frontier)).all()
            frontier = [row.id for row in rows if row.id not in seen]
            seen.update(frontier)
        return seen

    def _check_manager(self, employee_id: Optional[int], manager_id: Optional[int]):
        if manager_id is None:
            return
        manager = self.db.get(Employee, manager_id)
        if not manager or not manager.is_active:
            raise NotFoundError("Manager not found.")
        if employee_id is not None and (manager_id == employee_id or manager_id in self._reports_of(employee_id)):
            raise ValidationFailedError(
                "Manager assignment would create a reporting cycle.",
                details={"employee_id": employee_id, "manager_id": manager_id},
            )

    def _can_manage(self, actor: ActingUser, employee: Employee) -> bool:
        if actor.is_hr_or_admin:
            return True
        return actor.role == UserRole.MANAGER and employee.manager_id == actor.employee_id

    def create_employee(self, actor: ActingUser, data: EmployeeCreate) -> Employee:
        values = data.model_dump()
        if not actor.is_hr_or_admin:
            # Managers can only add their own direct reports
            values["manager_id"] = actor.require_employee_id()
        self._check_manager(None, values["manager_id"])
        if values["role_id"] is not None:
            role = self.get_role(values["role_id"])
            values["role"] = values["role"] or role.name

        employee = Employee(**values)
        self.db.add(employee)
        self.commit()
        self.db.refresh(employee)
        self.log_info(f"Created employee {employee.id} ({employee.email})")
        return employee

    def update_employee(self, actor: ActingUser, employee_id: int, data: EmployeeUpdate) -> Employee:
        employee = self.get_employee(employee_id)
        if not self._can_manage(actor, employee):
            raise AccessDeniedError("You don't have permission to edit this employee.")
        changes = data.model_dump(exclude_unset=True)
        if "manager_id" in changes:
            if not actor.is_hr_or_admin:
                raise AccessDeniedError("Only HR can reassign managers.")
            self._check_manager(employee.id, changes["manager_id"])
        if changes.get("role_id") is not None:
            self.get_role(changes["role_id"])
        for field, value in changes.items():
            setattr(employee, field, value)
        self.commit()
        self.db.refresh(employee)
        return employee

    def deactivate_employee(self, actor: ActingUser, employee_id: int) -> Employee:
        employee = self.get_employee(employee_id)
        if not self._can_manage(actor, employee):
            raise AccessDeniedError("You don't have permission to deactivate this employee.")
        employee.is_active = False
        self.commit()
        self.log_info(f"Deactivated employee {employee.id}")
        return employee
