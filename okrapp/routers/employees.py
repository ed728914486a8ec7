from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from okrapp.core.context import ActingUser
from okrapp.database import get_db
from okrapp.routers.auth_deps import get_acting_user, require_admin, require_manager
from okrapp.schemas.employee import (
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
)
from okrapp.services.employee_service import EmployeeService

router = APIRouter(tags=["Employees"])


# --- Roles ---

@router.get("/roles", response_model=List[RoleResponse])
def list_roles(active_only: bool = False, db: Session = Depends(get_db), actor: ActingUser = Depends(get_acting_user)):
    return EmployeeService(db).list_roles(active_only=active_only)


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(payload: RoleCreate, db: Session = Depends(get_db), actor: ActingUser = Depends(require_admin())):
    return EmployeeService(db).create_role(payload)


@router.patch("/roles/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: int,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_admin()),
):
    return EmployeeService(db).update_role(role_id, payload)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(role_id: int, db: Session = Depends(get_db), actor: ActingUser = Depends(require_admin())):
    EmployeeService(db).delete_role(role_id)


# --- Employees ---

@router.get("/employees", response_model=List[EmployeeResponse])
def list_employees(db: Session = Depends(get_db), actor: ActingUser = Depends(require_manager())):
    return EmployeeService(db).list_employees()


@router.get("/employees/team", response_model=List[EmployeeResponse])
def my_team(db: Session = Depends(get_db), actor: ActingUser = Depends(require_manager())):
    return EmployeeService(db).list_team(actor.require_employee_id())


@router.get("/employees/{employee_id}", response_model=EmployeeResponse)
def get_employee(employee_id: int, db: Session = Depends(get_db), actor: ActingUser = Depends(require_manager())):
    return EmployeeService(db).get_employee(employee_id)


@router.post("/employees", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
def create_employee(
    payload: EmployeeCreate,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_manager()),
):
    return EmployeeService(db).create_employee(actor, payload)


@router.patch("/employees/{employee_id}", response_model=EmployeeResponse)
def update_employee(
    employee_id: int,
    payload: EmployeeUpdate,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_manager()),
):
    return EmployeeService(db).update_employee(actor, employee_id, payload)


@router.delete("/employees/{employee_id}", response_model=EmployeeResponse)
def deactivate_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_manager()),
):
    return EmployeeService(db).deactivate_employee(actor, employee_id)
