from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from okrapp.core.context import ActingUser
from okrapp.core.init_system import reseed_default_templates
from okrapp.core.schemas import ApiResponse
from okrapp.database import get_db
from okrapp.routers.auth_deps import get_acting_user, require_admin
from okrapp.schemas.template import TemplateCreate, TemplateObjectiveIn, TemplateResponse, TemplateUpdate
from okrapp.services.template_service import TemplateService

router = APIRouter(prefix="/templates", tags=["OKR Templates"])


@router.get("", response_model=List[TemplateResponse])
def list_templates(
    role_id: Optional[int] = None,
    active_only: bool = True,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return TemplateService(db).list_templates(role_id=role_id, active_only=active_only)


@router.get("/{template_id}", response_model=TemplateResponse)
def get_template(template_id: int, db: Session = Depends(get_db), actor: ActingUser = Depends(get_acting_user)):
    return TemplateService(db).get_template(template_id)


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateCreate,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_admin()),
):
    return TemplateService(db).create_template(payload)


@router.patch("/{template_id}", response_model=TemplateResponse)
def update_template(
    template_id: int,
    payload: TemplateUpdate,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_admin()),
):
    return TemplateService(db).update_template(template_id, payload)


@router.put("/{template_id}/objectives", response_model=TemplateResponse)
def replace_objectives(
    template_id: int,
    objectives: List[TemplateObjectiveIn],
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_admin()),
):
    """Replaces the whole objective tree; existing reviews are unaffected."""
    return TemplateService(db).replace_objectives(template_id, objectives)


@router.delete("/{template_id}", response_model=TemplateResponse)
def deactivate_template(
    template_id: int,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_admin()),
):
    return TemplateService(db).deactivate_template(template_id)


@router.post("/reseed")
def reseed_templates(db: Session = Depends(get_db), actor: ActingUser = Depends(require_admin())):
    rebuilt = reseed_default_templates(db)
    return ApiResponse.ok({"templates_reseeded": rebuilt})
