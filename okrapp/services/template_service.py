from typing import Iterable, List, Optional

from sqlalchemy.orm import selectinload

from okrapp.core.exceptions import NotFoundError
from okrapp.models.okr_template import OKRTemplate, TemplateObjective, TemplateKeyResult
from okrapp.schemas.template import TemplateCreate, TemplateObjectiveIn, TemplateUpdate
from okrapp.services.base import BaseService


def build_template_objectives(objectives: Iterable[TemplateObjectiveIn]) -> List[TemplateObjective]:
    """Turns request payloads into unsaved template objective/key result rows."""
    built = []
    for obj_in in objectives:
        objective = TemplateObjective(
            name=obj_in.name,
            weight=obj_in.weight,
            description=obj_in.description,
            sort_order=obj_in.sort_order,
        )
        for kr_in in obj_in.key_results:
            objective.key_results.append(TemplateKeyResult(**kr_in.model_dump()))
        built.append(objective)
    return built


class TemplateService(BaseService):
    """Read-mostly catalog of role-scoped OKR templates."""

    def _query(self):
        return self.db.query(OKRTemplate).options(
            selectinload(OKRTemplate.objectives).selectinload(TemplateObjective.key_results)
        )

    def get_template(self, template_id: int) -> OKRTemplate:
        template = self._query().filter(OKRTemplate.id == template_id).first()
        if not template:
            raise NotFoundError("Selected template not found.")
        return template

    def list_templates(self, role_id: Optional[int] = None, active_only: bool = False) -> List[OKRTemplate]:
        query = self._query()
        if role_id is not None:
            query = query.filter(OKRTemplate.role_id == role_id)
        if active_only:
            query = query.filter(OKRTemplate.is_active == True)
        return query.order_by(OKRTemplate.name).all()

    def find_template_for_role(self, role_id: Optional[int]) -> Optional[OKRTemplate]:
        if role_id is None:
            return None
        return self._query().filter(
            OKRTemplate.role_id == role_id,
            OKRTemplate.is_active == True
        ).order_by(OKRTemplate.id).first()

    def create_template(self, data: TemplateCreate) -> OKRTemplate:
        template = OKRTemplate(
            name=data.name,
            role=data.role,
            description=data.description,
            role_id=data.role_id,
            is_active=True,
        )
        template.objectives.extend(build_template_objectives(data.objectives))
        self.db.add(template)
        self.commit()
        self.db.refresh(template)
        self.log_info(f"Created OKR template {template.id} '{template.name}'")
        return template

    def update_template(self, template_id: int, data: TemplateUpdate) -> OKRTemplate:
        template = self.get_template(template_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(template, field, value)
        self.commit()
        self.db.refresh(template)
        return template

    def replace_objectives(self, template_id: int, objectives: Iterable[TemplateObjectiveIn]) -> OKRTemplate:
        """
        Rebuilds the objective tree under the same template id. Reviews already
        instantiated keep their own copies.
        """
        template = self.get_template(template_id)
        template.objectives.clear()
        self.db.flush()
        template.objectives.extend(build_template_objectives(objectives))
        self.commit()
        self.db.refresh(template)
        self.log_info(f"Re-seeded objectives of template {template.id}")
        return template

    def deactivate_template(self, template_id: int) -> OKRTemplate:
        template = self.get_template(template_id)
        template.is_active = False
        self.commit()
        return template
