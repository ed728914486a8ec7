"""
Template instantiation: copies an OKR template's objective/key result tree
into a new Draft review.
"""
from datetime import date
from typing import Dict, List, Optional

from okrapp.core.context import ActingUser
from okrapp.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from okrapp.models.employee import Employee
from okrapp.models.okr_template import OKRTemplate
from okrapp.models.performance_review import (
    ACTIVE_STATUSES,
    KeyResult,
    Objective,
    PerformanceReview,
    ReviewStatus,
)
from okrapp.schemas.review import AssignmentResult
from okrapp.services.base import BaseService
from okrapp.services.notification_service import NotificationEvent, NotificationService, NotificationSink
from okrapp.services.template_service import TemplateService


def clone_objectives(template: OKRTemplate) -> List[Objective]:
    """
    Fresh Objective/KeyResult entities copied from the template, in ascending
    sort order. Nothing is shared with the template graph.
    """
    objectives = []
    for t_obj in sorted(template.objectives, key=lambda o: (o.sort_order, o.id or 0)):
        objective = Objective(
            name=t_obj.name,
            weight=t_obj.weight,
            description=t_obj.description or "",
            sort_order=t_obj.sort_order,
        )
        for t_kr in sorted(t_obj.key_results, key=lambda k: (k.sort_order, k.id or 0)):
            bands = t_kr.rating_bands
            objective.key_results.append(KeyResult(
                name=t_kr.name,
                target=t_kr.target or "",
                measure=t_kr.measure or "",
                linked_objectives=t_kr.linked_objectives or "",
                measurement_source=t_kr.measurement_source or "",
                weight=t_kr.weight,
                sort_order=t_kr.sort_order,
                rating1_description=bands[0],
                rating2_description=bands[1],
                rating3_description=bands[2],
                rating4_description=bands[3],
                rating5_description=bands[4],
                employee_rating=None,
                manager_rating=None,
                final_rating=None,
                employee_comments="",
                manager_comments="",
                final_comments="",
                discussion_notes="",
            ))
        objectives.append(objective)
    return objectives


def _period_label(start: date, end: date) -> str:
    return f"{start:%b %d, %Y} - {end:%b %d, %Y}"


class InstantiationService(BaseService):
    def __init__(self, db, notifier: Optional[NotificationSink] = None):
        super().__init__(db)
        self.notifier = notifier or NotificationService(db)
        self.templates = TemplateService(db)

    def has_active_review(self, employee_id: int) -> bool:
        return self.db.query(PerformanceReview.id).filter(
            PerformanceReview.employee_id == employee_id,
            PerformanceReview.status.in_(ACTIVE_STATUSES)
        ).first() is not None

    def _emit(self, event: NotificationEvent):
        try:
            self.notifier.notify(event)
        except Exception as e:
            # Don't fail the workflow if notification fails
            self.log_warning(f"Notification failed: {e}")

    def _validate_period(self, period_start: date, period_end: date):
        if period_start >= period_end:
            raise ValidationFailedError(
                "Review period start must precede its end.",
                details={"period_start": str(period_start), "period_end": str(period_end)},
            )

    def _get_employee(self, employee_id: int) -> Employee:
        employee = self.db.get(Employee, employee_id)
        if not employee:
            raise NotFoundError("Employee not found.")
        return employee

    def _instantiate(
        self,
        actor: ActingUser,
        template: OKRTemplate,
        employee: Employee,
        manager: Employee,
        period_start: date,
        period_end: date,
        description: Optional[str],
        assigned_by: str,
    ) -> PerformanceReview:
        review = PerformanceReview(
            employee_id=employee.id,
            manager_id=manager.id,
            status=ReviewStatus.DRAFT,
            period_start=period_start,
            period_end=period_end,
            template_id=template.id,
            employee_self_assessment=description or "",
            manager_assessment="",
            final_assessment="",
            discussion_notes="",
            employee_signature="",
            manager_signature="",
        )
        review.objectives.extend(clone_objectives(template))
        self.db.add(review)
        self.db.flush()

        period = _period_label(period_start, period_end)
        if employee.user_id is not None:
            self._emit(NotificationEvent(
                recipient_user_id=employee.user_id,
                sender_user_id=actor.user_id,
                title="New OKR Assigned",
                message=f"{assigned_by} has assigned you a new OKR for the period {period}. Please review and complete it.",
                type="OKR_Assigned",
                action_url="/employee/reviews/active",
                related_entity_id=review.id,
                related_entity_type="PerformanceReview",
            ))
        if manager.user_id is not None and manager.user_id != actor.user_id:
            self._emit(NotificationEvent(
                recipient_user_id=manager.user_id,
                sender_user_id=actor.user_id,
                title="New OKR Assigned to Your Team Member",
                message=(
                    f"{assigned_by} has assigned a new OKR to {employee.display_name} for the period {period}. "
                    "Please review it once the employee completes their self-assessment."
                ),
                type="OKR_Assigned_Manager",
                action_url="/manager/reviews/pending",
                related_entity_id=review.id,
                related_entity_type="PerformanceReview",
            ))
        return review

    def _get_active_template(self, template_id: int) -> OKRTemplate:
        template = self.templates.get_template(template_id)
        if not template.is_active:
            raise NotFoundError("Selected template not found.")
        return template

    def _resolve_manager(self, actor: ActingUser, employee: Employee) -> Employee:
        manager_id = employee.manager_id or actor.require_employee_id()
        manager = self.db.get(Employee, manager_id)
        if not manager:
            raise NotFoundError("Manager record not found.")
        return manager

    def _resolve_managers(self, actor: ActingUser, employees: List[Employee]) -> Dict[int, Employee]:
        """Manager per employee, resolved up front so a missing record aborts before any write."""
        return {employee.id: self._resolve_manager(actor, employee) for employee in employees}

    @staticmethod
    def _assigned_by(actor: ActingUser) -> str:
        return "HR" if actor.is_hr_or_admin else "Your manager"

    def create_review(
        self,
        actor: ActingUser,
        employee_id: int,
        period_start: date,
        period_end: date,
        template_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> PerformanceReview:
        """
        Creates one Draft review. Without an explicit template the active
        template for the employee's role is used.
        """
        self._validate_period(period_start, period_end)
        employee = self._get_employee(employee_id)

        if template_id is not None:
            template = self._get_active_template(template_id)
        else:
            template = self.templates.find_template_for_role(employee.role_id)
            if template is None:
                raise NotFoundError(f"No OKR template found for role: {employee.role}")

        if self.has_active_review(employee.id):
            raise ConflictError(
                f"{employee.display_name} already has an active review.",
                details={"employee_id": employee.id},
            )

        manager = self._resolve_manager(actor, employee)
        review = self._instantiate(
            actor, template, employee, manager, period_start, period_end, description, self._assigned_by(actor)
        )
        self.commit()
        self.log_info(
            f"Created review {review.id} for employee {employee.id} from template {template.id}",
            review_id=review.id,
        )
        return review

    def assign_template(
        self,
        actor: ActingUser,
        template_id: int,
        employee_ids: List[int],
        period_start: date,
        period_end: date,
        description: Optional[str] = None,
    ) -> AssignmentResult:
        """
        Broadcasts a template to several employees. Each employee is handled
        and persisted on its own; employees with an active review are skipped.
        """
        self._validate_period(period_start, period_end)
        template = self._get_active_template(template_id)
        employees = self.db.query(Employee).filter(Employee.id.in_(employee_ids)).order_by(Employee.id).all()
        if not employees:
            raise ValidationFailedError("Please select at least one employee.")

        assigned_by = self._assigned_by(actor)
        created: List[int] = []
        skipped: List[str] = []

        pending = []
        for employee in employees:
            if self.has_active_review(employee.id):
                skipped.append(employee.display_name)
                self.log_info(f"Skipping employee {employee.id}: active review exists")
            else:
                pending.append(employee)
        managers = self._resolve_managers(actor, pending)

        for employee in pending:
            review = self._instantiate(
                actor, template, employee, managers[employee.id], period_start, period_end, description, assigned_by
            )
            self.commit()
            created.append(review.id)

        if skipped:
            names = ", ".join(skipped)
            if created:
                self._emit(NotificationEvent(
                    recipient_user_id=actor.user_id,
                    sender_user_id=actor.user_id,
                    title="Partial Review Creation Success",
                    message=(
                        f"Successfully created {len(created)} review(s), but skipped {len(skipped)} "
                        f"employee(s) who already have active reviews: {names}."
                    ),
                    type="Review_Creation_Partial",
                    related_entity_type="ReviewCreation",
                ))
            else:
                self._emit(NotificationEvent(
                    recipient_user_id=actor.user_id,
                    sender_user_id=actor.user_id,
                    title="Review Creation Failed",
                    message=f"No reviews were created. All selected employees already have active reviews: {names}.",
                    type="Review_Creation_Failed",
                    related_entity_type="ReviewCreation",
                ))
            self.commit()

        self.log_info(
            f"Template {template.id} assigned: {len(created)} created, {len(skipped)} skipped",
            template_id=template.id,
        )
        return AssignmentResult(created_review_ids=created, skipped=skipped)
