from sqlalchemy import func

from okrapp.models.employee import Employee
from okrapp.models.performance_review import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    PerformanceReview,
)
from okrapp.schemas.review import ReviewReport
from okrapp.services.base import BaseService
from okrapp.services.employee_service import visible_employees


class ReportService(BaseService):
    def system_summary(self) -> ReviewReport:
        total_employees = visible_employees(self.db.query(Employee)).count()
        total_reviews = self.db.query(PerformanceReview).count()
        active_reviews = self.db.query(PerformanceReview).filter(
            PerformanceReview.status.in_(ACTIVE_STATUSES)
        ).count()
        completed_reviews = self.db.query(PerformanceReview).filter(
            PerformanceReview.status.in_(TERMINAL_STATUSES)
        ).count()

        by_status = self.db.query(
            PerformanceReview.status, func.count(PerformanceReview.id)
        ).group_by(PerformanceReview.status).all()

        by_role = self.db.query(
            Employee.role, func.count(PerformanceReview.id)
        ).select_from(PerformanceReview).join(
            Employee, PerformanceReview.employee_id == Employee.id
        ).group_by(Employee.role).all()

        return ReviewReport(
            total_employees=total_employees,
            total_reviews=total_reviews,
            active_reviews=active_reviews,
            completed_reviews=completed_reviews,
            reviews_by_status={status.value: count for status, count in by_status},
            reviews_by_role={(role or "Unassigned"): count for role, count in by_role},
        )
