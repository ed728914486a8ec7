# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import user, employee, okr_template, performance_review, notification

# Explicit class exports for cleaner imports
from .user import User, UserRole
from .employee import Employee, EmployeeRole
from .okr_template import OKRTemplate, TemplateObjective, TemplateKeyResult
from .performance_review import (
    PerformanceReview,
    Objective,
    KeyResult,
    ReviewComment,
    ReviewStatus,
    CommentType,
)
from .notification import Notification

__all__ = [
    "User",
    "UserRole",
    "Employee",
    "EmployeeRole",
    "OKRTemplate",
    "TemplateObjective",
    "TemplateKeyResult",
    "PerformanceReview",
    "Objective",
    "KeyResult",
    "ReviewComment",
    "ReviewStatus",
    "CommentType",
    "Notification",
]
