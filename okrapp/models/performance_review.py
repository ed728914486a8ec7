"""
Performance review aggregate: PerformanceReview owns its Objectives,
their KeyResults and the review's comments.
"""
import enum

from sqlalchemy import Column, Integer, String, Date, DateTime, Text, ForeignKey, Numeric, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from okrapp.database import Base


class ReviewStatus(str, enum.Enum):
    DRAFT = "Draft"
    EMPLOYEE_REVIEW = "Employee_Review"
    MANAGER_REVIEW = "Manager_Review"
    DISCUSSION = "Discussion"
    COMPLETED = "Completed"
    # Legacy terminal state still counted by history/report queries.
    # No transition produces it.
    SIGNED = "Signed"


ACTIVE_STATUSES = frozenset({
    ReviewStatus.DRAFT,
    ReviewStatus.EMPLOYEE_REVIEW,
    ReviewStatus.MANAGER_REVIEW,
    ReviewStatus.DISCUSSION,
})
TERMINAL_STATUSES = frozenset({ReviewStatus.COMPLETED, ReviewStatus.SIGNED})


class CommentType(str, enum.Enum):
    EMPLOYEE = "Employee"
    MANAGER = "Manager"
    DISCUSSION = "Discussion"
    FINAL = "Final"


class PerformanceReview(Base):
    __tablename__ = "performance_reviews"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    manager_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    status = Column(
        Enum(ReviewStatus, native_enum=False, length=50),
        default=ReviewStatus.DRAFT,
        nullable=False,
        index=True,
    )

    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    submitted_date = Column(DateTime, nullable=True)
    manager_reviewed_date = Column(DateTime, nullable=True)
    scheduled_discussion_date = Column(DateTime, nullable=True)
    discussion_date = Column(DateTime, nullable=True)
    finalized_date = Column(DateTime, nullable=True)

    employee_self_assessment = Column(Text, nullable=False, default="")
    manager_assessment = Column(Text, nullable=False, default="")
    final_assessment = Column(Text, nullable=False, default="")
    discussion_notes = Column(Text, nullable=False, default="")
    overall_rating = Column(Numeric(4, 2), nullable=True)

    # Digital signatures
    employee_signature = Column(String(500), nullable=False, default="")
    employee_signed_date = Column(DateTime, nullable=True)
    manager_signature = Column(String(500), nullable=False, default="")
    manager_signed_date = Column(DateTime, nullable=True)

    template_id = Column(Integer, ForeignKey("okr_templates.id", ondelete="SET NULL"), nullable=True)

    employee = relationship("Employee", foreign_keys=[employee_id])
    manager = relationship("Employee", foreign_keys=[manager_id])
    template = relationship("OKRTemplate")
    objectives = relationship(
        "Objective",
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="Objective.sort_order",
    )
    comments = relationship(
        "ReviewComment",
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="ReviewComment.id",
    )

    def __repr__(self):
        return f"<PerformanceReview {self.id} [{self.status.value}]>"

    @property
    def key_results(self) -> list:
        return [kr for objective in self.objectives for kr in objective.key_results]


class Objective(Base):
    __tablename__ = "objectives"

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("performance_reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    weight = Column(Numeric(18, 2), nullable=False, default=0)
    description = Column(Text, nullable=False, default="")
    sort_order = Column(Integer, nullable=False, default=0)

    review = relationship("PerformanceReview", back_populates="objectives")
    key_results = relationship(
        "KeyResult",
        back_populates="objective",
        cascade="all, delete-orphan",
        order_by="KeyResult.sort_order",
    )


class KeyResult(Base):
    __tablename__ = "key_results"

    id = Column(Integer, primary_key=True, index=True)
    objective_id = Column(Integer, ForeignKey("objectives.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    target = Column(Text, nullable=False, default="")
    measure = Column(Text, nullable=False, default="")
    linked_objectives = Column(Text, nullable=False, default="")
    measurement_source = Column(Text, nullable=False, default="")
    weight = Column(Numeric(18, 2), nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)

    rating1_description = Column(Text, nullable=False, default="")
    rating2_description = Column(Text, nullable=False, default="")
    rating3_description = Column(Text, nullable=False, default="")
    rating4_description = Column(Text, nullable=False, default="")
    rating5_description = Column(Text, nullable=False, default="")

    # Three independent rating slots, 1..5 each
    employee_rating = Column(Integer, nullable=True)
    manager_rating = Column(Integer, nullable=True)
    final_rating = Column(Integer, nullable=True)

    employee_comments = Column(Text, nullable=False, default="")
    manager_comments = Column(Text, nullable=False, default="")
    final_comments = Column(Text, nullable=False, default="")
    discussion_notes = Column(Text, nullable=False, default="")

    employee_rated_date = Column(DateTime, nullable=True)
    manager_rated_date = Column(DateTime, nullable=True)
    final_rated_date = Column(DateTime, nullable=True)

    objective = relationship("Objective", back_populates="key_results")

    @property
    def rating_bands(self) -> list:
        return [
            self.rating1_description,
            self.rating2_description,
            self.rating3_description,
            self.rating4_description,
            self.rating5_description,
        ]


class ReviewComment(Base):
    __tablename__ = "review_comments"

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("performance_reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    commenter_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    comment = Column(Text, nullable=False)
    comment_type = Column(Enum(CommentType, native_enum=False, length=50), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    review = relationship("PerformanceReview", back_populates="comments")
    commenter = relationship("Employee")
