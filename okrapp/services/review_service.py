"""
Review lifecycle engine.

Every operation loads one review graph, checks the caller's relationship to
it, mutates it in memory and persists once. A rejected operation rolls the
session back before the error propagates, so nothing partial is written.
"""
from contextlib import contextmanager
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy.orm import selectinload

from okrapp.core.config import settings
from okrapp.core.context import ActingUser
from okrapp.core.exceptions import (
    AccessDeniedError,
    AppException,
    NotFoundError,
    ValidationFailedError,
)
from okrapp.models.performance_review import (
    TERMINAL_STATUSES,
    CommentType,
    Objective,
    PerformanceReview,
    ReviewComment,
    ReviewStatus,
)
from okrapp.services.base import BaseService
from okrapp.services.notification_service import NotificationEvent, NotificationService, NotificationSink
from okrapp.services.rating_service import RatingAggregator
from okrapp.services.review_workflow import ReviewEvent, next_status


class ManagerReviewOutcome(NamedTuple):
    review: PerformanceReview
    next_action: Optional[str] = None


class ReviewService(BaseService):
    def __init__(self, db, notifier: Optional[NotificationSink] = None):
        super().__init__(db)
        self.notifier = notifier or NotificationService(db)

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------
    @contextmanager
    def _unit_of_work(self, review: PerformanceReview, operation: str):
        try:
            yield
        except AppException as exc:
            self.db.rollback()
            self.log_warning(
                f"Review {review.id}: {operation} rejected: {exc.message}",
                review_id=review.id,
                error_code=exc.error_code,
            )
            raise
        except Exception as exc:
            self.db.rollback()
            self.log_error(f"Review {review.id}: {operation} failed: {exc}", review_id=review.id)
            raise
        self.commit()

    def _emit(self, event: NotificationEvent):
        try:
            self.notifier.notify(event)
        except Exception as e:
            # Don't fail the workflow if notification fails
            self.log_warning(f"Notification failed: {e}")

    def _transition(self, review: PerformanceReview, event: ReviewEvent):
        previous = review.status
        review.status = next_status(previous, event)
        self.log_info(
            f"Review {review.id}: {previous.value} -> {review.status.value} ({event.value})",
            review_id=review.id,
        )

    def _load(self, review_id: int) -> PerformanceReview:
        review = self.db.query(PerformanceReview).options(
            selectinload(PerformanceReview.objectives).selectinload(Objective.key_results),
            selectinload(PerformanceReview.comments),
            selectinload(PerformanceReview.employee),
            selectinload(PerformanceReview.manager),
        ).filter(PerformanceReview.id == review_id).first()
        if not review:
            raise NotFoundError("Review not found.")
        return review

    @staticmethod
    def _require_subject(actor: ActingUser, review: PerformanceReview):
        if actor.employee_id is None or actor.employee_id != review.employee_id:
            raise AccessDeniedError("Only the reviewed employee can perform this action.")

    @staticmethod
    def _require_manager(actor: ActingUser, review: PerformanceReview):
        if actor.employee_id is None or actor.employee_id != review.manager_id:
            raise AccessDeniedError("Only the review's manager can perform this action.")

    @staticmethod
    def _ensure_not_terminal(review: PerformanceReview):
        if review.status in TERMINAL_STATUSES:
            raise ValidationFailedError(
                f"Review is already {review.status.value}.",
                details={"status": review.status.value},
            )

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def get_review(self, actor: ActingUser, review_id: int) -> PerformanceReview:
        review = self._load(review_id)
        if not actor.is_hr_or_admin and actor.employee_id not in (review.employee_id, review.manager_id):
            raise AccessDeniedError("You don't have permission to view this review.")
        return review

    def list_reviews(self, status: Optional[ReviewStatus] = None) -> List[PerformanceReview]:
        query = self.db.query(PerformanceReview)
        if status is not None:
            query = query.filter(PerformanceReview.status == status)
        return query.order_by(PerformanceReview.created_at.desc(), PerformanceReview.id.desc()).all()

    def list_active_for_employee(self, actor: ActingUser) -> List[PerformanceReview]:
        return self.db.query(PerformanceReview).filter(
            PerformanceReview.employee_id == actor.require_employee_id(),
            PerformanceReview.status.in_([ReviewStatus.DRAFT, ReviewStatus.EMPLOYEE_REVIEW])
        ).order_by(PerformanceReview.id.desc()).all()

    def list_history_for_employee(self, actor: ActingUser) -> List[PerformanceReview]:
        return self.db.query(PerformanceReview).filter(
            PerformanceReview.employee_id == actor.require_employee_id(),
            PerformanceReview.status.in_(TERMINAL_STATUSES)
        ).order_by(PerformanceReview.finalized_date.desc(), PerformanceReview.id.desc()).all()

    def list_pending_for_manager(self, actor: ActingUser) -> List[PerformanceReview]:
        return self.db.query(PerformanceReview).filter(
            PerformanceReview.manager_id == actor.require_employee_id(),
            PerformanceReview.status == ReviewStatus.MANAGER_REVIEW
        ).order_by(PerformanceReview.submitted_date).all()

    def list_upcoming_discussions(self, actor: ActingUser) -> List[PerformanceReview]:
        query = self.db.query(PerformanceReview).filter(
            PerformanceReview.status == ReviewStatus.DISCUSSION,
            PerformanceReview.scheduled_discussion_date.isnot(None),
            PerformanceReview.scheduled_discussion_date >= datetime.now(),
        )
        if not actor.is_hr_or_admin:
            query = query.filter(PerformanceReview.manager_id == actor.require_employee_id())
        return query.order_by(PerformanceReview.scheduled_discussion_date).all()

    # ------------------------------------------------------------------
    # manager: hand the draft to the employee
    # ------------------------------------------------------------------
    def submit_for_employee_review(self, actor: ActingUser, review_id: int) -> PerformanceReview:
        review = self._load(review_id)
        if not actor.is_hr_or_admin:
            self._require_manager(actor, review)

        with self._unit_of_work(review, "submit for employee review"):
            self._transition(review, ReviewEvent.SUBMIT_FOR_EMPLOYEE)
            review.submitted_date = datetime.now()
        return review

    # ------------------------------------------------------------------
    # employee: self-assessment
    # ------------------------------------------------------------------
    def save_employee_assessment(
        self,
        actor: ActingUser,
        review_id: int,
        self_assessment: Optional[str] = None,
        ratings: Optional[Dict[int, int]] = None,
        comments: Optional[Dict[int, str]] = None,
    ) -> PerformanceReview:
        """Stores self-ratings without submitting; status is unchanged."""
        review = self._load(review_id)
        self._require_subject(actor, review)

        with self._unit_of_work(review, "save self-assessment"):
            RatingAggregator(review).apply_employee_ratings(ratings or {}, comments or {})
            if self_assessment:
                review.employee_self_assessment = self_assessment
        return review

    def submit_self_assessment(
        self,
        actor: ActingUser,
        review_id: int,
        self_assessment: Optional[str] = None,
        ratings: Optional[Dict[int, int]] = None,
        comments: Optional[Dict[int, str]] = None,
    ) -> PerformanceReview:
        review = self._load(review_id)
        self._require_subject(actor, review)

        with self._unit_of_work(review, "submit self-assessment"):
            RatingAggregator(review).apply_employee_ratings(ratings or {}, comments or {})
            if self_assessment is not None:
                review.employee_self_assessment = self_assessment
            self._transition(review, ReviewEvent.SUBMIT_SELF_ASSESSMENT)
            review.submitted_date = datetime.now()

            if review.manager and review.manager.user_id is not None:
                employee_name = review.employee.display_name if review.employee else "An employee"
                self._emit(NotificationEvent(
                    recipient_user_id=review.manager.user_id,
                    sender_user_id=actor.user_id,
                    title="Performance Review Submitted",
                    message=f"{employee_name} has submitted their performance review for your review.",
                    type="Review_Submitted",
                    action_url=f"/manager/reviews/{review.id}",
                    related_entity_id=review.id,
                    related_entity_type="PerformanceReview",
                ))
        return review

    # ------------------------------------------------------------------
    # manager: ratings, discussion, finalize
    # ------------------------------------------------------------------
    def save_manager_review(
        self,
        actor: ActingUser,
        review_id: int,
        manager_assessment: Optional[str] = None,
        overall_rating: Optional[Decimal] = None,
        ratings: Optional[Dict[int, int]] = None,
        comments: Optional[Dict[int, str]] = None,
        action: Optional[str] = None,
    ) -> ManagerReviewOutcome:
        """
        Merges manager ratings, then acts on ``action``:

        - ``None``/``"save"``: stamps the manager-reviewed date, status unchanged
        - ``"schedule_discussion"``: status unchanged, caller must confirm a date
          through :meth:`schedule_discussion`
        - ``"finalize"``: completes the review once every key result carries a
          manager rating
        """
        review = self._load(review_id)
        self._require_manager(actor, review)

        with self._unit_of_work(review, f"manager review ({action or 'save'})"):
            aggregator = RatingAggregator(review)
            aggregator.apply_manager_ratings(ratings or {}, comments or {})
            if manager_assessment:
                review.manager_assessment = manager_assessment
            if overall_rating is not None:
                review.overall_rating = overall_rating

            if action == "finalize":
                self._finalize(actor, review, aggregator)
                return ManagerReviewOutcome(review)
            if action == "schedule_discussion":
                if review.status != ReviewStatus.MANAGER_REVIEW:
                    raise ValidationFailedError(
                        "Discussion can only be scheduled after manager review is completed."
                    )
                return ManagerReviewOutcome(review, next_action="schedule_discussion")

            review.manager_reviewed_date = datetime.now()
        return ManagerReviewOutcome(review)

    def finalize_review(self, actor: ActingUser, review_id: int) -> PerformanceReview:
        review = self._load(review_id)
        self._require_manager(actor, review)
        with self._unit_of_work(review, "finalize"):
            self._finalize(actor, review, RatingAggregator(review))
        return review

    def _finalize(self, actor: ActingUser, review: PerformanceReview, aggregator: RatingAggregator):
        unrated = aggregator.unrated_key_results()
        if unrated:
            raise ValidationFailedError(
                f"Cannot finalize review. Please rate all {len(unrated)} key result(s) before finalizing.",
                details={"unrated_count": len(unrated), "unrated_ids": [kr.id for kr in unrated]},
            )
        self._transition(review, ReviewEvent.FINALIZE)
        review.finalized_date = datetime.now()

        if review.employee and review.employee.user_id is not None:
            self._emit(NotificationEvent(
                recipient_user_id=review.employee.user_id,
                sender_user_id=actor.user_id,
                title="Performance Review Finalized",
                message="Your manager has finalized your performance review.",
                type="Review_Finalized",
                action_url=f"/employee/reviews/{review.id}",
                related_entity_id=review.id,
                related_entity_type="PerformanceReview",
            ))

    def schedule_discussion(
        self,
        actor: ActingUser,
        review_id: int,
        scheduled_date: date,
        scheduled_time: Optional[time] = None,
        today: Optional[date] = None,
    ) -> PerformanceReview:
        review = self._load(review_id)
        self._require_manager(actor, review)

        with self._unit_of_work(review, "schedule discussion"):
            if review.status != ReviewStatus.MANAGER_REVIEW:
                raise ValidationFailedError(
                    "Discussion can only be scheduled after manager review is completed.",
                    details={"status": review.status.value},
                )
            if scheduled_date < (today or date.today()):
                raise ValidationFailedError(
                    "Discussion date must be in the future.",
                    details={"scheduled_date": scheduled_date.isoformat()},
                )

            at = scheduled_time or time(hour=settings.default_discussion_hour)
            scheduled = datetime.combine(scheduled_date, at)
            self._transition(review, ReviewEvent.SCHEDULE_DISCUSSION)
            review.scheduled_discussion_date = scheduled
            review.discussion_date = datetime.now()

            if review.employee and review.employee.user_id is not None:
                self._emit(NotificationEvent(
                    recipient_user_id=review.employee.user_id,
                    sender_user_id=actor.user_id,
                    title="Discussion Session Scheduled",
                    message=(
                        "Your manager has scheduled a discussion session for your performance review on "
                        f"{scheduled:%B %d, %Y} at {scheduled:%I:%M %p}. Please prepare for the discussion."
                    ),
                    type="Discussion_Scheduled",
                    action_url=f"/employee/reviews/{review.id}",
                    related_entity_id=review.id,
                    related_entity_type="PerformanceReview",
                ))
        return review

    def record_discussion_outcome(
        self,
        actor: ActingUser,
        review_id: int,
        final_assessment: Optional[str] = None,
        discussion_notes: Optional[str] = None,
        final_ratings: Optional[Dict[int, int]] = None,
        final_comments: Optional[Dict[int, str]] = None,
        key_result_notes: Optional[Dict[int, str]] = None,
    ) -> PerformanceReview:
        review = self._load(review_id)
        self._require_manager(actor, review)

        with self._unit_of_work(review, "record discussion outcome"):
            if review.status != ReviewStatus.DISCUSSION:
                raise ValidationFailedError(
                    "Discussion notes can only be recorded once a discussion is scheduled.",
                    details={"status": review.status.value},
                )
            RatingAggregator(review).apply_final_ratings(
                final_ratings or {}, final_comments or {}, key_result_notes or {}
            )
            if final_assessment:
                review.final_assessment = final_assessment
            if discussion_notes:
                review.discussion_notes = discussion_notes
        return review

    # ------------------------------------------------------------------
    # sign-off
    # ------------------------------------------------------------------
    def _complete_if_both_signed(self, review: PerformanceReview):
        if review.employee_signature and review.manager_signature:
            self._transition(review, ReviewEvent.SIGNOFF_COMPLETE)
            if review.finalized_date is None:
                review.finalized_date = datetime.now()

    def sign_as_employee(self, actor: ActingUser, review_id: int, signature: str) -> PerformanceReview:
        review = self._load(review_id)
        self._require_subject(actor, review)

        with self._unit_of_work(review, "employee sign-off"):
            self._ensure_not_terminal(review)
            if not signature or not signature.strip():
                raise ValidationFailedError("Signature is required.")
            review.employee_signature = signature.strip()
            review.employee_signed_date = datetime.now()
            self._complete_if_both_signed(review)
        return review

    def sign_as_manager(self, actor: ActingUser, review_id: int, signature: str) -> PerformanceReview:
        review = self._load(review_id)
        self._require_manager(actor, review)

        with self._unit_of_work(review, "manager sign-off"):
            self._ensure_not_terminal(review)
            if not signature or not signature.strip():
                raise ValidationFailedError("Signature is required.")
            review.manager_signature = signature.strip()
            review.manager_signed_date = datetime.now()
            self._complete_if_both_signed(review)
        return review

    # ------------------------------------------------------------------
    # comments
    # ------------------------------------------------------------------
    def add_comment(
        self,
        actor: ActingUser,
        review_id: int,
        comment: str,
        comment_type: CommentType,
    ) -> ReviewComment:
        review = self._load(review_id)
        if not actor.is_hr_or_admin:
            if comment_type == CommentType.EMPLOYEE:
                self._require_subject(actor, review)
            else:
                self._require_manager(actor, review)

        entry = ReviewComment(
            commenter_id=actor.require_employee_id(),
            comment=comment,
            comment_type=comment_type,
        )
        with self._unit_of_work(review, "add comment"):
            review.comments.append(entry)
        return entry
