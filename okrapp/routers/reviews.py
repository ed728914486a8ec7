from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from okrapp.core.context import ActingUser
from okrapp.database import get_db
from okrapp.models.performance_review import ReviewStatus
from okrapp.routers.auth_deps import get_acting_user, require_hr_or_admin, require_manager
from okrapp.schemas.review import (
    AssignmentResult,
    CommentCreate,
    CommentResponse,
    DiscussionOutcomeIn,
    DiscussionScheduleIn,
    EmployeeAssessmentIn,
    ManagerReviewIn,
    ManagerReviewResult,
    ReviewCreate,
    ReviewDetail,
    ReviewSummary,
    SignatureIn,
    TemplateAssignment,
)
from okrapp.services.instantiation_service import InstantiationService
from okrapp.services.review_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


# --- Creation ---

@router.post("", response_model=ReviewDetail, status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_manager()),
):
    return InstantiationService(db).create_review(
        actor,
        employee_id=payload.employee_id,
        period_start=payload.period_start,
        period_end=payload.period_end,
        template_id=payload.template_id,
        description=payload.description,
    )


@router.post("/assign", response_model=AssignmentResult)
def assign_template(
    payload: TemplateAssignment,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_manager()),
):
    """Assigns one template to several employees; employees with an active review are skipped."""
    return InstantiationService(db).assign_template(
        actor,
        template_id=payload.template_id,
        employee_ids=payload.employee_ids,
        period_start=payload.period_start,
        period_end=payload.period_end,
        description=payload.description,
    )


# --- Read models ---

@router.get("", response_model=List[ReviewSummary])
def list_reviews(
    review_status: Optional[ReviewStatus] = None,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(require_hr_or_admin()),
):
    return ReviewService(db).list_reviews(review_status)


@router.get("/me/active", response_model=List[ReviewSummary])
def my_active_reviews(db: Session = Depends(get_db), actor: ActingUser = Depends(get_acting_user)):
    return ReviewService(db).list_active_for_employee(actor)


@router.get("/me/history", response_model=List[ReviewSummary])
def my_review_history(db: Session = Depends(get_db), actor: ActingUser = Depends(get_acting_user)):
    return ReviewService(db).list_history_for_employee(actor)


@router.get("/manager/pending", response_model=List[ReviewSummary])
def pending_manager_reviews(db: Session = Depends(get_db), actor: ActingUser = Depends(require_manager())):
    return ReviewService(db).list_pending_for_manager(actor)


@router.get("/manager/discussions", response_model=List[ReviewSummary])
def upcoming_discussions(db: Session = Depends(get_db), actor: ActingUser = Depends(require_manager())):
    return ReviewService(db).list_upcoming_discussions(actor)


@router.get("/{review_id}", response_model=ReviewDetail)
def get_review(review_id: int, db: Session = Depends(get_db), actor: ActingUser = Depends(get_acting_user)):
    return ReviewService(db).get_review(actor, review_id)


# --- Lifecycle ---

@router.post("/{review_id}/submit-to-employee", response_model=ReviewDetail)
def submit_for_employee_review(
    review_id: int,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return ReviewService(db).submit_for_employee_review(actor, review_id)


@router.put("/{review_id}/self-assessment", response_model=ReviewDetail)
def save_self_assessment(
    review_id: int,
    payload: EmployeeAssessmentIn,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return ReviewService(db).save_employee_assessment(
        actor, review_id, payload.self_assessment, payload.ratings, payload.comments
    )


@router.post("/{review_id}/self-assessment/submit", response_model=ReviewDetail)
def submit_self_assessment(
    review_id: int,
    payload: EmployeeAssessmentIn,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return ReviewService(db).submit_self_assessment(
        actor, review_id, payload.self_assessment, payload.ratings, payload.comments
    )


@router.put("/{review_id}/manager-review", response_model=ManagerReviewResult)
def save_manager_review(
    review_id: int,
    payload: ManagerReviewIn,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    outcome = ReviewService(db).save_manager_review(
        actor,
        review_id,
        manager_assessment=payload.manager_assessment,
        overall_rating=payload.overall_rating,
        ratings=payload.ratings,
        comments=payload.comments,
        action=payload.action,
    )
    return ManagerReviewResult(
        review=ReviewDetail.model_validate(outcome.review),
        next_action=outcome.next_action,
    )


@router.post("/{review_id}/finalize", response_model=ReviewDetail)
def finalize_review(review_id: int, db: Session = Depends(get_db), actor: ActingUser = Depends(get_acting_user)):
    return ReviewService(db).finalize_review(actor, review_id)


@router.post("/{review_id}/discussion", response_model=ReviewDetail)
def schedule_discussion(
    review_id: int,
    payload: DiscussionScheduleIn,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return ReviewService(db).schedule_discussion(
        actor, review_id, payload.scheduled_date, payload.scheduled_time
    )


@router.put("/{review_id}/discussion", response_model=ReviewDetail)
def record_discussion_outcome(
    review_id: int,
    payload: DiscussionOutcomeIn,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return ReviewService(db).record_discussion_outcome(
        actor,
        review_id,
        final_assessment=payload.final_assessment,
        discussion_notes=payload.discussion_notes,
        final_ratings=payload.final_ratings,
        final_comments=payload.final_comments,
        key_result_notes=payload.key_result_notes,
    )


# --- Sign-off ---

@router.post("/{review_id}/sign/employee", response_model=ReviewDetail)
def sign_as_employee(
    review_id: int,
    payload: SignatureIn,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return ReviewService(db).sign_as_employee(actor, review_id, payload.signature)


@router.post("/{review_id}/sign/manager", response_model=ReviewDetail)
def sign_as_manager(
    review_id: int,
    payload: SignatureIn,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return ReviewService(db).sign_as_manager(actor, review_id, payload.signature)


@router.post("/{review_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def add_comment(
    review_id: int,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return ReviewService(db).add_comment(actor, review_id, payload.comment, payload.comment_type)
