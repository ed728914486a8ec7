from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from okrapp.models.performance_review import ReviewStatus, CommentType


# --- Requests ---

class ReviewPeriod(BaseModel):
    period_start: date
    period_end: date

    @model_validator(mode="after")
    def check_period(self):
        if self.period_start >= self.period_end:
            raise ValueError("period_start must precede period_end")
        return self


class ReviewCreate(ReviewPeriod):
    employee_id: int
    template_id: Optional[int] = None
    description: Optional[str] = Field(None, max_length=500)


class TemplateAssignment(ReviewPeriod):
    template_id: int
    employee_ids: List[int] = Field(..., min_length=1)
    description: Optional[str] = Field(None, max_length=500)


class EmployeeAssessmentIn(BaseModel):
    self_assessment: Optional[str] = Field(None, max_length=2000)
    ratings: Dict[int, int] = {}
    comments: Dict[int, str] = {}


class ManagerReviewIn(BaseModel):
    manager_assessment: Optional[str] = Field(None, max_length=2000)
    overall_rating: Optional[Decimal] = Field(None, ge=1, le=5)
    ratings: Dict[int, int] = {}
    comments: Dict[int, str] = {}
    action: Optional[Literal["save", "schedule_discussion", "finalize"]] = None


class DiscussionScheduleIn(BaseModel):
    scheduled_date: date
    scheduled_time: Optional[time] = None


class DiscussionOutcomeIn(BaseModel):
    final_assessment: Optional[str] = Field(None, max_length=2000)
    discussion_notes: Optional[str] = Field(None, max_length=2000)
    final_ratings: Dict[int, int] = {}
    final_comments: Dict[int, str] = {}
    key_result_notes: Dict[int, str] = {}


class SignatureIn(BaseModel):
    signature: str = Field(..., min_length=1, max_length=500)


class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1, max_length=2000)
    comment_type: CommentType


# --- Responses ---

class KeyResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    target: str
    measure: str
    linked_objectives: str
    measurement_source: str
    weight: Decimal
    sort_order: int
    rating_bands: List[str]
    employee_rating: Optional[int] = None
    manager_rating: Optional[int] = None
    final_rating: Optional[int] = None
    employee_comments: str
    manager_comments: str
    final_comments: str
    discussion_notes: str
    employee_rated_date: Optional[datetime] = None
    manager_rated_date: Optional[datetime] = None
    final_rated_date: Optional[datetime] = None


class ObjectiveResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    weight: Decimal
    description: str
    sort_order: int
    key_results: List[KeyResultResponse] = []


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    commenter_id: int
    comment: str
    comment_type: CommentType
    created_at: Optional[datetime] = None


class ReviewSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    manager_id: int
    status: ReviewStatus
    period_start: date
    period_end: date
    template_id: Optional[int] = None
    created_at: Optional[datetime] = None
    scheduled_discussion_date: Optional[datetime] = None
    finalized_date: Optional[datetime] = None
    overall_rating: Optional[Decimal] = None


class ReviewDetail(ReviewSummary):
    submitted_date: Optional[datetime] = None
    manager_reviewed_date: Optional[datetime] = None
    discussion_date: Optional[datetime] = None
    employee_self_assessment: str
    manager_assessment: str
    final_assessment: str
    discussion_notes: str
    employee_signature: str
    employee_signed_date: Optional[datetime] = None
    manager_signature: str
    manager_signed_date: Optional[datetime] = None
    objectives: List[ObjectiveResponse] = []
    comments: List[CommentResponse] = []


class ManagerReviewResult(BaseModel):
    review: ReviewDetail
    next_action: Optional[str] = None


class AssignmentResult(BaseModel):
    created_review_ids: List[int]
    skipped: List[str]


class ReviewReport(BaseModel):
    total_employees: int
    total_reviews: int
    active_reviews: int
    completed_reviews: int
    reviews_by_status: Dict[str, int]
    reviews_by_role: Dict[str, int]
