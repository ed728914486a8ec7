"""
Review status machine.

    Draft -> Employee_Review -> Manager_Review -> Discussion -> Completed

The table below is the single source of truth for which event may move a
review out of which status. Signature completion may close any active review.
"""
import enum
from typing import Dict, Tuple

from okrapp.core.exceptions import InvalidTransitionError
from okrapp.models.performance_review import ReviewStatus, ACTIVE_STATUSES


class ReviewEvent(str, enum.Enum):
    SUBMIT_FOR_EMPLOYEE = "submit_for_employee"
    SUBMIT_SELF_ASSESSMENT = "submit_self_assessment"
    SCHEDULE_DISCUSSION = "schedule_discussion"
    FINALIZE = "finalize"
    SIGNOFF_COMPLETE = "signoff_complete"


TRANSITIONS: Dict[Tuple[ReviewStatus, ReviewEvent], ReviewStatus] = {
    (ReviewStatus.DRAFT, ReviewEvent.SUBMIT_FOR_EMPLOYEE): ReviewStatus.EMPLOYEE_REVIEW,
    (ReviewStatus.DRAFT, ReviewEvent.SUBMIT_SELF_ASSESSMENT): ReviewStatus.MANAGER_REVIEW,
    (ReviewStatus.EMPLOYEE_REVIEW, ReviewEvent.SUBMIT_SELF_ASSESSMENT): ReviewStatus.MANAGER_REVIEW,
    (ReviewStatus.MANAGER_REVIEW, ReviewEvent.SCHEDULE_DISCUSSION): ReviewStatus.DISCUSSION,
    (ReviewStatus.MANAGER_REVIEW, ReviewEvent.FINALIZE): ReviewStatus.COMPLETED,
    (ReviewStatus.DISCUSSION, ReviewEvent.FINALIZE): ReviewStatus.COMPLETED,
}
TRANSITIONS.update({
    (status, ReviewEvent.SIGNOFF_COMPLETE): ReviewStatus.COMPLETED
    for status in ACTIVE_STATUSES
})

# Status windows in which each party may edit ratings and comments
EMPLOYEE_EDITABLE = frozenset({ReviewStatus.DRAFT, ReviewStatus.EMPLOYEE_REVIEW})
MANAGER_EDITABLE = frozenset({ReviewStatus.MANAGER_REVIEW, ReviewStatus.DISCUSSION})


def can_transition(current: ReviewStatus, event: ReviewEvent) -> bool:
    return (current, event) in TRANSITIONS


def next_status(current: ReviewStatus, event: ReviewEvent) -> ReviewStatus:
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {event.value.replace('_', ' ')} a review in status {current.value}.",
            details={"status": current.value, "event": event.value},
        )
