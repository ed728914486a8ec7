"""
Rating aggregation for one review.

Edits arrive keyed by KeyResult id. Ids are resolved against the review's own
objectives only; ids belonging to another review are ignored.
"""
import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from okrapp.core.exceptions import InvalidTransitionError, ValidationFailedError
from okrapp.models.performance_review import KeyResult, PerformanceReview
from okrapp.services.review_workflow import EMPLOYEE_EDITABLE, MANAGER_EDITABLE

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def validate_ratings(ratings: Mapping[int, int]) -> None:
    out_of_range = {kr_id: value for kr_id, value in ratings.items() if not MIN_RATING <= value <= MAX_RATING}
    if out_of_range:
        raise ValidationFailedError(
            f"Ratings must be between {MIN_RATING} and {MAX_RATING}.",
            details={"invalid": {str(k): v for k, v in out_of_range.items()}},
        )


class RatingAggregator:
    def __init__(self, review: PerformanceReview):
        self.review = review
        self._index: Dict[int, KeyResult] = {kr.id: kr for kr in review.key_results}

    def _lookup(self, key_result_id: int) -> Optional[KeyResult]:
        key_result = self._index.get(key_result_id)
        if key_result is None:
            logger.debug(f"Ignoring key result {key_result_id}: not part of review {self.review.id}")
        return key_result

    def _ensure_window(self, allowed, party: str):
        if self.review.status not in allowed:
            raise InvalidTransitionError(
                f"{party} ratings cannot be edited while the review is {self.review.status.value}.",
                details={"status": self.review.status.value},
            )

    def _apply(
        self,
        ratings: Mapping[int, int],
        comments: Mapping[int, str],
        rating_attr: str,
        date_attr: str,
        comment_attr: str,
    ) -> int:
        validate_ratings(ratings)
        now = datetime.now()
        applied = 0
        for kr_id, value in ratings.items():
            key_result = self._lookup(kr_id)
            if key_result is not None:
                setattr(key_result, rating_attr, value)
                setattr(key_result, date_attr, now)
                applied += 1
        for kr_id, text in comments.items():
            key_result = self._lookup(kr_id)
            if key_result is not None and text:
                setattr(key_result, comment_attr, text)
        return applied

    def apply_employee_ratings(self, ratings: Mapping[int, int], comments: Mapping[int, str] = None) -> int:
        """Merge self-ratings. Returns the number of ratings written."""
        self._ensure_window(EMPLOYEE_EDITABLE, "Employee")
        return self._apply(ratings, comments or {}, "employee_rating", "employee_rated_date", "employee_comments")

    def apply_manager_ratings(self, ratings: Mapping[int, int], comments: Mapping[int, str] = None) -> int:
        self._ensure_window(MANAGER_EDITABLE, "Manager")
        return self._apply(ratings, comments or {}, "manager_rating", "manager_rated_date", "manager_comments")

    def apply_final_ratings(
        self,
        ratings: Mapping[int, int],
        comments: Mapping[int, str] = None,
        discussion_notes: Mapping[int, str] = None,
    ) -> int:
        self._ensure_window(MANAGER_EDITABLE, "Final")
        applied = self._apply(ratings, comments or {}, "final_rating", "final_rated_date", "final_comments")
        for kr_id, text in (discussion_notes or {}).items():
            key_result = self._lookup(kr_id)
            if key_result is not None and text:
                key_result.discussion_notes = text
        return applied

    def unrated_key_results(self) -> List[KeyResult]:
        return [kr for kr in self.review.key_results if kr.manager_rating is None]

    def is_complete(self) -> bool:
        """True when every key result carries a manager rating."""
        return not self.unrated_key_results()
