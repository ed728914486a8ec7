import pytest
from datetime import date, datetime, time, timedelta

from okrapp.core.exceptions import (
    AccessDeniedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from okrapp.models.performance_review import CommentType, PerformanceReview, ReviewStatus
from okrapp.services.instantiation_service import InstantiationService
from okrapp.services.review_service import ReviewService
from okrapp.services.review_workflow import ReviewEvent, can_transition, next_status


@pytest.fixture
def review(db_session, manager_actor, employee, template, sink):
    return InstantiationService(db_session, notifier=sink).create_review(
        manager_actor, employee.id, date(2025, 1, 1), date(2025, 12, 31), template_id=template.id
    )


@pytest.fixture
def service(db_session, sink):
    return ReviewService(db_session, notifier=sink)


def _kr_ids(review):
    return [kr.id for kr in review.key_results]


def _to_manager_review(service, employee_actor, review, ratings=None):
    return service.submit_self_assessment(employee_actor, review.id, "Solid year", ratings or {})


def _reload(db_session, review_id):
    db_session.expire_all()
    return db_session.get(PerformanceReview, review_id)


class TestTransitionTable:
    def test_happy_path(self):
        status = ReviewStatus.DRAFT
        for event in (
            ReviewEvent.SUBMIT_FOR_EMPLOYEE,
            ReviewEvent.SUBMIT_SELF_ASSESSMENT,
            ReviewEvent.SCHEDULE_DISCUSSION,
            ReviewEvent.FINALIZE,
        ):
            status = next_status(status, event)
        assert status == ReviewStatus.COMPLETED

    def test_terminal_states_have_no_exits(self):
        for terminal in (ReviewStatus.COMPLETED, ReviewStatus.SIGNED):
            assert not any(can_transition(terminal, event) for event in ReviewEvent)

    def test_draft_cannot_be_finalized(self):
        with pytest.raises(InvalidTransitionError):
            next_status(ReviewStatus.DRAFT, ReviewEvent.FINALIZE)


class TestSubmitForEmployee:
    def test_manager_hands_draft_to_employee(self, service, manager_actor, review):
        updated = service.submit_for_employee_review(manager_actor, review.id)
        assert updated.status == ReviewStatus.EMPLOYEE_REVIEW
        assert updated.submitted_date is not None

    def test_employee_cannot_hand_off(self, service, employee_actor, review):
        with pytest.raises(AccessDeniedError):
            service.submit_for_employee_review(employee_actor, review.id)

    def test_hr_can_hand_off(self, service, hr_actor, review):
        assert service.submit_for_employee_review(hr_actor, review.id).status == ReviewStatus.EMPLOYEE_REVIEW

    def test_twice_is_invalid(self, db_session, service, manager_actor, review):
        service.submit_for_employee_review(manager_actor, review.id)
        with pytest.raises(InvalidTransitionError):
            service.submit_for_employee_review(manager_actor, review.id)
        assert _reload(db_session, review.id).status == ReviewStatus.EMPLOYEE_REVIEW


class TestSelfAssessment:
    def test_submit_records_ratings_and_moves_to_manager(self, service, manager_actor, employee_actor, review, sink):
        kr1, kr2 = _kr_ids(review)
        service.submit_for_employee_review(manager_actor, review.id)

        updated = service.submit_self_assessment(
            employee_actor, review.id, "Delivered all goals", {kr1: 4, kr2: 5}, {kr1: "Closed every ticket"}
        )

        assert updated.status == ReviewStatus.MANAGER_REVIEW
        assert updated.employee_self_assessment == "Delivered all goals"
        by_id = {kr.id: kr for kr in updated.key_results}
        assert by_id[kr1].employee_rating == 4
        assert by_id[kr2].employee_rating == 5
        assert by_id[kr1].employee_rated_date is not None
        assert by_id[kr2].employee_rated_date is not None
        assert by_id[kr1].employee_comments == "Closed every ticket"
        assert by_id[kr2].employee_comments == ""

        submitted = sink.of_type("Review_Submitted")
        assert len(submitted) == 1
        assert submitted[0].recipient_user_id == manager_actor.user_id

    def test_submit_straight_from_draft(self, service, employee_actor, review):
        assert _to_manager_review(service, employee_actor, review).status == ReviewStatus.MANAGER_REVIEW

    def test_save_keeps_status(self, service, employee_actor, review):
        kr1, _ = _kr_ids(review)
        updated = service.save_employee_assessment(employee_actor, review.id, "Draft notes", {kr1: 3})
        assert updated.status == ReviewStatus.DRAFT
        assert updated.employee_self_assessment == "Draft notes"

    def test_only_subject_may_submit(self, service, manager_actor, review):
        with pytest.raises(AccessDeniedError):
            service.submit_self_assessment(manager_actor, review.id, "Not mine", {})

    def test_out_of_range_rating_writes_nothing(self, db_session, service, employee_actor, review):
        kr1, kr2 = _kr_ids(review)
        with pytest.raises(ValidationFailedError):
            service.submit_self_assessment(employee_actor, review.id, "x", {kr1: 4, kr2: 6})
        reloaded = _reload(db_session, review.id)
        assert reloaded.status == ReviewStatus.DRAFT
        assert all(kr.employee_rating is None for kr in reloaded.key_results)

    def test_employee_locked_out_after_submit(self, service, employee_actor, review):
        kr1, _ = _kr_ids(review)
        _to_manager_review(service, employee_actor, review)
        with pytest.raises(InvalidTransitionError):
            service.save_employee_assessment(employee_actor, review.id, ratings={kr1: 2})


class TestManagerReview:
    def test_save_stamps_reviewed_date(self, service, manager_actor, employee_actor, review):
        kr1, _ = _kr_ids(review)
        _to_manager_review(service, employee_actor, review)

        outcome = service.save_manager_review(manager_actor, review.id, "Good work", ratings={kr1: 4})

        assert outcome.next_action is None
        assert outcome.review.status == ReviewStatus.MANAGER_REVIEW
        assert outcome.review.manager_reviewed_date is not None
        assert outcome.review.manager_assessment == "Good work"

    def test_manager_cannot_rate_during_draft(self, service, manager_actor, review):
        kr1, _ = _kr_ids(review)
        with pytest.raises(InvalidTransitionError):
            service.save_manager_review(manager_actor, review.id, ratings={kr1: 4})

    def test_only_manager_may_rate(self, service, employee_actor, review):
        _to_manager_review(service, employee_actor, review)
        with pytest.raises(AccessDeniedError):
            service.save_manager_review(employee_actor, review.id, ratings={})

    def test_schedule_action_asks_for_a_date(self, service, manager_actor, employee_actor, review):
        _to_manager_review(service, employee_actor, review)
        outcome = service.save_manager_review(manager_actor, review.id, action="schedule_discussion")
        assert outcome.next_action == "schedule_discussion"
        assert outcome.review.status == ReviewStatus.MANAGER_REVIEW


class TestFinalize:
    def test_rejected_while_a_key_result_is_unrated(self, db_session, service, manager_actor, employee_actor, review):
        kr1, kr2 = _kr_ids(review)
        _to_manager_review(service, employee_actor, review, {kr1: 4, kr2: 5})

        with pytest.raises(ValidationFailedError) as exc:
            service.save_manager_review(manager_actor, review.id, ratings={kr1: 4}, action="finalize")

        assert "1 key result(s)" in exc.value.message
        assert exc.value.details["unrated_count"] == 1
        reloaded = _reload(db_session, review.id)
        assert reloaded.status == ReviewStatus.MANAGER_REVIEW
        # the rejected call wrote nothing
        assert all(kr.manager_rating is None for kr in reloaded.key_results)

    def test_succeeds_once_everything_is_rated(self, service, manager_actor, employee_actor, review, sink):
        kr1, kr2 = _kr_ids(review)
        _to_manager_review(service, employee_actor, review)

        outcome = service.save_manager_review(manager_actor, review.id, ratings={kr1: 4, kr2: 3}, action="finalize")

        assert outcome.review.status == ReviewStatus.COMPLETED
        assert outcome.review.finalized_date is not None
        finalized = sink.of_type("Review_Finalized")
        assert len(finalized) == 1
        assert finalized[0].recipient_user_id == employee_actor.user_id

    def test_retry_after_rating_the_rest(self, service, manager_actor, employee_actor, review):
        kr1, kr2 = _kr_ids(review)
        _to_manager_review(service, employee_actor, review)
        service.save_manager_review(manager_actor, review.id, ratings={kr1: 4})
        with pytest.raises(ValidationFailedError):
            service.finalize_review(manager_actor, review.id)

        service.save_manager_review(manager_actor, review.id, ratings={kr2: 2})
        assert service.finalize_review(manager_actor, review.id).status == ReviewStatus.COMPLETED

    def test_completed_review_is_frozen(self, service, manager_actor, employee_actor, review):
        kr1, kr2 = _kr_ids(review)
        _to_manager_review(service, employee_actor, review)
        service.save_manager_review(manager_actor, review.id, ratings={kr1: 4, kr2: 3}, action="finalize")

        with pytest.raises(InvalidTransitionError):
            service.save_manager_review(manager_actor, review.id, ratings={kr1: 1})
        with pytest.raises(InvalidTransitionError):
            service.finalize_review(manager_actor, review.id)


class TestDiscussion:
    def test_schedule_in_the_past_is_rejected(self, db_session, service, manager_actor, employee_actor, review):
        _to_manager_review(service, employee_actor, review)
        with pytest.raises(ValidationFailedError):
            service.schedule_discussion(manager_actor, review.id, date.today() - timedelta(days=1))
        assert _reload(db_session, review.id).status == ReviewStatus.MANAGER_REVIEW

    def test_schedule_today_defaults_to_afternoon(self, service, manager_actor, employee_actor, review, sink):
        _to_manager_review(service, employee_actor, review)
        today = date(2025, 6, 2)

        updated = service.schedule_discussion(manager_actor, review.id, today, today=today)

        assert updated.status == ReviewStatus.DISCUSSION
        assert updated.scheduled_discussion_date == datetime(2025, 6, 2, 14, 0)
        assert updated.discussion_date is not None
        scheduled = sink.of_type("Discussion_Scheduled")
        assert len(scheduled) == 1
        assert "June 02, 2025 at 02:00 PM" in scheduled[0].message

    def test_explicit_time_is_kept(self, service, manager_actor, employee_actor, review):
        _to_manager_review(service, employee_actor, review)
        when = date.today() + timedelta(days=3)
        updated = service.schedule_discussion(manager_actor, review.id, when, time(9, 30))
        assert updated.scheduled_discussion_date == datetime.combine(when, time(9, 30))

    def test_cannot_schedule_before_manager_review(self, service, manager_actor, review):
        with pytest.raises(ValidationFailedError):
            service.schedule_discussion(manager_actor, review.id, date.today() + timedelta(days=1))

    def test_outcome_then_finalize(self, service, manager_actor, employee_actor, review):
        kr1, kr2 = _kr_ids(review)
        _to_manager_review(service, employee_actor, review)
        service.schedule_discussion(manager_actor, review.id, date.today() + timedelta(days=1))

        updated = service.record_discussion_outcome(
            manager_actor,
            review.id,
            final_assessment="Agreed outcome",
            discussion_notes="Talked it through",
            final_ratings={kr1: 4},
            final_comments={kr1: "Agreed"},
            key_result_notes={kr2: "Revisit next quarter"},
        )
        by_id = {kr.id: kr for kr in updated.key_results}
        assert by_id[kr1].final_rating == 4
        assert by_id[kr1].final_rated_date is not None
        assert by_id[kr2].discussion_notes == "Revisit next quarter"
        assert updated.status == ReviewStatus.DISCUSSION

        service.save_manager_review(manager_actor, review.id, ratings={kr1: 4, kr2: 4})
        assert service.finalize_review(manager_actor, review.id).status == ReviewStatus.COMPLETED

    def test_outcome_requires_discussion_status(self, service, manager_actor, employee_actor, review):
        _to_manager_review(service, employee_actor, review)
        with pytest.raises(ValidationFailedError):
            service.record_discussion_outcome(manager_actor, review.id, discussion_notes="too early")


class TestSignOff:
    def test_single_signature_keeps_status(self, service, employee_actor, review):
        updated = service.sign_as_employee(employee_actor, review.id, "Eddie Employee")
        assert updated.status == ReviewStatus.DRAFT
        assert updated.employee_signature == "Eddie Employee"
        assert updated.employee_signed_date is not None

    @pytest.mark.parametrize("employee_first", [True, False])
    def test_both_signatures_complete_the_review(self, service, manager_actor, employee_actor, review, employee_first):
        steps = [
            lambda: service.sign_as_employee(employee_actor, review.id, "Eddie Employee"),
            lambda: service.sign_as_manager(manager_actor, review.id, "Mary Manager"),
        ]
        if not employee_first:
            steps.reverse()
        first = steps[0]()
        assert first.status == ReviewStatus.DRAFT
        second = steps[1]()
        assert second.status == ReviewStatus.COMPLETED
        assert second.finalized_date is not None

    def test_blank_signature_is_rejected(self, service, employee_actor, review):
        with pytest.raises(ValidationFailedError):
            service.sign_as_employee(employee_actor, review.id, "   ")

    def test_wrong_party_cannot_sign(self, service, manager_actor, employee_actor, review):
        with pytest.raises(AccessDeniedError):
            service.sign_as_employee(manager_actor, review.id, "Mary Manager")
        with pytest.raises(AccessDeniedError):
            service.sign_as_manager(employee_actor, review.id, "Eddie Employee")

    def test_cannot_sign_completed_review(self, service, manager_actor, employee_actor, review):
        service.sign_as_employee(employee_actor, review.id, "Eddie Employee")
        service.sign_as_manager(manager_actor, review.id, "Mary Manager")
        with pytest.raises(ValidationFailedError):
            service.sign_as_employee(employee_actor, review.id, "Again")


class TestReads:
    def test_unknown_review(self, service, manager_actor):
        with pytest.raises(NotFoundError):
            service.get_review(manager_actor, 12345)

    def test_outsider_cannot_view(self, db_session, service, review, make_employee):
        from okrapp.core.context import ActingUser
        from okrapp.models.user import UserRole

        outsider = make_employee("Olga", "Other")
        actor = ActingUser(user_id=outsider.user_id, role=UserRole.EMPLOYEE, employee_id=outsider.id)
        with pytest.raises(AccessDeniedError):
            service.get_review(actor, review.id)

    def test_hr_sees_everything(self, service, hr_actor, review):
        assert service.get_review(hr_actor, review.id).id == review.id

    def test_active_history_and_pending_lists(self, service, manager_actor, employee_actor, review):
        assert [r.id for r in service.list_active_for_employee(employee_actor)] == [review.id]
        assert service.list_pending_for_manager(manager_actor) == []

        _to_manager_review(service, employee_actor, review)
        assert [r.id for r in service.list_pending_for_manager(manager_actor)] == [review.id]
        assert service.list_active_for_employee(employee_actor) == []

        kr1, kr2 = _kr_ids(review)
        service.save_manager_review(manager_actor, review.id, ratings={kr1: 3, kr2: 3}, action="finalize")
        assert [r.id for r in service.list_history_for_employee(employee_actor)] == [review.id]

    def test_upcoming_discussions(self, service, manager_actor, employee_actor, review):
        _to_manager_review(service, employee_actor, review)
        service.schedule_discussion(manager_actor, review.id, date.today() + timedelta(days=2))
        assert [r.id for r in service.list_upcoming_discussions(manager_actor)] == [review.id]

    def test_list_reviews_by_status(self, service, review):
        assert [r.id for r in service.list_reviews(ReviewStatus.DRAFT)] == [review.id]
        assert service.list_reviews(ReviewStatus.COMPLETED) == []


class TestComments:
    def test_employee_and_manager_comments(self, service, manager_actor, employee_actor, review):
        service.add_comment(employee_actor, review.id, "Looking forward to it", CommentType.EMPLOYEE)
        service.add_comment(manager_actor, review.id, "Me too", CommentType.MANAGER)
        loaded = service.get_review(manager_actor, review.id)
        assert [c.comment_type for c in loaded.comments] == [CommentType.EMPLOYEE, CommentType.MANAGER]

    def test_manager_cannot_post_as_employee(self, service, manager_actor, review):
        with pytest.raises(AccessDeniedError):
            service.add_comment(manager_actor, review.id, "Impersonation", CommentType.EMPLOYEE)


class TestUnitOfWork:
    def test_unexpected_error_rolls_back_flushed_changes(self, db_session, service, review):
        with pytest.raises(RuntimeError):
            with service._unit_of_work(review, "edit notes"):
                review.discussion_notes = "half-written"
                db_session.flush()
                raise RuntimeError("connection lost")

        assert _reload(db_session, review.id).discussion_notes == ""
