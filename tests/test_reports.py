from datetime import date
from fastapi import status

from okrapp.models.performance_review import ReviewStatus
from okrapp.services.instantiation_service import InstantiationService
from okrapp.services.report_service import ReportService


def test_summary_counts(db_session, manager_actor, employee, make_employee, template, sink):
    other = make_employee("Olga", "Other")
    service = InstantiationService(db_session, notifier=sink)
    period = (date(2025, 1, 1), date(2025, 12, 31))
    service.create_review(manager_actor, employee.id, *period, template_id=template.id)
    done = service.create_review(manager_actor, other.id, *period, template_id=template.id)
    done.status = ReviewStatus.SIGNED
    db_session.commit()

    report = ReportService(db_session).system_summary()

    assert report.total_employees == 3
    assert report.total_reviews == 2
    assert report.active_reviews == 1
    assert report.completed_reviews == 1
    assert report.reviews_by_status == {"Draft": 1, "Signed": 1}
    assert report.reviews_by_role == {"Consultant": 2}


def test_summary_endpoint_requires_hr(client, auth_headers, hr_user, employee_user, employee):
    response = client.get("/api/reports/summary", headers=auth_headers(hr_user))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["total_employees"] == 2

    response = client.get("/api/reports/summary", headers=auth_headers(employee_user))
    assert response.status_code == status.HTTP_403_FORBIDDEN
