import pytest
import os
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SEED_TEMPLATES_ON_STARTUP"] = "false"

from okrapp.database import Base, get_db
from okrapp.main import app
from okrapp.core.context import ActingUser
from okrapp.models.user import User, UserRole
from okrapp.models.employee import Employee, EmployeeRole
from okrapp.models.okr_template import OKRTemplate, TemplateObjective, TemplateKeyResult
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """
    A fresh in-memory database per test. Services roll back their own
    session on rejected operations, so tests can't share an outer transaction.
    """
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()
    yield session
    session.close()


class RecordingSink:
    """Notification sink that keeps events in memory."""

    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    def notify(self, event):
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def failing_sink():
    return RecordingSink(fail=True)


def _make_user(db_session, email, role, full_name=None):
    user = User(email=email, full_name=full_name or email.split("@")[0], role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, "admin@example.com", UserRole.ADMIN, "System Admin")


@pytest.fixture
def hr_user(db_session):
    return _make_user(db_session, "hr@example.com", UserRole.HR, "Hannah HR")


@pytest.fixture
def manager_user(db_session):
    return _make_user(db_session, "manager@example.com", UserRole.MANAGER, "Mary Manager")


@pytest.fixture
def employee_user(db_session):
    return _make_user(db_session, "employee@example.com", UserRole.EMPLOYEE, "Eddie Employee")


@pytest.fixture
def consultant_role(db_session):
    role = EmployeeRole(name="Consultant", description="Consultant", is_active=True)
    db_session.add(role)
    db_session.commit()
    return role


@pytest.fixture
def manager(db_session, manager_user):
    employee = Employee(
        user_id=manager_user.id,
        first_name="Mary",
        last_name="Manager",
        email=manager_user.email,
        role="Manager",
        position="Engineering Manager",
    )
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture
def employee(db_session, employee_user, manager, consultant_role):
    record = Employee(
        user_id=employee_user.id,
        first_name="Eddie",
        last_name="Employee",
        email=employee_user.email,
        role=consultant_role.name,
        role_id=consultant_role.id,
        position="Consultant",
        manager_id=manager.id,
    )
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture
def make_employee(db_session, manager, consultant_role):
    """Factory for extra team members reporting to ``manager``."""
    def _make(first_name, last_name, with_user=True):
        user_id = None
        if with_user:
            user_id = _make_user(
                db_session, f"{first_name.lower()}@example.com", UserRole.EMPLOYEE, f"{first_name} {last_name}"
            ).id
        record = Employee(
            user_id=user_id,
            first_name=first_name,
            last_name=last_name,
            email=f"{first_name.lower()}@example.com",
            role=consultant_role.name,
            role_id=consultant_role.id,
            manager_id=manager.id,
        )
        db_session.add(record)
        db_session.commit()
        return record
    return _make


@pytest.fixture
def template(db_session, consultant_role):
    """Template with one objective and two key results, declared out of order."""
    tmpl = OKRTemplate(
        name="Consultant OKR Template",
        role=consultant_role.name,
        description="OKR template for Consultant role",
        role_id=consultant_role.id,
        is_active=True,
    )
    objective = TemplateObjective(
        name="Customer Success", weight=Decimal("100"), description="Keep customers happy", sort_order=1
    )
    objective.key_results.append(TemplateKeyResult(
        name="Customer satisfaction",
        target="CSAT 4.5",
        measure="Survey",
        measurement_source="Survey results",
        weight=Decimal("40"),
        sort_order=2,
    ))
    objective.key_results.append(TemplateKeyResult(
        name="Resolve incidents within SLA",
        target="95%",
        measure="SLA compliance",
        measurement_source="Ticketing system",
        weight=Decimal("60"),
        sort_order=1,
        rating1_description="Under 70%",
        rating2_description="70-80%",
        rating3_description="80-90%",
        rating4_description="90-95%",
        rating5_description="Above 95%",
    ))
    tmpl.objectives.append(objective)
    db_session.add(tmpl)
    db_session.commit()
    return tmpl


@pytest.fixture
def manager_actor(manager_user, manager):
    return ActingUser(user_id=manager_user.id, role=UserRole.MANAGER, employee_id=manager.id)


@pytest.fixture
def employee_actor(employee_user, employee):
    return ActingUser(user_id=employee_user.id, role=UserRole.EMPLOYEE, employee_id=employee.id)


@pytest.fixture
def hr_actor(hr_user):
    return ActingUser(user_id=hr_user.id, role=UserRole.HR)


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens for a user."""
    from okrapp.services.auth import create_access_token

    def _get_token(user):
        return create_access_token(data={
            "sub": user.id,
            "role": user.role.value,
            "type": "access"
        })
    return _get_token


@pytest.fixture
def auth_headers(get_token):
    def _headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _headers


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
