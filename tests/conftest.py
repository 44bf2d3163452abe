import base64
import os
import uuid
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config.settings import Settings, settings
from app.db.models import (
    Base,
    Employee,
    EmployeeStatus,
    EmployeeTransfer,
    Establishment,
    User,
    UserRole,
)
from app.services.audit_service import Actor
from app.services.notification_service import InMemoryNotificationDispatcher
from app.utils.auth import AuthUtils


# Test database setup
TEST_DATABASE_URL = "sqlite:///:memory:"

BOOTSTRAP_KEY = "test-bootstrap-key"
TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture
def test_settings() -> Settings:
    """Settings with fast bcrypt and a throwaway IIN key."""
    return settings.model_copy(
        update={
            "BCRYPT_ROUNDS": 4,
            "IIN_ENCRYPTION_KEY": base64.b64encode(os.urandom(32)).decode(),
            "ADMIN_BOOTSTRAP_KEY": BOOTSTRAP_KEY,
            "TRAINING_URL": "https://training.example/course",
            "REGISTRATION_BASE_URL": "https://portal.example/register/",
            "SMTP_HOST": "",
            "SMTP_FROM": "",
        }
    )


@pytest.fixture
def test_engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for each test."""
    session_maker = sessionmaker(
        bind=test_engine, class_=Session, expire_on_commit=False
    )
    session = session_maker()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def dispatcher() -> InMemoryNotificationDispatcher:
    """Notification dispatcher that records emails instead of queueing them."""
    return InMemoryNotificationDispatcher()


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(email="admin@example.com", role=UserRole.ADMIN.value)


# Test data factories
@pytest.fixture
def establishment(db_session: Session) -> Establishment:
    """Create an active establishment."""
    establishment = Establishment(
        id=uuid.uuid4(),
        name="Hookah Lounge Almaty",
        city="Almaty",
        representative="Aigerim",
        representative_phone="+77010000000",
        address="Abay ave 1",
    )
    db_session.add(establishment)
    db_session.commit()
    db_session.refresh(establishment)
    return establishment


@pytest.fixture
def other_establishment(db_session: Session) -> Establishment:
    """Create a second active establishment for transfers."""
    establishment = Establishment(
        id=uuid.uuid4(),
        name="Hookah Lounge Astana",
        city="Astana",
    )
    db_session.add(establishment)
    db_session.commit()
    db_session.refresh(establishment)
    return establishment


def make_employee(
    db_session: Session,
    establishment: Establishment,
    email: str,
    status: EmployeeStatus = EmployeeStatus.PENDING_REGISTRATION,
    full_name: str = "Test Employee",
) -> Employee:
    """Insert an employee directly, with a token when the status needs one."""
    token_bearing = status in (
        EmployeeStatus.PENDING_REGISTRATION,
        EmployeeStatus.RESET_PASSWORD,
    )
    employee = Employee(
        id=uuid.uuid4(),
        establishment_id=establishment.id,
        full_name=full_name,
        email=email,
        status=status,
        registration_token=(
            AuthUtils.generate_registration_token() if token_bearing else None
        ),
    )
    db_session.add(employee)
    db_session.add(
        EmployeeTransfer(
            employee_id=employee.id,
            from_establishment_id=None,
            to_establishment_id=establishment.id,
            reason="create",
            actor="system",
        )
    )
    db_session.commit()
    db_session.refresh(employee)
    return employee


@pytest.fixture
def pending_employee(db_session: Session, establishment: Establishment) -> Employee:
    """Employee waiting for self-registration."""
    return make_employee(db_session, establishment, "pending@example.com")


@pytest.fixture
def registered_employee(
    db_session: Session, establishment: Establishment, test_settings: Settings
) -> Employee:
    """Registered employee with an employee-role credential."""
    employee = make_employee(
        db_session,
        establishment,
        "registered@example.com",
        status=EmployeeStatus.REGISTERED,
        full_name="Registered Employee",
    )
    db_session.add(
        User(
            email=employee.email,
            password_hash=AuthUtils.hash_password(
                TEST_PASSWORD, rounds=test_settings.BCRYPT_ROUNDS
            ),
            role=UserRole.EMPLOYEE,
            employee_id=employee.id,
        )
    )
    db_session.commit()
    db_session.refresh(employee)
    return employee
