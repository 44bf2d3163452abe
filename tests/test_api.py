import logging

import pytest
from fastapi.testclient import TestClient
from loguru import logger

from app.config.settings import settings
from app.db.session import get_sync_session
from app.main import create_application
from app.services.auth_service import AuthService, get_auth_service
from app.services.notification_service import get_notification_dispatcher
from app.services.registration_service import (
    RegistrationService,
    get_registration_service,
)
from app.utils.logging import redact_secrets

from tests.conftest import BOOTSTRAP_KEY, TEST_PASSWORD

API = settings.API_PREFIX


@pytest.fixture
def client(db_session, test_settings, dispatcher):
    app = create_application()

    def override_get_sync_session():
        yield db_session

    app.dependency_overrides[get_sync_session] = override_get_sync_session
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_auth_service] = lambda: AuthService(
        db_session, test_settings
    )
    app.dependency_overrides[get_registration_service] = lambda: RegistrationService(
        db_session, test_settings, dispatcher=dispatcher
    )

    return TestClient(app)


@pytest.fixture
def admin_headers(client):
    response = client.post(
        f"{API}/shared/auth/bootstrap",
        json={
            "email": "Admin@Example.com",
            "password": TEST_PASSWORD,
            "bootstrapKey": BOOTSTRAP_KEY,
        },
    )
    assert response.status_code == 201
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}


class TestPublicEndpoints:
    """Test routes that need no session."""

    def test_health(self, client):
        response = client.get(f"{API}/shared/health/")

        assert response.status_code == 200
        assert response.headers["X-Request-ID"]
        assert response.json()["data"]["database"] == "ok"

    def test_create_request(self, client):
        response = client.post(
            f"{API}/public/requests/",
            json={"fullName": "Dana", "phone": "+77011234567"},
        )

        assert response.status_code == 201
        assert response.json()["data"]["status"] == "new"

    def test_invalid_request_body(self, client):
        response = client.post(f"{API}/public/requests/", json={"fullName": "D"})

        assert response.status_code == 422
        assert response.json()["success"] is False


class TestAdminAccess:
    """Test role checks on admin routes."""

    def test_anonymous_is_rejected(self, client):
        response = client.get(f"{API}/admin/establishments/")

        assert response.status_code == 401
        assert response.json()["meta"]["error_code"] == "NOT_AUTHENTICATED"

    def test_invalid_token_is_anonymous(self, client):
        response = client.get(
            f"{API}/admin/establishments/",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    def test_employee_role_is_forbidden(self, client, registered_employee):
        login = client.post(
            f"{API}/shared/auth/login",
            json={"email": registered_employee.email, "password": TEST_PASSWORD},
        )
        assert login.status_code == 200

        # The session cookie set by login authenticates the next call
        me = client.get(f"{API}/shared/auth/me")
        response = client.get(f"{API}/admin/establishments/")

        assert me.status_code == 200
        assert me.json()["data"]["employee"]["email"] == registered_employee.email
        assert response.status_code == 403

    def test_login_failure(self, client, registered_employee):
        response = client.post(
            f"{API}/shared/auth/login",
            json={"email": registered_employee.email, "password": "wrong-password"},
        )

        assert response.status_code == 401
        assert response.json()["meta"]["error_code"] == "INVALID_CREDENTIALS"


class TestAdminWorkflow:
    """Test the main admin flow end to end."""

    def test_establishment_to_certificate_pdf(self, client, admin_headers, dispatcher):
        created = client.post(
            f"{API}/admin/establishments/",
            json={"name": "Smoke Bar", "city": "Almaty"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        establishment_id = created.json()["data"]["id"]

        employee = client.post(
            f"{API}/admin/employees/",
            json={
                "establishmentId": establishment_id,
                "fullName": "Ivan Petrov",
                "email": "Ivan@Example.com",
            },
            headers=admin_headers,
        )
        assert employee.status_code == 201
        employee_data = employee.json()["data"]
        assert employee_data["email"] == "ivan@example.com"
        assert len(employee_data["registrationToken"]) == 48

        duplicate = client.post(
            f"{API}/admin/employees/",
            json={
                "establishmentId": establishment_id,
                "fullName": "Ivan Petrov",
                "email": "ivan@example.com",
            },
            headers=admin_headers,
        )
        assert duplicate.status_code == 409

        issued = client.post(
            f"{API}/admin/certificates/",
            json={"employeeId": employee_data["id"]},
            headers=admin_headers,
        )
        assert issued.status_code == 201
        certificate = issued.json()["data"]

        pdf = client.get(
            f"{API}/admin/certificates/{certificate['id']}/pdf", headers=admin_headers
        )
        assert pdf.status_code == 200
        assert pdf.headers["content-type"] == "application/pdf"
        assert certificate["certificateNumber"] in pdf.headers["content-disposition"]
        assert pdf.content.startswith(b"%PDF")

        revoked = client.post(
            f"{API}/admin/certificates/{certificate['id']}/revoke",
            json={"reason": "wrong person"},
            headers=admin_headers,
        )
        assert revoked.json()["data"]["status"] == "revoked"

        logs = client.get(f"{API}/admin/audit-logs/?limit=2", headers=admin_headers)
        assert [entry["action"] for entry in logs.json()["data"]] == [
            "certificates.revoke",
            "certificates.create",
        ]
        assert [email.to for email in dispatcher.sent] == ["ivan@example.com"]

    def test_actor_is_taken_from_session(self, client, admin_headers):
        client.post(
            f"{API}/admin/establishments/",
            json={"name": "Smoke Bar", "city": "Almaty"},
            headers={**admin_headers, "X-Actor": "spoofed@example.com"},
        )

        logs = client.get(f"{API}/admin/audit-logs/", headers=admin_headers)

        actors = {entry["actor"] for entry in logs.json()["data"]}
        assert "admin@example.com" in actors
        assert "spoofed@example.com" not in actors

    def test_training_import_upload(
        self, client, admin_headers, pending_employee, dispatcher
    ):
        response = client.post(
            f"{API}/admin/training/import",
            files={
                "file": (
                    "results.csv",
                    f"email,result\n{pending_employee.email},passed\n".encode(),
                    "text/csv",
                )
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["certificatesCreated"] == 1

    def test_metrics(self, client, admin_headers, establishment):
        response = client.get(f"{API}/admin/metrics/", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["establishments"] == 1


class TestRegistrationFlow:
    """Test the public registration link."""

    def test_register_then_login(self, client, pending_employee):
        token = pending_employee.registration_token

        lookup = client.get(f"{API}/public/registration/{token}")
        assert lookup.status_code == 200
        assert lookup.json()["data"]["establishmentName"] == "Hookah Lounge Almaty"

        invalid = client.post(
            f"{API}/public/registration/{token}",
            json={"password": "new-password-1", "acceptPolicy": True},
        )
        assert invalid.status_code == 400

        completed = client.post(
            f"{API}/public/registration/{token}",
            json={
                "password": "new-password-1",
                "fullName": "Pending Person",
                "city": "Almaty",
                "phone": "+77011234567",
                "acceptPolicy": True,
                "acceptOffer": True,
                "acceptAge": True,
            },
        )
        assert completed.status_code == 200

        assert client.get(f"{API}/public/registration/{token}").status_code == 404
        login = client.post(
            f"{API}/shared/auth/login",
            json={"email": pending_employee.email, "password": "new-password-1"},
        )
        assert login.status_code == 200
        assert login.json()["data"]["user"]["role"] == "employee"


@pytest.fixture
def log_messages():
    messages = []
    handler_id = logger.add(messages.append, level="DEBUG", format="{message}")
    yield messages
    logger.remove(handler_id)


class TestRegistrationTokenLogging:
    """Test that registration tokens stay out of the logs."""

    def test_redact_secrets(self):
        assert (
            redact_secrets('"GET /api/v1/public/registration/abc123?x=1 HTTP/1.1" 200')
            == '"GET /api/v1/public/registration/***?x=1 HTTP/1.1" 200'
        )
        assert redact_secrets("GET /api/v1/shared/health/") == "GET /api/v1/shared/health/"

    def test_registration_requests_are_logged_without_token(
        self, client, pending_employee, log_messages
    ):
        token = pending_employee.registration_token

        client.get(f"{API}/public/registration/{token}")
        client.post(
            f"{API}/public/registration/{token}",
            json={"password": "new-password-1", "acceptPolicy": True},
        )
        client.post(
            f"{API}/public/registration/{token}",
            json={
                "password": "new-password-1",
                "fullName": "Pending Person",
                "city": "Almaty",
                "phone": "+77011234567",
                "acceptPolicy": True,
                "acceptOffer": True,
                "acceptAge": True,
            },
        )

        output = "".join(log_messages)
        assert f"GET {API}/public/registration/*** -> 200" in output
        assert f"POST {API}/public/registration/*** -> 400" in output
        assert token not in output

    def test_access_log_lines_are_redacted(self, log_messages):
        token = "a" * 48
        access_logger = logging.getLogger("uvicorn.access")
        previous_level = access_logger.level
        access_logger.setLevel(logging.INFO)
        try:
            access_logger.info(
                '127.0.0.1:5000 - "GET /api/v1/public/registration/%s HTTP/1.1" 200', token
            )
        finally:
            access_logger.setLevel(previous_level)

        output = "".join(log_messages)
        assert "/public/registration/***" in output
        assert token not in output
