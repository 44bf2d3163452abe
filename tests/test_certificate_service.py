import re
import uuid
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.db.models import (
    AuditLog,
    Certificate,
    CertificateHistory,
    CertificateStatus,
    EmployeeStatus,
)
from app.schemas.admin.certificate_schemas import CertificateListQueryParams
from app.services.certificate_renderer import CertificateContent, CertificateRenderer
from app.services.certificate_service import (
    CertificateService,
    generate_certificate_number,
)
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import BusinessLogicError, ConflictError, NotFoundError


@pytest.fixture
def certificate_service(db_session, test_settings, dispatcher) -> CertificateService:
    return CertificateService(db_session, test_settings, dispatcher=dispatcher)


class TestCertificateNumber:
    """Test the certificate number format."""

    def test_number_format(self):
        number = generate_certificate_number(datetime(2024, 3, 9, 15, 0))

        assert re.fullmatch(r"CERT-20240309-\d{4}", number)
        assert 1000 <= int(number[-4:]) <= 9999


class TestIssueCertificate:
    """Test manual issuing."""

    @pytest.mark.asyncio
    async def test_issue_marks_employee_certified(
        self, db_session, certificate_service, dispatcher, pending_employee, admin_actor
    ):
        certificate = await certificate_service.issue_certificate(
            pending_employee.id, actor=admin_actor
        )

        assert certificate.status == CertificateStatus.ACTIVE
        assert certificate.display_status == "active"
        # One calendar year by default
        assert certificate.valid_until - certificate.issued_at >= timedelta(days=365)

        db_session.refresh(pending_employee)
        assert pending_employee.status == EmployeeStatus.CERTIFIED
        assert pending_employee.registration_token is None

        history = db_session.query(CertificateHistory).one()
        assert history.status == CertificateStatus.ACTIVE
        assert history.reason == "manual_issue"
        assert history.actor == admin_actor.email

        assert dispatcher.sent[0].to == pending_employee.email
        assert certificate.certificate_number in dispatcher.sent[0].text
        assert db_session.query(AuditLog).one().action == "certificates.create"

    @pytest.mark.asyncio
    async def test_second_active_certificate_conflicts(
        self, db_session, certificate_service, registered_employee
    ):
        await certificate_service.issue_certificate(registered_employee.id)

        with pytest.raises(ConflictError) as exc_info:
            await certificate_service.issue_certificate(registered_employee.id)

        assert exc_info.value.error_code == "CERTIFICATE_ALREADY_ACTIVE"
        assert db_session.query(Certificate).count() == 1

    @pytest.mark.asyncio
    async def test_failed_flush_leaves_nothing_behind(
        self, db_session, certificate_service, dispatcher, pending_employee, monkeypatch
    ):
        token = pending_employee.registration_token
        flush = db_session.flush

        def failing_flush(*args, **kwargs):
            if any(isinstance(obj, Certificate) for obj in db_session.new):
                raise OperationalError("INSERT", {}, Exception("database is gone"))
            return flush(*args, **kwargs)

        monkeypatch.setattr(db_session, "flush", failing_flush)

        with pytest.raises(OperationalError):
            await certificate_service.issue_certificate(pending_employee.id)

        assert db_session.query(Certificate).count() == 0
        assert db_session.query(CertificateHistory).count() == 0
        assert db_session.query(AuditLog).count() == 0
        db_session.refresh(pending_employee)
        assert pending_employee.status == EmployeeStatus.PENDING_REGISTRATION
        assert pending_employee.registration_token == token
        assert dispatcher.sent == []

    @pytest.mark.asyncio
    async def test_explicit_valid_until(self, certificate_service, registered_employee):
        valid_until = datetime(2030, 1, 1, 12, 0)

        certificate = await certificate_service.issue_certificate(
            registered_employee.id, valid_until
        )

        assert certificate.valid_until == valid_until

    @pytest.mark.asyncio
    async def test_archived_employee_not_found(
        self, db_session, certificate_service, registered_employee
    ):
        registered_employee.deleted_at = naive_utc_now()
        db_session.commit()

        with pytest.raises(NotFoundError):
            await certificate_service.issue_certificate(registered_employee.id)


class TestRevokeCertificate:
    """Test revoking and re-issuing."""

    @pytest.mark.asyncio
    async def test_issue_revoke_issue_keeps_one_active(
        self, db_session, certificate_service, registered_employee
    ):
        first = await certificate_service.issue_certificate(registered_employee.id)
        revoked = await certificate_service.revoke_certificate(
            first.id, "  issued by mistake  "
        )

        assert revoked.status == CertificateStatus.REVOKED
        assert revoked.revoked_reason == "issued by mistake"
        assert revoked.revoked_at is not None
        # Revocation leaves the employee status alone
        db_session.refresh(registered_employee)
        assert registered_employee.status == EmployeeStatus.CERTIFIED

        second = await certificate_service.issue_certificate(registered_employee.id)

        assert second.certificate_number != first.certificate_number
        active = (
            db_session.query(Certificate)
            .filter(
                Certificate.employee_id == registered_employee.id,
                Certificate.status == CertificateStatus.ACTIVE,
            )
            .all()
        )
        assert [c.id for c in active] == [second.id]

        history = await certificate_service.get_history(first.id)
        assert [(h.status, h.reason) for h in history] == [
            (CertificateStatus.ACTIVE, "manual_issue"),
            (CertificateStatus.REVOKED, "issued by mistake"),
        ]

    @pytest.mark.asyncio
    async def test_short_reason_rejected(self, certificate_service, registered_employee):
        certificate = await certificate_service.issue_certificate(
            registered_employee.id
        )

        with pytest.raises(BusinessLogicError) as exc_info:
            await certificate_service.revoke_certificate(certificate.id, " ab ")

        assert exc_info.value.error_code == "REVOKE_REASON_REQUIRED"

    @pytest.mark.asyncio
    async def test_revoke_twice_conflicts(
        self, certificate_service, registered_employee
    ):
        certificate = await certificate_service.issue_certificate(
            registered_employee.id
        )
        await certificate_service.revoke_certificate(certificate.id, "duplicate")

        with pytest.raises(ConflictError):
            await certificate_service.revoke_certificate(certificate.id, "again")

    @pytest.mark.asyncio
    async def test_revoke_missing_certificate(self, certificate_service):
        with pytest.raises(NotFoundError):
            await certificate_service.revoke_certificate(uuid.uuid4(), "no such thing")


class TestCertificateListing:
    """Test derived expiry and filters."""

    @pytest.mark.asyncio
    async def test_expired_is_derived_at_read_time(
        self, db_session, certificate_service, registered_employee
    ):
        certificate = await certificate_service.issue_certificate(
            registered_employee.id, naive_utc_now() - timedelta(days=1)
        )

        items = await certificate_service.list_certificates()

        assert len(items) == 1
        assert items[0].is_expired
        assert items[0].display_status == "expired"
        assert items[0].full_name == registered_employee.full_name
        assert items[0].establishment_name == "Hookah Lounge Almaty"
        # The stored status is still active
        stored = db_session.get(Certificate, certificate.id)
        assert stored.status == CertificateStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_search_by_number(self, certificate_service, registered_employee):
        certificate = await certificate_service.issue_certificate(
            registered_employee.id
        )

        found = await certificate_service.list_certificates(
            CertificateListQueryParams(search=certificate.certificate_number[-4:])
        )
        missing = await certificate_service.list_certificates(
            CertificateListQueryParams(status=CertificateStatus.REVOKED)
        )

        assert [item.id for item in found] == [certificate.id]
        assert missing == []


class TestCertificatePdf:
    """Test PDF rendering."""

    @pytest.mark.asyncio
    async def test_render_pdf(self, certificate_service, registered_employee):
        certificate = await certificate_service.issue_certificate(
            registered_employee.id
        )

        filename, content = await certificate_service.render_pdf(certificate.id)

        assert filename == f"certificate-{certificate.certificate_number}.pdf"
        assert content.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_render_missing_certificate(self, certificate_service):
        with pytest.raises(NotFoundError):
            await certificate_service.render_pdf(uuid.uuid4())

    def test_renderer_without_assets(self, test_settings):
        renderer = CertificateRenderer(
            test_settings.model_copy(
                update={
                    "CERTIFICATE_TEMPLATE_PATH": "/nonexistent/template.png",
                    "CERTIFICATE_FONT_PATH": "",
                }
            )
        )

        content = renderer.render(
            CertificateContent(
                recipient_name="Ivan Petrov",
                qualification="Hookah master",
                training_center_name="Academy",
                issued_at=datetime(2024, 5, 1),
                certificate_number="CERT-20240501-1234",
            )
        )

        assert content.startswith(b"%PDF")
