import uuid

import pytest

from app.db.db import missing_tables, reset_db
from app.db.models import AuditLog, EmployeeStatus, RequestStatus
from app.schemas.public.request_schemas import CreateRequestRequest
from app.services.audit_service import AuditService, SYSTEM_ACTOR
from app.services.certificate_service import CertificateService
from app.services.metrics_service import MetricsService
from app.services.request_service import RequestService
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import NotFoundError

from tests.conftest import make_employee


class TestRequestService:
    """Test public leads."""

    @pytest.mark.asyncio
    async def test_create_and_update_request(self, db_session, test_settings, admin_actor):
        service = RequestService(db_session, test_settings)

        created = await service.create_request(
            CreateRequestRequest(
                full_name="  Dana  ",
                email="Dana@Example.com",
                establishment_name="Smoke Bar",
            )
        )

        assert created.full_name == "Dana"
        assert created.email == "dana@example.com"
        assert created.status == RequestStatus.NEW

        updated = await service.update_request_status(
            created.id, RequestStatus.IN_PROGRESS, actor=admin_actor
        )

        assert updated.status == RequestStatus.IN_PROGRESS
        assert await service.list_requests(RequestStatus.NEW) == []
        assert [r.id for r in await service.list_requests()] == [created.id]
        assert db_session.query(AuditLog).one().action == "requests.update"

    @pytest.mark.asyncio
    async def test_update_missing_request(self, db_session, test_settings):
        with pytest.raises(NotFoundError):
            await RequestService(db_session, test_settings).update_request_status(
                uuid.uuid4(), RequestStatus.CLOSED
            )


class TestAuditService:
    """Test reading the audit trail."""

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, db_session, test_settings):
        service = AuditService(
            db_session, test_settings.model_copy(update={"AUDIT_LOG_MAX_LIMIT": 3})
        )
        for index in range(5):
            service.record(SYSTEM_ACTOR, "test.action", "test", index, {"n": index})
        db_session.commit()

        assert len(await service.list_logs(100)) == 3
        assert len(await service.list_logs(0)) == 1

        entry = (await service.list_logs(1))[0]
        assert entry.actor == "system"
        assert entry.action == "test.action"


class TestMetricsService:
    """Test dashboard counters."""

    @pytest.mark.asyncio
    async def test_counts_skip_archived_rows(
        self, db_session, test_settings, dispatcher, establishment, other_establishment
    ):
        certified = make_employee(db_session, establishment, "one@example.com")
        make_employee(db_session, establishment, "two@example.com")
        archived = make_employee(db_session, other_establishment, "three@example.com")
        archived.deleted_at = naive_utc_now()
        other_establishment.deleted_at = naive_utc_now()
        db_session.commit()

        await CertificateService(
            db_session, test_settings, dispatcher=dispatcher
        ).issue_certificate(certified.id)

        metrics = await MetricsService(db_session).get_metrics()

        assert metrics.establishments == 1
        assert metrics.employees == 2
        assert metrics.active_certificates == 1
        assert {s.status: s.count for s in metrics.employee_statuses} == {
            EmployeeStatus.CERTIFIED.value: 1,
            EmployeeStatus.PENDING_REGISTRATION.value: 1,
        }


class TestSchemaManagement:
    """Test the schema helper commands."""

    def test_reset_recreates_missing_tables(self, test_engine):
        with test_engine.begin() as connection:
            connection.exec_driver_sql("DROP TABLE audit_logs")

        assert missing_tables(test_engine) == ["audit_logs"]

        reset_db(test_engine)

        assert missing_tables(test_engine) == []
