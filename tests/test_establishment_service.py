import uuid

import pytest

from app.db.models import AuditLog, Certificate, CertificateStatus, Establishment
from app.schemas.admin.establishment_schemas import (
    CreateEstablishmentRequest,
    UpdateEstablishmentRequest,
)
from app.services.establishment_service import EstablishmentService
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import ConflictError, NotFoundError

from tests.conftest import make_employee


class TestEstablishmentCrud:
    """Test create and partial update."""

    @pytest.mark.asyncio
    async def test_create_writes_audit_entry(
        self, db_session, test_settings, admin_actor
    ):
        service = EstablishmentService(db_session, test_settings)

        created = await service.create_establishment(
            CreateEstablishmentRequest(name="Smoke Bar", city="Shymkent"), admin_actor
        )

        assert created.name == "Smoke Bar"
        assert created.deleted_at is None
        log = db_session.query(AuditLog).one()
        assert log.action == "establishments.create"
        assert log.actor == admin_actor.email
        assert log.entity_id == str(created.id)

    @pytest.mark.asyncio
    async def test_update_changes_only_given_fields(
        self, db_session, test_settings, establishment
    ):
        service = EstablishmentService(db_session, test_settings)

        updated = await service.update_establishment(
            establishment.id, UpdateEstablishmentRequest(address="New street 5")
        )

        assert updated.address == "New street 5"
        assert updated.name == "Hookah Lounge Almaty"
        assert updated.representative == "Aigerim"

    @pytest.mark.asyncio
    async def test_update_missing_establishment(self, db_session, test_settings):
        service = EstablishmentService(db_session, test_settings)

        with pytest.raises(NotFoundError):
            await service.update_establishment(
                uuid.uuid4(), UpdateEstablishmentRequest(name="Nope")
            )


class TestEstablishmentArchive:
    """Test archive and restore transitions."""

    @pytest.mark.asyncio
    async def test_archive_then_restore(self, db_session, test_settings, establishment):
        service = EstablishmentService(db_session, test_settings)

        archived = await service.archive_establishment(establishment.id)
        assert archived.deleted_at is not None

        with pytest.raises(ConflictError) as exc_info:
            await service.archive_establishment(establishment.id)
        assert exc_info.value.error_code == "ESTABLISHMENT_ALREADY_ARCHIVED"

        restored = await service.restore_establishment(establishment.id)
        assert restored.deleted_at is None

        with pytest.raises(ConflictError) as exc_info:
            await service.restore_establishment(establishment.id)
        assert exc_info.value.error_code == "ESTABLISHMENT_ALREADY_ACTIVE"

        actions = [log.action for log in db_session.query(AuditLog).all()]
        assert sorted(actions) == ["establishments.archive", "establishments.restore"]

    @pytest.mark.asyncio
    async def test_archive_missing_establishment(self, db_session, test_settings):
        service = EstablishmentService(db_session, test_settings)

        with pytest.raises(NotFoundError):
            await service.archive_establishment(uuid.uuid4())


class TestEstablishmentList:
    """Test listing with counts."""

    @pytest.mark.asyncio
    async def test_counts_skip_archived_employees(
        self, db_session, test_settings, establishment, other_establishment
    ):
        active = make_employee(db_session, establishment, "a@example.com")
        archived = make_employee(db_session, establishment, "b@example.com")
        archived.deleted_at = naive_utc_now()
        db_session.add(
            Certificate(
                employee_id=active.id,
                establishment_id=establishment.id,
                certificate_number="CERT-20240101-1234",
                status=CertificateStatus.REVOKED,
            )
        )
        db_session.commit()
        service = EstablishmentService(db_session, test_settings)

        items = {item.id: item for item in await service.list_establishments()}

        assert items[establishment.id].employees_count == 1
        assert items[establishment.id].certificates_count == 1
        assert items[other_establishment.id].employees_count == 0
        assert items[other_establishment.id].certificates_count == 0

    @pytest.mark.asyncio
    async def test_archived_hidden_unless_requested(
        self, db_session, test_settings, establishment, other_establishment
    ):
        service = EstablishmentService(db_session, test_settings)
        await service.archive_establishment(other_establishment.id)

        visible = [item.id for item in await service.list_establishments()]
        everything = [
            item.id for item in await service.list_establishments(include_archived=True)
        ]

        assert visible == [establishment.id]
        assert set(everything) == {establishment.id, other_establishment.id}
        assert db_session.query(Establishment).count() == 2
