from typing import List, Optional
import uuid

from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.config.settings import Settings, settings as default_settings
from app.db.models import Establishment, Employee, Certificate
from app.db.session import get_sync_session
from app.schemas.admin.establishment_schemas import (
    CreateEstablishmentRequest,
    UpdateEstablishmentRequest,
    EstablishmentResponse,
    EstablishmentListItem,
)
from app.services.audit_service import Actor, AuditService, SYSTEM_ACTOR
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import ConflictError, NotFoundError
from app.utils.logging import get_logger

logger = get_logger()


class EstablishmentService:
    """Service provider for the establishment registry"""

    def __init__(self, db_session: Session, config: Settings = default_settings):
        self.db = db_session
        self.config = config
        self.audit = AuditService(db_session, config)

    # Core CRUD Operations
    async def get_establishment_by_id(
        self, establishment_id: uuid.UUID
    ) -> Optional[Establishment]:
        """Get establishment by ID or return None if not found"""
        result = self.db.execute(
            select(Establishment).where(Establishment.id == establishment_id)
        )
        return result.scalar_one_or_none()

    async def list_establishments(
        self, include_archived: bool = False
    ) -> List[EstablishmentListItem]:
        """Establishments newest first, with employee and certificate counts"""
        query = self._build_establishments_query_with_counts()
        if not include_archived:
            query = query.where(Establishment.deleted_at.is_(None))
        query = query.order_by(Establishment.created_at.desc())

        rows = self.db.execute(query).all()
        establishments_list = []
        for row in rows:
            establishment = row.Establishment
            establishments_list.append(
                EstablishmentListItem(
                    id=establishment.id,
                    name=establishment.name,
                    city=establishment.city,
                    representative=establishment.representative,
                    representative_phone=establishment.representative_phone,
                    address=establishment.address,
                    deleted_at=establishment.deleted_at,
                    created_at=establishment.created_at,
                    updated_at=establishment.updated_at,
                    employees_count=row.employees_count,
                    certificates_count=row.certificates_count,
                )
            )
        return establishments_list

    async def create_establishment(
        self, data: CreateEstablishmentRequest, actor: Actor = SYSTEM_ACTOR
    ) -> EstablishmentResponse:
        establishment = Establishment(
            name=data.name,
            city=data.city,
            representative=data.representative,
            representative_phone=data.representative_phone,
            address=data.address,
        )

        try:
            self.db.add(establishment)
            self.db.flush()
            self.audit.record(
                actor,
                "establishments.create",
                "establishment",
                establishment.id,
                {"name": establishment.name},
            )
            self.db.commit()
            self.db.refresh(establishment)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Created establishment {establishment.id}")
        return EstablishmentResponse.model_validate(establishment)

    async def update_establishment(
        self,
        establishment_id: uuid.UUID,
        data: UpdateEstablishmentRequest,
        actor: Actor = SYSTEM_ACTOR,
    ) -> EstablishmentResponse:
        """Partial update: only fields present in the request are changed"""
        establishment = await self.get_establishment_by_id(establishment_id)
        if not establishment:
            raise NotFoundError("Establishment not found", "ESTABLISHMENT_NOT_FOUND")

        changes = data.model_dump(exclude_unset=True)
        # name and city are required columns, an explicit null leaves them as is
        changes = {
            field: value
            for field, value in changes.items()
            if value is not None or field not in ("name", "city")
        }

        try:
            for field, value in changes.items():
                setattr(establishment, field, value)

            self.audit.record(
                actor,
                "establishments.update",
                "establishment",
                establishment.id,
                changes,
            )
            self.db.commit()
            self.db.refresh(establishment)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Updated establishment {establishment.id}")
        return EstablishmentResponse.model_validate(establishment)

    async def archive_establishment(
        self, establishment_id: uuid.UUID, actor: Actor = SYSTEM_ACTOR
    ) -> EstablishmentResponse:
        establishment = await self.get_establishment_by_id(establishment_id)
        if not establishment:
            raise NotFoundError("Establishment not found", "ESTABLISHMENT_NOT_FOUND")
        if establishment.is_archived:
            raise ConflictError(
                "Establishment already archived", "ESTABLISHMENT_ALREADY_ARCHIVED"
            )

        return await self._set_archived(
            establishment, naive_utc_now(), "establishments.archive", actor
        )

    async def restore_establishment(
        self, establishment_id: uuid.UUID, actor: Actor = SYSTEM_ACTOR
    ) -> EstablishmentResponse:
        establishment = await self.get_establishment_by_id(establishment_id)
        if not establishment:
            raise NotFoundError("Establishment not found", "ESTABLISHMENT_NOT_FOUND")
        if not establishment.is_archived:
            raise ConflictError(
                "Establishment already active", "ESTABLISHMENT_ALREADY_ACTIVE"
            )

        return await self._set_archived(
            establishment, None, "establishments.restore", actor
        )

    # Helper Methods
    async def _set_archived(
        self, establishment: Establishment, deleted_at, action: str, actor: Actor
    ) -> EstablishmentResponse:
        try:
            establishment.deleted_at = deleted_at
            self.audit.record(
                actor,
                action,
                "establishment",
                establishment.id,
                {"name": establishment.name},
            )
            self.db.commit()
            self.db.refresh(establishment)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"{action} {establishment.id}")
        return EstablishmentResponse.model_validate(establishment)

    def _build_establishments_query_with_counts(self):
        """Build query for establishments with employee and certificate counts"""
        # Subquery for non-archived employees
        employees_subquery = (
            select(
                Employee.establishment_id,
                func.count(Employee.id).label("employees_count"),
            )
            .where(Employee.deleted_at.is_(None))
            .group_by(Employee.establishment_id)
            .subquery()
        )

        # Subquery for every certificate issued at the establishment
        certificates_subquery = (
            select(
                Certificate.establishment_id,
                func.count(Certificate.id).label("certificates_count"),
            )
            .group_by(Certificate.establishment_id)
            .subquery()
        )

        return (
            select(
                Establishment,
                func.coalesce(employees_subquery.c.employees_count, 0).label(
                    "employees_count"
                ),
                func.coalesce(certificates_subquery.c.certificates_count, 0).label(
                    "certificates_count"
                ),
            )
            .outerjoin(
                employees_subquery,
                Establishment.id == employees_subquery.c.establishment_id,
            )
            .outerjoin(
                certificates_subquery,
                Establishment.id == certificates_subquery.c.establishment_id,
            )
        )


# Dependency injection for service provider
def get_establishment_service(
    db: Session = Depends(get_sync_session),
) -> EstablishmentService:
    """Dependency to provide EstablishmentService instance"""
    return EstablishmentService(db)
