from typing import List, Optional
import uuid

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config.settings import Settings, settings as default_settings
from app.db.models import Request, RequestStatus
from app.db.session import get_sync_session
from app.schemas.admin.request_schemas import RequestResponse
from app.schemas.public.request_schemas import CreateRequestRequest
from app.services.audit_service import Actor, AuditService, SYSTEM_ACTOR
from app.utils.errors import NotFoundError
from app.utils.logging import get_logger

logger = get_logger()


class RequestService:
    """Leads submitted from the public site"""

    def __init__(self, db_session: Session, config: Settings = default_settings):
        self.db = db_session
        self.config = config
        self.audit = AuditService(db_session, config)

    async def create_request(self, data: CreateRequestRequest) -> RequestResponse:
        lead = Request(
            full_name=data.full_name.strip(),
            email=data.email.lower() if data.email else None,
            phone=data.phone or None,
            city=data.city or None,
            establishment_name=data.establishment_name or None,
            message=data.message or None,
            status=RequestStatus.NEW,
        )

        try:
            self.db.add(lead)
            self.db.commit()
            self.db.refresh(lead)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Received request {lead.id}")
        return RequestResponse.model_validate(lead)

    async def list_requests(
        self, status: Optional[RequestStatus] = None
    ) -> List[RequestResponse]:
        query = select(Request)
        if status:
            query = query.where(Request.status == status)
        query = query.order_by(Request.created_at.desc())

        return [
            RequestResponse.model_validate(lead)
            for lead in self.db.execute(query).scalars().all()
        ]

    async def update_request_status(
        self,
        request_id: uuid.UUID,
        status: RequestStatus,
        actor: Actor = SYSTEM_ACTOR,
    ) -> RequestResponse:
        lead = self.db.execute(
            select(Request).where(Request.id == request_id)
        ).scalar_one_or_none()
        if not lead:
            raise NotFoundError("Request not found", "REQUEST_NOT_FOUND")

        try:
            lead.status = status
            self.audit.record(
                actor, "requests.update", "request", lead.id, {"status": status.value}
            )
            self.db.commit()
            self.db.refresh(lead)
        except Exception:
            self.db.rollback()
            raise

        return RequestResponse.model_validate(lead)


# Dependency injection for service provider
def get_request_service(
    db: Session = Depends(get_sync_session),
) -> RequestService:
    """Dependency to provide RequestService instance"""
    return RequestService(db)
