from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config.settings import Settings, settings as default_settings
from app.db.models import AuditLog
from app.db.session import get_sync_session
from app.schemas.admin.audit_schemas import AuditLogResponse
from app.utils.logging import get_logger

logger = get_logger()


@dataclass(frozen=True)
class Actor:
    """Who performed an action, as recorded in audit and history rows"""

    email: str = "system"
    role: str = "admin"


SYSTEM_ACTOR = Actor()


class AuditService:
    """Append-only audit trail of administrative actions.

    ``record`` only adds the row to the session. The caller commits it
    together with the change it describes, so a rolled back change leaves
    no audit entry behind.
    """

    def __init__(self, db_session: Session, config: Settings = default_settings):
        self.db = db_session
        self.config = config

    def record(
        self,
        actor: Actor,
        action: str,
        entity_type: str,
        entity_id: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        entry = AuditLog(
            actor=actor.email,
            actor_role=actor.role,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=metadata,
        )
        self.db.add(entry)
        return entry

    async def list_logs(self, limit: int = 100) -> List[AuditLogResponse]:
        """Newest entries first, capped at AUDIT_LOG_MAX_LIMIT"""
        limit = max(1, min(limit, self.config.AUDIT_LOG_MAX_LIMIT))

        result = self.db.execute(
            select(AuditLog)
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
            .limit(limit)
        )
        return [AuditLogResponse.model_validate(row) for row in result.scalars().all()]


# Dependency injection for service provider
def get_audit_service(
    db: Session = Depends(get_sync_session),
) -> AuditService:
    """Dependency to provide AuditService instance"""
    return AuditService(db)
