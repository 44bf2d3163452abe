from typing import Any, Dict, Optional
from datetime import datetime
from pydantic import Field
import uuid

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class AuditLogQueryParams(BaseModel):
    """Query parameters for the audit log listing"""

    limit: int = Field(100, ge=1, description="Maximum number of entries")


class AuditLogResponse(BaseModel):
    """Response schema for one audit log entry"""

    id: uuid.UUID
    actor: str
    actor_role: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = Field(
        None, serialization_alias="metadata", description="Action-specific context"
    )
    created_at: datetime
