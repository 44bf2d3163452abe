from typing import Optional
from datetime import datetime
from pydantic import Field
import uuid

from app.db.models import RequestStatus
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class UpdateRequestStatusRequest(BaseModel):
    """Request schema for moving a lead through its workflow"""

    status: RequestStatus


class RequestListQueryParams(BaseModel):
    """Query parameters for the lead list"""

    status: Optional[RequestStatus] = Field(None)


class RequestResponse(BaseModel):
    """Response schema for a public lead"""

    id: uuid.UUID
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    establishment_name: Optional[str] = None
    message: Optional[str] = None
    status: RequestStatus
    created_at: datetime
