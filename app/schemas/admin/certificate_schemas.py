from typing import Optional
from datetime import datetime
from pydantic import Field
import uuid

from app.db.models import CertificateStatus
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class IssueCertificateRequest(BaseModel):
    """Request schema for manually issuing a certificate"""

    employee_id: uuid.UUID = Field(..., description="Employee ID")
    valid_until: Optional[datetime] = Field(
        None, description="Expiry, defaults to the configured validity period"
    )


class RevokeCertificateRequest(BaseModel):
    """Request schema for revoking a certificate"""

    reason: str = Field(..., description="Why the certificate is revoked")


class CertificateListQueryParams(BaseModel):
    """Query parameters for certificate list filtering"""

    establishment_id: Optional[uuid.UUID] = Field(None)
    status: Optional[CertificateStatus] = Field(None)
    search: Optional[str] = Field(
        None, description="Substring of holder name, email or certificate number"
    )


class CertificateResponse(BaseModel):
    """Response schema for certificate data"""

    id: uuid.UUID
    employee_id: uuid.UUID
    establishment_id: uuid.UUID
    certificate_number: str
    status: CertificateStatus
    display_status: str = Field(..., description="active, revoked or expired")
    is_expired: bool
    issued_at: datetime
    valid_until: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None


class CertificateListItem(CertificateResponse):
    """Certificate joined with its holder and establishment"""

    full_name: str
    email: str
    establishment_name: Optional[str] = None


class CertificateHistoryResponse(BaseModel):
    """Response schema for a certificate history entry"""

    id: uuid.UUID
    certificate_id: uuid.UUID
    status: CertificateStatus
    reason: Optional[str] = None
    actor: Optional[str] = None
    created_at: datetime
