from typing import Optional
from datetime import datetime
from pydantic import Field
import uuid

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class CreateEstablishmentRequest(BaseModel):
    """Request schema for registering a new establishment"""

    name: str = Field(..., min_length=2, max_length=200, description="Venue name")
    city: str = Field(..., min_length=2, max_length=100, description="City")
    representative: Optional[str] = Field(
        None, max_length=200, description="Contact person"
    )
    representative_phone: Optional[str] = Field(
        None, max_length=50, description="Contact phone"
    )
    address: Optional[str] = Field(None, max_length=300, description="Street address")


class UpdateEstablishmentRequest(BaseModel):
    """Request schema for a partial establishment update"""

    name: Optional[str] = Field(None, min_length=2, max_length=200)
    city: Optional[str] = Field(None, min_length=2, max_length=100)
    representative: Optional[str] = Field(None, max_length=200)
    representative_phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=300)


class EstablishmentListQueryParams(BaseModel):
    """Query parameters for the establishment list"""

    include_archived: bool = Field(False, description="Include archived venues")


class EstablishmentResponse(BaseModel):
    """Response schema for establishment data"""

    id: uuid.UUID = Field(..., description="Establishment ID")
    name: str = Field(..., description="Venue name")
    city: str = Field(..., description="City")
    representative: Optional[str] = None
    representative_phone: Optional[str] = None
    address: Optional[str] = None
    deleted_at: Optional[datetime] = Field(None, description="Archive timestamp")
    created_at: datetime
    updated_at: datetime


class EstablishmentListItem(EstablishmentResponse):
    """Establishment with aggregate counts"""

    employees_count: int = Field(..., description="Non-archived employees")
    certificates_count: int = Field(..., description="Certificates ever issued here")
