from typing import List, Optional
from datetime import datetime
from pydantic import EmailStr, Field
import uuid

from app.db.models import EmployeeStatus
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class CreateEmployeeRequest(BaseModel):
    """Request schema for adding an employee to an establishment"""

    establishment_id: uuid.UUID = Field(..., description="Establishment ID")
    full_name: str = Field(..., min_length=2, max_length=200, description="Full name")
    email: EmailStr = Field(..., description="Email address")
    city: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)


class BulkCreateEmployeesRequest(BaseModel):
    """Request schema for adding several employees in one transaction"""

    employees: List[CreateEmployeeRequest] = Field(..., min_length=1)


class UpdateEmployeeRequest(BaseModel):
    """Request schema for a partial employee update"""

    full_name: Optional[str] = Field(None, min_length=2, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    status: Optional[EmployeeStatus] = Field(None, description="Lifecycle status")


class RestoreEmployeeRequest(BaseModel):
    """Request schema for restoring an archived employee"""

    establishment_id: Optional[uuid.UUID] = Field(
        None, description="Target establishment, defaults to the previous one"
    )


class TransferEmployeeRequest(BaseModel):
    """Request schema for moving an employee between establishments"""

    establishment_id: uuid.UUID = Field(..., description="Target establishment ID")
    reason: Optional[str] = Field(None, max_length=200)


class EmployeeListQueryParams(BaseModel):
    """Query parameters for employee list filtering"""

    establishment_id: Optional[uuid.UUID] = Field(None)
    status: Optional[EmployeeStatus] = Field(None)
    search: Optional[str] = Field(None, description="Substring of name or email")
    include_archived: bool = Field(False)


class EmployeeResponse(BaseModel):
    """Response schema for employee data as seen by an administrator"""

    id: uuid.UUID
    establishment_id: uuid.UUID
    establishment_name: Optional[str] = None
    full_name: str
    email: str
    city: Optional[str] = None
    phone: Optional[str] = None
    iin_last4: Optional[str] = None
    status: EmployeeStatus
    registration_token: Optional[str] = None
    registration_link: Optional[str] = None
    registered_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EmployeeTransferResponse(BaseModel):
    """Response schema for one establishment move"""

    id: uuid.UUID
    employee_id: uuid.UUID
    from_establishment_id: Optional[uuid.UUID] = None
    to_establishment_id: uuid.UUID
    reason: Optional[str] = None
    actor: Optional[str] = None
    created_at: datetime


class TrainingInviteResponse(BaseModel):
    """Response schema for a queued training invitation"""

    message: str
    training_url: str
