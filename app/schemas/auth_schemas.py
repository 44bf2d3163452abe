from typing import List, Optional
from datetime import datetime
from pydantic import Field
import uuid

from app.db.models import CertificateStatus, EmployeeStatus
from .camel_base_model import CamelCaseBaseModel as BaseModel


class LoginRequest(BaseModel):
    """Login request schema"""

    email: str = Field(..., min_length=3, description="Email")
    password: str = Field(..., min_length=1, description="Password")


class BootstrapAdminRequest(BaseModel):
    """First administrator creation, guarded by the bootstrap key"""

    email: str = Field(..., min_length=3, description="Admin email")
    password: str = Field(..., min_length=8, description="Admin password")
    bootstrap_key: str = Field(..., min_length=1, description="Server bootstrap key")


class UserResponse(BaseModel):
    """User response schema"""

    id: str = Field(..., description="User ID")
    email: str = Field(..., description="Email")
    role: str = Field(..., description="admin or employee")
    employee_id: Optional[str] = Field(None, description="Linked employee")


class LoginResponse(BaseModel):
    user: UserResponse
    token: str = Field(..., description="Session token, also set as a cookie")


class ProfileCertificate(BaseModel):
    id: uuid.UUID
    certificate_number: str
    status: CertificateStatus
    display_status: str
    issued_at: datetime
    valid_until: Optional[datetime] = None


class EmployeeProfile(BaseModel):
    """Employee view of their own record"""

    employee_id: uuid.UUID
    full_name: str
    email: str
    city: Optional[str] = None
    phone: Optional[str] = None
    iin_last4: Optional[str] = None
    status: EmployeeStatus
    establishment_id: uuid.UUID
    establishment_name: Optional[str] = None


class ProfileResponse(BaseModel):
    user: UserResponse
    employee: Optional[EmployeeProfile] = None
    certificates: List[ProfileCertificate] = Field(default_factory=list)
