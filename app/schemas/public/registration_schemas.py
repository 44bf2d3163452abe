from typing import Literal, Optional
from pydantic import Field
import uuid

from app.db.models import EmployeeStatus
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class ResetPasswordPayload(BaseModel):
    """Reduced payload accepted while the employee is in reset_password"""

    password: str = Field(..., min_length=8, description="New password")
    accept_policy: Literal[True] = Field(..., description="Privacy policy consent")
    accept_offer: Literal[True] = Field(..., description="Public offer consent")
    accept_age: Literal[True] = Field(..., description="Age confirmation")


class RegistrationPayload(ResetPasswordPayload):
    """Full payload for initial self-registration"""

    full_name: str = Field(..., min_length=2, max_length=200)
    city: str = Field(..., min_length=2, max_length=100)
    phone: str = Field(..., min_length=6, max_length=50)
    iin: Optional[str] = Field(None, max_length=32, description="National ID number")


class RegistrationLookupResponse(BaseModel):
    """What the public registration page shows for a live link"""

    id: uuid.UUID
    email: str
    full_name: str
    status: EmployeeStatus
    employee_city: Optional[str] = None
    employee_phone: Optional[str] = None
    establishment_name: str
    establishment_city: Optional[str] = None
    establishment_address: Optional[str] = None


class RegistrationResultResponse(BaseModel):
    message: str
    employee_id: uuid.UUID
