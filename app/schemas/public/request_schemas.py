from typing import Optional
from pydantic import EmailStr, Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class CreateRequestRequest(BaseModel):
    """Lead form submitted from the public site"""

    full_name: str = Field(..., min_length=2, max_length=200)
    email: Optional[EmailStr] = Field(None)
    phone: Optional[str] = Field(None, min_length=6, max_length=50)
    city: Optional[str] = Field(None, max_length=100)
    establishment_name: Optional[str] = Field(None, max_length=200)
    message: Optional[str] = Field(None, max_length=5000)
