from typing import List
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class EmployeeStatusCount(BaseModel):
    status: str
    count: int


class MetricsResponse(BaseModel):
    """Dashboard counters"""

    establishments: int = Field(..., description="Active establishments")
    employees: int = Field(..., description="Non-archived employees")
    active_certificates: int = Field(..., description="Certificates with status active")
    employee_statuses: List[EmployeeStatusCount] = Field(default_factory=list)
