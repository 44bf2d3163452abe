from typing import List, Optional
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class ImportRowError(BaseModel):
    """A row that could not be applied"""

    row: int = Field(..., description="1-based data row number")
    email: Optional[str] = None
    error: str


class UnmatchedRow(BaseModel):
    """A row whose email matches no active employee"""

    row: int
    email: str


class TrainingImportReport(BaseModel):
    """Summary of a training results import"""

    processed: int = 0
    matched: int = 0
    certificates_created: int = 0
    unmatched: List[UnmatchedRow] = Field(default_factory=list)
    errors: List[ImportRowError] = Field(default_factory=list)
