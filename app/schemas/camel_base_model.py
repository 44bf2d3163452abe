import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


def to_json_safe(value: Any) -> Any:
    """Convert a field value into something JSONResponse can encode."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value

    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value) if isinstance(value, uuid.UUID) else float(value)

    if isinstance(value, Enum):
        return value.value

    # Stored timestamps are naive UTC; mark them as such for clients
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()

    if isinstance(value, date):
        return value.isoformat()

    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)

    if isinstance(value, (list, tuple, set)):
        return [to_json_safe(item) for item in value]

    if isinstance(value, dict):
        return {key: to_json_safe(val) for key, val in value.items()}

    return str(value)


class CamelCaseBaseModel(BaseModel):
    """
    Base model for request and response schemas.

    Clients send and receive camelCase keys; Python code uses snake_case
    fields. Use ``model_dump(by_alias=True)`` when building responses.
    Models can be validated straight from ORM rows.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_serializer("*")
    def serialize_any(self, value):
        return to_json_safe(value)
