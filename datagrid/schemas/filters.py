"""
Schemas for filter requests.

A filter request is the {column, operator, value} triple sent by the
filter toolbar. It is immutable once built.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from datagrid.operators import to_text


class FilterRequest(BaseModel):
    """Request body for POST /api/filter."""
    model_config = ConfigDict(frozen=True)

    column: str = Field(..., description="Registered column to filter on")
    operator: str = Field(..., description="Operator token, e.g. 'contains' or 'greater than'")
    value: str = Field(
        "",
        description="Filter value; numbers are accepted and converted to their text form",
    )

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_text(cls, value: Any) -> str:
        if isinstance(value, (list, dict)):
            raise ValueError("value must be a string or a number")
        return to_text(value)
