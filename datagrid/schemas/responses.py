"""
API request and response schemas for the Data Grid API.

Records are dynamic (their columns come from the column registry), so they
travel as plain dicts; incoming records are validated by the registry's
record models instead.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Pagination(BaseModel):
    page: int
    limit: int
    total: int


class ItemsResponse(BaseModel):
    """Response model for GET /api/items."""
    data: List[Dict[str, Any]] = Field(..., description="Records ordered by descending id")
    pagination: Pagination


class DataResponse(BaseModel):
    """Response model for search and filter."""
    data: List[Dict[str, Any]] = Field(..., description="Records ordered by descending id")


class IdsRequest(BaseModel):
    """Request body carrying a list of record ids."""
    ids: Optional[List[int]] = None


class CompareResponse(BaseModel):
    """Response model for POST /api/compare."""
    comparison: str = Field(..., description="Natural language comparison of the selected records")
    data: List[Dict[str, Any]] = Field(..., description="The compared records")


class ColumnInfo(BaseModel):
    name: str
    kind: str
    label: str


class ColumnsResponse(BaseModel):
    """Column and operator vocabulary for the filter toolbar."""
    columns: List[ColumnInfo]
    operators: List[str]
