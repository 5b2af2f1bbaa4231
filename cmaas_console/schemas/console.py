"""View models returned by the console API.

These describe what an operator-facing client should render: one control per
schema field, one formatted cell per table column, and the pagination strip.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator


class FormControl(BaseModel):
    name: str
    type: str
    control: str
    label: str
    value: Any = None
    placeholder: str | None = None
    rows: int | None = None


class FormView(BaseModel):
    content_type_id: int
    content_type_name: str
    mode: str  # create/edit
    entry_id: int | None = None
    controls: list[FormControl] = []
    data: dict[str, Any] = {}
    warnings: dict[str, str] = {}


class CellView(BaseModel):
    kind: str  # placeholder/badge/date/number/image/text
    text: str
    title: str | None = None
    href: str | None = None
    variant: str | None = None


class EntryRow(BaseModel):
    id: int
    cells: list[CellView]
    is_visible: bool
    toggling: bool = False
    created_at: datetime | None = None


class PaginationView(BaseModel):
    page: int
    page_size: int
    total_records: int
    total_pages: int
    page_numbers: list[int]
    has_previous: bool
    has_next: bool
    showing_from: int
    showing_to: int


class EntryTableView(BaseModel):
    content_type_id: int
    content_type_name: str | None = None
    search_term: str = ""
    columns: list[str]
    column_kinds: list[str]
    rows: list[EntryRow]
    pagination: PaginationView
    summary: str = ""
    error: str | None = None


# ── Request bodies ─────────────────────────────────────────────────────


class SchemaFieldIn(BaseModel):
    name: str = ""
    type: str = "string"


class ContentTypeAuthoring(BaseModel):
    name: str
    fields: list[SchemaFieldIn] = []


class SchemaEvolution(BaseModel):
    name: str | None = None
    fields: list[SchemaFieldIn] = []


class EntryValuesIn(BaseModel):
    values: dict[str, Any] = {}

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: dict[str, Any]) -> dict[str, Any]:
        if len(v) > 200:
            raise ValueError("values exceeds maximum of 200 keys")
        return v


class DeleteEntryResult(BaseModel):
    deleted_id: int
    page: int


class VisibilityResult(BaseModel):
    entry_id: int
    is_visible: bool
