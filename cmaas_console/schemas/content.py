"""Wire models for the CMS REST backend.

The backend speaks camelCase JSON; these models expose snake_case attributes
and accept either spelling on input. Entry ``data`` is an open mapping: keys
follow the owning ContentType's schema only loosely, since schema evolution
leaves older entries without the newer fields.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from cmaas_console.core.field_types import FieldKind, resolve_kind

EntryValue = Union[str, bool, int, float, list[Any], dict[str, Any], None]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldDefinition(WireModel):
    name: str
    type: str = FieldKind.STRING.value

    @property
    def kind(self) -> FieldKind | None:
        return resolve_kind(self.type)


class ContentSchema(WireModel):
    fields: list[FieldDefinition] = Field(default_factory=list)

    @field_validator("fields", mode="before")
    @classmethod
    def _null_fields(cls, v: Any) -> Any:
        return [] if v is None else v


class ContentType(WireModel):
    id: int
    name: str
    schema_: ContentSchema = Field(default_factory=ContentSchema, alias="schema")

    @field_validator("schema_", mode="before")
    @classmethod
    def _null_schema(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def fields(self) -> list[FieldDefinition]:
        return self.schema_.fields

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.schema_.fields]


class ContentTypeWrite(WireModel):
    """Body of ``POST /ContentTypes`` and ``PUT /ContentTypes/{id}``."""

    name: str
    schema_: ContentSchema = Field(alias="schema")


class ContentEntry(WireModel):
    id: int
    data: dict[str, EntryValue] = Field(default_factory=dict)
    content_type_id: int | None = None
    tenant_id: int | None = None
    is_visible: bool = False
    created_at: datetime | None = None

    @field_validator("data", mode="before")
    @classmethod
    def _null_data(cls, v: Any) -> Any:
        return {} if v is None else v


class EntryWrite(WireModel):
    """Body of ``POST /ContentEntries`` and ``PUT /ContentEntries/{id}``."""

    content_type_id: int
    data: dict[str, EntryValue]


class EntryPage(WireModel):
    total_records: int = 0
    page: int = 1
    page_size: int = 10
    total_pages: int = 0
    entries: list[ContentEntry] = Field(default_factory=list, alias="data")

    @field_validator("entries", mode="before")
    @classmethod
    def _null_entries(cls, v: Any) -> Any:
        return [] if v is None else v
