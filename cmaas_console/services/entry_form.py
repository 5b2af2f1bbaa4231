"""Schema-driven create/edit form for content entries."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from cmaas_console.core.field_types import build_control, coerce_value, default_value
from cmaas_console.schemas.console import FormControl, FormView
from cmaas_console.schemas.content import ContentEntry, ContentType
from cmaas_console.services.cms_client import CmsClient, CmsNotFound

logger = logging.getLogger("cmaas.entries")


class UnknownFieldError(ValueError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f'"{field_name}" is not a field of this content type')
        self.field_name = field_name


class EntryForm:
    """Working copy of one entry's ``data`` while an operator edits it.

    Create mode seeds every field with its kind's default. Edit mode starts
    from the stored data, keeps keys the schema no longer lists, and seeds
    defaults for schema fields the entry predates. Values only reach the
    backend through ``submit``, as one full replacement of ``data``.
    """

    def __init__(
        self,
        content_type: ContentType | None,
        data: Mapping[str, Any] | None = None,
        entry_id: int | None = None,
    ) -> None:
        self.content_type = content_type
        self.entry_id = entry_id
        self.warnings: dict[str, str] = {}
        self.submitted = False
        self._data: dict[str, Any] = dict(data or {})
        if content_type is not None:
            for field in content_type.fields:
                if field.name not in self._data:
                    self._data[field.name] = default_value(field.type)

    @classmethod
    async def for_create(cls, client: CmsClient, content_type_id: int) -> EntryForm:
        try:
            content_type = await client.get_content_type(content_type_id)
        except CmsNotFound:
            logger.warning("Content type %s not found", content_type_id)
            content_type = None
        return cls(content_type)

    @classmethod
    async def for_edit(
        cls, client: CmsClient, content_type_id: int, entry_id: int
    ) -> EntryForm:
        try:
            content_type = await client.get_content_type(content_type_id)
        except CmsNotFound:
            logger.warning("Content type %s not found", content_type_id)
            return cls(None, entry_id=entry_id)
        entry = await client.get_entry(entry_id)
        return cls(content_type, entry.data, entry_id=entry.id)

    @property
    def mode(self) -> str:
        return "create" if self.entry_id is None else "edit"

    @property
    def found(self) -> bool:
        return self.content_type is not None

    @property
    def data(self) -> dict[str, Any]:
        return dict(self._data)

    def controls(self) -> list[FormControl]:
        """One control per schema field, in schema order."""
        if self.content_type is None:
            return []
        return [
            build_control(field.name, field.type, self._data.get(field.name))
            for field in self.content_type.fields
        ]

    def set_value(self, name: str, raw: Any) -> Any:
        """Coerce *raw* for field *name* and store it; other fields are untouched."""
        if self.content_type is None:
            raise CmsNotFound("Content type not found")
        field = next((f for f in self.content_type.fields if f.name == name), None)
        if field is None:
            raise UnknownFieldError(name)
        value, warning = coerce_value(field.type, raw)
        self._data[name] = value
        if warning:
            self.warnings[name] = warning
        else:
            self.warnings.pop(name, None)
        return value

    def set_values(self, values: Mapping[str, Any]) -> None:
        for name, raw in values.items():
            self.set_value(name, raw)

    def view(self) -> FormView:
        if self.content_type is None:
            raise CmsNotFound("Content type not found")
        return FormView(
            content_type_id=self.content_type.id,
            content_type_name=self.content_type.name,
            mode=self.mode,
            entry_id=self.entry_id,
            controls=self.controls(),
            data=self.data,
            warnings=dict(self.warnings),
        )

    async def submit(self, client: CmsClient) -> ContentEntry:
        if self.content_type is None:
            raise CmsNotFound("Content type not found")
        if self.entry_id is None:
            saved = await client.create_entry(self.content_type.id, self.data)
            logger.info("Created entry %s for content type %s", saved.id, self.content_type.id)
        else:
            saved = await client.update_entry(self.entry_id, self.content_type.id, self.data)
            logger.info("Updated entry %s for content type %s", self.entry_id, self.content_type.id)
        self.submitted = True
        return saved
