"""Schema authoring and append-only evolution of content types.

A ``SchemaDraft`` is one authoring session. In create mode every field is
editable. In evolution mode the fields that already exist are locked: they
keep their name, type and position, and the operator can only append new
fields after them. Entries written under the old shape stay aligned because
nothing they reference ever moves or changes type.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable

from cmaas_console.core.field_types import FieldKind, resolve_kind
from cmaas_console.core.metrics import schema_validation_failures_total
from cmaas_console.schemas.content import (
    ContentSchema,
    ContentType,
    ContentTypeWrite,
    FieldDefinition,
)
from cmaas_console.services.cms_client import CmsClient

logger = logging.getLogger("cmaas.schema")


class DraftState(str, enum.Enum):
    DRAFTING = "drafting"
    SUBMITTED = "submitted"
    ABANDONED = "abandoned"


class SchemaRule(str, enum.Enum):
    NAME_REQUIRED = "name_required"
    FIELDS_REQUIRED = "fields_required"
    FIELD_NAME_REQUIRED = "field_name_required"
    FIELD_NAME_DUPLICATE = "field_name_duplicate"
    FIELD_KIND_UNKNOWN = "field_kind_unknown"


class SchemaValidationError(ValueError):
    def __init__(self, rule: SchemaRule, message: str, field_name: str | None = None) -> None:
        super().__init__(message)
        self.rule = rule
        self.message = message
        self.field_name = field_name


@dataclass
class DraftField:
    name: str = ""
    kind: FieldKind = FieldKind.STRING


def _as_kind(kind: str | FieldKind) -> FieldKind:
    resolved = resolve_kind(kind)
    if resolved is None:
        allowed = ", ".join(k.value for k in FieldKind)
        raise SchemaValidationError(
            SchemaRule.FIELD_KIND_UNKNOWN, f'Unknown field type "{kind}". Choose one of: {allowed}'
        )
    return resolved


class SchemaDraft:
    def __init__(
        self,
        name: str = "",
        locked_fields: Iterable[FieldDefinition] = (),
        content_type_id: int | None = None,
    ) -> None:
        self.name = name
        self.content_type_id = content_type_id
        self._locked: tuple[FieldDefinition, ...] = tuple(
            FieldDefinition(name=f.name, type=f.type) for f in locked_fields
        )
        self._new: list[DraftField] = []
        self.state = DraftState.DRAFTING

    @classmethod
    def from_content_type(cls, content_type: ContentType) -> SchemaDraft:
        """Open an evolution session: every current field becomes locked."""
        return cls(
            name=content_type.name,
            locked_fields=content_type.fields,
            content_type_id=content_type.id,
        )

    # ── Inspection ─────────────────────────────────────────────────────

    @property
    def evolving(self) -> bool:
        return self.content_type_id is not None

    @property
    def locked_fields(self) -> list[FieldDefinition]:
        return list(self._locked)

    @property
    def new_fields(self) -> list[DraftField]:
        return [DraftField(f.name, f.kind) for f in self._new]

    @property
    def fields(self) -> list[FieldDefinition]:
        """Merged field list: locked fields in original order, then new ones."""
        return self.locked_fields + [
            FieldDefinition(name=f.name.strip(), type=f.kind.value) for f in self._new
        ]

    def _taken_names(self, skip_index: int | None = None) -> set[str]:
        names = {f.name.strip().lower() for f in self._locked}
        for i, f in enumerate(self._new):
            if i != skip_index and f.name.strip():
                names.add(f.name.strip().lower())
        return names

    def _check_open(self) -> None:
        if self.state is not DraftState.DRAFTING:
            raise RuntimeError(f"Schema draft is already {self.state.value}")

    def _check_unique(self, name: str, skip_index: int | None = None) -> None:
        cleaned = name.strip()
        if cleaned and cleaned.lower() in self._taken_names(skip_index):
            raise SchemaValidationError(
                SchemaRule.FIELD_NAME_DUPLICATE,
                f'Field name "{cleaned}" already exists!',
                field_name=cleaned,
            )

    # ── Drafting ───────────────────────────────────────────────────────

    def add_field(
        self, name: str = "", kind: str | FieldKind = FieldKind.STRING, *, check: bool = True
    ) -> int:
        """Append a new field and return its index among the new fields.

        A name that collides with any existing field is rejected and the
        field list is left untouched. With ``check=False`` the collision is
        left for ``validate()`` to report in rule order, as when a whole
        schema arrives in one request.
        """
        self._check_open()
        resolved = _as_kind(kind)
        if check:
            self._check_unique(name)
        self._new.append(DraftField(name=name, kind=resolved))
        return len(self._new) - 1

    def rename_field(self, index: int, name: str) -> None:
        self._check_open()
        self._check_unique(name, skip_index=index)
        self._new[index].name = name

    def set_field_kind(self, index: int, kind: str | FieldKind) -> None:
        self._check_open()
        self._new[index].kind = _as_kind(kind)

    def remove_field(self, index: int) -> None:
        self._check_open()
        del self._new[index]

    # ── Validation and submission ──────────────────────────────────────

    def validate(self) -> None:
        """Raise ``SchemaValidationError`` for the first violated rule."""
        if not self.name.strip():
            raise SchemaValidationError(
                SchemaRule.NAME_REQUIRED, "Please enter a Content Type Name"
            )
        if not self._locked and not self._new:
            raise SchemaValidationError(
                SchemaRule.FIELDS_REQUIRED, "Please add at least one field"
            )
        if any(not f.name.strip() for f in self._new):
            raise SchemaValidationError(
                SchemaRule.FIELD_NAME_REQUIRED, "All fields must have a name"
            )
        seen = {f.name.strip().lower() for f in self._locked}
        for f in self._new:
            key = f.name.strip().lower()
            if key in seen:
                raise SchemaValidationError(
                    SchemaRule.FIELD_NAME_DUPLICATE,
                    f'Field name "{f.name.strip()}" already exists!',
                    field_name=f.name.strip(),
                )
            seen.add(key)

    def payload(self) -> ContentTypeWrite:
        return ContentTypeWrite(
            name=self.name.strip(), schema=ContentSchema(fields=self.fields)
        )

    async def submit(self, client: CmsClient) -> ContentType:
        """Validate and write the whole schema in one request."""
        self._check_open()
        try:
            self.validate()
        except SchemaValidationError as exc:
            schema_validation_failures_total.labels(rule=exc.rule.value).inc()
            raise

        payload = self.payload()
        if self.evolving:
            saved = await client.update_content_type(self.content_type_id, payload)
            logger.info(
                "Appended %d field(s) to content type %s",
                len(self._new),
                self.content_type_id,
            )
        else:
            saved = await client.create_content_type(payload)
            logger.info("Created content type %s (%s)", saved.id, saved.name)
        self.state = DraftState.SUBMITTED
        return saved

    def abandon(self) -> None:
        self._check_open()
        self.state = DraftState.ABANDONED
