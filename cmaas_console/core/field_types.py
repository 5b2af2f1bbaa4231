"""Field-type registry.

Every schema field declares one of a closed set of kinds. Each kind owns four
behaviours, kept in one dispatch table per behaviour:

- DEFAULTS: the value seeded into a new entry before operator input
- INPUT_CONTROLS: the editing control rendered for the field
- COERCERS: raw operator input -> stored value
- FORMATTERS: stored value -> table cell

``_check_registry`` runs at import so a kind added to ``FieldKind`` without
an entry in every table fails loudly. Kinds the registry does not know
(stale or hand-edited schemas) never raise: they get a plain text input,
string coercion and the plain formatter.
"""

from __future__ import annotations

import enum
import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from cmaas_console.config import settings
from cmaas_console.schemas.console import CellView, FormControl

PLACEHOLDER = "-"
FALLBACK_KIND = "text"
NOT_A_NUMBER = "not a number"


class FieldKind(str, enum.Enum):
    STRING = "string"
    RICHTEXT = "richtext"
    NUMBER = "number"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    ARRAY = "array"
    IMAGE = "image"


FIELD_KIND_LABELS: dict[FieldKind, tuple[str, str]] = {
    FieldKind.STRING: ("Text (String)", "Short text (headlines, names)"),
    FieldKind.RICHTEXT: ("Rich Text", "Long content with formatting"),
    FieldKind.NUMBER: ("Number", "Integers or decimals"),
    FieldKind.DATETIME: ("Date & Time", "Timestamps"),
    FieldKind.BOOLEAN: ("Boolean", "True/False switches"),
    FieldKind.ARRAY: ("Array / Tags", "List of values"),
    FieldKind.IMAGE: ("Image Upload", "Uploaded image URL"),
}

# The entry table historically keyed its date formatting on "date".
_FORMAT_ALIASES: dict[str, FieldKind] = {"date": FieldKind.DATETIME}


def resolve_kind(raw: str | None) -> FieldKind | None:
    """Return the FieldKind for *raw*, or None when it is not a known kind."""
    if raw is None:
        return None
    try:
        return FieldKind(raw)
    except ValueError:
        return None


# ── Defaults ───────────────────────────────────────────────────────────


DEFAULTS: dict[FieldKind, Callable[[], Any]] = {
    FieldKind.STRING: str,
    FieldKind.RICHTEXT: str,
    FieldKind.NUMBER: str,
    FieldKind.DATETIME: str,
    FieldKind.BOOLEAN: lambda: False,
    FieldKind.ARRAY: list,
    FieldKind.IMAGE: str,
}


def default_value(kind: str | None) -> Any:
    resolved = resolve_kind(kind)
    if resolved is None:
        return ""
    return DEFAULTS[resolved]()


# ── Input controls ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class InputControl:
    control: str
    placeholder: str | None = None
    rows: int | None = None


INPUT_CONTROLS: dict[FieldKind, InputControl] = {
    FieldKind.STRING: InputControl("text", placeholder="Enter text..."),
    FieldKind.RICHTEXT: InputControl("textarea", rows=5),
    FieldKind.NUMBER: InputControl("number", placeholder="0"),
    FieldKind.DATETIME: InputControl("datetime-local"),
    FieldKind.BOOLEAN: InputControl("toggle"),
    FieldKind.ARRAY: InputControl("text", placeholder="Comma separated values"),
    FieldKind.IMAGE: InputControl("image-upload"),
}

_PLAIN_INPUT = InputControl("text")


def input_control(kind: str | None) -> InputControl:
    resolved = resolve_kind(kind)
    return INPUT_CONTROLS[resolved] if resolved is not None else _PLAIN_INPUT


def display_value(kind: str | None, value: Any) -> Any:
    """Value shown inside the editing control for a stored value."""
    resolved = resolve_kind(kind)
    if resolved is FieldKind.BOOLEAN:
        return bool(value)
    if value is None:
        return ""
    if resolved is FieldKind.ARRAY and isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return value


def build_control(name: str, declared_type: str, value: Any) -> FormControl:
    ctrl = input_control(declared_type)
    return FormControl(
        name=name,
        type=declared_type,
        control=ctrl.control,
        label=f"{name} ({declared_type})",
        value=display_value(declared_type, value),
        placeholder=ctrl.placeholder,
        rows=ctrl.rows,
    )


# ── Coercion ───────────────────────────────────────────────────────────
# Each coercer returns (stored_value, warning). Warnings never block a write.

_TRUTHY = frozenset({"true", "1", "yes", "on"})


def _coerce_text(raw: Any) -> tuple[Any, str | None]:
    if raw is None:
        return "", None
    return (raw if isinstance(raw, str) else str(raw)), None


def _coerce_boolean(raw: Any) -> tuple[Any, str | None]:
    if isinstance(raw, bool):
        return raw, None
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUTHY, None
    return bool(raw), None


def _coerce_array(raw: Any) -> tuple[Any, str | None]:
    if raw is None:
        return [], None
    if isinstance(raw, (list, tuple)):
        return [str(item).strip() for item in raw], None
    text = str(raw)
    if not text.strip():
        return [], None
    return [part.strip() for part in text.split(",")], None


def _coerce_number(raw: Any) -> tuple[Any, str | None]:
    if isinstance(raw, bool):
        return int(raw), None
    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            return None, NOT_A_NUMBER
        return raw, None
    if raw is None:
        return 0, None

    text = str(raw).strip()
    if not text:
        return 0, None
    if "_" in text:
        return None, NOT_A_NUMBER
    try:
        number = float(text)
    except ValueError:
        return None, NOT_A_NUMBER
    if not math.isfinite(number):
        return None, NOT_A_NUMBER
    if number.is_integer() and not any(c in text for c in ".eE"):
        return int(text), None
    return number, None


COERCERS: dict[FieldKind, Callable[[Any], tuple[Any, str | None]]] = {
    FieldKind.STRING: _coerce_text,
    FieldKind.RICHTEXT: _coerce_text,
    FieldKind.NUMBER: _coerce_number,
    FieldKind.DATETIME: _coerce_text,
    FieldKind.BOOLEAN: _coerce_boolean,
    FieldKind.ARRAY: _coerce_array,
    FieldKind.IMAGE: _coerce_text,
}


def coerce_value(kind: str | None, raw: Any) -> tuple[Any, str | None]:
    resolved = resolve_kind(kind)
    if resolved is None:
        return _coerce_text(raw)
    return COERCERS[resolved](raw)


# ── Formatting ─────────────────────────────────────────────────────────


def _js_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_js_string(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def _format_text(value: Any, truncate_at: int) -> CellView:
    text = _js_string(value)
    if len(text) > truncate_at:
        return CellView(kind="text", text=f"{text[:truncate_at]}...", title=text)
    return CellView(kind="text", text=text)


def _format_boolean(value: Any, truncate_at: int) -> CellView:
    if value:
        return CellView(kind="badge", text="Yes", variant="success")
    return CellView(kind="badge", text="No", variant="neutral")


def _format_datetime(value: Any, truncate_at: int) -> CellView:
    raw = _js_string(value)
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        else:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return CellView(kind="text", text=raw)
    return CellView(kind="date", text=f"{parsed.month}/{parsed.day}/{parsed.year}", title=raw)


def _format_number(value: Any, truncate_at: int) -> CellView:
    if isinstance(value, bool):
        number: float = int(value)
    elif isinstance(value, (int, float)):
        number = value
    else:
        text = str(value).strip()
        try:
            number = float(text) if text else 0
        except ValueError:
            return CellView(kind="text", text=_js_string(value))
    if isinstance(number, float):
        if not math.isfinite(number):
            return CellView(kind="text", text=_js_string(value))
        if number.is_integer():
            number = int(number)
    if isinstance(number, int):
        return CellView(kind="number", text=f"{number:,}")
    text = f"{number:,.3f}".rstrip("0").rstrip(".")
    return CellView(kind="number", text=text)


def _format_image(value: Any, truncate_at: int) -> CellView:
    url = _js_string(value)
    if not url:
        return CellView(kind="image", text="", title="N/A")
    return CellView(kind="image", text=url, href=url)


FORMATTERS: dict[FieldKind, Callable[[Any, int], CellView]] = {
    FieldKind.STRING: _format_text,
    FieldKind.RICHTEXT: _format_text,
    FieldKind.NUMBER: _format_number,
    FieldKind.DATETIME: _format_datetime,
    FieldKind.BOOLEAN: _format_boolean,
    FieldKind.ARRAY: _format_text,
    FieldKind.IMAGE: _format_image,
}


def format_cell(value: Any, kind: str | None, *, truncate_at: int | None = None) -> CellView:
    """Render one stored value for the entry table."""
    if value is None:
        return CellView(kind="placeholder", text=PLACEHOLDER)
    limit = settings.CELL_TRUNCATE_AT if truncate_at is None else truncate_at
    resolved = _FORMAT_ALIASES.get(kind or "") or resolve_kind(kind)
    if resolved is None:
        return _format_text(value, limit)
    return FORMATTERS[resolved](value, limit)


def column_kind(fields: Iterable[Any], name: str) -> str:
    """Declared type of the schema field called *name*, or ``"text"``.

    Entries may carry keys the current schema no longer lists.
    """
    for field in fields:
        if field.name == name:
            return field.type
    return FALLBACK_KIND


def _check_registry() -> None:
    for table_name, table in (
        ("DEFAULTS", DEFAULTS),
        ("INPUT_CONTROLS", INPUT_CONTROLS),
        ("COERCERS", COERCERS),
        ("FORMATTERS", FORMATTERS),
        ("FIELD_KIND_LABELS", FIELD_KIND_LABELS),
    ):
        missing = set(FieldKind) - set(table)
        if missing:
            names = ", ".join(sorted(k.value for k in missing))
            raise RuntimeError(f"{table_name} has no entry for field kind(s): {names}")


_check_registry()
