from __future__ import annotations

from datetime import datetime, timezone

from pydantic import Field, field_validator

from cmaas_console.schemas.content import WireModel


class ApiKey(WireModel):
    id: int
    name: str
    key: str | None = None  # the full key is only returned on creation
    created_at: datetime | None = None


class ApiKeyCreate(WireModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("API key name is required")
        return v


class RecentEntry(WireModel):
    id: int
    type_name: str = ""
    created_at: datetime | None = None

    def age_label(self, now: datetime | None = None) -> str:
        return relative_age(self.created_at, now)


class DashboardStats(WireModel):
    total_content_types: int = 0
    total_entries: int = 0
    total_api_keys: int = 0
    recent_entries: list[RecentEntry] = Field(default_factory=list)

    @field_validator("total_content_types", "total_entries", "total_api_keys", mode="before")
    @classmethod
    def _null_count(cls, v):
        return v or 0

    @field_validator("recent_entries", mode="before")
    @classmethod
    def _null_recent(cls, v):
        return v or []


def relative_age(created_at: datetime | None, now: datetime | None = None) -> str:
    """Human label for how long ago an entry was created.

    The backend reports ``0001-01-01`` for rows it has not stamped yet;
    those read as "Just now".
    """
    if created_at is None or created_at.year == 1:
        return "Just now"
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    minutes = int((now - created_at).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} min{'s' if minutes > 1 else ''} ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    days = hours // 24
    return f"{days} day{'s' if days > 1 else ''} ago"
