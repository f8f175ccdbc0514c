"""Pydantic models shared across API, storage, scanner, and broadcaster.

Beginner terms used in this file:
- Model: a typed schema class used for validation/serialization.
- Alias: the JSON key used on the wire when it differs from the Python attribute.
- Aware datetime: a timestamp that carries its UTC offset.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_serializer


class Task(BaseModel):
    """Canonical deadline record returned by API/storage."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    # Stored as `datetime` on disk, in the database, and in JSON bodies.
    due_at: AwareDatetime = Field(alias="datetime")
    notified: bool = False

    @field_serializer("due_at")
    def _serialize_due_at(self, value: datetime) -> str:
        return format_instant(value)

    def event_payload(self) -> dict[str, Any]:
        """Body of the `deadline` event pushed to subscribers."""
        return {"id": self.id, "name": self.name, "datetime": format_instant(self.due_at)}


class CreateTaskRequest(BaseModel):
    """Request body for POST /api/tasks.

    Both fields are optional here so the handler can answer with the
    service's own 400 messages instead of FastAPI's default 422 payload.
    """

    name: str | None = None
    datetime: str | None = None


class OkResponse(BaseModel):
    ok: bool = True


class DeletePastResponse(OkResponse):
    deleted: int = 0


def utc_now() -> datetime:
    """Current instant, UTC, truncated to milliseconds."""
    return normalize_instant(datetime.now(tz=UTC))


def normalize_instant(value: datetime) -> datetime:
    """Convert to UTC and drop sub-millisecond precision.

    Naive values are interpreted as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def parse_instant(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp such as `2026-01-02T03:04:05.000Z`."""
    text = raw.strip()
    if not text:
        raise ValueError("empty timestamp")
    try:
        return normalize_instant(datetime.fromisoformat(text))
    except OverflowError as exc:
        # Offsets that push the instant past datetime.min/max.
        raise ValueError(f"timestamp out of range: {text}") from exc


def format_instant(value: datetime) -> str:
    """Render an instant as ISO-8601 UTC with milliseconds and a `Z` suffix."""
    rendered = normalize_instant(value).isoformat(timespec="milliseconds")
    return rendered.replace("+00:00", "Z")
