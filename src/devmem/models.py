"""Memory entities, index entries, and timestamp helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Literal

Priority = Literal["high", "normal", "low"]

PRIORITIES: tuple[str, ...] = ("high", "normal", "low")
DEFAULT_PRIORITY = "normal"

RECOMMENDED_CATEGORIES: tuple[str, ...] = ("project", "decision", "preference", "learning", "task")

INDEX_VERSION = 1


# ── Timestamps ───────────────────────────────────────────────


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str | datetime | date) -> datetime:
    """Parse a stored timestamp into an aware UTC datetime.

    YAML headers written by other tools may carry unquoted timestamps, which
    the loader hands back as ``datetime``/``date`` objects.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def normalize_timestamp(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, (datetime, date)):
        return format_timestamp(parse_timestamp(value))
    return str(value)


# ── Entities ─────────────────────────────────────────────────


@dataclass
class Memory:
    """A single persisted note with metadata."""

    id: str
    category: str
    title: str
    content: str
    created: str
    updated: str
    tags: list[str] = field(default_factory=list)
    project_id: str | None = None
    project_name: str | None = None
    priority: str = DEFAULT_PRIORITY
    expires_at: str | None = None
    related_to: list[str] = field(default_factory=list)

    @property
    def is_global(self) -> bool:
        return not self.project_id

    def to_dict(self) -> dict[str, Any]:
        """Export shape with camelCase keys, as used by JSON export."""
        data: dict[str, Any] = {
            "id": self.id,
            "category": self.category,
            "tags": list(self.tags),
            "title": self.title,
            "created": self.created,
            "updated": self.updated,
        }
        data.update(_optional_fields(self))
        data["content"] = self.content
        return data


@dataclass
class IndexEntry:
    """Denormalized summary of a Memory, plus its storage path."""

    id: str
    category: str
    title: str
    path: str
    created: str
    updated: str
    snippet: str = ""
    tags: list[str] = field(default_factory=list)
    project_id: str | None = None
    project_name: str | None = None
    priority: str = DEFAULT_PRIORITY
    expires_at: str | None = None
    related_to: list[str] = field(default_factory=list)

    @property
    def is_global(self) -> bool:
        return not self.project_id

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "category": self.category,
            "tags": list(self.tags),
            "title": self.title,
            "path": self.path,
            "created": self.created,
            "updated": self.updated,
            "snippet": self.snippet,
        }
        data.update(_optional_fields(self))
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexEntry:
        return cls(
            id=data["id"],
            category=data.get("category", ""),
            title=data.get("title", ""),
            path=data["path"],
            created=data.get("created", ""),
            updated=data.get("updated", ""),
            snippet=data.get("snippet", ""),
            tags=list(data.get("tags") or []),
            project_id=data.get("projectId") or None,
            project_name=data.get("projectName") or None,
            priority=data.get("priority") or DEFAULT_PRIORITY,
            expires_at=data.get("expiresAt") or None,
            related_to=list(data.get("relatedTo") or []),
        )

    def copy(self) -> IndexEntry:
        return IndexEntry(**{k: (list(v) if isinstance(v, list) else v) for k, v in asdict(self).items()})


@dataclass
class MemoryIndex:
    """The whole index document: ``{"version": 1, "memories": [...]}``."""

    version: int = INDEX_VERSION
    memories: list[IndexEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "memories": [m.to_dict() for m in self.memories]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryIndex:
        return cls(
            version=int(data.get("version", INDEX_VERSION)),
            memories=[IndexEntry.from_dict(m) for m in data.get("memories", [])],
        )

    def position(self, memory_id: str) -> int:
        """Index of the entry with exactly this id, or -1."""
        for i, entry in enumerate(self.memories):
            if entry.id == memory_id:
                return i
        return -1


def _optional_fields(obj: Memory | IndexEntry) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if obj.project_id:
        data["projectId"] = obj.project_id
    if obj.project_name:
        data["projectName"] = obj.project_name
    if obj.priority and obj.priority != DEFAULT_PRIORITY:
        data["priority"] = obj.priority
    if obj.expires_at:
        data["expiresAt"] = obj.expires_at
    if obj.related_to:
        data["relatedTo"] = list(obj.related_to)
    return data
