"""Exceptions raised by the memory repository and its engines."""

from __future__ import annotations


class DevMemError(Exception):
    """Base class for all devmem errors."""


class MemoryNotFoundError(DevMemError, LookupError):
    """No memory matches the given id or prefix."""

    def __init__(self, memory_id: str) -> None:
        super().__init__(f'No memory found with ID starting with "{memory_id}"')
        self.memory_id = memory_id


class AmbiguousIdError(DevMemError, LookupError):
    """A partial id matches more than one memory."""

    def __init__(self, prefix: str, candidates: list[str]) -> None:
        shown = ", ".join(c[:8] for c in candidates[:5])
        super().__init__(
            f'ID prefix "{prefix}" matches {len(candidates)} memories ({shown}); use a longer prefix'
        )
        self.prefix = prefix
        self.candidates = candidates


class InvalidTTLError(DevMemError, ValueError):
    def __init__(self, ttl: str) -> None:
        super().__init__(
            f'Invalid TTL format "{ttl}". Use: <number><unit> (e.g., 7d, 2w, 1m, 1y)'
        )
        self.ttl = ttl


class InvalidPriorityError(DevMemError, ValueError):
    def __init__(self, priority: str) -> None:
        super().__init__(f'Invalid priority "{priority}". Use: high, normal, or low')
        self.priority = priority


class SelfLinkError(DevMemError, ValueError):
    """A memory cannot be related to itself."""


class MergeError(DevMemError):
    """Merge preconditions not met; nothing was modified."""


class BatchFilterError(DevMemError, ValueError):
    """A destructive batch operation was requested without any filter."""
