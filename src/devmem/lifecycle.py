"""Time-to-live and staleness.

Expiration is evaluated lazily at query time. An expired memory is hidden
from searches and listings but stays on disk until ``cleanup`` (or a bulk
delete) removes it. Staleness is purely advisory.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from devmem.errors import InvalidTTLError
from devmem.models import IndexEntry, Memory, parse_timestamp, utc_now

if TYPE_CHECKING:
    from devmem.repository import MemoryRepository

logger = logging.getLogger(__name__)

DEFAULT_STALE_DAYS = 90
EXPIRY_WARN_DAYS = 7

# Calendar-inexact on purpose: a month is 30 days, a year 365.
TTL_UNIT_DAYS = {"d": 1, "w": 7, "m": 30, "y": 365}
_TTL_RE = re.compile(r"^(\d+)([dwmy])$", re.IGNORECASE)


def parse_ttl(ttl: str, now: datetime | None = None) -> datetime:
    """Turn ``<integer><unit>`` (7d, 2w, 1m, 1y) into an absolute expiry time."""
    match = _TTL_RE.match(ttl.strip()) if ttl else None
    if not match:
        raise InvalidTTLError(ttl)
    amount = int(match.group(1))
    days = amount * TTL_UNIT_DAYS[match.group(2).lower()]
    try:
        return (now or utc_now()) + timedelta(days=days)
    except (OverflowError, ValueError) as e:
        # past datetime.max
        raise InvalidTTLError(ttl) from e


def is_expired(entry: IndexEntry | Memory, now: datetime | None = None) -> bool:
    if not entry.expires_at:
        return False
    return parse_timestamp(entry.expires_at) < (now or utc_now())


def is_stale(
    entry: IndexEntry | Memory,
    stale_days: int = DEFAULT_STALE_DAYS,
    now: datetime | None = None,
) -> bool:
    """Not touched for ``stale_days`` and without an explicit TTL."""
    if entry.expires_at:
        return False
    cutoff = (now or utc_now()) - timedelta(days=stale_days)
    return parse_timestamp(entry.updated) < cutoff


def staleness_info(
    entry: IndexEntry | Memory,
    stale_days: int = DEFAULT_STALE_DAYS,
    now: datetime | None = None,
) -> str | None:
    """Short display hint: EXPIRED, expires in Nd, stale (Nd old), or None."""
    now = now or utc_now()
    if entry.expires_at:
        expires_at = parse_timestamp(entry.expires_at)
        if expires_at < now:
            return "EXPIRED"
        days_left = math.ceil((expires_at - now).total_seconds() / 86400)
        if days_left <= EXPIRY_WARN_DAYS:
            return f"expires in {days_left}d"
        return None

    if is_stale(entry, stale_days, now):
        days_ago = (now - parse_timestamp(entry.updated)).days
        return f"stale ({days_ago}d old)"
    return None


@dataclass
class CleanupReport:
    """Outcome of a cleanup run."""

    expired: list[IndexEntry] = field(default_factory=list)
    deleted: int = 0
    failed: list[str] = field(default_factory=list)
    dry_run: bool = False


def cleanup(
    repository: MemoryRepository,
    dry_run: bool = False,
    now: datetime | None = None,
) -> CleanupReport:
    """Delete every expired memory. Each deletion is independent."""
    expired = [e for e in repository.list() if is_expired(e, now)]
    report = CleanupReport(expired=expired, dry_run=dry_run)
    if dry_run or not expired:
        return report

    for entry in expired:
        try:
            if repository.delete(entry.id):
                report.deleted += 1
            else:
                report.failed.append(entry.id)
        except Exception as e:
            logger.error("Failed to delete expired memory %s: %s", entry.id, e)
            report.failed.append(entry.id)

    logger.info("Cleaned up %d expired memories", report.deleted)
    return report
