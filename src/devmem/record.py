"""On-disk memory record format: YAML frontmatter header + markdown body.

Record files are read by other tools, so the header keys and their order are
fixed: ``id``, ``category``, ``tags``, ``created``, ``updated``, then the
optional ``projectId``, ``projectName``, ``priority``, ``expiresAt`` and
``relatedTo`` when set.
"""

from __future__ import annotations

import logging
import re

import frontmatter
import yaml

from devmem.models import DEFAULT_PRIORITY, Memory, normalize_timestamp

logger = logging.getLogger(__name__)

TITLE_MAX = 100
SNIPPET_MAX = 150
SLUG_MAX = 50
UNTITLED = "Untitled Memory"


# ── Derived fields ────────────────────────────────────────────


def extract_title(content: str) -> str:
    """First line of content with heading markers stripped, max 100 chars."""
    first_line = content.split("\n", 1)[0].strip()
    title = re.sub(r"^#+\s*", "", first_line)
    return title[:TITLE_MAX] or UNTITLED


def create_snippet(content: str) -> str:
    """Body preview: everything after the title line, flattened, max 150 chars."""
    lines = content.split("\n")
    body = " ".join(lines[1:]).strip()
    if len(body) > SNIPPET_MAX:
        return body[:SNIPPET_MAX] + "..."
    return body


def slugify(text: str) -> str:
    """URL-safe ASCII slug for file names."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:SLUG_MAX].rstrip("-")


def category_dir(category: str) -> str:
    """Directory segment for a category: strip path-illegal chars, spaces to hyphens."""
    segment = re.sub(r'[<>:"/\\|?*\n\r\t]', "", category)
    segment = segment.strip().strip(".").replace(" ", "-")
    return segment or "uncategorized"


# ── Serialization ─────────────────────────────────────────────


def render_record(memory: Memory) -> str:
    """Format a memory as a frontmatter document."""
    metadata: dict = {
        "id": memory.id,
        "category": memory.category,
        "tags": list(memory.tags),
        "created": memory.created,
        "updated": memory.updated,
    }
    if memory.project_id:
        metadata["projectId"] = memory.project_id
    if memory.project_name:
        metadata["projectName"] = memory.project_name
    if memory.priority and memory.priority != DEFAULT_PRIORITY:
        metadata["priority"] = memory.priority
    if memory.expires_at:
        metadata["expiresAt"] = memory.expires_at
    if memory.related_to:
        metadata["relatedTo"] = list(memory.related_to)

    post = frontmatter.Post(memory.content, **metadata)
    return frontmatter.dumps(post, sort_keys=False) + "\n"


def parse_record(text: str) -> Memory | None:
    """Parse a record file. Returns None if the header is unusable."""
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        logger.warning("Unparseable memory header: %s", e)
        return None

    meta = post.metadata
    if not meta.get("id"):
        return None

    content = post.content.strip()
    tags = meta.get("tags") or []
    related = meta.get("relatedTo") or []
    return Memory(
        id=str(meta["id"]),
        category=str(meta.get("category", "")),
        title=extract_title(content),
        content=content,
        created=normalize_timestamp(meta.get("created")) or "",
        updated=normalize_timestamp(meta.get("updated")) or "",
        tags=[str(t) for t in tags],
        project_id=meta.get("projectId") or None,
        project_name=meta.get("projectName") or None,
        priority=meta.get("priority") or DEFAULT_PRIORITY,
        expires_at=normalize_timestamp(meta.get("expiresAt")),
        related_to=[str(r) for r in related],
    )
