"""Session-start context: project change tracking and file-pattern triggers.

Files present in the working directory hint at what the session is about
(a Dockerfile suggests deployment, a *.prisma schema suggests the database
layer). Their tags seed a search, topped up with the most recent memories.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from devmem.models import Memory, format_timestamp
from devmem.search import ScopeOptions, recall_recent, search

if TYPE_CHECKING:
    from devmem.project import ProjectResolver
    from devmem.repository import MemoryRepository

logger = logging.getLogger(__name__)

PATTERNS_FILE = "patterns.json"
LAST_PROJECT_FILE = "last-project.json"
DEFAULT_CONTEXT_LIMIT = 5


@dataclass(frozen=True)
class FilePattern:
    pattern: str
    tags: tuple[str, ...]
    description: str
    category: str | None = None


DEFAULT_PATTERNS: tuple[FilePattern, ...] = (
    FilePattern("*.prisma", ("database", "prisma", "orm"), "Prisma schema files"),
    FilePattern("schema.prisma", ("database", "prisma", "orm"), "Prisma schema"),
    FilePattern("Dockerfile", ("docker", "deployment", "container"), "Docker configuration"),
    FilePattern("docker-compose*", ("docker", "deployment", "container"), "Docker Compose"),
    FilePattern(".github/workflows/*", ("ci", "github-actions", "deployment"), "GitHub Actions"),
    FilePattern("package.json", ("dependencies", "npm"), "Node.js project"),
    FilePattern("pyproject.toml", ("dependencies", "python"), "Python project"),
    FilePattern("requirements*", ("dependencies", "python"), "Python requirements"),
    FilePattern("tsconfig.json", ("typescript", "config"), "TypeScript config"),
    FilePattern("*.test.ts", ("testing", "jest"), "Test files"),
    FilePattern("*.spec.ts", ("testing", "jest"), "Test files"),
    FilePattern(".env*", ("environment", "config", "secrets"), "Environment files"),
    FilePattern("tailwind.config.*", ("tailwind", "css", "styling"), "Tailwind CSS"),
    FilePattern("next.config.*", ("nextjs", "react"), "Next.js config"),
    FilePattern("vite.config.*", ("vite", "bundler"), "Vite config"),
    FilePattern("webpack.config.*", ("webpack", "bundler"), "Webpack config"),
)


def load_patterns(state_dir: Path | None = None) -> list[FilePattern]:
    """Default patterns plus custom ones from ``<state_dir>/patterns.json``."""
    patterns = list(DEFAULT_PATTERNS)
    if state_dir is None:
        return patterns
    custom_file = state_dir / PATTERNS_FILE
    if not custom_file.exists():
        return patterns
    try:
        data = json.loads(custom_file.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring invalid %s: %s", custom_file, e)
        return patterns
    if isinstance(data, list):
        for item in data:
            try:
                patterns.append(
                    FilePattern(
                        pattern=item["pattern"],
                        tags=tuple(item.get("tags", [])),
                        description=item.get("description", item["pattern"]),
                        category=item.get("category"),
                    )
                )
            except (KeyError, TypeError):
                logger.warning("Skipping malformed custom pattern: %r", item)
    return patterns


def matches_pattern(filename: str, pattern: str) -> bool:
    """Minimal glob: exact, ``*.ext``, ``prefix*``, and ``dir/*``."""
    if pattern == filename:
        return True
    if pattern.startswith("*."):
        return filename.endswith(pattern[1:])
    if "/*" in pattern:
        parts = pattern.split("/*")
        return len(parts) == 2 and filename.startswith(parts[0] + "/")
    if pattern.endswith("*") and not pattern.startswith("*"):
        return filename.startswith(pattern[:-1])
    return False


def detect_file_patterns(
    directory: Path, patterns: list[FilePattern] | None = None
) -> list[FilePattern]:
    """Patterns matched by top-level files in ``directory`` (one per description)."""
    patterns = patterns if patterns is not None else list(DEFAULT_PATTERNS)
    matched: list[FilePattern] = []
    seen: set[str] = set()

    def add(p: FilePattern) -> None:
        if p.description not in seen:
            seen.add(p.description)
            matched.append(p)

    try:
        children = sorted(directory.iterdir())
    except OSError:
        return matched

    for child in children:
        for p in patterns:
            if matches_pattern(child.name, p.pattern):
                add(p)
        if not child.is_dir():
            continue
        # Directory patterns (.github/workflows/*) match when that directory exists
        for p in patterns:
            if "/*" not in p.pattern:
                continue
            subdir = p.pattern.split("/*")[0]
            if subdir.split("/")[0] == child.name and (directory / subdir).is_dir():
                add(p)
    return matched


def tags_from_patterns(patterns: list[FilePattern]) -> list[str]:
    tags: list[str] = []
    for p in patterns:
        tags.extend(t for t in p.tags if t not in tags)
    return tags


@dataclass
class ProjectState:
    project_id: str | None
    project_name: str | None
    timestamp: str


@dataclass
class ProjectChange:
    changed: bool
    previous: ProjectState | None
    current: ProjectState


def detect_project_change(
    resolver: ProjectResolver, state_dir: Path, timestamp: str
) -> ProjectChange:
    """Compare the current project with the last one seen, then remember it."""
    state_file = state_dir / LAST_PROJECT_FILE
    previous = None
    if state_file.exists():
        try:
            previous = ProjectState(**json.loads(state_file.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, TypeError, OSError) as e:
            logger.warning("Ignoring invalid %s: %s", state_file, e)

    context = resolver.resolve()
    current = ProjectState(
        project_id=context.project_id if context else None,
        project_name=context.project_name if context else None,
        timestamp=timestamp,
    )
    changed = previous is None or previous.project_id != current.project_id

    state_dir.mkdir(parents=True, exist_ok=True)
    state_file.write_text(json.dumps(asdict(current), indent=2), encoding="utf-8")
    return ProjectChange(changed=changed, previous=previous, current=current)


@dataclass
class SessionContext:
    change: ProjectChange
    patterns: list[FilePattern] = field(default_factory=list)
    memories: list[Memory] = field(default_factory=list)


def gather_context(
    repository: MemoryRepository,
    directory: Path,
    limit: int = DEFAULT_CONTEXT_LIMIT,
    resolver: ProjectResolver | None = None,
) -> SessionContext:
    """Memories relevant to ``directory``: tag-triggered matches, then recent ones.

    ``resolver`` decides the project (the repository's resolver by default);
    both the change tracking and the memory scope follow it.
    """
    state_dir = repository.config.state_dir
    change = detect_project_change(
        resolver or repository.resolver, state_dir, format_timestamp(repository.now())
    )
    # "" matches no project, leaving only global memories
    scope = ScopeOptions(project_id=change.current.project_id or "")
    patterns = detect_file_patterns(directory, load_patterns(state_dir))
    tags = tags_from_patterns(patterns)

    memories: list[Memory] = []
    if tags:
        results = search(
            repository, " ".join(tags), tags=tags, limit=limit, include_full_content=True,
            scope=scope,
        )
        memories = [r.memory for r in results if r.memory is not None]

    if len(memories) < limit:
        existing = {m.id for m in memories}
        for memory in recall_recent(repository, limit - len(memories), scope):
            if memory.id not in existing:
                memories.append(memory)
    return SessionContext(change=change, patterns=patterns, memories=memories)
