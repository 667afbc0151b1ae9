"""Project scope detection from git metadata.

Memories created inside a git checkout are scoped to that project. The
project id is the normalized origin remote, so SSH and HTTPS clones of the
same repository share one id:

    git@github.com:user/repo.git       -> github.com/user/repo
    https://github.com/user/repo.git   -> github.com/user/repo
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

LOCAL_PREFIX = "local:"
_GIT_TIMEOUT = 5


@dataclass(frozen=True)
class ProjectContext:
    project_id: str
    project_name: str
    git_root: str | None = None


class ProjectResolver(Protocol):
    def resolve(self) -> ProjectContext | None: ...


def normalize_git_url(url: str) -> str:
    """Normalize a git remote URL to ``host/path`` form."""
    normalized = url.strip()
    normalized = re.sub(r"\.git$", "", normalized).rstrip("/")

    # Azure DevOps SSH: git@ssh.dev.azure.com:v3/org/project/repo
    match = re.match(r"^git@ssh\.dev\.azure\.com:v3/(.+)$", normalized)
    if match:
        return f"dev.azure.com/{match.group(1)}"

    # Azure DevOps HTTPS: https://[user@]dev.azure.com/org/project/_git/repo
    match = re.match(r"^https?://(?:[^@/]+@)?dev\.azure\.com/([^/]+)/([^/]+)/_git/(.+)$", normalized)
    if match:
        return f"dev.azure.com/{match.group(1)}/{match.group(2)}/{match.group(3)}"

    # scp-like SSH: git@github.com:user/repo
    match = re.match(r"^[\w.-]+@([^:/]+):(.+)$", normalized)
    if match:
        return f"{match.group(1)}/{match.group(2)}"

    # URL form: https://[user@]host/path, ssh://git@host[:port]/path
    match = re.match(r"^(?:https?|ssh|git)://(?:[^@/]+@)?([^/:]+)(?::\d+)?/(.+)$", normalized)
    if match:
        return f"{match.group(1)}/{match.group(2)}"

    return normalized


def extract_project_name(project_id: str) -> str:
    """Human-readable name: last path segment of the project id."""
    if project_id.startswith(LOCAL_PREFIX):
        return project_id[len(LOCAL_PREFIX):]
    parts = project_id.rstrip("/").split("/")
    return parts[-1] or project_id


class GitProjectResolver:
    """Resolve the current project from the git checkout containing ``cwd``."""

    def __init__(self, cwd: Path | None = None) -> None:
        self.cwd = cwd

    def _git(self, *args: str) -> str | None:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=_GIT_TIMEOUT,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.debug("git %s failed: %s", args[0], e)
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def resolve(self) -> ProjectContext | None:
        git_root = self._git("rev-parse", "--show-toplevel")
        if not git_root:
            return None

        remote = self._git("remote", "get-url", "origin")
        if remote:
            project_id = normalize_git_url(remote)
        else:
            # No origin remote, fall back to the checkout directory name
            project_id = f"{LOCAL_PREFIX}{Path(git_root).name}"
        return ProjectContext(
            project_id=project_id,
            project_name=extract_project_name(project_id),
            git_root=git_root,
        )


class StaticProjectResolver:
    """Resolver returning a fixed context; ``None`` means always global."""

    def __init__(self, context: ProjectContext | None = None) -> None:
        self.context = context

    def resolve(self) -> ProjectContext | None:
        return self.context
