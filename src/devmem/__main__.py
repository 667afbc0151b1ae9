"""Entry point: python -m devmem [status|stats|cleanup|reindex]

- status:  Storage location and current project scope (default)
- stats:   Memory statistics
- cleanup: Delete expired memories ("cleanup --dry-run" to preview)
- reindex: Rebuild index.json from stored records ("reindex --dry-run" to preview)
"""

from __future__ import annotations

import logging
import sys

from devmem.config import load_config
from devmem.repository import MemoryRepository


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _status(repo: MemoryRepository) -> str:
    lines = [f"Storage folder: {repo.config.storage_dir}"]
    lines.append(f"Memories: {len(repo.list())}")
    context = repo.resolver.resolve()
    if context:
        lines.append(f"Current project: {context.project_name}")
        lines.append(f"Project ID: {context.project_id}")
    else:
        lines.append("Current project: (none detected - memories will be global)")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    cmd = args[0] if args else "status"
    dry_run = "--dry-run" in args[1:]

    config = load_config()
    _setup_logging(config.log_level)
    repo = MemoryRepository.from_config(config)

    from devmem.tools.memory_tools import get_memory_tools

    tools = get_memory_tools(repo)

    if cmd == "status":
        print(_status(repo))
    elif cmd == "stats":
        print(tools["stats"]())
    elif cmd == "cleanup":
        print(tools["cleanup"](dry_run=dry_run))
    elif cmd == "reindex":
        print(tools["reindex"](dry_run=dry_run))
    else:
        print("Usage: python -m devmem [status|stats|cleanup|reindex] [--dry-run]")
        print("  status   — Storage folder and current project (default)")
        print("  stats    — Memory statistics")
        print("  cleanup  — Delete expired memories")
        print("  reindex  — Rebuild the index from stored records")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
