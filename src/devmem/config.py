"""Configuration loading from environment variables and devmem.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_STORAGE_DIR = Path.home() / ".devmem"
_CONFIG_FILENAME = "devmem.toml"


@dataclass
class SearchConfig:
    """Search and lifecycle tuning."""

    default_limit: int = 10
    stale_days: int = 90
    graph_depth: int = 3


@dataclass
class MemoryConfig:
    """Top-level devmem configuration, passed explicitly to the repository."""

    storage_dir: Path = _DEFAULT_STORAGE_DIR
    state_dir: Path = field(default_factory=lambda: _DEFAULT_STORAGE_DIR / "state")
    search: SearchConfig = field(default_factory=SearchConfig)
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> MemoryConfig:
    """Load configuration from environment variables and optional devmem.toml.

    Priority: environment variables > devmem.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.devmem/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, _DEFAULT_STORAGE_DIR / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    storage_data = file_data.get("storage", {})
    search_data = file_data.get("search", {})

    storage_dir = Path(
        os.getenv("DEVMEM_STORAGE_DIR", storage_data.get("dir", str(_DEFAULT_STORAGE_DIR)))
    ).expanduser()
    state_dir = Path(
        os.getenv("DEVMEM_STATE_DIR", storage_data.get("state_dir", str(storage_dir / "state")))
    ).expanduser()

    config = MemoryConfig(
        storage_dir=storage_dir,
        state_dir=state_dir,
        search=SearchConfig(
            default_limit=int(os.getenv("DEVMEM_LIMIT", search_data.get("default_limit", 10))),
            stale_days=int(os.getenv("DEVMEM_STALE_DAYS", search_data.get("stale_days", 90))),
            graph_depth=int(search_data.get("graph_depth", 3)),
        ),
        log_level=os.getenv("DEVMEM_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
