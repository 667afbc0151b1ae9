"""devmem — durable, structured memories for an AI coding assistant.

Layout:
    ~/.devmem/
    ├── index.json                     # Summary of every memory, scanned by search/list
    ├── memories/
    │   ├── decision/                  # One directory per category
    │   │   └── 2026-02-18-use-postgres.md   # YAML frontmatter + markdown body
    │   └── learning/
    └── state/
        ├── last-project.json          # Last project seen by the context trigger
        └── patterns.json              # Optional custom file-pattern → tags mappings

Memories are scoped to the git project they were created in (normalized
origin remote) unless stored as global.
"""

__version__ = "0.3.0"
