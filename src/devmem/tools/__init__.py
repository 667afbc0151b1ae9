"""Agent-facing tool callables over the memory repository."""
