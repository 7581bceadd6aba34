"""ralphbox: provision a Docker container for Claude Code with Smart Ralph plugins."""

__version__ = "1.0.0"
