"""gitdesk: keeps a detached UI in sync with a git working copy."""

__version__ = "0.1.0"
