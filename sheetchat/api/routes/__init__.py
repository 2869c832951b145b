"""API route modules."""

from sheetchat.api.routes import chat, sheets, threads

__all__ = ["chat", "sheets", "threads"]
