"""HTTP API exposing debugger sessions."""

from .app import create_app
from .session import HostedSession, SessionStore, UnknownSession

__all__ = ["HostedSession", "SessionStore", "UnknownSession", "create_app"]
