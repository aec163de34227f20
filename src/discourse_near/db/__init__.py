"""Database session utilities."""

from .session import Base, create_session_factory

__all__ = ["Base", "create_session_factory"]
