"""SQLAlchemy models for the discourse-near service."""

from .linkage import NearLinkage

__all__ = ["NearLinkage"]
