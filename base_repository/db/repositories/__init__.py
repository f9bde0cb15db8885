"""
Repository classes for database access.

``BaseRepository`` holds the shared CRUD/search behavior; concrete
repositories subclass it per mapped model.
"""

from .base import BaseRepository

__all__ = ["BaseRepository"]
