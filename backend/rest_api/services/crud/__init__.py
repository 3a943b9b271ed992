"""
CRUD building blocks: repositories with tenant isolation.
"""

from .repository import BaseRepository, TenantRepository

__all__ = [
    "BaseRepository",
    "TenantRepository",
]
