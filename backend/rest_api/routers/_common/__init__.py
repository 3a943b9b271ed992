"""
Common utilities shared across routers.

NOTE: Management schemas live in shared/utils/admin_schemas.py so services
never import from routers.
"""

from .base import (
    current_tenant,
    get_user_email,
    get_user_id,
    require_management,
    tenant_user,
)

__all__ = [
    "current_tenant",
    "tenant_user",
    "require_management",
    "get_user_id",
    "get_user_email",
]
