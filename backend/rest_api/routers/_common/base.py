"""
Request-scoped dependencies shared by the routers.

Every tenant-scoped endpoint resolves the tenant from the request first and
then checks that the caller's token belongs to that same tenant.
"""

from typing import Any

from fastapi import Depends, Request

from rest_api.services.domain.tenant_directory import (
    TenantDirectory,
    TenantIdentity,
    get_tenant_directory,
)
from shared.config.constants import MANAGEMENT_ROLES
from shared.config.logging import tenant_logger as logger
from shared.security.auth import current_user_context
from shared.utils.exceptions import ForbiddenError, InsufficientRoleError, TenantNotFoundError


def get_user_id(user: dict[str, Any]) -> int:
    """Extract user ID from JWT context."""
    return int(user["sub"])


def get_user_email(user: dict[str, Any]) -> str | None:
    """Extract user email from JWT context."""
    return user.get("email")


def current_tenant(
    request: Request,
    directory: TenantDirectory = Depends(get_tenant_directory),
) -> TenantIdentity:
    """
    Resolve the tenant serving this request.

    Raises:
        TenantNotFoundError: Nothing matched and there is no usable default.
    """
    host = request.headers.get("host")
    path = request.url.path
    slug = directory.resolve(host, path)
    tenant = directory.get_tenant(slug) if slug else None
    if tenant is None:
        raise TenantNotFoundError(host=host, path=path)
    return tenant


def tenant_user(
    tenant: TenantIdentity = Depends(current_tenant),
    user: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Authenticated user whose token was issued for the resolved tenant."""
    if user["tenant_id"] != tenant.id:
        logger.warning(
            "Token tenant does not match request tenant",
            token_tenant_id=user["tenant_id"],
            tenant_id=tenant.id,
            user_id=user.get("sub"),
        )
        raise ForbiddenError("access this tenant", tenant_id=tenant.id)
    return user


def require_management(user: dict[str, Any] = Depends(tenant_user)) -> dict[str, Any]:
    """Dependency that requires ADMIN or MANAGER role."""
    if not set(user.get("roles", [])) & MANAGEMENT_ROLES:
        raise InsufficientRoleError(list(MANAGEMENT_ROLES), user_id=user.get("sub"))
    return user
