"""
Centralized HTTP exceptions for consistent error handling.

Domain services raise these; FastAPI renders them at the request boundary
as ``{"detail": ...}`` with the matching status code.

Usage:
    from shared.utils.exceptions import NotFoundError, EntitlementDeniedError

    raise NotFoundError("Table", table_id, tenant_id=tenant_id)
    raise EntitlementDeniedError.for_limit("max_tables", limit=10)
    raise ValidationError("Capacity must be positive")
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions inherit from this class so every domain failure
    is logged once, with its context, at the point it is raised.
    """

    def __init__(
        self,
        status_code: int,
        detail: str | dict[str, Any],
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        message = detail if isinstance(detail, str) else detail.get("message", "")
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(message, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Table", 123)
        raise NotFoundError("Area", area_id, tenant_id=tenant_id)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class TenantNotFoundError(NotFoundError):
    """No tenant could be resolved for the request."""

    def __init__(self, host: str | None = None, path: str | None = None, **log_context: Any):
        super().__init__("Tenant", host=host, path=path, **log_context)


# =============================================================================
# 402 / 403 Access Errors
# =============================================================================


class EntitlementDeniedError(AppException):
    """
    The tenant's plan does not allow the operation (402).

    Distinct from 403 so clients can render an upgrade prompt instead of a
    permission error. The detail is a dict carrying ``upgrade_required``.

    Usage:
        raise EntitlementDeniedError.for_feature("table_management")
        raise EntitlementDeniedError.for_limit("max_tables", limit=5)
    """

    def __init__(
        self,
        message: str,
        *,
        feature: str | None = None,
        resource: str | None = None,
        limit: int | None = None,
        **log_context: Any,
    ):
        detail: dict[str, Any] = {
            "message": message,
            "code": "upgrade_required",
            "upgrade_required": True,
        }
        if feature is not None:
            detail["feature"] = feature
        if resource is not None:
            detail["resource"] = resource
            detail["limit"] = limit

        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=detail,
            log_level="info",
            feature=feature,
            resource=resource,
            limit=limit,
            **log_context,
        )

    @classmethod
    def for_feature(cls, feature: str, **log_context: Any) -> "EntitlementDeniedError":
        return cls(
            f"Your plan does not include '{feature}'",
            feature=feature,
            **log_context,
        )

    @classmethod
    def for_limit(cls, resource: str, limit: int | None, **log_context: Any) -> "EntitlementDeniedError":
        return cls(
            f"Plan limit reached for '{resource}' ({limit})",
            resource=resource,
            limit=limit,
            **log_context,
        )


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("manage tables")
        raise ForbiddenError("access this tenant", tenant_id=tenant_id)
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not authorized to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class InsufficientRoleError(ForbiddenError):
    """User doesn't have the required role."""

    def __init__(self, required_roles: list[str], **log_context: Any):
        roles_str = ", ".join(sorted(required_roles))
        super().__init__(
            f"perform this action (requires role: {roles_str})",
            required_roles=sorted(required_roles),
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Capacity must be positive")
        raise ValidationError("Invalid status", field="status", value="broken")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidStateError(ValidationError):
    """Entity is in an invalid state for the operation."""

    def __init__(self, entity: str, current_state: str, expected_states: list[str] | None = None, **log_context: Any):
        if expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} is in state '{current_state}', expected: {states_str}"
        else:
            detail = f"{entity} cannot be in state '{current_state}' for this operation"

        super().__init__(detail, entity=entity, current_state=current_state, **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Table status changed concurrently")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class DuplicateEntityError(ConflictError):
    """Entity already exists."""

    def __init__(self, entity: str, identifier: str | None = None, **log_context: Any):
        if identifier:
            detail = f"{entity} with identifier '{identifier}' already exists"
        else:
            detail = f"{entity} already exists"

        super().__init__(detail, entity=entity, identifier=identifier, **log_context)


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to issue QR code", tenant_id=1)
    """

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}. Please try again."
        super().__init__(detail, operation=operation, **log_context)
