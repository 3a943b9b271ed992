"""
Utilities module: exceptions and schemas.
"""

from shared.utils.exceptions import (
    NotFoundError,
    TenantNotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    EntitlementDeniedError,
)
from shared.utils.schemas import ErrorResponse

__all__ = [
    # exceptions
    "NotFoundError",
    "TenantNotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConflictError",
    "EntitlementDeniedError",
    # schemas
    "ErrorResponse",
]
