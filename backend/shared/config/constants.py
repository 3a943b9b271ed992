"""
Centralized constants for the backend application.
Avoid magic strings and repeated constants.

Usage:
    from shared.config.constants import TableStatus, SubscriptionStatus

    if table.status == TableStatus.OCCUPIED:
        ...
"""

from typing import Any, Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """User role constants."""

    ADMIN: Final[str] = "ADMIN"
    MANAGER: Final[str] = "MANAGER"
    WAITER: Final[str] = "WAITER"

    ALL: Final[list[str]] = [ADMIN, MANAGER, WAITER]


MANAGEMENT_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.MANAGER})
STAFF_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.MANAGER, Roles.WAITER})


# =============================================================================
# Tenant Resolution
# =============================================================================


class ResolutionStrategy:
    """How an inbound request is mapped to a tenant."""

    DOMAIN: Final[str] = "domain"
    SUBDOMAIN: Final[str] = "subdomain"
    PATH: Final[str] = "path"

    ALL: Final[list[str]] = [DOMAIN, SUBDOMAIN, PATH]


# =============================================================================
# Entity Status Constants
# =============================================================================


class TableStatus:
    """Table status constants."""

    AVAILABLE: Final[str] = "available"
    OCCUPIED: Final[str] = "occupied"
    RESERVED: Final[str] = "reserved"
    CLEANING: Final[str] = "cleaning"
    INACTIVE: Final[str] = "inactive"

    ALL: Final[list[str]] = [AVAILABLE, OCCUPIED, RESERVED, CLEANING, INACTIVE]


class SubscriptionStatus:
    """Subscription status constants."""

    TRIAL: Final[str] = "trial"
    ACTIVE: Final[str] = "active"
    PAST_DUE: Final[str] = "past_due"
    CANCELED: Final[str] = "canceled"
    SUSPENDED: Final[str] = "suspended"
    NONE: Final[str] = "none"

    ALL: Final[list[str]] = [TRIAL, ACTIVE, PAST_DUE, CANCELED, SUSPENDED]
    # Statuses that occupy the single "current subscription" slot of a tenant
    CURRENT: Final[list[str]] = [TRIAL, ACTIVE, PAST_DUE, SUSPENDED]
    # Statuses reported as an active subscription
    ACTIVE_STATES: Final[list[str]] = [ACTIVE, TRIAL]
    # Statuses whose plan still grants entitlements (past_due is a grace period)
    ENTITLED: Final[list[str]] = [ACTIVE, TRIAL, PAST_DUE]


# Payment-processor subscription statuses mapped onto ours
PROVIDER_STATUS_MAP: Final[dict[str, str]] = {
    "trialing": SubscriptionStatus.TRIAL,
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.CANCELED,
}


class InvoiceStatus:
    """Invoice status constants."""

    PAID: Final[str] = "paid"
    UNCOLLECTIBLE: Final[str] = "uncollectible"


class QRCodeType:
    """QR access token types."""

    TABLE: Final[str] = "table"
    MENU: Final[str] = "menu"
    PAYMENT: Final[str] = "payment"

    ALL: Final[list[str]] = [TABLE, MENU, PAYMENT]


# Customer-facing URL path per QR type
QR_URL_PATHS: Final[dict[str, str]] = {
    QRCodeType.TABLE: "/menu/table/{code}",
    QRCodeType.MENU: "/menu/{code}",
    QRCodeType.PAYMENT: "/payment/{code}",
}


# =============================================================================
# Plans, Features and Limits
# =============================================================================


class Features:
    """Named boolean capabilities a plan may grant."""

    TABLE_MANAGEMENT: Final[str] = "table_management"
    QRCODE_BASIC: Final[str] = "qrcode_basic"
    QRCODE_ADVANCED: Final[str] = "qrcode_advanced"
    BASIC_REPORTS: Final[str] = "basic_reports"
    FULL_REPORTS: Final[str] = "full_reports"
    INVENTORY_MANAGEMENT: Final[str] = "inventory_management"
    MULTI_BRANCH: Final[str] = "multi_branch"
    API_ACCESS: Final[str] = "api_access"


class LimitedResource:
    """Resource names used as keys of a plan's limits map."""

    MAX_TABLES: Final[str] = "max_tables"
    MAX_USERS: Final[str] = "max_users"
    MAX_MENU_ITEMS: Final[str] = "max_menu_items"
    MAX_MONTHLY_ORDERS: Final[str] = "max_monthly_orders"

    ALL: Final[list[str]] = [MAX_TABLES, MAX_USERS, MAX_MENU_ITEMS, MAX_MONTHLY_ORDERS]


UNLIMITED: Final[int] = -1


# Used when a tenant has no subscription and the default plan row is missing
DEFAULT_PLAN: Final[dict[str, Any]] = {
    "code": "basic",
    "name": "Basic",
    "tier": 1,
    "features": [
        Features.TABLE_MANAGEMENT,
        Features.QRCODE_BASIC,
        Features.BASIC_REPORTS,
    ],
    "limits": {
        LimitedResource.MAX_TABLES: 10,
        LimitedResource.MAX_USERS: 3,
        LimitedResource.MAX_MENU_ITEMS: 50,
        LimitedResource.MAX_MONTHLY_ORDERS: 500,
    },
}


# =============================================================================
# Validation Limits
# =============================================================================


class Limits:
    """Numeric limits for validation."""

    MAX_TABLE_CAPACITY: Final[int] = 50
    MAX_TABLE_NUMBER_LENGTH: Final[int] = 20
    MAX_NAME_LENGTH: Final[int] = 100
    MAX_POSITION: Final[int] = 10_000
    MAX_STATISTICS_WINDOW_DAYS: Final[int] = 365
    DEFAULT_STATISTICS_WINDOW_DAYS: Final[int] = 30
    DEFAULT_HISTORY_LIMIT: Final[int] = 50
    MAX_HISTORY_LIMIT: Final[int] = 500
    MAX_POSITIONS_BATCH: Final[int] = 500
    QR_CODE_BYTES: Final[int] = 8
    QR_ISSUE_ATTEMPTS: Final[int] = 3
