"""
Shared module for common utilities used by the REST API.

STRUCTURE:
- shared.security: Authentication context and signing
  - auth.py: JWT verification, current_user_context, require_roles
  - signing.py: HMAC-SHA256 digests for QR access tokens

- shared.infrastructure: Database and request plumbing
  - db.py: SQLAlchemy sessions, safe_commit()
  - correlation.py: Request correlation IDs

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Statuses, plan features and limits

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Shared Pydantic schemas
  - admin_schemas.py: Management API schemas

IMPORT EXAMPLES:
    from shared.security.auth import verify_jwt, current_user_context
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import TableStatus, SubscriptionStatus
    from shared.utils.exceptions import NotFoundError, EntitlementDeniedError
"""
