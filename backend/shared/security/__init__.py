"""
Security module: JWT context and HMAC signing.
"""

from shared.security.auth import (
    sign_jwt,
    verify_jwt,
    get_bearer_token,
    current_user_context,
    require_roles,
)
from shared.security.signing import QRCodeSigner, digests_match, verify_shared_token

__all__ = [
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "current_user_context",
    "require_roles",
    "QRCodeSigner",
    "verify_shared_token",
    "digests_match",
]
