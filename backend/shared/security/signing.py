"""
HMAC-SHA256 helpers.

QRCodeSigner binds an opaque QR code to its tenant and resource so a code
lifted from one restaurant cannot be replayed against another.
verify_shared_token checks the static token presented by the billing
adapter.
"""

import hashlib
import hmac

from shared.config.logging import get_logger

logger = get_logger(__name__)


class QRCodeSigner:
    """
    Computes QR access-token digests.

    Usage:
        signer = QRCodeSigner(secret=settings.qr_code_secret)
        digest = signer.sign(tenant_id=1, resource_id=7, code="9f1c...")
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("QR signing secret must not be empty")
        self._secret = secret.encode()

    @staticmethod
    def message(tenant_id: int, resource_id: int | None, code: str) -> bytes:
        resource = "" if resource_id is None else str(resource_id)
        return f"{tenant_id}:{resource}:{code}".encode()

    def sign(self, tenant_id: int, resource_id: int | None, code: str) -> str:
        return hmac.new(
            self._secret,
            self.message(tenant_id, resource_id, code),
            hashlib.sha256,
        ).hexdigest()


def verify_shared_token(presented: str | None, expected: str) -> bool:
    """Constant-time check of a static shared-secret header."""
    if not presented or not expected:
        return False
    valid = hmac.compare_digest(presented.encode(), expected.encode())
    if not valid:
        logger.warning("Shared token mismatch")
    return valid


def digests_match(expected: str | None, presented: str | None) -> bool:
    """Constant-time comparison of two stored / presented digests."""
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode(), presented.encode())
