"""
Public routers - No staff authentication required.
- /api/public/qr/* - QR code validation for customer devices
- /api/health - Health check
"""

from .qr import router as qr_router
from .health import router as health_router

__all__ = ["qr_router", "health_router"]
