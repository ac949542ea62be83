"""FastAPI integration for QRLogin."""

from qrlogin.integrations.fastapi.deps import create_identity_dep
from qrlogin.integrations.fastapi.router import create_qr_router

__all__ = [
    "create_identity_dep",
    "create_qr_router",
]
