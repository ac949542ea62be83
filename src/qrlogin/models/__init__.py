"""QRLogin SQLAlchemy models: central registry.

Import all models here so Base.metadata is populated.
"""

from qrlogin.models.base import Base
from qrlogin.models.qr_token import QRTokenRow

__all__ = [
    "Base",
    "QRTokenRow",
]
