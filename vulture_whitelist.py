"""Vulture whitelist: false positives that are actually used by frameworks or consumers."""

# ---------------------------------------------------------------------------
# Public API methods on QRLogin (used by consumers, not internally)
# ---------------------------------------------------------------------------
from qrlogin.qrlogin import QRLogin

QRLogin.on
QRLogin.add_hook
QRLogin.start_sweeper
QRLogin.stop_sweeper
QRLogin.fastapi_router
QRLogin.migrate

# ---------------------------------------------------------------------------
# FastAPI route handlers (registered via decorators, not called directly)
# ---------------------------------------------------------------------------
_.generate_endpoint
_.verify_endpoint
_.status_endpoint
_.claim_session_endpoint

# ---------------------------------------------------------------------------
# SQLAlchemy TypeDecorator hooks and dataclass fields
# ---------------------------------------------------------------------------
_.process_bind_param
_.process_result_value
_.cache_ok
_.timestamp
_.key_type

# ---------------------------------------------------------------------------
# Alembic migration module attributes
# ---------------------------------------------------------------------------
_.revision
_.down_revision
_.branch_labels
_.depends_on
