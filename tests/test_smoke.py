"""Smoke tests: verify all modules import cleanly."""


def test_import_top_level():
    from qrlogin import QRLogin, __version__

    assert __version__


def test_import_core():
    from qrlogin.core.engine import QRTokenEngine, STATUS_COMPLETED, STATUS_EXPIRED, STATUS_PENDING
    from qrlogin.core.errors import QRAuthError, QRStoreError
    from qrlogin.core.qr_image import render_qr_data_url
    from qrlogin.core.records import QRPayload, QRTokenRecord, TokenState
    from qrlogin.core.sessions import Identity, JWTSessionIssuer, SessionIssuer
    from qrlogin.core.store import InMemoryTokenStore, SQLTokenStore, TokenStore
    from qrlogin.core.sweeper import ExpirySweeper
    from qrlogin.core.tokens import generate_secret, generate_token_id, secret_matches


def test_import_models():
    from qrlogin.models import Base, QRTokenRow


def test_import_repositories():
    from qrlogin.repositories import qr_token


def test_import_config():
    from qrlogin.config import CookieConfig, EndpointPaths, QRLoginConfig, RateLimitConfig


def test_import_db():
    from qrlogin.db import create_engine, create_session_factory, get_session


def test_import_fastapi_integration():
    from qrlogin.integrations.fastapi import create_identity_dep, create_qr_router


def test_import_client():
    from qrlogin_client import (
        PollingHandle,
        QRClientError,
        QRExpiredError,
        QRLoginClient,
        QRNetworkError,
        QRPayload,
        QRPayloadError,
        QRProtocolError,
        start_qr_auth,
    )
