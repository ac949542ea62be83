"""Secret generation: QR token ids, verification secrets, handoff tokens."""

import hashlib
import hmac
import secrets

# 32 random bytes, urlsafe-base64 encoded (43 characters, 256 bits).
TOKEN_BYTES = 32


def generate_token_id() -> str:
    """Generate the public lookup id embedded in the QR payload."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def generate_secret() -> tuple[str, str]:
    """Generate the private verification secret embedded in the QR payload.

    Returns:
        Tuple of (raw_secret, secret_hash).
        - raw_secret: goes into the QR payload only (never stored)
        - secret_hash: SHA-256 hex digest stored in the record
    """
    raw = secrets.token_urlsafe(TOKEN_BYTES)
    return raw, hash_secret(raw)


def hash_secret(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def secret_matches(raw: str, secret_hash: str) -> bool:
    """Constant-time comparison of a presented secret against the stored digest."""
    return hmac.compare_digest(hash_secret(raw), secret_hash)


def generate_session_creation_token() -> str:
    """Generate the one-time handoff token minted at verification time.

    Stored as-is: the requesting device reads it back through polling.
    """
    return secrets.token_urlsafe(TOKEN_BYTES)
