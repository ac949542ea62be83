"""Wire schemas for the QR exchange endpoints.

Field names are camelCase on the wire (``tokenId``, ``sessionCreationToken``)
and snake_case in Python. Request fields are optional so that missing
fields produce the exchange's own 400 instead of a validation 422.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateRequest(_WireModel):
    """Optional generate input."""
    ttl_minutes: int | None = None


class GenerateResponse(_WireModel):
    token_id: str
    qr_code: str
    expires_at: datetime


class VerifyRequest(_WireModel):
    """Scanning device input, decoded from the QR payload."""
    token_id: str | None = None
    token: str | None = None


class VerifyResponse(_WireModel):
    user_id: str
    user: dict[str, Any] | None = None
    session_creation_token: str
    session_creation_token_expires_at: datetime


class StatusResponse(_WireModel):
    status: str
    user_id: str | None = None
    user: dict[str, Any] | None = None
    verified_at: datetime | None = None
    expires_at: datetime | None = None
    session_creation_token: str | None = None
    session_creation_token_expires_at: datetime | None = None


class ClaimSessionRequest(_WireModel):
    session_creation_token: str | None = None


class ClaimSessionResponse(_WireModel):
    success: bool = True
    user_id: str
    user: dict[str, Any] | None = None
    session_token: str
    expires_at: datetime
