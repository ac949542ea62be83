"""QR payload: the JSON object encoded in the scannable image."""

import json
from dataclasses import dataclass

from qrlogin_client.errors import QRPayloadError


@dataclass(frozen=True, slots=True)
class QRPayload:
    token_id: str
    token: str
    server_url: str

    @classmethod
    def parse(cls, raw: str) -> "QRPayload":
        """Decode a scanned QR string.

        Raises:
            QRPayloadError: Not JSON, not an object, or a field is missing/empty.
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise QRPayloadError("Invalid QR code format") from exc

        if not isinstance(data, dict):
            raise QRPayloadError("Invalid QR code data structure")

        values = [data.get(key) for key in ("tokenId", "token", "serverUrl")]
        if not all(isinstance(v, str) and v for v in values):
            raise QRPayloadError("Invalid QR code data structure")

        token_id, token, server_url = values
        return cls(token_id=token_id, token=token, server_url=server_url)

    def to_dict(self) -> dict[str, str]:
        return {"tokenId": self.token_id, "token": self.token, "serverUrl": self.server_url}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))
