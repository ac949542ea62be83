"""Example kiosk + phone using the QRLogin Python client against main.py.

Run the server first (uvicorn main:app --port 8000), then:

    python kiosk.py

``phone()`` is the scanning side: it signs in through /dev-login and
verifies the decoded QR string, as a camera library would return it.
"""

import asyncio

import httpx

from qrlogin_client import QRClientError, QRLoginClient, start_qr_auth

BASE_URL = "http://localhost:8000"


async def kiosk() -> None:
    async with QRLoginClient(f"{BASE_URL}/auth", client_type="kiosk") as client:
        handle = await start_qr_auth(
            client,
            poll_interval=2.0,
            on_qr_generated=lambda qr_code, token_id: print(f"Show this QR ({token_id}):\n{qr_code[:60]}..."),
            on_success=lambda session: print(f"Signed in as {session.user_id}"),
            on_error=lambda exc: print(f"Login failed: {exc.message}"),
        )
        try:
            await handle.wait()
        except QRClientError:
            pass


async def phone(raw_payload: str, user_id: str = "alice") -> None:
    async with httpx.AsyncClient(base_url=BASE_URL) as http:
        session_token = (await http.post("/dev-login", json={"user_id": user_id})).json()["session_token"]

    async with QRLoginClient(f"{BASE_URL}/auth", client_type="mobile") as client:
        result = await client.handle_qr_scan(raw_payload, session_token=session_token)
        print(f"Approved login for {result.user_id}")


if __name__ == "__main__":
    asyncio.run(kiosk())
