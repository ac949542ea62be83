"""QR image rendering: encodes a payload string to a PNG data URL."""

import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M


def render_qr_data_url(data: str, *, size: int = 256, margin: int = 2) -> str:
    """Render ``data`` as a PNG QR code and return it as a ``data:`` URL.

    ``size`` is the target edge length in pixels; the module size is rounded
    down so the image never exceeds it (minimum one pixel per module).
    """
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=margin)
    qr.add_data(data)
    qr.make(fit=True)
    qr.box_size = max(1, size // (qr.modules_count + 2 * margin))

    img = qr.make_image(fill_color="black", back_color="white")
    buffered = io.BytesIO()
    img.save(buffered, format="PNG")
    encoded = base64.b64encode(buffered.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
