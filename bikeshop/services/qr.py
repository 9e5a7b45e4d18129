"""QR code generation for ticket tracking links."""

from __future__ import annotations

import io

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

QR_SIZE_PX = 256


def qr_png(url: str, size: int = QR_SIZE_PX) -> bytes:
    """Encode `url` as a square PNG of `size` pixels (medium error correction)."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=4)
    qr.add_data(url)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white").get_image()
    img = img.resize((size, size), Image.Resampling.NEAREST)

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def tracking_url(base_url: str, tracking_code: str) -> str:
    return f"{base_url.rstrip('/')}/tracking/{tracking_code}"
