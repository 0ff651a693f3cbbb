"""
QR Image Service

Renders the printable image for a QR code. The encoded URL is always the
redirect endpoint (``{BASE_URL}/r/{code}``), never the landing page, so scans
are counted and the landing target can change after printing.
"""

import io

import qrcode
import qrcode.image.svg
from qrcode.constants import ERROR_CORRECT_M

from shelfqr.core.setting import settings

IMAGE_FORMATS = {
    "png": "image/png",
    "svg": "image/svg+xml",
}

BORDER = 2
PNG_BOX_SIZE = 20
SVG_BOX_SIZE = 10


def scan_url(code: str, base_url: str = None) -> str:
    return f"{base_url or settings.BASE_URL}/r/{code}"


def _build(url: str, box_size: int, image_factory=None):
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_M,
        box_size=box_size,
        border=BORDER,
        image_factory=image_factory,
    )
    qr.add_data(url)
    qr.make(fit=True)
    return qr.make_image()


def render_png(url: str) -> bytes:
    image = _build(url, PNG_BOX_SIZE)
    buffer = io.BytesIO()
    image.save(buffer)
    return buffer.getvalue()


def render_svg(url: str) -> bytes:
    image = _build(url, SVG_BOX_SIZE, image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    image.save(buffer)
    return buffer.getvalue()


def render_qr_image(code: str, image_format: str) -> bytes:
    """
    Raises:
        ValueError: If image_format is not png or svg
    """
    url = scan_url(code)
    if image_format == "png":
        return render_png(url)
    if image_format == "svg":
        return render_svg(url)
    raise ValueError(f"Unsupported QR image format: {image_format}")
