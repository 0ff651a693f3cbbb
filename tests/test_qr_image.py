"""
Tests for printable QR image rendering.
"""

import pytest

from shelfqr.services.qr_image_service import render_qr_image, scan_url

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def test_scan_url_points_at_redirect_endpoint():
    assert scan_url("abc123", base_url="https://shelf.test") == "https://shelf.test/r/abc123"


def test_render_png():
    assert render_qr_image("abc123", "png").startswith(PNG_SIGNATURE)


def test_render_svg():
    assert b"<svg" in render_qr_image("abc123", "svg")


def test_render_unknown_format():
    with pytest.raises(ValueError):
        render_qr_image("abc123", "gif")


@pytest.mark.asyncio
async def test_image_endpoint_png(client, shop_data):
    response = await client.get("/api/qr-codes/abc123/image")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(PNG_SIGNATURE)


@pytest.mark.asyncio
async def test_image_endpoint_svg(client, shop_data):
    response = await client.get("/api/qr-codes/abc123/image", params={"format": "svg"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("image/svg+xml")
    assert b"<svg" in response.content


@pytest.mark.asyncio
async def test_image_endpoint_unknown_code(client, shop_data):
    response = await client.get("/api/qr-codes/nope/image")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_image_endpoint_bad_format(client, shop_data):
    response = await client.get("/api/qr-codes/abc123/image", params={"format": "gif"})
    assert response.status_code == 400
