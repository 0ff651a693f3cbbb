"""
Public FastAPI Endpoints

Endpoints hit by visitors' browsers and phones:
- GET  /r/{code}                   QR scan redirect
- POST /api/track-scan             scan of a deep-linked landing page (?src=<code>)
- POST /api/track-click            click-through to an external product link
- POST /api/subscribe              email sign-up on a collection page
- POST /api/fetch-metadata         product link preview for the dashboard
- GET  /api/qr-codes/{code}/image  printable QR image

Design Principles:
- Thin endpoints: validation, rate limiting and HTTP responses only
- Event writes are background tasks; their failures never change the response
- The scan path is limited by the injectable fixed-window limiter, the rest
  by slowapi
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shelfqr.api.deps import (
    InvalidRequestBody,
    error_response,
    get_client_ip,
    read_json_body,
)
from shelfqr.api.schemas import MetadataResponse, OkResponse, SubscribeResponse
from shelfqr.core.exceptions import (
    CollectionNotFoundError,
    DatabaseError,
    InvalidURLError,
    MetadataFetchError,
    QrCodeNotFoundError,
)
from shelfqr.core.rate_limit import RATE_LIMITS, FixedWindowRateLimiter, get_scan_limiter, limiter
from shelfqr.core.setting import settings
from shelfqr.core.validators import is_valid_email, sanitize_code
from shelfqr.db.session import get_session, get_session_maker
from shelfqr.services.background_tasks import log_click_background, log_scan_background
from shelfqr.services.metadata_service import MetadataService
from shelfqr.services.qr_image_service import IMAGE_FORMATS, render_qr_image
from shelfqr.services.qr_resolver import QrResolverService, build_redirect_url
from shelfqr.services.subscriber_service import SubscriberService

logger = logging.getLogger(__name__)

router = APIRouter()


def scan_limiter_key(client_ip: str) -> str:
    return f"scan:{client_ip}"


def get_metadata_service() -> MetadataService:
    return MetadataService()


@router.get(
    "/r/{code}",
    status_code=status.HTTP_302_FOUND,
    summary="Redirect a scanned QR code",
    description="Resolves a QR code, records the scan and redirects to its landing page"
)
async def redirect_qr_code(
    code: str,
    request: Request,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    scan_limiter: FixedWindowRateLimiter = Depends(get_scan_limiter)
) -> Response:
    """
    Redirect a QR scan to its landing page.

    Returns:
        302 to {BASE_URL}{landing path}?src={code}
        404 if the code is unknown
        429 if the client exceeded the scan rate limit
    """
    client_ip = get_client_ip(request)
    if not scan_limiter.check(scan_limiter_key(client_ip)).allowed:
        return PlainTextResponse("Too many requests", status_code=status.HTTP_429_TOO_MANY_REQUESTS)

    sanitized_code = sanitize_code(code)
    resolved = None
    if sanitized_code:
        resolved = await QrResolverService(session).resolve(sanitized_code)

    if resolved is None:
        return PlainTextResponse("QR code not found", status_code=status.HTTP_404_NOT_FOUND)

    background_tasks.add_task(
        log_scan_background,
        session_maker,
        qr_code_id=resolved.qr_code_id,
        ip_address=client_ip,
        user_agent=request.headers.get("User-Agent", ""),
        referrer=request.headers.get("Referer", "")
    )

    return RedirectResponse(
        url=build_redirect_url(settings.BASE_URL, resolved.target, resolved.code),
        status_code=status.HTTP_302_FOUND
    )


@router.post(
    "/api/track-scan",
    response_model=OkResponse,
    summary="Record a scan for a deep-linked landing page"
)
async def track_scan(
    request: Request,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
    scan_limiter: FixedWindowRateLimiter = Depends(get_scan_limiter)
):
    """
    Same rate check, lookup and scan log as /r/{code}, without the redirect.

    Body: {"code": "<code>"}
    """
    try:
        body = await read_json_body(request)
    except InvalidRequestBody:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request")

    code = body.get("code")
    if not code or not isinstance(code, str):
        return error_response(status.HTTP_400_BAD_REQUEST, "Missing code")

    client_ip = get_client_ip(request)
    if not scan_limiter.check(scan_limiter_key(client_ip)).allowed:
        return error_response(status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests")

    try:
        qr_code = await QrResolverService(session).require_qr_code(code)
    except QrCodeNotFoundError:
        return error_response(status.HTTP_404_NOT_FOUND, "Invalid code")

    background_tasks.add_task(
        log_scan_background,
        session_maker,
        qr_code_id=qr_code.id,
        ip_address=client_ip,
        user_agent=request.headers.get("User-Agent", ""),
        referrer=request.headers.get("Referer", "")
    )
    return OkResponse()


@router.post(
    "/api/track-click",
    response_model=OkResponse,
    summary="Record a click-through to a product"
)
async def track_click(
    request: Request,
    background_tasks: BackgroundTasks,
    session_maker: async_sessionmaker = Depends(get_session_maker)
):
    """
    Body: {"item_id": "...", "collection_id": "...", "qr_code_id": "..."}

    Not rate limited. A failed insert only means the click is not counted.
    """
    try:
        body = await read_json_body(request)
    except InvalidRequestBody:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request")

    item_id = body.get("item_id")
    if not item_id:
        return error_response(status.HTTP_400_BAD_REQUEST, "Missing item_id")

    background_tasks.add_task(
        log_click_background,
        session_maker,
        item_id=str(item_id),
        collection_id=body.get("collection_id") or None,
        qr_code_id=body.get("qr_code_id") or None,
        user_agent=request.headers.get("User-Agent", "")
    )
    return OkResponse()


@router.post(
    "/api/subscribe",
    response_model=SubscribeResponse,
    summary="Subscribe an email address to a collection"
)
@limiter.limit(RATE_LIMITS["subscribe"])
async def subscribe(
    request: Request,
    session: AsyncSession = Depends(get_session)
):
    try:
        body = await read_json_body(request)
    except InvalidRequestBody:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request")

    email = body.get("email")
    collection_id = body.get("collection_id")
    if not email or not collection_id:
        return error_response(status.HTTP_400_BAD_REQUEST, "Email and collection_id are required")

    if not is_valid_email(email):
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid email address")

    try:
        await SubscriberService(session).subscribe(str(collection_id), email)
    except CollectionNotFoundError:
        return error_response(status.HTTP_404_NOT_FOUND, "Collection not found")
    except DatabaseError as e:
        logger.error(f"{e}: {e.original_error}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to subscribe")

    return SubscribeResponse()


@router.post(
    "/api/fetch-metadata",
    response_model=MetadataResponse,
    summary="Fetch title, image and description for a product link"
)
@limiter.limit(RATE_LIMITS["fetch_metadata"])
async def fetch_metadata(
    request: Request,
    metadata_service: MetadataService = Depends(get_metadata_service)
):
    try:
        body = await read_json_body(request)
    except InvalidRequestBody:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request")

    url = body.get("url")
    if not url or not isinstance(url, str):
        return error_response(status.HTTP_400_BAD_REQUEST, "URL is required")

    try:
        metadata = await metadata_service.fetch(url)
    except InvalidURLError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, e.reason)
    except MetadataFetchError as e:
        if e.timed_out:
            return error_response(status.HTTP_408_REQUEST_TIMEOUT, "Request timed out")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch metadata")

    return MetadataResponse(**metadata.to_dict())


@router.get(
    "/api/qr-codes/{code}/image",
    summary="Render a printable QR image",
    responses={200: {"content": {"image/png": {}, "image/svg+xml": {}}}}
)
async def qr_code_image(
    code: str,
    image_format: str = Query(default="png", alias="format"),
    session: AsyncSession = Depends(get_session)
) -> Response:
    """
    Raises:
        HTTPException 400: If the format is not png or svg
        HTTPException 404: If the code is unknown
    """
    if image_format not in IMAGE_FORMATS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported format '{image_format}'. Use png or svg."
        )

    try:
        qr_code = await QrResolverService(session).require_qr_code(code)
    except QrCodeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    content = render_qr_image(qr_code.code, image_format)
    return Response(
        content=content,
        media_type=IMAGE_FORMATS[image_format],
        headers={"Content-Disposition": f'inline; filename="{qr_code.code}.{image_format}"'}
    )
