"""
Shared request helpers and FastAPI dependencies.
"""

from typing import Any, Dict, Optional

from fastapi import Header, HTTPException, Request, status
from fastapi.responses import JSONResponse


class InvalidRequestBody(Exception):
    """Raised when a request body is not a JSON object."""
    pass


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Handles proxies and load balancers by checking X-Forwarded-For header.

    Returns:
        IP address as string, or "unknown"
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first one
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    return request.client.host if request.client else "unknown"


async def read_json_body(request: Request) -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    Raises:
        InvalidRequestBody: If the body is not valid JSON or not an object
    """
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestBody()
    if not isinstance(body, dict):
        raise InvalidRequestBody()
    return body


def error_response(status_code: int, message: str) -> JSONResponse:
    """JSON error body used by the public endpoints: {"error": "<message>"}."""
    return JSONResponse({"error": message}, status_code=status_code)


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Caller identity.

    Authentication is done by the upstream auth provider, which forwards the
    verified user id in X-User-Id.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
    return x_user_id.strip()


async def get_current_user_email(x_user_email: Optional[str] = Header(default=None)) -> str:
    """Verified email of the caller, forwarded by the auth provider in X-User-Email."""
    if not x_user_email or not x_user_email.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
    return x_user_email.strip()
