"""
Background Task Helpers

Fire-and-forget event writes. Each task opens its own database session (the
endpoint's session is closed once the response is sent) and absorbs its own
failures: an error is logged with its traceback and never reaches the
visitor.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from shelfqr.services.event_logger import EventLoggerService

logger = logging.getLogger(__name__)


async def log_scan_background(
    session_maker: async_sessionmaker,
    qr_code_id: str,
    ip_address: str,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None
) -> None:
    """
    Background task to log a scan.

    Args:
        session_maker: Factory for the task's own session
        qr_code_id: Id of the scanned QR code
        ip_address: IP address of the visitor
        user_agent: User agent string (optional)
        referrer: Referer header (optional)
    """
    try:
        async with session_maker() as session:
            await EventLoggerService(session).log_scan(
                qr_code_id=qr_code_id,
                ip_address=ip_address,
                user_agent=user_agent,
                referrer=referrer
            )
    except Exception as e:
        logger.error(
            f"Failed to log scan for QR code {qr_code_id}: {str(e)}",
            exc_info=True
        )


async def log_click_background(
    session_maker: async_sessionmaker,
    item_id: str,
    collection_id: Optional[str] = None,
    qr_code_id: Optional[str] = None,
    user_agent: Optional[str] = None
) -> None:
    """Background task to log a click. A failure means the click is not counted."""
    try:
        async with session_maker() as session:
            await EventLoggerService(session).log_click(
                item_id=item_id,
                collection_id=collection_id,
                qr_code_id=qr_code_id,
                user_agent=user_agent
            )
    except Exception as e:
        logger.error(
            f"Failed to log click for item {item_id}: {str(e)}",
            exc_info=True
        )
