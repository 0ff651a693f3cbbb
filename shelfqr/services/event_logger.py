"""
Event Logging Service

This service writes scan and click events for analytics.

Design Decisions:
- Separate service for logging to keep concerns separated
- Stores a daily-rotating hash of the visitor IP, never the IP itself
- User agent and referrer are truncated to 500 characters
- Rows are append-only; nothing here updates an event
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.core.privacy import hash_ip
from shelfqr.core.utils import detect_device_type, truncate
from shelfqr.db.models import ClickEvent, ScanEvent


class EventLoggerService:
    """
    Service for recording scan and click events.

    Designed to be called from background tasks so the insert never sits
    on the redirect path.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_scan(
        self,
        qr_code_id: str,
        ip_address: str,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None
    ) -> ScanEvent:
        """
        Record one scan of a QR code.

        Args:
            qr_code_id: Id of the scanned QR code row
            ip_address: Client IP (hashed before storage)
            user_agent: User agent header (optional)
            referrer: Referer header (optional)
        """
        user_agent = user_agent or ""
        scan_event = ScanEvent(
            qr_code_id=qr_code_id,
            scanned_at=datetime.utcnow(),
            user_agent=truncate(user_agent),
            device_type=detect_device_type(user_agent),
            referrer=truncate(referrer or ""),
            ip_hash=hash_ip(ip_address),
        )
        self.session.add(scan_event)
        await self.session.commit()
        return scan_event

    async def log_click(
        self,
        item_id: str,
        collection_id: Optional[str] = None,
        qr_code_id: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> ClickEvent:
        """Record one click-through to an item's external product page."""
        click_event = ClickEvent(
            item_id=item_id,
            collection_id=collection_id or None,
            qr_code_id=qr_code_id or None,
            clicked_at=datetime.utcnow(),
            user_agent=truncate(user_agent or ""),
        )
        self.session.add(click_event)
        await self.session.commit()
        return click_event
