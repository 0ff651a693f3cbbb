"""
Export Service

CSV exports of a shop's scan and click events, newest first.
"""

from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.core.setting import settings
from shelfqr.core.utils import array_to_csv
from shelfqr.db.models import ClickEvent, Collection, Item, QrCode, ScanEvent

EXPORT_TYPES = ("scans", "clicks")


def _isoformat(value) -> str:
    return value.isoformat() if value is not None else ""


class ExportService:

    def __init__(self, session: AsyncSession, row_limit: int = None):
        self.session = session
        self.row_limit = row_limit or settings.EXPORT_ROW_LIMIT

    async def scan_rows(self, shop_id: str) -> List[Dict[str, Any]]:
        statement = (
            select(ScanEvent, QrCode.code, QrCode.label)
            .join(QrCode, QrCode.id == ScanEvent.qr_code_id)
            .where(QrCode.shop_id == shop_id)
            .order_by(ScanEvent.scanned_at.desc())
            .limit(self.row_limit)
        )
        result = await self.session.execute(statement)
        return [
            {
                "id": scan.id,
                "qr_code": code or "",
                "qr_label": label or "",
                "scanned_at": _isoformat(scan.scanned_at),
                "device_type": scan.device_type,
                "referrer": scan.referrer,
                "ip_hash": scan.ip_hash,
            }
            for scan, code, label in result.all()
        ]

    async def click_rows(self, shop_id: str) -> List[Dict[str, Any]]:
        """Clicks attributed to the shop's collections (standalone item clicks carry no collection)."""
        statement = (
            select(ClickEvent, Collection.title, Item.title)
            .join(Collection, Collection.id == ClickEvent.collection_id)
            .outerjoin(Item, Item.id == ClickEvent.item_id)
            .where(Collection.shop_id == shop_id)
            .order_by(ClickEvent.clicked_at.desc())
            .limit(self.row_limit)
        )
        result = await self.session.execute(statement)
        return [
            {
                "id": click.id,
                "collection": collection_title or "",
                "item": item_title or "",
                "clicked_at": _isoformat(click.clicked_at),
            }
            for click, collection_title, item_title in result.all()
        ]

    async def export_csv(self, export_type: str, shop_id: str) -> str:
        if export_type == "scans":
            return array_to_csv(await self.scan_rows(shop_id))
        if export_type == "clicks":
            return array_to_csv(await self.click_rows(shop_id))
        raise ValueError(f"Unknown export type: {export_type}")
