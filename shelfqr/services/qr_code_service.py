"""
QR Code Service

Issues the short codes printed on posters and product cards. Every new
collection and every new standalone product gets exactly one code.

Design Decisions:
- Codes are 8 characters from the nanoid alphabet, so they always pass
  sanitize_code on the way back in through /r/{code}
- Issuing a code is non-critical: the parent row is already committed, and a
  failure is logged and reported as None rather than raised
- redirect_path is captured at creation time; the resolver falls back to it
  once the collection or item is gone
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.core.utils import generate_code
from shelfqr.db.models import QrCode
from shelfqr.services.qr_resolver import CollectionTarget, ItemTarget, landing_path

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 5


class QrCodeService:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _unused_code(self) -> Optional[str]:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_code()
            result = await self.session.execute(select(QrCode.id).where(QrCode.code == code))
            if result.scalar_one_or_none() is None:
                return code
        return None

    async def create_qr_code(
        self,
        shop_id: str,
        label: str,
        redirect_path: str,
        collection_id: Optional[str] = None,
        item_id: Optional[str] = None
    ) -> Optional[QrCode]:
        """
        Insert and commit a new QR code.

        Returns:
            The QrCode, or None when no code could be issued. A failed
            attempt rolls the session back, which expires loaded objects.
        """
        try:
            code = await self._unused_code()
            if code is None:
                logger.warning(f"No unused QR code after {MAX_CODE_ATTEMPTS} attempts for {redirect_path}")
                return None

            qr_code = QrCode(
                code=code,
                label=label,
                shop_id=shop_id,
                collection_id=collection_id,
                item_id=item_id,
                redirect_path=redirect_path,
            )
            self.session.add(qr_code)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning(f"QR code generation failed for {redirect_path}: {e}", exc_info=True)
            return None

        logger.info(f"Issued QR code {code} -> {redirect_path}")
        return qr_code

    async def create_for_collection(self, shop_slug: str, shop_id: str, collection_id: str,
                                    collection_slug: str, title: str) -> Optional[QrCode]:
        path = landing_path(CollectionTarget(shop_slug=shop_slug, collection_slug=collection_slug))
        return await self.create_qr_code(shop_id, title, path, collection_id=collection_id)

    async def create_for_item(self, shop_slug: str, shop_id: str, item_id: str,
                              title: str) -> Optional[QrCode]:
        path = landing_path(ItemTarget(shop_slug=shop_slug, item_id=item_id))
        return await self.create_qr_code(shop_id, title, path, item_id=item_id)

    async def list_for_shop(self, shop_id: str) -> List[QrCode]:
        """All of a shop's codes, newest first."""
        result = await self.session.execute(
            select(QrCode)
            .where(QrCode.shop_id == shop_id)
            .order_by(QrCode.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete_for_item(self, item_id: str) -> int:
        """Delete an item's codes (uncommitted); returns how many were removed."""
        result = await self.session.execute(delete(QrCode).where(QrCode.item_id == item_id))
        return result.rowcount
