"""
QR Code Resolution Service

Turns a short code into the landing page it should open.

Design Decisions:
- Landing targets are a closed set of dataclasses (collection, item, raw path)
  so the redirect branch is exhaustive
- The stored redirect_path is the fallback whenever the live slugs for a
  collection or item can no longer be resolved
- Every landing URL carries ?src=<code> for downstream click attribution
"""

from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.core.exceptions import QrCodeNotFoundError
from shelfqr.core.validators import sanitize_code
from shelfqr.db.models import Collection, Item, QrCode, Shop


@dataclass(frozen=True)
class CollectionTarget:
    shop_slug: str
    collection_slug: str


@dataclass(frozen=True)
class ItemTarget:
    shop_slug: str
    item_id: str


@dataclass(frozen=True)
class RawTarget:
    path: str


QrTarget = Union[CollectionTarget, ItemTarget, RawTarget]


@dataclass(frozen=True)
class ResolvedQrCode:
    qr_code_id: str
    code: str
    target: QrTarget


def landing_path(target: QrTarget) -> str:
    """Public path for a landing target."""
    if isinstance(target, CollectionTarget):
        return f"/s/{target.shop_slug}/{target.collection_slug}"
    if isinstance(target, ItemTarget):
        return f"/p/{target.shop_slug}/{target.item_id}"
    if isinstance(target, RawTarget):
        return target.path
    raise TypeError(f"Unknown landing target: {target!r}")


def build_redirect_url(base_url: str, target: QrTarget, code: str) -> str:
    """
    Absolute landing URL for a scanned code.

    Example:
        build_redirect_url("https://x.io", ItemTarget("shop1", "item-1"), "abc123")
        -> "https://x.io/p/shop1/item-1?src=abc123"
    """
    return f"{base_url}{landing_path(target)}?src={code}"


class QrResolverService:
    """Looks up QR codes and the slugs of whatever they point at."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_qr_code(self, code: str) -> Optional[QrCode]:
        statement = select(QrCode).where(QrCode.code == code)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def require_qr_code(self, code: str) -> QrCode:
        """
        Look up a code given by a caller, sanitizing it first.

        Raises:
            QrCodeNotFoundError: If the code is malformed or unknown
        """
        sanitized_code = sanitize_code(code)
        qr_code = await self.get_qr_code(sanitized_code) if sanitized_code else None
        if qr_code is None:
            raise QrCodeNotFoundError(code)
        return qr_code

    async def _shop_slug(self, shop_id: Optional[str]) -> Optional[str]:
        if not shop_id:
            return None
        result = await self.session.execute(select(Shop.slug).where(Shop.id == shop_id))
        return result.scalar_one_or_none()

    async def _collection_target(self, collection_id: str) -> Optional[CollectionTarget]:
        result = await self.session.execute(
            select(Collection.slug, Collection.shop_id).where(Collection.id == collection_id)
        )
        row = result.first()
        if row is None:
            return None
        collection_slug, shop_id = row
        shop_slug = await self._shop_slug(shop_id)
        if not shop_slug or not collection_slug:
            return None
        return CollectionTarget(shop_slug=shop_slug, collection_slug=collection_slug)

    async def _item_target(self, item_id: str) -> Optional[ItemTarget]:
        result = await self.session.execute(select(Item.shop_id).where(Item.id == item_id))
        shop_id = result.scalar_one_or_none()
        shop_slug = await self._shop_slug(shop_id)
        if not shop_slug:
            return None
        return ItemTarget(shop_slug=shop_slug, item_id=item_id)

    async def resolve_target(self, qr_code: QrCode) -> QrTarget:
        """
        Pick the landing target for a QR code.

        Collection codes are checked first, then item codes. A code whose
        relations are missing falls back to its stored redirect_path.
        """
        target: Optional[QrTarget] = None
        if qr_code.collection_id:
            target = await self._collection_target(qr_code.collection_id)
        elif qr_code.item_id:
            target = await self._item_target(qr_code.item_id)

        if target is None:
            target = RawTarget(path=qr_code.redirect_path)
        return target

    async def resolve(self, code: str) -> Optional[ResolvedQrCode]:
        """
        Resolve a short code.

        Returns:
            ResolvedQrCode, or None when the code is unknown
        """
        qr_code = await self.get_qr_code(code)
        if qr_code is None:
            return None
        target = await self.resolve_target(qr_code)
        return ResolvedQrCode(qr_code_id=qr_code.id, code=qr_code.code, target=target)
