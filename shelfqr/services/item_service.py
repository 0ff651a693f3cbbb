"""
Item Service

Products recommended by a shop. An item either belongs to a collection
(edited by whoever may edit that collection) or is a standalone product
(collection_id is null, editable by any accepted shop member). Standalone
products get their own QR code pointing at /p/{shop}/{item_id}.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.core.exceptions import (
    DatabaseError,
    ItemNotFoundError,
    PermissionDeniedError,
    ShopNotFoundError,
)
from shelfqr.core.validators import require_text
from shelfqr.db.models import Item, QrCode, Shop
from shelfqr.services.collection_service import CollectionService
from shelfqr.services.membership_service import MembershipService
from shelfqr.services.qr_code_service import QrCodeService

logger = logging.getLogger(__name__)


class ItemService:

    def __init__(self, session: AsyncSession):
        self.session = session
        self.collection_service = CollectionService(session)
        self.membership_service = MembershipService(session)

    async def _next_sort_order(self, collection_id: str) -> int:
        result = await self.session.execute(
            select(func.max(Item.sort_order)).where(Item.collection_id == collection_id)
        )
        highest = result.scalar_one_or_none()
        return 0 if highest is None else highest + 1

    async def _insert(self, item: Item) -> Item:
        self.session.add(item)
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseError(f"Failed to create item '{item.title}'", original_error=e)
        return item

    async def create_item(
        self,
        collection_id: str,
        user_id: str,
        title: str,
        product_url: str,
        note: str = "",
        image_url: str = ""
    ) -> Item:
        """
        Append an item to a collection (sort_order = current highest + 1).

        Raises:
            CollectionNotFoundError: If the collection doesn't exist
            PermissionDeniedError: If the caller cannot edit the collection
            InvalidInputError: If title or product_url is blank
        """
        access = await self.collection_service.require_edit(collection_id, user_id)
        item = Item(
            collection_id=collection_id,
            shop_id=access.collection.shop_id,
            title=require_text(title, "Title is required"),
            product_url=require_text(product_url, "Product URL is required"),
            note=(note or "").strip(),
            image_url=(image_url or "").strip(),
            sort_order=await self._next_sort_order(collection_id),
            active=True,
        )
        return await self._insert(item)

    async def create_product(
        self,
        shop_id: str,
        user_id: str,
        title: str,
        product_url: str,
        note: str = "",
        image_url: str = ""
    ) -> Tuple[Item, Optional[QrCode]]:
        """
        Create a standalone product and issue its QR code.

        Returns:
            (item, qr_code); qr_code is None when issuing it failed
        """
        shop = await self.session.get(Shop, shop_id)
        if shop is None:
            raise ShopNotFoundError(shop_id)
        if await self.membership_service.get_user_shop_role(user_id, shop_id) is None:
            raise PermissionDeniedError("add products to this shop")

        item = await self._insert(Item(
            collection_id=None,
            shop_id=shop_id,
            title=require_text(title, "Title is required"),
            product_url=require_text(product_url, "Product URL is required"),
            note=(note or "").strip(),
            image_url=(image_url or "").strip(),
            sort_order=0,
            active=True,
        ))
        logger.info(f"Product {item.id} created in {shop.slug} by {user_id}")

        qr_code = await QrCodeService(self.session).create_for_item(
            shop_slug=shop.slug, shop_id=shop_id, item_id=item.id, title=item.title
        )
        if qr_code is None:
            await self.session.refresh(item)
        return item, qr_code

    async def require_item_edit(self, item_id: str, user_id: str) -> Item:
        """
        Load an item the caller may change.

        Raises:
            ItemNotFoundError: If the item doesn't exist
            CollectionNotFoundError: If the item's collection is gone
            PermissionDeniedError: If the caller may not edit it
        """
        item = await self.session.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)

        if item.collection_id:
            await self.collection_service.require_edit(item.collection_id, user_id)
        elif await self.membership_service.get_user_shop_role(user_id, item.shop_id) is None:
            raise PermissionDeniedError("edit this product")
        return item

    async def update_item(
        self,
        item_id: str,
        user_id: str,
        title: Optional[str] = None,
        product_url: Optional[str] = None,
        note: Optional[str] = None,
        image_url: Optional[str] = None,
        active: Optional[bool] = None,
        sort_order: Optional[int] = None
    ) -> Item:
        item = await self.require_item_edit(item_id, user_id)

        if title is not None:
            item.title = require_text(title, "Title is required")
        if product_url is not None:
            item.product_url = require_text(product_url, "Product URL is required")
        if note is not None:
            item.note = note.strip()
        if image_url is not None:
            item.image_url = image_url.strip()
        if active is not None:
            item.active = active
        if sort_order is not None:
            item.sort_order = sort_order
        item.updated_at = datetime.utcnow()

        await self.session.commit()
        return item

    async def delete_item(self, item_id: str, user_id: str) -> None:
        """Delete an item together with any QR codes that point at it."""
        item = await self.require_item_edit(item_id, user_id)

        removed = await QrCodeService(self.session).delete_for_item(item_id)
        await self.session.delete(item)
        await self.session.commit()
        logger.info(f"Item {item_id} deleted by {user_id} ({removed} QR codes removed)")
