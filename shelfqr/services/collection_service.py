"""
Collection Access Service

Loads a collection together with its shares and the caller's shop role, and
applies the permission rules from shelfqr.core.permissions. Also owns the
write paths: creating a collection (with its QR code), editing and deleting
it, and the share upsert on collection + user.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.core.exceptions import (
    CollectionNotFoundError,
    DatabaseError,
    InvalidInputError,
    InvalidSharePermissionError,
    PermissionDeniedError,
    ShareNotFoundError,
    ShopNotFoundError,
)
from shelfqr.core.permissions import (
    CollectionVisibility,
    SharePermission,
    ShopRole,
    can_edit_collection,
    can_view_collection,
)
from shelfqr.core.utils import slugify, with_slug_suffix
from shelfqr.core.validators import require_text
from shelfqr.db.models import Collection, CollectionShare, Item, QrCode, Shop, new_id
from shelfqr.db.sqlite_adapter import get_session_adapter
from shelfqr.services.membership_service import MembershipService
from shelfqr.services.qr_code_service import QrCodeService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectionAccess:
    collection: Collection
    role: ShopRole
    can_view: bool
    can_edit: bool


class CollectionService:

    def __init__(self, session: AsyncSession):
        self.session = session
        self.membership_service = MembershipService(session)

    async def get_collection_with_shares(
        self, collection_id: str
    ) -> Optional[Tuple[Collection, List[CollectionShare]]]:
        collection = await self.session.get(Collection, collection_id)
        if collection is None:
            return None
        result = await self.session.execute(
            select(CollectionShare).where(CollectionShare.collection_id == collection_id)
        )
        return collection, list(result.scalars().all())

    async def get_access(self, collection_id: str, user_id: str) -> Optional[CollectionAccess]:
        """
        Evaluate what the user may do with a collection.

        Returns:
            CollectionAccess, or None when the user is not a member of the
            collection's shop

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        loaded = await self.get_collection_with_shares(collection_id)
        if loaded is None:
            raise CollectionNotFoundError(collection_id)
        collection, shares = loaded

        role = await self.membership_service.get_user_shop_role(user_id, collection.shop_id)
        if role is None:
            return None

        return CollectionAccess(
            collection=collection,
            role=role,
            can_view=can_view_collection(collection, user_id, role, shares),
            can_edit=can_edit_collection(collection, user_id, role, shares),
        )

    async def require_edit(self, collection_id: str, user_id: str) -> CollectionAccess:
        access = await self.get_access(collection_id, user_id)
        if access is None or not access.can_edit:
            raise PermissionDeniedError("edit this collection")
        return access

    async def share_collection(
        self, collection_id: str, user_id: str, permission: str
    ) -> CollectionShare:
        """
        Grant (or change) a user's access to a collection.

        Upserts on (collection_id, user_id) so a user never holds two shares
        for the same collection.

        Raises:
            InvalidSharePermissionError: If permission is not read/readwrite
        """
        try:
            permission = SharePermission(permission).value
        except ValueError:
            raise InvalidSharePermissionError(permission)

        statement = get_session_adapter(self.session).build_upsert(
            CollectionShare,
            values={
                "id": new_id(),
                "collection_id": collection_id,
                "user_id": user_id,
                "permission": permission,
                "created_at": datetime.utcnow(),
            },
            conflict_columns=["collection_id", "user_id"],
            update_columns=["permission"],
        )
        await self.session.execute(statement)
        await self.session.commit()

        result = await self.session.execute(
            select(CollectionShare)
            .where(CollectionShare.collection_id == collection_id)
            .where(CollectionShare.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        share = result.scalar_one()
        logger.info(f"Collection {collection_id} shared with {user_id} ({permission})")
        return share

    async def remove_share(self, collection_id: str, share_id: str) -> None:
        """
        Raises:
            ShareNotFoundError: If no such share exists on the collection
        """
        result = await self.session.execute(
            delete(CollectionShare)
            .where(CollectionShare.id == share_id)
            .where(CollectionShare.collection_id == collection_id)
        )
        if result.rowcount == 0:
            raise ShareNotFoundError(share_id)
        await self.session.commit()

    async def _slug_taken(self, shop_id: str, slug: str) -> bool:
        result = await self.session.execute(
            select(Collection.id)
            .where(Collection.shop_id == shop_id)
            .where(Collection.slug == slug)
        )
        return result.first() is not None

    async def create_collection(
        self,
        shop_id: str,
        user_id: str,
        title: str,
        description: str = "",
        visibility: str = CollectionVisibility.shop.value
    ) -> Tuple[Collection, Optional[QrCode]]:
        """
        Create a collection owned by the caller and issue its QR code.

        The slug comes from the title and is unique within the shop; a taken
        slug gets a random suffix. The collection is committed before the
        QR code is issued, so a failed code leaves the collection in place.

        Returns:
            (collection, qr_code); qr_code is None when issuing it failed

        Raises:
            ShopNotFoundError: If the shop doesn't exist
            PermissionDeniedError: If the caller is not an accepted member
            InvalidInputError: If the title is blank or visibility unknown
            DatabaseError: If the collection insert fails
        """
        shop = await self.session.get(Shop, shop_id)
        if shop is None:
            raise ShopNotFoundError(shop_id)
        role = await self.membership_service.get_user_shop_role(user_id, shop_id)
        if role is None:
            raise PermissionDeniedError("create collections in this shop")

        title = require_text(title, "Title is required")
        visibility = _visibility(visibility)

        slug = slugify(title) or "collection"
        if await self._slug_taken(shop_id, slug):
            slug = with_slug_suffix(slug)

        collection = Collection(
            shop_id=shop_id,
            owner_id=user_id,
            title=title,
            slug=slug,
            description=(description or "").strip(),
            visibility=visibility,
            active=True,
        )
        self.session.add(collection)
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseError(f"Failed to create collection '{title}'", original_error=e)
        logger.info(f"Collection {shop.slug}/{slug} created by {user_id}")

        qr_code = await QrCodeService(self.session).create_for_collection(
            shop_slug=shop.slug,
            shop_id=shop_id,
            collection_id=collection.id,
            collection_slug=slug,
            title=title,
        )
        if qr_code is None:
            await self.session.refresh(collection)
        return collection, qr_code

    async def update_collection(
        self,
        collection_id: str,
        user_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        visibility: Optional[str] = None,
        active: Optional[bool] = None
    ) -> Collection:
        """
        Change the given fields; None leaves a field as it is. The slug never
        changes, so printed QR codes keep landing on the same page.
        """
        access = await self.require_edit(collection_id, user_id)
        collection = access.collection

        if title is not None:
            collection.title = require_text(title, "Title is required")
        if description is not None:
            collection.description = description.strip()
        if visibility is not None:
            collection.visibility = _visibility(visibility)
        if active is not None:
            collection.active = active
        collection.updated_at = datetime.utcnow()

        await self.session.commit()
        return collection

    async def delete_collection(self, collection_id: str, user_id: str) -> None:
        """
        Delete a collection with its items and shares.

        Its QR codes are kept: printed codes fall back to their stored
        redirect_path.
        """
        await self.require_edit(collection_id, user_id)

        await self.session.execute(delete(CollectionShare).where(CollectionShare.collection_id == collection_id))
        await self.session.execute(delete(Item).where(Item.collection_id == collection_id))
        await self.session.execute(delete(Collection).where(Collection.id == collection_id))
        await self.session.commit()
        logger.info(f"Collection {collection_id} deleted by {user_id}")


def _visibility(value: str) -> str:
    try:
        return CollectionVisibility(value).value
    except ValueError:
        raise InvalidInputError(f"Unknown visibility '{value}'")
