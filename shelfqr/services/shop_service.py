"""
Shop Service

Shop setup and settings: creating a shop (its creator becomes the accepted
owner), renaming it, and accepting a team invitation.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.core.exceptions import (
    DatabaseError,
    InviteNotFoundError,
    PermissionDeniedError,
    ShopNotFoundError,
)
from shelfqr.core.permissions import ShopRole, can_manage_shop
from shelfqr.core.utils import slugify, with_slug_suffix
from shelfqr.core.validators import require_text
from shelfqr.db.models import Shop, ShopMember
from shelfqr.services.membership_service import MembershipService

logger = logging.getLogger(__name__)


class ShopService:

    def __init__(self, session: AsyncSession):
        self.session = session
        self.membership_service = MembershipService(session)

    async def _slug_taken(self, slug: str) -> bool:
        result = await self.session.execute(select(Shop.id).where(Shop.slug == slug))
        return result.first() is not None

    async def create_shop(self, user_id: str, name: str) -> Shop:
        """
        Create a shop owned by the caller.

        The slug comes from the name; a taken slug gets a random suffix.

        Raises:
            InvalidInputError: If the name is blank
            DatabaseError: If the insert fails
        """
        name = require_text(name, "Shop name is required")

        slug = slugify(name) or "shop"
        if await self._slug_taken(slug):
            slug = with_slug_suffix(slug)

        shop = Shop(name=name, slug=slug, owner_id=user_id)
        self.session.add(shop)
        self.session.add(ShopMember(
            shop_id=shop.id,
            user_id=user_id,
            role=ShopRole.owner.value,
            accepted=True,
        ))
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseError(f"Failed to create shop '{name}'", original_error=e)

        logger.info(f"Shop {slug} created by {user_id}")
        return shop

    async def rename_shop(self, shop_id: str, user_id: str, name: str) -> Shop:
        """
        Raises:
            InvalidInputError: If the name is blank
            ShopNotFoundError: If the shop doesn't exist
            PermissionDeniedError: If the caller is not an owner or admin
        """
        name = require_text(name, "Name is required")

        shop = await self.session.get(Shop, shop_id)
        if shop is None:
            raise ShopNotFoundError(shop_id)

        role = await self.membership_service.get_user_shop_role(user_id, shop_id)
        if not can_manage_shop(role):
            raise PermissionDeniedError("manage this shop")

        shop.name = name
        await self.session.commit()
        return shop

    async def accept_invite(self, invite_id: str, user_id: str, email: str) -> None:
        """
        Accept an invitation addressed to the caller's email.

        Raises:
            InviteNotFoundError: If no invitation has that id and email
        """
        email = (email or "").strip().lower()
        if not email:
            raise InviteNotFoundError(invite_id)

        result = await self.session.execute(
            update(ShopMember)
            .where(ShopMember.id == invite_id)
            .where(func.lower(ShopMember.invited_email) == email)
            .values(user_id=user_id, accepted=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InviteNotFoundError(invite_id)
        await self.session.commit()
        logger.info(f"Invite {invite_id} accepted by {user_id}")
