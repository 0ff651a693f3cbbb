"""
Membership Service

Answers "what role does this user have in this shop?". Only accepted
memberships count; pending invitations grant nothing.
"""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.core.permissions import ShopRole
from shelfqr.db.models import Shop, ShopMember


@dataclass(frozen=True)
class ShopContext:
    shop: Shop
    role: ShopRole


@dataclass(frozen=True)
class UserShop:
    shop: Shop
    role: ShopRole


def _parse_role(raw: Optional[str]) -> Optional[ShopRole]:
    try:
        return ShopRole(raw)
    except ValueError:
        return None


class MembershipService:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_shop_role(self, user_id: str, shop_id: str) -> Optional[ShopRole]:
        """
        Get the user's role in a shop.

        Returns:
            The role of the accepted membership, or None if the user is not
            a member (or the stored role is not recognised)
        """
        statement = (
            select(ShopMember.role)
            .where(ShopMember.shop_id == shop_id)
            .where(ShopMember.user_id == user_id)
            .where(ShopMember.accepted == True)  # noqa: E712
            .limit(1)
        )
        result = await self.session.execute(statement)
        return _parse_role(result.scalar_one_or_none())

    async def get_user_shops(self, user_id: str) -> List[UserShop]:
        """All shops the user has accepted membership in."""
        statement = (
            select(Shop, ShopMember.role)
            .join(ShopMember, ShopMember.shop_id == Shop.id)
            .where(ShopMember.user_id == user_id)
            .where(ShopMember.accepted == True)  # noqa: E712
            .order_by(Shop.name)
        )
        result = await self.session.execute(statement)
        shops = []
        for shop, raw_role in result.all():
            role = _parse_role(raw_role)
            if role is not None:
                shops.append(UserShop(shop=shop, role=role))
        return shops

    async def resolve_shop_context(self, shop_slug: str, user_id: str) -> Optional[ShopContext]:
        """Resolve a shop by slug and verify the user belongs to it."""
        result = await self.session.execute(select(Shop).where(Shop.slug == shop_slug))
        shop = result.scalar_one_or_none()
        if shop is None:
            return None

        role = await self.get_user_shop_role(user_id, shop.id)
        if role is None:
            return None

        return ShopContext(shop=shop, role=role)
