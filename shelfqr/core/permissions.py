"""
Collection and shop permission rules.

Pure functions: callers load the collection, the caller's shop role and the
collection's shares, then ask these helpers. Unknown roles or permission
strings always fall through to the deny branch.

Note the deliberate asymmetry: a shop owner may *view* any personal
collection, but neither owners nor admins may *edit* another member's
personal collection without a readwrite share.
"""

from enum import Enum
from typing import Any, Iterable, Optional, Union


class ShopRole(str, Enum):
    owner = "owner"
    admin = "admin"
    member = "member"


class CollectionVisibility(str, Enum):
    shop = "shop"
    personal = "personal"


class SharePermission(str, Enum):
    read = "read"
    readwrite = "readwrite"


RoleLike = Union[ShopRole, str, None]

MANAGER_ROLES = frozenset({ShopRole.owner.value, ShopRole.admin.value})


def _value(value: Any) -> Optional[str]:
    if isinstance(value, Enum):
        return value.value
    return value


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _find_share(shares: Optional[Iterable[Any]], user_id: str) -> Optional[Any]:
    for share in shares or ():
        if _field(share, "user_id") == user_id:
            return share
    return None


def can_view_collection(collection: Any, user_id: str, role: RoleLike, shares: Iterable[Any]) -> bool:
    """Shop collections are visible to every member; personal ones to owner, shop owner and sharees."""
    if _value(collection.visibility) == CollectionVisibility.shop.value:
        return True
    if collection.owner_id == user_id:
        return True
    if _value(role) == ShopRole.owner.value:
        return True
    return _find_share(shares, user_id) is not None


def can_edit_collection(collection: Any, user_id: str, role: RoleLike, shares: Iterable[Any]) -> bool:
    if collection.owner_id == user_id:
        return True
    if _value(role) in MANAGER_ROLES and _value(collection.visibility) == CollectionVisibility.shop.value:
        return True
    share = _find_share(shares, user_id)
    if share is None:
        return False
    return _value(_field(share, "permission")) == SharePermission.readwrite.value


def can_manage_shop(role: RoleLike) -> bool:
    """Shop settings: owner or admin."""
    return _value(role) in MANAGER_ROLES


def can_manage_team(role: RoleLike) -> bool:
    """Team membership: owner or admin."""
    return _value(role) in MANAGER_ROLES
