"""
Tests for collection and shop permission rules.
"""

from types import SimpleNamespace

import pytest

from shelfqr.core.permissions import (
    ShopRole,
    can_edit_collection,
    can_manage_shop,
    can_manage_team,
    can_view_collection,
)


def make_collection(visibility="shop", owner_id="u-owner"):
    return SimpleNamespace(visibility=visibility, owner_id=owner_id)


class TestCanViewCollection:

    def test_shop_collection_visible_to_any_member(self):
        collection = make_collection(visibility="shop")
        assert can_view_collection(collection, "someone", "member", [])

    def test_personal_collection_visible_to_its_owner(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        assert can_view_collection(collection, "u1", "member", [])

    def test_shop_owner_can_view_personal_collection(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        assert can_view_collection(collection, "boss", ShopRole.owner, [])

    def test_admin_cannot_view_unshared_personal_collection(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        assert not can_view_collection(collection, "u2", "admin", [])

    def test_any_share_grants_view(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        shares = [{"user_id": "u3", "permission": "read"}]
        assert can_view_collection(collection, "u3", "member", shares)

    def test_share_for_other_user_does_not_grant_view(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        shares = [{"user_id": "u3", "permission": "readwrite"}]
        assert not can_view_collection(collection, "u4", "member", shares)

    def test_unknown_role_denied(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        assert not can_view_collection(collection, "u2", "superuser", [])


class TestCanEditCollection:

    def test_owner_can_edit(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        assert can_edit_collection(collection, "u1", "member", [])

    @pytest.mark.parametrize("role", ["owner", "admin", ShopRole.admin])
    def test_managers_can_edit_shop_collections(self, role):
        collection = make_collection(visibility="shop", owner_id="u1")
        assert can_edit_collection(collection, "u2", role, [])

    def test_member_cannot_edit_shop_collection(self):
        collection = make_collection(visibility="shop", owner_id="u1")
        assert not can_edit_collection(collection, "u2", "member", [])

    def test_shop_owner_cannot_edit_personal_collection(self):
        """View is granted to the shop owner, edit is not."""
        collection = make_collection(visibility="personal", owner_id="u1")
        assert can_view_collection(collection, "boss", "owner", [])
        assert not can_edit_collection(collection, "boss", "owner", [])

    def test_readwrite_share_grants_edit(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        shares = [SimpleNamespace(user_id="u2", permission="readwrite")]
        assert can_edit_collection(collection, "u2", "member", shares)

    def test_read_share_does_not_grant_edit(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        shares = [SimpleNamespace(user_id="u2", permission="read")]
        assert not can_edit_collection(collection, "u2", "member", shares)

    def test_unknown_share_permission_denied(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        shares = [{"user_id": "u2", "permission": "write"}]
        assert not can_edit_collection(collection, "u2", "member", shares)

    def test_none_shares_treated_as_empty(self):
        collection = make_collection(visibility="personal", owner_id="u1")
        assert not can_edit_collection(collection, "u2", "member", None)


class TestShopManagement:

    @pytest.mark.parametrize("role,expected", [
        ("owner", True),
        ("admin", True),
        ("member", False),
        (None, False),
        ("root", False),
    ])
    def test_can_manage_shop_and_team(self, role, expected):
        assert can_manage_shop(role) is expected
        assert can_manage_team(role) is expected
