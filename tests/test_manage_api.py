"""
Tests for shop setup, collection/item/product management and QR code issuing.
"""

import re

import pytest
from sqlalchemy import func, select

from shelfqr.core.validators import sanitize_code
from shelfqr.db.models import Collection, CollectionShare, Item, QrCode, ShopMember

OWNER_ID = "user-owner"
ADMIN_ID = "user-admin"
MEMBER_ID = "user-member"
OUTSIDER_ID = "user-outsider"


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


async def count_rows(db, model, *conditions) -> int:
    statement = select(func.count()).select_from(model)
    for condition in conditions:
        statement = statement.where(condition)
    return (await db.execute(statement)).scalar_one()


async def qr_for(db, **filters) -> QrCode:
    statement = select(QrCode).execution_options(populate_existing=True)
    for column, value in filters.items():
        statement = statement.where(getattr(QrCode, column) == value)
    return (await db.execute(statement)).scalar_one()


class TestShopSetup:

    @pytest.mark.asyncio
    async def test_create_shop_makes_caller_owner(self, client):
        response = await client.post("/api/shops", json={"name": "  Bright Smiles "}, headers=as_user("new-user"))

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Bright Smiles"
        assert body["slug"] == "bright-smiles"
        assert body["role"] == "owner"

        shops = await client.get("/api/shops", headers=as_user("new-user"))
        assert [(shop["slug"], shop["role"]) for shop in shops.json()] == [("bright-smiles", "owner")]

    @pytest.mark.asyncio
    async def test_taken_shop_slug_gets_suffix(self, client, shop_data):
        response = await client.post("/api/shops", json={"name": "Shop1"}, headers=as_user("new-user"))
        assert response.status_code == 201
        assert re.fullmatch(r"shop1-[a-z0-9]{4}", response.json()["slug"])

    @pytest.mark.asyncio
    async def test_blank_shop_name(self, client):
        response = await client.post("/api/shops", json={"name": "   "}, headers=as_user("new-user"))
        assert response.status_code == 400
        assert response.json() == {"detail": "Shop name is required"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id,expected", [(OWNER_ID, 200), (ADMIN_ID, 200), (MEMBER_ID, 403)])
    async def test_rename_limited_to_managers(self, client, shop_data, user_id, expected):
        response = await client.patch(
            "/api/shops/shop-1/name", json={"name": " Smile Dental Clinic "}, headers=as_user(user_id)
        )
        assert response.status_code == expected

        context = await client.get("/api/shops/shop1", headers=as_user(OWNER_ID))
        expected_name = "Smile Dental Clinic" if expected == 200 else "Smile Dental"
        assert context.json()["name"] == expected_name

    @pytest.mark.asyncio
    async def test_rename_errors(self, client, shop_data):
        blank = await client.patch("/api/shops/shop-1/name", json={"name": " "}, headers=as_user(OWNER_ID))
        assert blank.status_code == 400
        assert blank.json() == {"detail": "Name is required"}

        missing = await client.patch("/api/shops/missing/name", json={"name": "X"}, headers=as_user(OWNER_ID))
        assert missing.status_code == 404


class TestInvites:

    @pytest.fixture
    def invite_id(self, shop_data):
        return shop_data["pending_invite"].id

    @pytest.mark.asyncio
    async def test_accept_invite(self, client, shop_data, invite_id):
        response = await client.post(
            f"/api/invites/{invite_id}/accept",
            headers={**as_user(OUTSIDER_ID), "X-User-Email": "Pending@Example.com"},
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True}

        shops = await client.get("/api/shops", headers=as_user(OUTSIDER_ID))
        assert [shop["slug"] for shop in shops.json()] == ["shop1"]

    @pytest.mark.asyncio
    async def test_email_must_match_invite(self, client, db, shop_data, invite_id):
        response = await client.post(
            f"/api/invites/{invite_id}/accept",
            headers={**as_user(OUTSIDER_ID), "X-User-Email": "someone@example.com"},
        )
        assert response.status_code == 404
        assert await count_rows(db, ShopMember, ShopMember.accepted == True) == 3  # noqa: E712

    @pytest.mark.asyncio
    async def test_email_header_required(self, client, shop_data, invite_id):
        response = await client.post(f"/api/invites/{invite_id}/accept", headers=as_user(OUTSIDER_ID))
        assert response.status_code == 401


class TestCreateCollection:

    @pytest.mark.asyncio
    async def test_member_creates_collection_with_qr_code(self, client, db, shop_data, landing_base_url):
        response = await client.post(
            "/api/shops/shop-1/collections",
            json={"title": "Whitening Kit", "description": " For after cleaning "},
            headers=as_user(MEMBER_ID),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "whitening-kit"
        assert body["owner_id"] == MEMBER_ID
        assert body["visibility"] == "shop"
        assert body["description"] == "For after cleaning"
        assert body["active"] is True

        code = body["qr_code"]
        assert len(code) == 8
        assert sanitize_code(code) == code

        qr_code = await qr_for(db, code=code)
        assert qr_code.collection_id == body["id"]
        assert qr_code.item_id is None
        assert qr_code.shop_id == "shop-1"
        assert qr_code.label == "Whitening Kit"
        assert qr_code.redirect_path == "/s/shop1/whitening-kit"

        scan = await client.get(f"/r/{code}")
        assert scan.status_code == 302
        assert scan.headers["location"] == f"{landing_base_url}/s/shop1/whitening-kit?src={code}"

    @pytest.mark.asyncio
    async def test_taken_slug_gets_suffix(self, client, db, shop_data):
        response = await client.post(
            "/api/shops/shop-1/collections", json={"title": "Aftercare"}, headers=as_user(ADMIN_ID)
        )
        assert response.status_code == 201
        slug = response.json()["slug"]
        assert re.fullmatch(r"aftercare-[a-z0-9]{4}", slug)

        qr_code = await qr_for(db, code=response.json()["qr_code"])
        assert qr_code.redirect_path == f"/s/shop1/{slug}"

    @pytest.mark.asyncio
    async def test_qr_failure_keeps_collection(self, client, db, shop_data, monkeypatch):
        # every generated code collides with an existing one
        monkeypatch.setattr("shelfqr.services.qr_code_service.generate_code", lambda: "abc123")

        response = await client.post(
            "/api/shops/shop-1/collections", json={"title": "Night Guards"}, headers=as_user(ADMIN_ID)
        )

        assert response.status_code == 201
        assert response.json()["qr_code"] is None
        assert response.json()["slug"] == "night-guards"
        assert await count_rows(db, Collection, Collection.slug == "night-guards") == 1
        assert await count_rows(db, QrCode) == 3

    @pytest.mark.asyncio
    async def test_pending_invite_cannot_create(self, client, db, shop_data):
        response = await client.post(
            "/api/shops/shop-1/collections", json={"title": "Sneaky"}, headers=as_user(OUTSIDER_ID)
        )
        assert response.status_code == 403
        assert await count_rows(db, Collection, Collection.slug == "sneaky") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload,detail", [
        ({"title": "  "}, "Title is required"),
        ({"title": "Kit", "visibility": "public"}, "Unknown visibility 'public'"),
    ])
    async def test_invalid_input(self, client, shop_data, payload, detail):
        response = await client.post("/api/shops/shop-1/collections", json=payload, headers=as_user(ADMIN_ID))
        assert response.status_code == 400
        assert response.json() == {"detail": detail}

    @pytest.mark.asyncio
    async def test_unknown_shop(self, client, shop_data):
        response = await client.post(
            "/api/shops/missing/collections", json={"title": "Kit"}, headers=as_user(ADMIN_ID)
        )
        assert response.status_code == 404


class TestEditCollection:

    @pytest.mark.asyncio
    async def test_admin_edits_shop_collection_slug_unchanged(self, client, shop_data):
        response = await client.patch(
            "/api/collections/coll-shop",
            json={"title": "Aftercare Essentials", "active": False},
            headers=as_user(ADMIN_ID),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Aftercare Essentials"
        assert body["slug"] == "aftercare"
        assert body["active"] is False
        assert body["description"] == ""

    @pytest.mark.asyncio
    async def test_member_cannot_edit_shop_collection(self, client, shop_data):
        response = await client.patch(
            "/api/collections/coll-shop", json={"title": "Mine now"}, headers=as_user(MEMBER_ID)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_cannot_edit_members_personal_collection(self, client, shop_data):
        response = await client.patch(
            "/api/collections/coll-personal", json={"visibility": "shop"}, headers=as_user(OWNER_ID)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_keeps_printed_code_working(self, client, db, shop_data, landing_base_url):
        await client.put(
            "/api/collections/coll-shop/shares",
            json={"user_id": MEMBER_ID, "permission": "read"},
            headers=as_user(ADMIN_ID),
        )

        response = await client.delete("/api/collections/coll-shop", headers=as_user(ADMIN_ID))

        assert response.status_code == 204
        assert await count_rows(db, Collection, Collection.id == "coll-shop") == 0
        assert await count_rows(db, Item, Item.collection_id == "coll-shop") == 0
        assert await count_rows(db, CollectionShare) == 0

        scan = await client.get("/r/coll01")
        assert scan.status_code == 302
        assert scan.headers["location"] == f"{landing_base_url}/s/shop1/aftercare?src=coll01"

    @pytest.mark.asyncio
    async def test_delete_unknown_collection(self, client, shop_data):
        response = await client.delete("/api/collections/missing", headers=as_user(ADMIN_ID))
        assert response.status_code == 404


class TestItems:

    @pytest.mark.asyncio
    async def test_items_append_in_sort_order(self, client, shop_data):
        first = await client.post(
            "/api/collections/coll-shop/items",
            json={"title": " Floss ", "product_url": "https://www.amazon.com/dp/B000000002"},
            headers=as_user(ADMIN_ID),
        )
        second = await client.post(
            "/api/collections/coll-shop/items",
            json={"title": "Mouthwash", "product_url": "https://www.amazon.com/dp/B000000003"},
            headers=as_user(ADMIN_ID),
        )

        assert first.status_code == 201
        assert first.json()["title"] == "Floss"
        assert first.json()["collection_id"] == "coll-shop"
        assert first.json()["shop_id"] == "shop-1"
        assert first.json()["qr_code"] is None
        assert [first.json()["sort_order"], second.json()["sort_order"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_first_item_in_empty_collection(self, client, shop_data):
        response = await client.post(
            "/api/collections/coll-personal/items",
            json={"title": "Tongue Scraper", "product_url": "https://amzn.to/xyz"},
            headers=as_user(MEMBER_ID),
        )
        assert response.status_code == 201
        assert response.json()["sort_order"] == 0

    @pytest.mark.asyncio
    async def test_member_cannot_add_to_shop_collection(self, client, shop_data):
        response = await client.post(
            "/api/collections/coll-shop/items",
            json={"title": "Floss", "product_url": "https://www.amazon.com/dp/B000000002"},
            headers=as_user(MEMBER_ID),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_product_url_required(self, client, shop_data):
        response = await client.post(
            "/api/collections/coll-shop/items",
            json={"title": "Floss", "product_url": "  "},
            headers=as_user(ADMIN_ID),
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Product URL is required"}

    @pytest.mark.asyncio
    async def test_update_item(self, client, db, shop_data):
        response = await client.patch(
            "/api/items/item-1", json={"active": False, "sort_order": 3}, headers=as_user(ADMIN_ID)
        )
        assert response.status_code == 200
        body = response.json()
        assert body["active"] is False
        assert body["sort_order"] == 3
        assert body["title"] == "Soft Toothbrush"

        member = await client.patch("/api/items/item-1", json={"title": "X"}, headers=as_user(MEMBER_ID))
        assert member.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_item_removes_its_codes(self, client, db, shop_data):
        response = await client.delete("/api/items/item-1", headers=as_user(ADMIN_ID))

        assert response.status_code == 204
        assert await count_rows(db, Item, Item.id == "item-1") == 0
        assert await count_rows(db, QrCode, QrCode.item_id == "item-1") == 0

        scan = await client.get("/r/abc123")
        assert scan.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_item(self, client, shop_data):
        response = await client.delete("/api/items/missing", headers=as_user(ADMIN_ID))
        assert response.status_code == 404


class TestProducts:

    @pytest.mark.asyncio
    async def test_member_creates_product_with_qr_code(self, client, db, shop_data, landing_base_url):
        response = await client.post(
            "/api/shops/shop-1/products",
            json={"title": "Water Flosser", "product_url": "https://www.amazon.com/dp/B000000009",
                  "note": "Dr. Lee's pick"},
            headers=as_user(MEMBER_ID),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["collection_id"] is None
        assert body["note"] == "Dr. Lee's pick"
        code = body["qr_code"]
        assert sanitize_code(code) == code

        qr_code = await qr_for(db, code=code)
        assert qr_code.item_id == body["id"]
        assert qr_code.collection_id is None
        assert qr_code.label == "Water Flosser"
        assert qr_code.redirect_path == f"/p/shop1/{body['id']}"

        scan = await client.get(f"/r/{code}")
        assert scan.status_code == 302
        assert scan.headers["location"] == f"{landing_base_url}/p/shop1/{body['id']}?src={code}"

    @pytest.mark.asyncio
    async def test_outsider_cannot_create_product(self, client, shop_data):
        response = await client.post(
            "/api/shops/shop-1/products",
            json={"title": "Water Flosser", "product_url": "https://www.amazon.com/dp/B000000009"},
            headers=as_user(OUTSIDER_ID),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_edit_and_delete_product(self, client, db, shop_data):
        created = await client.post(
            "/api/shops/shop-1/products",
            json={"title": "Water Flosser", "product_url": "https://www.amazon.com/dp/B000000009"},
            headers=as_user(MEMBER_ID),
        )
        product_id = created.json()["id"]

        updated = await client.patch(
            f"/api/items/{product_id}", json={"title": "Cordless Water Flosser"}, headers=as_user(ADMIN_ID)
        )
        assert updated.status_code == 200
        assert updated.json()["title"] == "Cordless Water Flosser"

        outsider = await client.delete(f"/api/items/{product_id}", headers=as_user(OUTSIDER_ID))
        assert outsider.status_code == 403

        deleted = await client.delete(f"/api/items/{product_id}", headers=as_user(MEMBER_ID))
        assert deleted.status_code == 204
        assert await count_rows(db, QrCode, QrCode.item_id == product_id) == 0


class TestQrCodeList:

    @pytest.mark.asyncio
    async def test_members_list_shop_codes(self, client, shop_data):
        response = await client.get("/api/shops/shop-1/qr-codes", headers=as_user(MEMBER_ID))
        assert response.status_code == 200
        by_code = {qr["code"]: qr for qr in response.json()}
        assert set(by_code) == {"abc123", "coll01", "orphan"}
        assert by_code["coll01"]["collection_id"] == "coll-shop"
        assert by_code["abc123"]["item_id"] == "item-1"

    @pytest.mark.asyncio
    async def test_non_member_forbidden(self, client, shop_data):
        response = await client.get("/api/shops/shop-1/qr-codes", headers=as_user(OUTSIDER_ID))
        assert response.status_code == 403
