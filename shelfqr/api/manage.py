"""
Management Endpoints

Write side of the dashboard: shop setup, invitations, collections, items,
standalone products and the shop's QR code list. Like the dashboard
endpoints, the caller is identified by X-User-Id.

Creating a collection or a standalone product also issues its QR code; the
code is returned in the response (null if issuing it failed).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.api.deps import get_current_user_email, get_current_user_id
from shelfqr.api.schemas import (
    CollectionCreateRequest,
    CollectionResponse,
    CollectionUpdateRequest,
    ItemCreateRequest,
    ItemResponse,
    ItemUpdateRequest,
    OkResponse,
    QrCodeResponse,
    ShopCreateRequest,
    ShopRenameRequest,
    ShopSummary,
)
from shelfqr.core.exceptions import (
    CollectionNotFoundError,
    DatabaseError,
    InvalidInputError,
    InviteNotFoundError,
    ItemNotFoundError,
    PermissionDeniedError,
    ShelfQRException,
    ShopNotFoundError,
)
from shelfqr.core.permissions import ShopRole
from shelfqr.db.models import Collection, Item, QrCode
from shelfqr.db.session import get_session
from shelfqr.services.collection_service import CollectionService
from shelfqr.services.item_service import ItemService
from shelfqr.services.membership_service import MembershipService
from shelfqr.services.qr_code_service import QrCodeService
from shelfqr.services.shop_service import ShopService

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND_ERRORS = (
    CollectionNotFoundError,
    InviteNotFoundError,
    ItemNotFoundError,
    ShopNotFoundError,
)


def http_error(e: ShelfQRException) -> HTTPException:
    """Map a service exception onto the HTTP status the dashboard expects."""
    if isinstance(e, NOT_FOUND_ERRORS):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, PermissionDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, InvalidInputError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    if isinstance(e, DatabaseError):
        logger.error(f"{e}: {e.original_error}")
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


def collection_response(collection: Collection, qr_code: Optional[QrCode] = None) -> CollectionResponse:
    return CollectionResponse(
        id=collection.id,
        shop_id=collection.shop_id,
        owner_id=collection.owner_id,
        title=collection.title,
        slug=collection.slug,
        description=collection.description,
        visibility=collection.visibility,
        active=collection.active,
        qr_code=qr_code.code if qr_code else None,
    )


def item_response(item: Item, qr_code: Optional[QrCode] = None) -> ItemResponse:
    return ItemResponse(
        id=item.id,
        shop_id=item.shop_id,
        collection_id=item.collection_id,
        title=item.title,
        note=item.note,
        product_url=item.product_url,
        image_url=item.image_url,
        sort_order=item.sort_order,
        active=item.active,
        qr_code=qr_code.code if qr_code else None,
    )


# Shops and invitations

@router.post(
    "/api/shops",
    response_model=ShopSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Create a shop owned by the caller"
)
async def create_shop(
    shop_request: ShopCreateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> ShopSummary:
    try:
        shop = await ShopService(session).create_shop(user_id, shop_request.name)
    except ShelfQRException as e:
        raise http_error(e)
    return ShopSummary(id=shop.id, name=shop.name, slug=shop.slug, role=ShopRole.owner)


@router.patch(
    "/api/shops/{shop_id}/name",
    response_model=OkResponse,
    summary="Rename a shop (owners and admins)"
)
async def rename_shop(
    shop_id: str,
    rename_request: ShopRenameRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> OkResponse:
    try:
        await ShopService(session).rename_shop(shop_id, user_id, rename_request.name)
    except ShelfQRException as e:
        raise http_error(e)
    return OkResponse()


@router.post(
    "/api/invites/{invite_id}/accept",
    response_model=OkResponse,
    summary="Accept a team invitation sent to the caller's email"
)
async def accept_invite(
    invite_id: str,
    user_id: str = Depends(get_current_user_id),
    email: str = Depends(get_current_user_email),
    session: AsyncSession = Depends(get_session)
) -> OkResponse:
    try:
        await ShopService(session).accept_invite(invite_id, user_id, email)
    except ShelfQRException as e:
        raise http_error(e)
    return OkResponse()


@router.get(
    "/api/shops/{shop_id}/qr-codes",
    response_model=List[QrCodeResponse],
    summary="A shop's QR codes, newest first"
)
async def list_qr_codes(
    shop_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> List[QrCodeResponse]:
    if await MembershipService(session).get_user_shop_role(user_id, shop_id) is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    qr_codes = await QrCodeService(session).list_for_shop(shop_id)
    return [
        QrCodeResponse(
            id=qr_code.id,
            code=qr_code.code,
            label=qr_code.label,
            collection_id=qr_code.collection_id,
            item_id=qr_code.item_id,
            redirect_path=qr_code.redirect_path,
            created_at=qr_code.created_at.isoformat() if qr_code.created_at else None,
        )
        for qr_code in qr_codes
    ]


# Collections

@router.post(
    "/api/shops/{shop_id}/collections",
    response_model=CollectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a collection and its QR code"
)
async def create_collection(
    shop_id: str,
    collection_request: CollectionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> CollectionResponse:
    try:
        collection, qr_code = await CollectionService(session).create_collection(
            shop_id,
            user_id,
            title=collection_request.title,
            description=collection_request.description,
            visibility=collection_request.visibility,
        )
    except ShelfQRException as e:
        raise http_error(e)
    return collection_response(collection, qr_code)


@router.patch(
    "/api/collections/{collection_id}",
    response_model=CollectionResponse,
    summary="Edit a collection"
)
async def update_collection(
    collection_id: str,
    update_request: CollectionUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> CollectionResponse:
    try:
        collection = await CollectionService(session).update_collection(
            collection_id,
            user_id,
            title=update_request.title,
            description=update_request.description,
            visibility=update_request.visibility,
            active=update_request.active,
        )
    except ShelfQRException as e:
        raise http_error(e)
    return collection_response(collection)


@router.delete(
    "/api/collections/{collection_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a collection with its items and shares"
)
async def delete_collection(
    collection_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> Response:
    try:
        await CollectionService(session).delete_collection(collection_id, user_id)
    except ShelfQRException as e:
        raise http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Items and products

@router.post(
    "/api/collections/{collection_id}/items",
    response_model=ItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an item to a collection"
)
async def create_item(
    collection_id: str,
    item_request: ItemCreateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> ItemResponse:
    try:
        item = await ItemService(session).create_item(
            collection_id,
            user_id,
            title=item_request.title,
            product_url=item_request.product_url,
            note=item_request.note,
            image_url=item_request.image_url,
        )
    except ShelfQRException as e:
        raise http_error(e)
    return item_response(item)


@router.post(
    "/api/shops/{shop_id}/products",
    response_model=ItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a standalone product and its QR code"
)
async def create_product(
    shop_id: str,
    item_request: ItemCreateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> ItemResponse:
    try:
        item, qr_code = await ItemService(session).create_product(
            shop_id,
            user_id,
            title=item_request.title,
            product_url=item_request.product_url,
            note=item_request.note,
            image_url=item_request.image_url,
        )
    except ShelfQRException as e:
        raise http_error(e)
    return item_response(item, qr_code)


@router.patch(
    "/api/items/{item_id}",
    response_model=ItemResponse,
    summary="Edit an item or standalone product"
)
async def update_item(
    item_id: str,
    update_request: ItemUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> ItemResponse:
    try:
        item = await ItemService(session).update_item(
            item_id,
            user_id,
            title=update_request.title,
            product_url=update_request.product_url,
            note=update_request.note,
            image_url=update_request.image_url,
            active=update_request.active,
            sort_order=update_request.sort_order,
        )
    except ShelfQRException as e:
        raise http_error(e)
    return item_response(item)


@router.delete(
    "/api/items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an item or standalone product with its QR codes"
)
async def delete_item(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> Response:
    try:
        await ItemService(session).delete_item(item_id, user_id)
    except ShelfQRException as e:
        raise http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
