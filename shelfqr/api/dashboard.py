"""
Dashboard Endpoints

Endpoints behind sign-in. The caller is identified by X-User-Id (see
shelfqr.api.deps.get_current_user_id); every endpoint checks shop membership
before touching data.
"""

import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.api.deps import error_response, get_current_user_id
from shelfqr.api.schemas import (
    CollectionAccessResponse,
    ShareRequest,
    ShareResponse,
    ShopContextResponse,
    ShopSummary,
)
from shelfqr.core.exceptions import (
    CollectionNotFoundError,
    InvalidSharePermissionError,
    PermissionDeniedError,
    ShareNotFoundError,
)
from shelfqr.core.permissions import can_manage_shop, can_manage_team
from shelfqr.core.rate_limit import RATE_LIMITS, limiter
from shelfqr.db.session import get_session
from shelfqr.services.collection_service import CollectionService
from shelfqr.services.export_service import EXPORT_TYPES, ExportService
from shelfqr.services.membership_service import MembershipService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/api/shops",
    response_model=List[ShopSummary],
    summary="Shops the caller belongs to"
)
async def list_shops(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> List[ShopSummary]:
    shops = await MembershipService(session).get_user_shops(user_id)
    return [
        ShopSummary(id=entry.shop.id, name=entry.shop.name, slug=entry.shop.slug, role=entry.role)
        for entry in shops
    ]


@router.get(
    "/api/shops/{shop_slug}",
    response_model=ShopContextResponse,
    summary="The caller's role in a shop"
)
async def get_shop_context(
    shop_slug: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> ShopContextResponse:
    """
    Raises:
        HTTPException 404: If the shop doesn't exist or the caller is not a member
    """
    context = await MembershipService(session).resolve_shop_context(shop_slug, user_id)
    if context is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")

    return ShopContextResponse(
        id=context.shop.id,
        name=context.shop.name,
        slug=context.shop.slug,
        role=context.role,
        can_manage_shop=can_manage_shop(context.role),
        can_manage_team=can_manage_team(context.role),
    )


@router.get(
    "/api/collections/{collection_id}/access",
    response_model=CollectionAccessResponse,
    summary="What the caller may do with a collection"
)
async def get_collection_access(
    collection_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> CollectionAccessResponse:
    """
    Raises:
        HTTPException 404: If the collection doesn't exist
        HTTPException 403: If the caller is not a member of the collection's shop
    """
    try:
        access = await CollectionService(session).get_access(collection_id, user_id)
    except CollectionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Collection not found")

    if access is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    return CollectionAccessResponse(
        collection_id=access.collection.id,
        role=access.role,
        can_view=access.can_view,
        can_edit=access.can_edit,
    )


@router.put(
    "/api/collections/{collection_id}/shares",
    response_model=ShareResponse,
    summary="Share a collection with a team member"
)
async def share_collection(
    collection_id: str,
    share_request: ShareRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> ShareResponse:
    """
    Grant or update a share. Only callers who can edit the collection may
    change who else can see it.
    """
    service = CollectionService(session)
    try:
        await service.require_edit(collection_id, user_id)
        share = await service.share_collection(
            collection_id, share_request.user_id, share_request.permission
        )
    except CollectionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Collection not found")
    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except InvalidSharePermissionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return ShareResponse(
        id=share.id,
        collection_id=share.collection_id,
        user_id=share.user_id,
        permission=share.permission,
        created_at=share.created_at.isoformat() if share.created_at else None,
    )


@router.delete(
    "/api/collections/{collection_id}/shares/{share_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke a collection share"
)
async def remove_collection_share(
    collection_id: str,
    share_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> Response:
    service = CollectionService(session)
    try:
        await service.require_edit(collection_id, user_id)
        await service.remove_share(collection_id, share_id)
    except (CollectionNotFoundError, ShareNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/api/export",
    summary="Download a shop's scans or clicks as CSV",
    responses={200: {"content": {"text/csv": {}}}}
)
@limiter.limit(RATE_LIMITS["export"])
async def export_events(
    request: Request,
    export_type: Optional[str] = Query(default=None, alias="type"),
    shop_id: Optional[str] = Query(default=None, alias="shop"),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session)
) -> Response:
    if not shop_id:
        return error_response(status.HTTP_400_BAD_REQUEST, "Missing shop parameter")

    role = await MembershipService(session).get_user_shop_role(user_id, shop_id)
    if role is None:
        return error_response(status.HTTP_403_FORBIDDEN, "Forbidden")

    if export_type not in EXPORT_TYPES:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid type. Use ?type=scans or ?type=clicks")

    csv = await ExportService(session).export_csv(export_type, shop_id)
    filename = f"{export_type[:-1]}_events_{int(time.time() * 1000)}.csv"
    logger.info(f"Exported {export_type} for shop {shop_id} by {user_id}")

    return Response(
        content=csv,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
