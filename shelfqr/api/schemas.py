"""
API Request and Response Schemas

This module defines the Pydantic models for API requests and responses.

Design Principles:
- Request models: Define input validation where FastAPI's 422 is acceptable
- Response models: Define output structure
- The public tracking endpoints parse their bodies by hand because their
  contract answers malformed input with 400
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shelfqr.core.permissions import CollectionVisibility, SharePermission, ShopRole


class OkResponse(BaseModel):
    ok: bool = True


class SubscribeResponse(BaseModel):
    success: bool = True


class MetadataResponse(BaseModel):
    """Link metadata; siteName keeps the camelCase key browsers already consume."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    image: str = ""
    description: str = ""
    favicon: str = ""
    site_name: str = Field(default="", alias="siteName")


class CollectionAccessResponse(BaseModel):
    collection_id: str
    role: ShopRole
    can_view: bool
    can_edit: bool


class ShareRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Recipient team member")
    permission: str = Field(default=SharePermission.read.value, description="read or readwrite")


class ShareResponse(BaseModel):
    id: str
    collection_id: str
    user_id: str
    permission: SharePermission
    created_at: Optional[str] = None


class ShopSummary(BaseModel):
    id: str
    name: str
    slug: str
    role: ShopRole


class ShopContextResponse(ShopSummary):
    """The caller's view of one shop, with what their role lets them manage."""
    can_manage_shop: bool
    can_manage_team: bool


class ShopCreateRequest(BaseModel):
    name: str = Field(..., description="Display name; the slug is derived from it")


class ShopRenameRequest(BaseModel):
    name: str


class CollectionCreateRequest(BaseModel):
    title: str
    description: str = ""
    visibility: str = Field(default=CollectionVisibility.shop.value, description="shop or personal")


class CollectionUpdateRequest(BaseModel):
    """Fields left out are not changed."""
    title: Optional[str] = None
    description: Optional[str] = None
    visibility: Optional[str] = None
    active: Optional[bool] = None


class CollectionResponse(BaseModel):
    id: str
    shop_id: str
    owner_id: str
    title: str
    slug: str
    description: str
    visibility: CollectionVisibility
    active: bool
    qr_code: Optional[str] = Field(default=None, description="Code issued on creation, if any")


class ItemCreateRequest(BaseModel):
    title: str
    product_url: str
    note: str = ""
    image_url: str = ""


class ItemUpdateRequest(BaseModel):
    title: Optional[str] = None
    product_url: Optional[str] = None
    note: Optional[str] = None
    image_url: Optional[str] = None
    active: Optional[bool] = None
    sort_order: Optional[int] = None


class ItemResponse(BaseModel):
    id: str
    shop_id: str
    collection_id: Optional[str] = None
    title: str
    note: str
    product_url: str
    image_url: str
    sort_order: int
    active: bool
    qr_code: Optional[str] = None


class QrCodeResponse(BaseModel):
    id: str
    code: str
    label: str
    collection_id: Optional[str] = None
    item_id: Optional[str] = None
    redirect_path: str
    created_at: Optional[str] = None
