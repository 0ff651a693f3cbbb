"""
Database Models for the shelfqr service

This module defines the SQLModel database schemas for:
- Shop / ShopMember: tenants and their accepted team members
- Collection / CollectionShare: curated product lists and per-user grants
- Item: a single recommended product
- QrCode: short code pointing at a collection or an item landing page
- ScanEvent / ClickEvent: append-only attribution logs
- CollectionSubscriber: email subscriptions to a collection

Design Decisions:
- String UUID primary keys (ids are handed out to browsers and printed QR codes)
- Event tables carry no foreign keys so inserts never fail on a missing parent
- Unique constraints back the upsert paths (shares, subscribers)
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlmodel import Column, Field, SQLModel


def new_id() -> str:
    return str(uuid4())


class Shop(SQLModel, table=True):
    __tablename__ = "shops"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(sa_column=Column(String(200), nullable=False))
    slug: str = Field(sa_column=Column(String(200), nullable=False, unique=True, index=True))
    owner_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class ShopMember(SQLModel, table=True):
    """
    Membership of a user in a shop.

    Invited members have no user_id until they accept; only accepted rows
    count for permission purposes. Exactly one role per row.
    """
    __tablename__ = "shop_members"

    id: str = Field(default_factory=new_id, primary_key=True)
    shop_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    user_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, index=True)
    )
    role: str = Field(default="member", sa_column=Column(String(16), nullable=False, default="member"))
    invited_email: str = Field(default="", sa_column=Column(String(320), nullable=False, default=""))
    accepted: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class Collection(SQLModel, table=True):
    __tablename__ = "collections"
    __table_args__ = (UniqueConstraint("shop_id", "slug", name="uq_collections_shop_slug"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    shop_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    owner_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    title: str = Field(sa_column=Column(String(200), nullable=False))
    slug: str = Field(sa_column=Column(String(200), nullable=False))
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    visibility: str = Field(default="shop", sa_column=Column(String(16), nullable=False, default="shop"))
    active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class CollectionShare(SQLModel, table=True):
    """At most one share per (collection, user); writes go through an upsert."""
    __tablename__ = "collection_shares"
    __table_args__ = (UniqueConstraint("collection_id", "user_id", name="uq_collection_shares_collection_user"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    collection_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    user_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    permission: str = Field(default="read", sa_column=Column(String(16), nullable=False, default="read"))
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class Item(SQLModel, table=True):
    """A recommended product. collection_id is null for standalone products."""
    __tablename__ = "items"

    id: str = Field(default_factory=new_id, primary_key=True)
    collection_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, index=True)
    )
    shop_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    title: str = Field(sa_column=Column(String(300), nullable=False))
    note: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    product_url: str = Field(sa_column=Column(Text, nullable=False))
    image_url: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    sort_order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class QrCode(SQLModel, table=True):
    """
    Short code printed as a QR image.

    Points at exactly one of collection_id / item_id. redirect_path is the
    landing path captured at creation time and is used when the target's
    slugs can no longer be resolved.
    """
    __tablename__ = "qr_codes"

    id: str = Field(default_factory=new_id, primary_key=True)
    code: str = Field(sa_column=Column(String(32), nullable=False, unique=True, index=True))
    label: str = Field(default="", sa_column=Column(String(300), nullable=False, default=""))
    collection_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, index=True)
    )
    item_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, index=True)
    )
    shop_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    redirect_path: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class ScanEvent(SQLModel, table=True):
    """Append-only: one row per hit on a QR code. Never updated."""
    __tablename__ = "scan_events"

    id: str = Field(default_factory=new_id, primary_key=True)
    qr_code_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    scanned_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    user_agent: str = Field(default="", sa_column=Column(String(500), nullable=False, default=""))
    device_type: str = Field(default="desktop", sa_column=Column(String(16), nullable=False))
    referrer: str = Field(default="", sa_column=Column(String(500), nullable=False, default=""))
    ip_hash: str = Field(sa_column=Column(String(16), nullable=False, index=True))


class ClickEvent(SQLModel, table=True):
    """Append-only: one row per click-through to an external product link."""
    __tablename__ = "click_events"

    id: str = Field(default_factory=new_id, primary_key=True)
    qr_code_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, index=True)
    )
    collection_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, index=True)
    )
    item_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    clicked_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    user_agent: str = Field(default="", sa_column=Column(String(500), nullable=False, default=""))


class CollectionSubscriber(SQLModel, table=True):
    __tablename__ = "collection_subscribers"
    __table_args__ = (UniqueConstraint("collection_id", "email", name="uq_collection_subscribers_collection_email"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    collection_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    email: str = Field(sa_column=Column(String(320), nullable=False))
    unsubscribed: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
