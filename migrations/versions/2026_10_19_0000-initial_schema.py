"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    """
    Create initial database schema:
    - shops, shop_members: tenants and their team
    - collections, collection_shares, items: curated product lists
    - qr_codes: printed short codes
    - scan_events, click_events: attribution logs (no foreign keys)
    - collection_subscribers: email sign-ups
    """
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    if 'shops' not in existing_tables:
        op.create_table(
            'shops',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('name', sa.String(length=200), nullable=False),
            sa.Column('slug', sa.String(length=200), nullable=False),
            sa.Column('owner_id', sa.String(length=64), nullable=False),
            _created_at(),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_shops_slug', 'shops', ['slug'], unique=True)
        op.create_index('ix_shops_owner_id', 'shops', ['owner_id'])

    if 'shop_members' not in existing_tables:
        op.create_table(
            'shop_members',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('shop_id', sa.String(length=64), nullable=False),
            sa.Column('user_id', sa.String(length=64), nullable=True),
            sa.Column('role', sa.String(length=16), nullable=False),
            sa.Column('invited_email', sa.String(length=320), nullable=False),
            sa.Column('accepted', sa.Boolean(), nullable=False),
            _created_at(),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_shop_members_shop_id', 'shop_members', ['shop_id'])
        op.create_index('ix_shop_members_user_id', 'shop_members', ['user_id'])

    if 'collections' not in existing_tables:
        op.create_table(
            'collections',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('shop_id', sa.String(length=64), nullable=False),
            sa.Column('owner_id', sa.String(length=64), nullable=False),
            sa.Column('title', sa.String(length=200), nullable=False),
            sa.Column('slug', sa.String(length=200), nullable=False),
            sa.Column('description', sa.Text(), nullable=False),
            sa.Column('visibility', sa.String(length=16), nullable=False),
            sa.Column('active', sa.Boolean(), nullable=False),
            _created_at(),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('shop_id', 'slug', name='uq_collections_shop_slug')
        )
        op.create_index('ix_collections_shop_id', 'collections', ['shop_id'])
        op.create_index('ix_collections_owner_id', 'collections', ['owner_id'])

    if 'collection_shares' not in existing_tables:
        op.create_table(
            'collection_shares',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('collection_id', sa.String(length=64), nullable=False),
            sa.Column('user_id', sa.String(length=64), nullable=False),
            sa.Column('permission', sa.String(length=16), nullable=False),
            _created_at(),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('collection_id', 'user_id', name='uq_collection_shares_collection_user')
        )
        op.create_index('ix_collection_shares_collection_id', 'collection_shares', ['collection_id'])
        op.create_index('ix_collection_shares_user_id', 'collection_shares', ['user_id'])

    if 'items' not in existing_tables:
        op.create_table(
            'items',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('collection_id', sa.String(length=64), nullable=True),
            sa.Column('shop_id', sa.String(length=64), nullable=False),
            sa.Column('title', sa.String(length=300), nullable=False),
            sa.Column('note', sa.Text(), nullable=False),
            sa.Column('product_url', sa.Text(), nullable=False),
            sa.Column('image_url', sa.Text(), nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False),
            sa.Column('active', sa.Boolean(), nullable=False),
            _created_at(),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_items_collection_id', 'items', ['collection_id'])
        op.create_index('ix_items_shop_id', 'items', ['shop_id'])

    if 'qr_codes' not in existing_tables:
        op.create_table(
            'qr_codes',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('code', sa.String(length=32), nullable=False),
            sa.Column('label', sa.String(length=300), nullable=False),
            sa.Column('collection_id', sa.String(length=64), nullable=True),
            sa.Column('item_id', sa.String(length=64), nullable=True),
            sa.Column('shop_id', sa.String(length=64), nullable=False),
            sa.Column('redirect_path', sa.Text(), nullable=False),
            _created_at(),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_qr_codes_code', 'qr_codes', ['code'], unique=True)
        op.create_index('ix_qr_codes_collection_id', 'qr_codes', ['collection_id'])
        op.create_index('ix_qr_codes_item_id', 'qr_codes', ['item_id'])
        op.create_index('ix_qr_codes_shop_id', 'qr_codes', ['shop_id'])

    if 'scan_events' not in existing_tables:
        op.create_table(
            'scan_events',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('qr_code_id', sa.String(length=64), nullable=False),
            sa.Column('scanned_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('user_agent', sa.String(length=500), nullable=False),
            sa.Column('device_type', sa.String(length=16), nullable=False),
            sa.Column('referrer', sa.String(length=500), nullable=False),
            sa.Column('ip_hash', sa.String(length=16), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_scan_events_qr_code_id', 'scan_events', ['qr_code_id'])
        op.create_index('ix_scan_events_scanned_at', 'scan_events', ['scanned_at'])
        op.create_index('ix_scan_events_ip_hash', 'scan_events', ['ip_hash'])

    if 'click_events' not in existing_tables:
        op.create_table(
            'click_events',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('qr_code_id', sa.String(length=64), nullable=True),
            sa.Column('collection_id', sa.String(length=64), nullable=True),
            sa.Column('item_id', sa.String(length=64), nullable=False),
            sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('user_agent', sa.String(length=500), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_click_events_qr_code_id', 'click_events', ['qr_code_id'])
        op.create_index('ix_click_events_collection_id', 'click_events', ['collection_id'])
        op.create_index('ix_click_events_item_id', 'click_events', ['item_id'])
        op.create_index('ix_click_events_clicked_at', 'click_events', ['clicked_at'])

    if 'collection_subscribers' not in existing_tables:
        op.create_table(
            'collection_subscribers',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('collection_id', sa.String(length=64), nullable=False),
            sa.Column('email', sa.String(length=320), nullable=False),
            sa.Column('unsubscribed', sa.Boolean(), nullable=False),
            _created_at(),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('collection_id', 'email', name='uq_collection_subscribers_collection_email')
        )
        op.create_index('ix_collection_subscribers_collection_id', 'collection_subscribers', ['collection_id'])


def downgrade() -> None:
    for table in (
        'collection_subscribers',
        'click_events',
        'scan_events',
        'qr_codes',
        'items',
        'collection_shares',
        'collections',
        'shop_members',
        'shops',
    ):
        op.drop_table(table)
