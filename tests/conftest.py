"""
Test infrastructure: temporary SQLite database, session and httpx client fixtures.

Every test gets a fresh database file, a fresh scan rate limiter and a reset
slowapi limiter. The app's get_session / get_session_maker dependencies are
overridden so endpoints and background tasks use the test database.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from shelfqr.core.rate_limit import FixedWindowRateLimiter, limiter
from shelfqr.core.setting import settings
from shelfqr.db import models  # noqa: F401  registers all tables
from shelfqr.db.models import Collection, Item, QrCode, Shop, ShopMember
from shelfqr.db.session import get_session, get_session_maker
from shelfqr.main import app

TEST_BASE_URL = "https://shelf.test"

OWNER_ID = "user-owner"
ADMIN_ID = "user-admin"
MEMBER_ID = "user-member"
OUTSIDER_ID = "user-outsider"


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_maker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_maker: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def scan_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(window_seconds=60.0, max_requests=30)


@pytest_asyncio.fixture
async def client(
    session_maker: async_sessionmaker,
    scan_limiter: FixedWindowRateLimiter,
    monkeypatch,
) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI test client wired to the temporary database."""
    async def _override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    monkeypatch.setattr(settings, "BASE_URL", TEST_BASE_URL)
    previous_limiter = app.state.scan_limiter
    app.state.scan_limiter = scan_limiter
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.scan_limiter = previous_limiter
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def shop_data(db: AsyncSession) -> dict:
    """
    One shop ("shop1") with an owner, an admin, a member and a pending invite.

    Collections: a shop-visible one, and a personal one owned by the member.
    QR codes: abc123 -> item-1, coll01 -> shop collection, orphan -> deleted item.
    """
    shop = Shop(id="shop-1", name="Smile Dental", slug="shop1", owner_id=OWNER_ID)
    db.add(shop)
    pending_invite = ShopMember(shop_id=shop.id, user_id=OUTSIDER_ID, role="member", accepted=False,
                                invited_email="pending@example.com")
    db.add_all([
        ShopMember(shop_id=shop.id, user_id=OWNER_ID, role="owner", accepted=True),
        ShopMember(shop_id=shop.id, user_id=ADMIN_ID, role="admin", accepted=True),
        ShopMember(shop_id=shop.id, user_id=MEMBER_ID, role="member", accepted=True),
        pending_invite,
    ])

    shop_collection = Collection(
        id="coll-shop", shop_id=shop.id, owner_id=ADMIN_ID,
        title="Aftercare", slug="aftercare", visibility="shop",
    )
    personal_collection = Collection(
        id="coll-personal", shop_id=shop.id, owner_id=MEMBER_ID,
        title="My Picks", slug="my-picks", visibility="personal",
    )
    inactive_collection = Collection(
        id="coll-inactive", shop_id=shop.id, owner_id=ADMIN_ID,
        title="Old", slug="old", visibility="shop", active=False,
    )
    db.add_all([shop_collection, personal_collection, inactive_collection])

    item = Item(
        id="item-1", shop_id=shop.id, collection_id=shop_collection.id,
        title="Soft Toothbrush", product_url="https://www.amazon.com/dp/B000000001",
    )
    db.add(item)

    db.add_all([
        QrCode(id="qr-item", code="abc123", shop_id=shop.id, item_id=item.id,
               redirect_path="/p/shop1/item-1", label="Front desk"),
        QrCode(id="qr-coll", code="coll01", shop_id=shop.id, collection_id=shop_collection.id,
               redirect_path="/s/shop1/aftercare", label="Poster"),
        QrCode(id="qr-orphan", code="orphan", shop_id=shop.id, item_id="item-deleted",
               redirect_path="/legacy/landing", label="Old flyer"),
    ])
    await db.commit()

    return {
        "shop": shop,
        "shop_collection": shop_collection,
        "personal_collection": personal_collection,
        "inactive_collection": inactive_collection,
        "item": item,
        "pending_invite": pending_invite,
    }


@pytest.fixture
def landing_base_url() -> str:
    return TEST_BASE_URL
