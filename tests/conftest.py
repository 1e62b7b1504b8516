from __future__ import annotations

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from voyonx.api import deps
from voyonx.core.config import get_settings
from voyonx.db.base import Base
from voyonx.main import app
from voyonx.models import *  # noqa: F401,F403
from voyonx.models import Place


TEST_DB_URL = os.getenv("TEST_DATABASE_URL")
TEST_REDIS_URL = os.getenv("TEST_REDIS_URL")


@pytest.fixture(scope="session")
def integration_enabled() -> bool:
    return bool(TEST_DB_URL and TEST_REDIS_URL)


@pytest.fixture(scope="session")
async def engine(integration_enabled: bool):
    if not integration_enabled:
        yield None
        return

    engine = create_async_engine(TEST_DB_URL, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="session")
async def redis_client(integration_enabled: bool):
    if not integration_enabled:
        yield None
        return

    redis = Redis.from_url(TEST_REDIS_URL, encoding="utf-8", decode_responses=True)
    await redis.flushdb()
    yield redis
    await redis.flushdb()
    await redis.aclose()


@pytest.fixture()
async def db_session(engine, integration_enabled: bool) -> AsyncGenerator[AsyncSession, None]:
    if not integration_enabled:
        pytest.skip("Integration env is not configured")

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture()
async def app_client(engine, redis_client, integration_enabled: bool):
    if not integration_enabled:
        pytest.skip("Integration env is not configured")

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    async def override_redis():
        return redis_client

    app.dependency_overrides[deps.get_db_session] = override_db
    app.dependency_overrides[deps.get_redis_client] = override_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture()
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    settings = get_settings()
    token = jwt.encode(
        {
            "sub": str(user_id),
            "aud": settings.auth_jwt_audience,
            "email": "traveller@example.com",
            "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
        },
        settings.auth_jwt_secret,
        algorithm=settings.auth_jwt_algorithm,
    )
    return {"Authorization": f"Bearer {token}", "X-Device-ID": f"device-{user_id.hex[:8]}"}


@pytest.fixture()
def seed_places(db_session: AsyncSession):
    async def _seed(count: int = 3, category: str = "Landmarks") -> list[Place]:
        places = [
            Place(
                id=uuid.uuid4(),
                title=f"Stop {index}",
                latitude=40.36 + index * 0.01,
                longitude=49.83 + index * 0.01,
                category=category,
            )
            for index in range(count)
        ]
        db_session.add_all(places)
        await db_session.commit()
        return places

    return _seed
