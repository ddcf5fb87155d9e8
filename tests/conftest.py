import asyncio
import os
import tempfile
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel

os.environ.setdefault('DATABASE_URL', 'sqlite+aiosqlite:///./test.db')
os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ.setdefault('ENV', 'test')
os.environ.setdefault('UPLOAD_DIR', tempfile.mkdtemp(prefix='salon-uploads-'))

import salon.models  # noqa: E402,F401
from salon.models.catalog import Category, Service  # noqa: E402


@pytest.fixture
def run_db():
    """Run `fn(session)` against a fresh in-memory database and return its result."""

    def run(fn):
        async def inner():
            engine = create_async_engine(
                'sqlite+aiosqlite://',
                poolclass=StaticPool,
                connect_args={'check_same_thread': False},
            )
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            try:
                async with maker() as session:
                    return await fn(session)
            finally:
                await engine.dispose()

        return asyncio.run(inner())

    return run


@pytest.fixture
def file_db(tmp_path):
    """Session factory over a file database; safe to use from TestClient's event loop."""
    engine = create_async_engine(f'sqlite+aiosqlite:///{tmp_path / "test.db"}', poolclass=NullPool)

    async def create_all():
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    asyncio.run(create_all())
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield maker
    asyncio.run(engine.dispose())


async def add_service(session: AsyncSession, duration: int = 60, name: str = 'Manicure gel') -> Service:
    category = Category(name=f'Cat {name}')
    session.add(category)
    await session.flush()
    service = Service(name=name, price=Decimal('20.00'), duration=duration, category_id=category.id)
    session.add(service)
    await session.flush()
    return service


@pytest.fixture
def make_service():
    return add_service
