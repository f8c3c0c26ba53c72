"""Pytest fixtures for the export pipeline tests."""

import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import src.models  # noqa: F401  (registers every table on Base.metadata)
from src.app import app
from src.config import settings
from src.database.base import Base
from src.database.session import get_db
from src.models.asset import AssetMaster
from src.models.asset_scan_log import AssetScanLog
from src.models.asset_status_history import AssetStatusHistory
from src.models.brand import Brand
from src.models.category import Category
from src.models.department import Department
from src.models.enums import ExportJobStatus, ExportType, UserRole
from src.models.export_job import ExportJob
from src.models.location import Location
from src.models.plant import Plant
from src.models.unit import Unit
from src.models.user import User
from src.modules.auth.auth import AuthenticatedUser
from src.modules.export.router import get_export_dir, get_export_service
from src.modules.export.service import ExportService


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """A throwaway SQLite database with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'exports.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def export_dir(tmp_path):
    path = tmp_path / "exports"
    path.mkdir()
    return path


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture
def owner() -> AuthenticatedUser:
    return AuthenticatedUser(id="U001", username="somchai", role=UserRole.USER.value)


@pytest.fixture
def other_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="U002", username="malee", role=UserRole.MANAGER.value)


@pytest.fixture
def admin() -> AuthenticatedUser:
    return AuthenticatedUser(id="A001", username="admin", role=UserRole.ADMIN.value)


def make_token(user: AuthenticatedUser) -> str:
    claims = {"sub": user.id, "username": user.username, "role": user.role}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def auth_headers(user: AuthenticatedUser) -> dict:
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture
def headers_for():
    return auth_headers


# ---------------------------------------------------------------------------
# Export jobs
# ---------------------------------------------------------------------------


@pytest.fixture
def make_job():
    """Build an ExportJob with sensible defaults; keyword arguments override."""

    def _make(**overrides) -> ExportJob:
        now = overrides.pop("now", datetime.now(UTC))
        values = {
            "id": uuid.uuid4(),
            "requested_by": "U001",
            "export_type": ExportType.ASSETS,
            "config": {"format": "csv", "filters": {}, "columns": []},
            "status": ExportJobStatus.PENDING,
            "created_at": now,
            "expires_at": now + timedelta(hours=24),
        }
        values.update(overrides)
        return ExportJob(**values)

    return _make


@pytest.fixture
def add_job(session_factory, make_job):
    """Persist an ExportJob (committed) and return it."""

    async def _add(**overrides) -> ExportJob:
        job = make_job(**overrides)
        async with session_factory() as session:
            session.add(job)
            await session.commit()
        return job

    return _add


# ---------------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def master_data(session_factory) -> datetime:
    """Seed plants, locations, users, assets, scans and status changes.

    Returns the reference time the rows were stamped relative to.
    """
    now = datetime.now(UTC).replace(microsecond=0)
    async with session_factory() as session:
        session.add_all(
            [
                Plant(plant_code="P01", description="Bangkok Plant"),
                Plant(plant_code="P02", description="Rayong Plant"),
                Location(location_code="L01", description="Warehouse A", plant_code="P01"),
                Location(location_code="L02", description="Office 2F", plant_code="P02"),
                Department(dept_code="D01", description="Engineering", plant_code="P01"),
                Unit(unit_code="EA", name="Each"),
                Category(category_code="C01", category_name="Computers", description="IT hardware"),
                Brand(brand_code="B01", brand_name="Dell", description="Dell Technologies"),
                User(user_id="U001", username="somchai", full_name="Somchai Jaidee", role=UserRole.USER),
                User(user_id="U002", username="malee", full_name="Malee Srisuk", role=UserRole.MANAGER),
            ]
        )
        await session.flush()
        session.add_all(
            [
                AssetMaster(
                    asset_no="A0001",
                    description="Laptop",
                    plant_code="P01",
                    location_code="L01",
                    dept_code="D01",
                    serial_no="SN-1",
                    quantity=Decimal("1.00"),
                    unit_code="EA",
                    category_code="C01",
                    brand_code="B01",
                    status="A",
                    created_by="U001",
                    created_at=now - timedelta(days=5),
                ),
                AssetMaster(
                    asset_no="A0002",
                    description="Monitor",
                    plant_code="P02",
                    location_code="L02",
                    status="I",
                    created_by="U002",
                    created_at=now - timedelta(days=10),
                    deactivated_at=now - timedelta(days=2),
                ),
                AssetMaster(
                    asset_no="A0003",
                    description="Old printer",
                    plant_code="P01",
                    location_code="L01",
                    status="A",
                    created_at=now - timedelta(days=90),
                ),
            ]
        )
        await session.flush()
        session.add_all(
            [
                AssetScanLog(
                    asset_no="A0001",
                    scanned_by="U001",
                    location_code="L01",
                    scanned_at=now - timedelta(days=3),
                ),
                AssetScanLog(
                    asset_no="A0002",
                    scanned_by="U002",
                    location_code="L02",
                    scanned_at=now - timedelta(days=1),
                ),
                AssetStatusHistory(
                    asset_no="A0002",
                    old_status="A",
                    new_status="I",
                    changed_at=now - timedelta(days=2),
                    changed_by="U002",
                    remarks="Broken screen",
                ),
            ]
        )
        await session.commit()
    return now


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


@pytest.fixture
def dispatched() -> list[str]:
    """Job ids handed to the task queue by the API under test."""
    return []


@pytest_asyncio.fixture
async def async_client(
    session_factory, export_dir, dispatched
) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient wired to the FastAPI app with a test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_export_service(db: AsyncSession = Depends(get_db)) -> ExportService:
        return ExportService(db, dispatch=dispatched.append)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_export_service] = override_export_service
    app.dependency_overrides[get_export_dir] = lambda: export_dir

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
