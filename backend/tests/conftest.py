"""
Pytest configuration and shared fixtures.

Tests run against an in-memory SQLite database; no external services are contacted.
HTTP adapters are exercised through httpx.MockTransport or patched clients.
"""

import os

# Must be set before config.settings is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", "logs")

from datetime import datetime, timedelta
from typing import List, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models import Base, IngestedReport, ReportInsight, ReportStatus


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "api: mark test as exercising the HTTP API"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests in test_api.py as api tests."""
    for item in items:
        if "test_api" in str(item.fspath):
            item.add_marker(pytest.mark.api)


# ═══════════════════════════════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════════════════════════════


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """Provide an async DB session for a single test."""
    async with session_factory() as session:
        yield session


# ═══════════════════════════════════════════════════════════════════════════
# HTTP client
# ═══════════════════════════════════════════════════════════════════════════


@pytest.fixture
async def client(session_factory):
    """httpx client bound to the app, with get_async_db pointed at the test database."""
    from database import get_async_db
    from main import app

    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ═══════════════════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════════════════


BASE_TIME = datetime(2025, 6, 1, 12, 0, 0)


@pytest.fixture
def make_report(db):
    """Factory that inserts a report, optionally with a metrics insight."""

    async def _create(
        name: str = "Call Report Q1",
        source: str = "upload",
        report_type: str = "call_report",
        reporting_period: Optional[str] = "Q1 2025",
        status: str = ReportStatus.ANALYZED.value,
        minutes: int = 0,
        metrics: Optional[dict] = None,
        insights: Optional[List[dict]] = None,
        institution_name: Optional[str] = "Mizuho Americas",
    ) -> IngestedReport:
        created = BASE_TIME + timedelta(minutes=minutes)
        report = IngestedReport(
            name=name,
            source=source,
            report_type=report_type,
            reporting_period=reporting_period,
            status=status,
            institution_name=institution_name,
            raw_content="Tier 1 capital ratio 14.8%",
            created_at=created,
            updated_at=created,
        )
        db.add(report)
        await db.flush()

        rows = list(insights or [])
        if metrics is not None:
            rows.append({
                "insight_type": "metric_extraction",
                "category": "capital",
                "title": "Extracted metrics",
                "content": "Key ratios extracted from the filing.",
                "metrics": metrics,
            })
        for i, row in enumerate(rows):
            db.add(ReportInsight(
                report_id=report.id,
                created_at=created + timedelta(seconds=i),
                status="pending",
                **row,
            ))

        await db.commit()
        return report

    return _create
