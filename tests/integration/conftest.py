import os
from collections.abc import AsyncGenerator
from pathlib import Path

import psycopg
import pytest
import pytest_asyncio

from adworker.config.settings import Settings
from adworker.database.connection import build_conninfo, close_pool, init_pool

SCHEMA_PATH = Path(__file__).parent / "schema.sql"
TABLES = (
    "google_ad_renderings",
    "bing_ad_renderings",
    "google_ads",
    "bing_ads",
    "advertisers",
    "serp_results",
    "job_tracking",
    "job_queue_backups",
    "job_queue",
)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return Settings(db_database=os.environ.get("DB_DATABASE", "adworker_test"))


@pytest_asyncio.fixture
async def db(test_settings: Settings) -> AsyncGenerator[None, None]:
    """Fresh schema in the test database and an open connection pool."""
    try:
        conn = await psycopg.AsyncConnection.connect(
            build_conninfo(test_settings), connect_timeout=3
        )
    except psycopg.OperationalError as e:
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. Set DB_* env to point at a test database"
        )
    async with conn:
        await conn.execute(SCHEMA_PATH.read_text())
        await conn.execute(f"TRUNCATE {', '.join(TABLES)} RESTART IDENTITY CASCADE")
        await conn.commit()

    await init_pool(test_settings)
    try:
        yield
    finally:
        await close_pool()
