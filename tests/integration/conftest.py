import os
import shutil
from collections.abc import Generator
from typing import Any

import psycopg
import pytest
from psycopg.conninfo import make_conninfo

from pdfcompressor.config.settings import Settings
from pdfcompressor.database.connection import close_pool, get_connection, init_pool
from pdfcompressor.database.repositories.compression_record_repository import (
    CompressionRecordRepository,
)


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "pdfcompressor_test")
    return Settings(_env_file=None)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    conninfo = make_conninfo(
        host=test_settings.db_host,
        port=test_settings.db_port,
        dbname=test_settings.db_database,
        user=test_settings.db_username,
        password=test_settings.db_password,
    )
    try:
        psycopg.connect(conninfo, connect_timeout=3).close()
    except psycopg.Error as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run.")
    init_pool(test_settings)
    CompressionRecordRepository().ensure_schema()
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup() -> Generator[list[int], None, None]:
    record_ids: list[int] = []
    yield record_ids
    if not record_ids:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for record_id in record_ids:
                cur.execute("DELETE FROM pdf_compression_records WHERE id = %s", (record_id,))
        conn.commit()


@pytest.fixture
def ghostscript_binary() -> str:
    binary = shutil.which("gs")
    if binary is None:
        pytest.skip("Ghostscript is not installed")
    return binary
