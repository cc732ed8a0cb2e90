from __future__ import annotations

import argparse
import asyncio
import re

import asyncpg
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine

import discount_engine.db.models  # noqa: F401
from discount_engine.core.config import get_settings
from discount_engine.core.integration_db_safety import assert_safe_integration_db
from discount_engine.db.models.base import Base

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


async def _create_database_if_missing(database_url: str) -> bool:
    parsed = make_url(database_url)
    if parsed.username is None:
        raise RuntimeError("DATABASE_URL username is required.")

    conn = await asyncpg.connect(
        host=parsed.host or "localhost",
        port=int(parsed.port or 5432),
        user=parsed.username,
        password=parsed.password,
        database="postgres",
    )
    try:
        db_name = parsed.database or ""
        if IDENTIFIER_RE.fullmatch(db_name) is None:
            raise RuntimeError(f"Unsupported database name '{db_name}'.")
        if await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name):
            return False
        await conn.execute(f'CREATE DATABASE "{db_name}"')
        return True
    finally:
        await conn.close()


async def _create_schema(database_url: str) -> None:
    engine = create_async_engine(database_url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


async def _run(database_url: str, *, with_schema: bool) -> None:
    assert_safe_integration_db(database_url)
    parsed = make_url(database_url)

    created = await _create_database_if_missing(database_url)
    state = "created" if created else "exists"
    print(f"ensure_test_db: {state} db={parsed.database} host={parsed.host}")  # noqa: T201

    if with_schema:
        await _create_schema(database_url)
        print(f"ensure_test_db: schema ready tables={len(Base.metadata.tables)}")  # noqa: T201


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create the local discount_engine test database.")
    parser.add_argument("--database-url", default=None)
    parser.add_argument(
        "--with-schema",
        action="store_true",
        help="Also create all tables from the ORM metadata.",
    )
    args = parser.parse_args(argv)

    database_url = args.database_url or get_settings().database_url
    asyncio.run(_run(database_url, with_schema=args.with_schema))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
