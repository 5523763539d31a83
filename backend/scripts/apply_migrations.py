"""Apply pending SQL migrations from backend/migrations."""

from __future__ import annotations

import asyncio
import logging
import pathlib
import sys

import asyncpg

sys.path.append(str(pathlib.Path(__file__).resolve().parent.parent))

from app.settings import settings  # noqa: E402

logger = logging.getLogger("athlinked.migrations")

MIGRATIONS_DIR = pathlib.Path(__file__).resolve().parent.parent / "migrations"


async def _connect(retries: int = 30, delay: float = 2.0) -> asyncpg.Connection:
    for attempt in range(1, retries + 1):
        try:
            return await asyncpg.connect(settings.postgres_url, ssl="require" if settings.postgres_ssl else None)
        except (OSError, asyncpg.CannotConnectNowError):
            logger.info("database not ready, retrying in %ss (%s/%s)", delay, attempt, retries)
            await asyncio.sleep(delay)
    raise SystemExit("Could not connect to database after multiple retries")


async def main() -> None:
    paths = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not paths:
        raise SystemExit("no migration files found")

    conn = await _connect()
    try:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        applied = {row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")}
        for path in paths:
            version = path.name.split("_", 1)[0]
            if version in applied:
                continue
            async with conn.transaction():
                await conn.execute(path.read_text())
                await conn.execute(
                    """
                    INSERT INTO schema_migrations (version)
                    VALUES ($1)
                    ON CONFLICT (version) DO UPDATE SET applied_at = NOW()
                    """,
                    version,
                )
            logger.info("applied %s", path.name)
    finally:
        await conn.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
