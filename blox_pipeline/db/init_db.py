"""
Schema bootstrap for local development and CI databases.

Applies schema.sql (idempotent CREATE ... IF NOT EXISTS statements).
"""

import asyncio
from pathlib import Path

from blox_pipeline.db.pool import db_pool
from blox_pipeline.infrastructure.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


def load_schema() -> str:
    return SCHEMA_PATH.read_text(encoding="utf-8")


async def create_tables() -> None:
    """Create every pipeline table that does not exist yet."""
    schema = load_schema()
    async with db_pool.transaction() as conn:
        await conn.execute(schema)
    logger.info("Database schema applied", schema=str(SCHEMA_PATH))


async def init_db() -> None:
    setup_logging()
    await db_pool.initialize()
    try:
        await create_tables()
    finally:
        await db_pool.close()


def main() -> None:
    asyncio.run(init_db())


if __name__ == "__main__":
    main()
