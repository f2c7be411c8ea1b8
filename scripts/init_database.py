#!/usr/bin/env python3
"""
Database Initialization Script
==============================

Create the ingestion tables (regulations, articles, obligations, ingest_jobs).

Usage:
    python scripts/init_database.py
    python scripts/init_database.py --check
    python scripts/init_database.py --drop

Version: 0.1.0
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shared.logging import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False, service_name="init-db")
logger = get_logger(__name__)


async def drop_tables() -> None:
    """Drop every ingestion table."""
    from shared.database.postgres import Base, PostgresClient

    async with PostgresClient.get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning("database_tables_dropped", tables=sorted(Base.metadata.tables))


async def main(args: argparse.Namespace) -> int:
    """Main initialization function."""
    # Registers the ORM models on Base.metadata
    import services.regulatory_ingestion.db_models  # noqa: F401
    from shared.database.postgres import PostgresClient

    try:
        health = await PostgresClient.health_check()
        if health.get("status") != "healthy":
            logger.error("database_unreachable", error=health.get("error"))
            return 1

        if args.check:
            logger.info("database_reachable", **health)
            return 0

        if args.drop:
            await drop_tables()

        await PostgresClient.create_all()
        return 0
    finally:
        await PostgresClient.close()


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Initialize the Cindral ingestion database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--check",
        action="store_true",
        help="Only verify the database is reachable",
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing ingestion tables before creating them",
    )

    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    exit_code = asyncio.run(main(args))
    sys.exit(exit_code)
