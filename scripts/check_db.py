#!/usr/bin/env python
"""Check database connectivity and import tables.

Usage:
    uv run python scripts/check_db.py
"""

import asyncio
import sys

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import get_settings

REQUIRED_TABLES = ("contact", "import_job")


async def check_database():
    """Verify connectivity, migrated tables, and stuck jobs."""
    settings = get_settings()

    print("BulkImportAPI - Database Check")
    print("=" * 45)
    print(f"Database URL: {settings.database_url.split('@')[1]}")  # Hide credentials
    print()

    engine = create_async_engine(settings.database_url)

    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            assert result.scalar() == 1
            print("[OK] Basic connectivity")

            result = await conn.execute(text("SELECT version()"))
            version = result.scalar()
            print(f"[OK] PostgreSQL version: {version[:50]}...")

            result = await conn.execute(
                text("SELECT tablename FROM pg_tables WHERE schemaname = current_schema()")
            )
            present = {row.tablename for row in result}
            missing = [t for t in REQUIRED_TABLES if t not in present]
            if missing:
                print(f"[WARN] Missing tables: {', '.join(missing)}")
                print("       Run: uv run alembic upgrade head")
                return 1
            print("[OK] contact and import_job tables present")

            # Jobs left pending by a crash between commit and finalize
            result = await conn.execute(
                text(
                    "SELECT count(*) FROM import_job "
                    "WHERE status = 'pending' AND created_at < now() - interval '10 minutes'"
                )
            )
            stale = result.scalar()
            if stale:
                print(f"[WARN] {stale} job(s) pending for over 10 minutes")
                print("       Inspect with: GET /jobs?status=pending")
            else:
                print("[OK] No stale pending jobs")

        print()
        print("Database check completed successfully!")
        return 0

    except (SQLAlchemyError, OSError) as e:
        print(f"[FAIL] Connection failed: {e}")
        print()
        print("Troubleshooting:")
        print("  1. Ensure Docker is running: docker-compose up -d")
        print("  2. Check DATABASE_URL in .env file")
        print("  3. Verify PostgreSQL container is healthy: docker-compose ps")
        return 1

    finally:
        await engine.dispose()


def main():
    sys.exit(asyncio.run(check_database()))


if __name__ == "__main__":
    main()
