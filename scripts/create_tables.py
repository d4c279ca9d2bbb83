"""
create_tables.py — idempotent table creation script.
Run this before starting the API or workers for the first time, or after schema changes.
Safe to run multiple times (all DDL uses IF NOT EXISTS).

Usage:
    python scripts/create_tables.py
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dinescope.config import settings
from dinescope.database import engine
from dinescope.models import Base


async def main() -> None:
    """Create all tables on the configured database."""
    print(f"Creating tables on {engine.url.render_as_string(hide_password=True)} (env={settings.app_env})...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    for name in sorted(Base.metadata.tables):
        print(f"  ✓ {name}")

    print("\nDone. Start the workers with `python -m dinescope.workers.feature_extractor`.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
