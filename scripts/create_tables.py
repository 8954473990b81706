"""
Create (or drop) the StudyStreak schema from the ORM metadata.

Usage:
    python scripts/create_tables.py            # create missing tables
    python scripts/create_tables.py --drop     # drop every table first
"""

import argparse
import asyncio
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from studystreak.core.database import create_all, drop_all, engine  # noqa: E402


async def main(drop: bool) -> None:
    if drop:
        print("Dropping all tables...")
        await drop_all()
    print("Creating tables...")
    await create_all()
    await engine.dispose()
    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the StudyStreak schema")
    parser.add_argument("--drop", action="store_true", help="drop all tables before creating them")
    args = parser.parse_args()
    asyncio.run(main(args.drop))
