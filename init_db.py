#!/usr/bin/env python3
"""
Database initialization script for local SQLite development
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent))

async def init_database():
    """Create every table and seed the weekly schedule and services"""
    try:
        from clinic_booking.db.base import init_db
        from clinic_booking.db.session import AsyncSessionLocal
        from clinic_booking.db.seed import seed_defaults

        print("Initializing database...")
        Path("data").mkdir(exist_ok=True)

        await init_db()
        print("Database tables created")

        async with AsyncSessionLocal() as session:
            counts = await seed_defaults(session)
        print(f"Seeded {counts['weekly_schedule']} weekly rows, {counts['services']} services")

    except ImportError as e:
        print(f"Import error: {e}")
        print("Make sure you're running this from the project root directory")
        return False

    return True

if __name__ == "__main__":
    os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./data/clinic.db")

    if not asyncio.run(init_database()):
        sys.exit(1)
    print("Done. Start the API with: uvicorn clinic_booking.main:app --reload")
