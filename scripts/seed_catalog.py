#!/usr/bin/env python3
"""Seed the database with the default feature catalog and the 5 plans.

Safe to re-run: existing features, plans and grants are left alone.

Usage:
    python -m scripts.seed_catalog
    # or from project root:
    python scripts/seed_catalog.py
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from plangate.common.config import get_settings
from plangate.common.database import DatabaseManager
from plangate.catalog.defaults import PLAN_SEEDS
from plangate.catalog.service import CatalogService


async def seed_catalog() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    svc = CatalogService(settings)

    async with db.get_session() as session:
        counts = await svc.seed_defaults(session)
        for plan in await svc.list_plans(session):
            grants = await svc.grants_for_plan(session, plan.id)
            print(f"  {plan.name:<8} {len(grants):>3} grants")

    await db.close()
    print(
        f"\nDone. {counts['features']} features, {counts['plans']} of "
        f"{len(PLAN_SEEDS)} plans and {counts['grants']} grants created."
    )


if __name__ == "__main__":
    asyncio.run(seed_catalog())
