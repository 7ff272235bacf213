#!/usr/bin/env python3
"""
seed_stories.py — Populate MongoDB with recent stories for local development.

Inserts:
  - A spread of stories over the last 48 hours, tagged with country codes
    and free-text cities that line up with the bundled catalog
  - The created_at index the stats refresher queries on

Usage:
    python scripts/seed_stories.py

Requires:
    pip install -e .
    MongoDB running locally (or set MONGO_URI / MONGO_DB_NAME)

Safe to re-run: deletes seed stories first, then re-inserts.
"""

import asyncio
import random
from datetime import datetime, timedelta, timezone

from motor.motor_asyncio import AsyncIOMotorClient

from geo_directory.core.config import settings

SEED_SOURCE = "seed"

# (country_code, city, category, headline)
SAMPLE_STORIES = [
    ("IN", "Bengaluru", "technology", "Whitefield tech corridor adds 40,000 jobs"),
    ("IN", "Mumbai", "business", "Sensex closes at record high after rate pause"),
    ("IN", "New Delhi", "politics", "Parliament session opens with budget debate"),
    ("IN", "Chennai", "weather", "Cyclone warning issued for northern coast"),
    ("US", "San Francisco", "technology", "City approves expansion of driverless taxi zones"),
    ("US", "New York", "business", "Wall Street rallies on strong jobs report"),
    ("US", "Washington", "politics", "Senate advances infrastructure package"),
    ("GB", "London", "politics", "Mayor unveils new housing strategy"),
    ("DE", "Berlin", "culture", "Berlinale announces opening film"),
    ("FR", "Paris", "sports", "Stade de France hosts record attendance"),
    ("JP", "Tokyo", "business", "Yen weakens as central bank holds rates"),
    ("CN", "Shanghai", "business", "Port volumes rebound in first quarter"),
    ("BR", "São Paulo", "politics", "State assembly votes on transit funding"),
    ("ZA", "Johannesburg", "energy", "Load shedding suspended for the weekend"),
    ("AU", "Sydney", "weather", "Heatwave prompts beach safety alerts"),
    ("KE", "Nairobi", "technology", "Mobile money platform launches regional expansion"),
    ("AE", "Dubai", "business", "Airport traffic tops pre-pandemic levels"),
]


def build_stories(copies: int = 5) -> list[dict]:
    now = datetime.now(timezone.utc)
    stories = []
    for code, city, category, headline in SAMPLE_STORIES:
        for i in range(copies):
            stories.append({
                "headline": headline if i == 0 else f"{headline} ({i})",
                "country_code": code,
                "city": city,
                "category": category,
                "created_at": now - timedelta(minutes=random.randint(5, 47 * 60)),
                "source": SEED_SOURCE,
            })
    return stories


async def seed() -> None:
    print("Connecting to MongoDB...")
    client = AsyncIOMotorClient(settings.mongo_uri)
    db = client[settings.mongo_db_name]
    stories = db[settings.stories_collection]

    try:
        await client.admin.command("ping")
        print("Connected.")

        # ─── Clean up previous seed data ──────────────────────────────────────
        deleted = await stories.delete_many({"source": SEED_SOURCE})
        print(f"Removed {deleted.deleted_count} existing seed stories.")

        # ─── Insert sample stories ────────────────────────────────────────────
        result = await stories.insert_many(build_stories())
        print(f"Inserted {len(result.inserted_ids)} stories.")

        # ─── Ensure indexes exist ─────────────────────────────────────────────
        await stories.create_index([("created_at", -1)])
        await stories.create_index([("country_code", 1), ("created_at", -1)])
        print("Indexes ensured.")

        print("\nSeed complete! Stories per country:")
        pipeline = [{"$group": {"_id": "$country_code", "count": {"$sum": 1}}}]
        async for doc in stories.aggregate(pipeline):
            print(f"  {doc['_id']}: {doc['count']} stories")

    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(seed())
