"""
Initialize the bounties table for the Daily Bounty Agent.

Usage:
    python -m scripts.init_db

Uses DATABASE_URL from .env (SQLite file by default). Safe to re-run: the
table is created if missing and the on-chain id column is only added to
databases created before it existed.
"""
import asyncio
from shared.database import engine
from agents.bounty.services.store import init_store


async def main():
    added = await init_store(engine)
    print("Added contract_bounty_id column." if added else "Schema already up to date.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
