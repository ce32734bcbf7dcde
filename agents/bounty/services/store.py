"""
Bounty Store — durable, append-only record of the bounties this agent issued.

Drafts are never deleted. The only mutation is linking a draft to its
on-chain id, which happens at most once per draft.
"""
import asyncio
from sqlalchemy import func, inspect, select, text, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from shared.models.base import Base
from agents.bounty.models.db import BountyDraft
import structlog

logger = structlog.get_logger()


async def init_store(engine: AsyncEngine) -> bool:
    """Create the bounties table and add the on-chain id column if missing.

    Returns True when the column had to be added. Safe to run on every boot.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        columns = await conn.run_sync(
            lambda sync_conn: {c["name"] for c in inspect(sync_conn).get_columns("bounties")}
        )
        if "contract_bounty_id" in columns:
            return False
        await conn.execute(text("ALTER TABLE bounties ADD COLUMN contract_bounty_id VARCHAR(78)"))
    logger.info("bounties_column_added", column="contract_bounty_id")
    return True


class BountyStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker
        self._link_lock = asyncio.Lock()

    def _recent(self):
        return select(BountyDraft).order_by(BountyDraft.created_at.desc(), BountyDraft.id.desc())

    async def add_draft(self, title: str, description: str, onchain_id: str | None = None) -> BountyDraft:
        async with self._sessionmaker() as db:
            draft = BountyDraft(title=title, description=description, contract_bounty_id=onchain_id)
            db.add(draft)
            await db.commit()
            await db.refresh(draft)
        logger.info("draft_stored", local_id=draft.id, bounty_id=onchain_id, title=title)
        return draft

    async def get(self, local_id: int) -> BountyDraft | None:
        async with self._sessionmaker() as db:
            return await db.get(BountyDraft, local_id)

    async def recent_titles(self, limit: int) -> list[str]:
        async with self._sessionmaker() as db:
            result = await db.execute(
                select(BountyDraft.title)
                .order_by(BountyDraft.created_at.desc(), BountyDraft.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def latest(self) -> BountyDraft | None:
        async with self._sessionmaker() as db:
            result = await db.execute(self._recent().limit(1))
            return result.scalar_one_or_none()

    async def previous(self, limit: int, offset: int = 1) -> list[BountyDraft]:
        """Drafts older than the current one, newest first."""
        async with self._sessionmaker() as db:
            result = await db.execute(self._recent().offset(offset).limit(limit))
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self._sessionmaker() as db:
            result = await db.execute(select(func.count()).select_from(BountyDraft))
            return result.scalar() or 0

    async def linked_onchain_ids(self) -> set[str]:
        async with self._sessionmaker() as db:
            result = await db.execute(
                select(BountyDraft.contract_bounty_id)
                .where(BountyDraft.contract_bounty_id.is_not(None))
            )
            return set(result.scalars().all())

    async def unlinked(self, limit: int) -> list[BountyDraft]:
        """Drafts still waiting for their on-chain id, newest first."""
        async with self._sessionmaker() as db:
            result = await db.execute(
                self._recent().where(BountyDraft.contract_bounty_id.is_(None)).limit(limit)
            )
            return list(result.scalars().all())

    async def find_unlinked(self, title: str, description: str) -> BountyDraft | None:
        async with self._sessionmaker() as db:
            result = await db.execute(
                self._recent()
                .where(BountyDraft.contract_bounty_id.is_(None))
                .where(BountyDraft.title == title)
                .where(BountyDraft.description == description)
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def assign_onchain_id(self, local_id: int, onchain_id: str) -> bool:
        """Link a draft to its on-chain id, only if it has none yet.

        Returns True if this call made the assignment.
        """
        async with self._link_lock:
            async with self._sessionmaker() as db:
                result = await db.execute(
                    update(BountyDraft)
                    .where(BountyDraft.id == local_id)
                    .where(BountyDraft.contract_bounty_id.is_(None))
                    .values(contract_bounty_id=onchain_id)
                )
                await db.commit()
        assigned = result.rowcount == 1
        if assigned:
            logger.info("draft_linked", local_id=local_id, bounty_id=onchain_id)
        else:
            logger.warning("draft_link_skipped", local_id=local_id, bounty_id=onchain_id)
        return assigned
