"""
Bounty Issuer — creates the daily bounty on-chain and keeps the local
store correlated with on-chain bounty ids.

Creation spends the stake, so nothing here resubmits blindly: before
submitting we look for a bounty we already created with the same content
but never recorded (including an earlier attempt whose confirmation timed
out), and after submitting a lost id is reported as BountyIdUnresolvedError
(the draft is kept so backfill can repair it).
"""
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from web3 import Web3
from shared.config import settings
from shared.ledger import (
    ConfirmationTimeoutError, ConnectivityError, LedgerError, tx_hash_hex,
)
from agents.bounty.config import (
    BOUNTY_WINDOW_HOURS, ORPHAN_SCAN_DEPTH, RECENT_TITLES_LIMIT, RETRY_WINDOW_HOURS,
)
from agents.bounty.errors import BountyIdUnresolvedError
from agents.bounty.models.db import BountyDraft
from agents.bounty.services.blockchain import (
    bounty_count, bounty_created_in_block, bounty_ids_from_receipt,
    get_bounty, same_address,
)
from agents.bounty.services.generator import generate_bounty_idea
from agents.bounty.services.scan import candidate_indices, first_match
from agents.bounty.services.session import AgentSession
import structlog

logger = structlog.get_logger()


def stake_wei() -> int:
    return Web3.to_wei(Decimal(settings.BOUNTY_AMOUNT), "ether")


def bounty_url(bounty_id: str) -> str:
    return settings.BOUNTY_URL_TEMPLATE.format(bounty_id=bounty_id)


def resolve_bounty_id(ledger, receipt) -> str | None:
    """Bounty id from the receipt's BountyCreated log, else from the block's events."""
    tx_hash = tx_hash_hex(receipt["transactionHash"])
    try:
        ids = bounty_ids_from_receipt(ledger, receipt)
        if ids:
            return ids[0]
        logger.warning("bounty_event_missing_from_receipt", tx_hash=tx_hash)
    except LedgerError as e:
        logger.warning("receipt_decode_failed", tx_hash=tx_hash, error=str(e))

    try:
        events = bounty_created_in_block(ledger, int(receipt["blockNumber"]))
    except LedgerError as e:
        logger.error("bounty_event_query_failed", tx_hash=tx_hash, error=str(e))
        return None

    match = first_match(events, lambda ev: tx_hash_hex(ev["transactionHash"]) == tx_hash)
    if match is None:
        return None
    bounty_id = str(match["args"]["id"])
    logger.info("bounty_id_found_by_polling", bounty_id=bounty_id, tx_hash=tx_hash)
    return bounty_id


def _window_start() -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=BOUNTY_WINDOW_HOURS)


async def _adopt_orphan(
    session: AgentSession,
    wanted: set[tuple[str, str]],
) -> tuple[str, tuple[str, str]] | None:
    """Find a recent bounty of ours whose (title, description) is wanted and
    that no draft points at yet; link or record it instead of resubmitting.

    Returns (bounty_id, content) of the adopted bounty.
    """
    if not wanted:
        return None
    ledger = session.ledger
    store = session.store
    linked = await store.linked_onchain_ids()
    cutoff = int(_window_start().timestamp())
    found: dict[int, tuple[str, str]] = {}

    def matches(index: int) -> bool:
        if str(index) in linked:
            return False
        bounty = get_bounty(ledger, index)
        content = (bounty.name, bounty.description)
        if (
            same_address(bounty.issuer, session.address)
            and content in wanted
            and bounty.created_at >= cutoff
        ):
            found[index] = content
            return True
        return False

    index = first_match(candidate_indices(bounty_count(ledger), ORPHAN_SCAN_DEPTH), matches)
    if index is None:
        return None

    bounty_id = str(index)
    title, description = found[index]
    draft = await store.find_unlinked(title, description)
    if draft is not None:
        await store.assign_onchain_id(draft.id, bounty_id)
    else:
        await store.add_draft(title, description, onchain_id=bounty_id)
    logger.warning("orphan_bounty_adopted", bounty_id=bounty_id, title=title)
    return bounty_id, (title, description)


async def _recover_unconfirmed(session: AgentSession) -> str | None:
    """Link an earlier creation that was mined after we stopped waiting.

    Returns its id when that attempt is recent enough to count as the
    current one, so the caller does not stake again.
    """
    since = _window_start()
    pending: dict[tuple[str, str], datetime] = {}
    for draft in await session.store.unlinked(ORPHAN_SCAN_DEPTH):
        if draft.created_at_utc >= since:
            pending.setdefault((draft.title, draft.description), draft.created_at_utc)

    adopted = await _adopt_orphan(session, set(pending))
    if adopted is None:
        return None
    bounty_id, content = adopted
    retry_since = datetime.now(timezone.utc) - timedelta(hours=RETRY_WINDOW_HOURS)
    return bounty_id if pending[content] >= retry_since else None


async def create_bounty(session: AgentSession) -> str:
    """Generate, submit, confirm and record one bounty. Returns its on-chain id."""
    async with session.issue_lock:
        ledger = session.ledger
        store = session.store

        existing = await _recover_unconfirmed(session)
        if existing is not None:
            return existing

        recent = await store.recent_titles(RECENT_TITLES_LIMIT)
        idea = await generate_bounty_idea(recent, session.fallback)

        adopted = await _adopt_orphan(session, {(idea.title, idea.description)})
        if adopted is not None:
            return adopted[0]

        tx_hash = ledger.submit_transaction(
            "createSoloBounty", idea.title, idea.description, value=stake_wei()
        )
        try:
            receipt = await asyncio.to_thread(ledger.confirm, tx_hash)
        except (ConfirmationTimeoutError, ConnectivityError) as e:
            # Outcome unknown: keep the draft so a later run or backfill can link it
            draft = await store.add_draft(idea.title, idea.description)
            logger.error("bounty_tx_unconfirmed", tx_hash=tx_hash, local_id=draft.id, error=str(e))
            raise
        logger.info("bounty_tx_confirmed", tx_hash=tx_hash, block=receipt["blockNumber"])

        bounty_id = resolve_bounty_id(ledger, receipt)
        if bounty_id is None:
            draft = await store.add_draft(idea.title, idea.description)
            logger.error("bounty_id_unresolved", tx_hash=tx_hash, local_id=draft.id)
            raise BountyIdUnresolvedError(tx_hash, draft.id)

        await store.add_draft(idea.title, idea.description, onchain_id=bounty_id)
        logger.info("bounty_created", bounty_id=bounty_id, title=idea.title, tx_hash=tx_hash)
        return bounty_id


async def backfill_bounty_id(session: AgentSession, draft: BountyDraft) -> str | None:
    """Recover a missing on-chain id by scanning bounties newest-first for
    an exact title+description match."""
    if draft.contract_bounty_id:
        return draft.contract_bounty_id

    ledger = session.ledger
    try:
        total = bounty_count(ledger)
    except LedgerError as e:
        logger.warning("backfill_count_failed", local_id=draft.id, error=str(e))
        return None
    if session.backfill_misses.get(draft.id) == total:
        # nothing new on-chain since the last scan came up empty
        return None
    linked = await session.store.linked_onchain_ids()

    def matches(index: int) -> bool:
        if str(index) in linked:
            return False
        bounty = get_bounty(ledger, index)
        return bounty.name == draft.title and bounty.description == draft.description

    index = first_match(candidate_indices(total), matches)
    if index is None:
        session.backfill_misses[draft.id] = total
        logger.info("backfill_no_match", local_id=draft.id, scanned=total)
        return None
    session.backfill_misses.pop(draft.id, None)

    if await session.store.assign_onchain_id(draft.id, str(index)):
        draft.contract_bounty_id = str(index)
        return draft.contract_bounty_id

    # Lost the race to a concurrent backfill; take whatever it wrote
    fresh = await session.store.get(draft.id)
    draft.contract_bounty_id = fresh.contract_bounty_id if fresh else None
    return draft.contract_bounty_id
