"""
Claim Reconciler — polls the ledger for new ClaimCreated events and drives
claims on our own bounties through the judge.

At-least-once: the cursor only advances after a whole range has been
handled, so a crash mid-batch means the range is seen again next time.
Settlement is safe to repeat (see judge.settle_claim).
"""
import asyncio
from pydantic import BaseModel, Field
from shared.ledger import ConnectivityError
from agents.bounty.services.blockchain import fetch_claim_events, same_address
from agents.bounty.services.judge import admit_claim
from agents.bounty.services.session import AgentSession, PollState
import structlog

logger = structlog.get_logger()


class TickResult(BaseModel):
    from_block: int | None = None
    to_block: int | None = None
    skipped: bool = False
    events: int = 0
    owned: int = 0
    outcomes: dict[int, str] = Field(default_factory=dict)
    failed: list[int] = Field(default_factory=list)


async def start_polling(session: AgentSession) -> int | None:
    """Anchor the cursor at the current height; earlier claims are ignored."""
    try:
        height = session.ledger.current_height()
    except ConnectivityError as e:
        logger.error("poll_start_failed", error=str(e))
        await asyncio.to_thread(session.reconnect)
        return None
    session.advance_cursor(height)
    logger.info("claim_polling_started", cursor=height, address=session.address)
    return height


async def poll_claims(session: AgentSession) -> TickResult:
    """One tick of the reconciliation loop. Never raises."""
    if session.poll_lock.locked():
        logger.debug("poll_tick_skipped", reason="previous tick still processing")
        return TickResult(skipped=True)

    async with session.poll_lock:
        session.poll_state = PollState.PROCESSING
        try:
            return await _drain(session)
        finally:
            session.poll_state = PollState.IDLE


async def _drain(session: AgentSession) -> TickResult:
    if session.cursor is None:
        await start_polling(session)
        return TickResult()

    ledger = session.ledger
    cursor = session.cursor
    try:
        latest = ledger.current_height()
        if latest <= cursor:
            return TickResult(from_block=cursor + 1, to_block=latest)
        events = fetch_claim_events(ledger, cursor + 1, latest)
    except ConnectivityError as e:
        logger.warning("claim_poll_failed", cursor=cursor, error=str(e))
        await asyncio.to_thread(session.reconnect)
        return TickResult(from_block=cursor + 1)

    result = TickResult(from_block=cursor + 1, to_block=latest, events=len(events))
    if events:
        logger.info("claims_detected", count=len(events), blocks=f"{cursor + 1}-{latest}")

    for event in events:
        if not same_address(event.bounty_issuer, session.address):
            logger.debug("claim_not_ours", bounty_id=event.bounty_id, claim_id=event.claim_id)
            continue
        result.owned += 1
        try:
            outcome = await admit_claim(session, event)
            result.outcomes[event.claim_id] = outcome.value
        except Exception as e:
            logger.error(
                "claim_processing_failed",
                bounty_id=event.bounty_id,
                claim_id=event.claim_id,
                block=event.block_number,
                error=str(e),
            )
            result.failed.append(event.claim_id)

    session.advance_cursor(latest)
    return result
