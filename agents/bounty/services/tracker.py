"""
Bounty Tracker — read-side views served by the API: the current bounty,
recent history with winners, claim listings and aggregate stats.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import httpx
from shared.config import settings
from shared.ledger import LedgerError, tx_hash_hex
from agents.bounty.config import (
    ACCEPTED_EVENT_LOOKBACK, BOUNTY_WINDOW_HOURS, PREVIOUS_BOUNTIES_LIMIT,
)
from agents.bounty.errors import EvidenceUnresolvableError
from agents.bounty.models.schemas import (
    AcceptedClaimSummary, ClaimNFT, ClaimRecord, ClaimResponse, CurrentBounty,
    NFTMetadata, PreviousBounty, PreviousStats, Stats,
)
from agents.bounty.services.blockchain import claim_accepted_events, get_claims
from agents.bounty.services.evidence import fetch_token_metadata
from agents.bounty.services.issuer import backfill_bounty_id, bounty_url
from agents.bounty.services.scan import first_match
from agents.bounty.services.session import AgentSession
import structlog

logger = structlog.get_logger()


def format_amount(multiplier: int = 1) -> str:
    total = (Decimal(settings.BOUNTY_AMOUNT) * multiplier).normalize()
    return f"{total:f} {settings.BOUNTY_CURRENCY}"


def time_left(created_at: datetime, now: datetime | None = None) -> str:
    remaining = created_at + timedelta(hours=BOUNTY_WINDOW_HOURS) - (now or datetime.now(timezone.utc))
    seconds = remaining.total_seconds()
    if seconds <= 0:
        return "Ended"
    return f"{int(seconds // 3600)} hours"


async def current_bounty(session: AgentSession) -> CurrentBounty | None:
    draft = await session.store.latest()
    if draft is None:
        return None

    bounty_id = await backfill_bounty_id(session, draft)

    submissions = 0
    if bounty_id:
        try:
            submissions = len(get_claims(session.ledger, int(bounty_id)))
        except LedgerError as e:
            logger.warning("submission_count_failed", bounty_id=bounty_id, error=str(e))

    return CurrentBounty(
        id=bounty_id or str(draft.id),
        day=draft.id,
        title=draft.title,
        description=draft.description,
        amount=format_amount(),
        time_left=time_left(draft.created_at_utc),
        submissions=submissions,
        created_at=draft.created_at_utc,
        url=bounty_url(bounty_id) if bounty_id else None,
    )


async def previous_bounties(session: AgentSession) -> tuple[PreviousStats, list[PreviousBounty]]:
    ledger = session.ledger
    drafts = await session.store.previous(PREVIOUS_BOUNTIES_LIMIT)
    accepted_logs: list | None = None

    bounties = []
    for draft in drafts:
        bounty_id = draft.contract_bounty_id
        accepted: ClaimRecord | None = None
        settle_tx = None

        if bounty_id:
            try:
                accepted = next((c for c in get_claims(ledger, int(bounty_id)) if c.accepted), None)
                if accepted:
                    if accepted_logs is None:
                        accepted_logs = claim_accepted_events(ledger, ACCEPTED_EVENT_LOOKBACK)
                    match = first_match(
                        accepted_logs,
                        lambda ev: int(ev["args"]["bountyId"]) == int(bounty_id)
                        and int(ev["args"]["claimId"]) == accepted.id,
                    )
                    if match is not None:
                        settle_tx = tx_hash_hex(match["transactionHash"])
            except LedgerError as e:
                logger.warning("previous_bounty_lookup_failed", bounty_id=bounty_id, error=str(e))

        bounties.append(PreviousBounty(
            id=bounty_id or str(draft.id),
            day=draft.id,
            title=draft.title,
            description=draft.description,
            winner=accepted.issuer if accepted else None,
            amount=format_amount(),
            created_at=draft.created_at_utc,
            transaction_hash=settle_tx,
            contract_bounty_id=bounty_id,
            accepted_claim=AcceptedClaimSummary(id=str(accepted.id), issuer=accepted.issuer) if accepted else None,
        ))

    settled = sum(1 for b in bounties if b.winner)
    stats = PreviousStats(total_bounties=len(bounties), total_distributed=format_amount(settled))
    return stats, bounties


async def _claim_with_metadata(session: AgentSession, claim: ClaimRecord, client: httpx.AsyncClient) -> ClaimResponse:
    try:
        _, metadata = await fetch_token_metadata(session.ledger, claim.id, client)
        nft_metadata = NFTMetadata(**metadata.model_dump())
    except EvidenceUnresolvableError as e:
        logger.warning("claim_metadata_failed", claim_id=claim.id, error=str(e))
        nft_metadata = NFTMetadata(error="Failed to fetch NFT metadata")

    return ClaimResponse(
        id=str(claim.id),
        issuer=claim.issuer,
        bounty_id=str(claim.bounty_id),
        bounty_issuer=claim.bounty_issuer,
        name=claim.name,
        description=claim.description,
        created_at=datetime.fromtimestamp(claim.created_at, tz=timezone.utc),
        accepted=claim.accepted,
        nft=ClaimNFT(
            token_id=str(claim.id),
            contract_address=settings.CLAIM_NFT_ADDRESS,
            metadata=nft_metadata,
        ),
    )


async def list_claims(session: AgentSession, bounty_id: int) -> list[ClaimResponse]:
    claims = get_claims(session.ledger, bounty_id)
    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT, follow_redirects=True) as client:
        return list(await asyncio.gather(
            *(_claim_with_metadata(session, claim, client) for claim in claims)
        ))


async def get_stats(session: AgentSession) -> Stats:
    count = await session.store.count()
    return Stats(current_day=count, total_rewards=format_amount(count))
