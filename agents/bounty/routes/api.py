"""
Bounty Agent REST API routes.

Every response carries a `success` flag; failures are
{"success": false, "error": "..."} and never a raw traceback.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from shared.ledger import LedgerError, TransactionFailedError
from agents.bounty.errors import BountyIdUnresolvedError
from agents.bounty.models.schemas import (
    ClaimsResponse, CreateBountyResponse, CurrentBountyResponse, HealthResponse,
    PreviousBountiesResponse, ReadmitResponse, StatsResponse, StuckClaimsResponse,
)
from agents.bounty.services.issuer import bounty_url, create_bounty
from agents.bounty.services.judge import readmit_claim
from agents.bounty.services.session import AgentSession, get_session
from agents.bounty.services.tracker import (
    current_bounty, get_stats, list_claims, previous_bounties,
)
import structlog

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/bounty", tags=["bounty"])


def _failure(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


@router.get("/health", response_model=HealthResponse)
async def health(session: AgentSession = Depends(get_session)):
    return HealthResponse(
        address=session.address,
        cursor=session.cursor,
        poll_state=session.poll_state.value,
        stuck_claims=len(session.stuck_claims),
    )


@router.post("/create-bounty", response_model=CreateBountyResponse)
async def create_bounty_now(session: AgentSession = Depends(get_session)):
    try:
        bounty_id = await create_bounty(session)
    except BountyIdUnresolvedError as e:
        logger.error("api_create_bounty_unresolved", tx_hash=e.tx_hash, local_id=e.local_id)
        return _failure(502, str(e), tx_hash=e.tx_hash, local_id=e.local_id)
    except TransactionFailedError as e:
        logger.error("api_create_bounty_tx_failed", error=str(e))
        return _failure(502, f"Bounty transaction failed: {e}", tx_hash=e.tx_hash)
    except Exception as e:
        logger.error("api_create_bounty_failed", error=str(e))
        return _failure(500, str(e) or "Failed to create bounty")
    return CreateBountyResponse(bounty_id=bounty_id, url=bounty_url(bounty_id))


@router.get("/bounties/{bounty_id}/claims", response_model=ClaimsResponse)
async def bounty_claims(bounty_id: int, session: AgentSession = Depends(get_session)):
    try:
        claims = await list_claims(session, bounty_id)
    except LedgerError as e:
        logger.error("api_claims_failed", bounty_id=bounty_id, error=str(e))
        return _failure(502, str(e) or "Failed to fetch claims")
    return ClaimsResponse(claims=claims)


@router.get("/current-bounty", response_model=CurrentBountyResponse)
async def get_current_bounty(session: AgentSession = Depends(get_session)):
    try:
        bounty = await current_bounty(session)
    except Exception as e:
        logger.error("api_current_bounty_failed", error=str(e))
        return _failure(500, str(e) or "Failed to fetch current bounty")
    if bounty is None:
        return _failure(404, "No active bounty found")
    return CurrentBountyResponse(bounty=bounty)


@router.get("/previous-bounties", response_model=PreviousBountiesResponse)
async def get_previous_bounties(session: AgentSession = Depends(get_session)):
    try:
        stats, bounties = await previous_bounties(session)
    except Exception as e:
        logger.error("api_previous_bounties_failed", error=str(e))
        return _failure(500, str(e) or "Failed to fetch previous bounties")
    return PreviousBountiesResponse(stats=stats, bounties=bounties)


@router.get("/stats", response_model=StatsResponse)
async def stats(session: AgentSession = Depends(get_session)):
    try:
        return StatsResponse(stats=await get_stats(session))
    except Exception as e:
        logger.error("api_stats_failed", error=str(e))
        return _failure(500, str(e) or "Failed to fetch stats")


@router.get("/stuck-claims", response_model=StuckClaimsResponse)
async def stuck_claims(session: AgentSession = Depends(get_session)):
    claims = sorted(session.stuck_claims.values(), key=lambda c: c.failed_at)
    return StuckClaimsResponse(claims=claims)


@router.post("/claims/{bounty_id}/{claim_id}/readmit", response_model=ReadmitResponse)
async def readmit(bounty_id: int, claim_id: int, session: AgentSession = Depends(get_session)):
    try:
        outcome = await readmit_claim(session, bounty_id, claim_id)
    except LookupError as e:
        return _failure(404, str(e))
    except PermissionError as e:
        return _failure(403, str(e))
    except LedgerError as e:
        logger.error("api_readmit_failed", bounty_id=bounty_id, claim_id=claim_id, error=str(e))
        return _failure(502, str(e))
    return ReadmitResponse(bounty_id=bounty_id, claim_id=claim_id, outcome=outcome.value)
