"""
Claim Judge — the admission pipeline for claims on our bounties.

evidence → score → threshold → settle. Every failure before settlement is
a reject: a claim is only ever accepted on a clean score at or above the
threshold. Settlement reads the contract first so re-observed claims do
not produce duplicate acceptances.
"""
import asyncio
from enum import Enum
from shared.ledger import ConnectivityError, LedgerError, TransactionFailedError
from agents.bounty.errors import (
    EvidenceUnresolvableError, MalformedScoreError, OracleUnavailableError,
)
from agents.bounty.models.schemas import ClaimEvent, ScoreDecision
from agents.bounty.services.blockchain import (
    get_bounty, get_claims, is_bounty_settled, same_address,
)
from agents.bounty.services.evidence import resolve_evidence
from agents.bounty.services.oracle import score_evidence
import structlog

logger = structlog.get_logger()


class AdmissionOutcome(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNVERIFIABLE = "unverifiable"
    ALREADY_SETTLED = "already_settled"
    SETTLEMENT_FAILED = "settlement_failed"


def decide(score: int | None, threshold: int) -> ScoreDecision:
    return ScoreDecision(
        score=score,
        threshold=threshold,
        accepted=score is not None and score >= threshold,
    )


def obtain_score(title: str, description: str, image_url: str) -> int | None:
    """Oracle score, or None when no usable score could be had."""
    try:
        return score_evidence(title, description, image_url)
    except OracleUnavailableError as e:
        logger.warning("oracle_unavailable", error=str(e))
    except MalformedScoreError as e:
        logger.warning("oracle_score_malformed", error=str(e))
    return None


def _accepted_claim_id(ledger, bounty_id: int) -> int | None:
    for claim in get_claims(ledger, bounty_id):
        if claim.accepted:
            return claim.id
    return None


async def settle_claim(session, bounty_id: int, claim_id: int) -> AdmissionOutcome:
    """Accept a claim on-chain unless the bounty is already settled."""
    ledger = session.ledger
    try:
        accepted = _accepted_claim_id(ledger, bounty_id)
    except LedgerError as e:
        logger.error("settlement_precheck_failed", bounty_id=bounty_id, claim_id=claim_id, error=str(e))
        session.mark_stuck(bounty_id, claim_id, f"precheck failed: {e}")
        return AdmissionOutcome.SETTLEMENT_FAILED
    if accepted is not None:
        logger.info("bounty_already_settled", bounty_id=bounty_id, claim_id=claim_id, accepted_claim=accepted)
        session.clear_stuck(bounty_id, claim_id)
        return AdmissionOutcome.ALREADY_SETTLED

    tx_hash = None
    try:
        tx_hash = ledger.submit_transaction("acceptClaim", bounty_id, claim_id)
        await asyncio.to_thread(ledger.confirm, tx_hash)
    except (TransactionFailedError, ConnectivityError) as e:
        tx_hash = getattr(e, "tx_hash", None) or tx_hash
        try:
            accepted = _accepted_claim_id(ledger, bounty_id)
        except LedgerError:
            accepted = None
        if accepted is not None:
            # Someone (or an earlier tick) got there first; the contract
            # refused the duplicate.
            logger.info("settlement_duplicate_ignored", bounty_id=bounty_id, claim_id=claim_id, accepted_claim=accepted)
            session.clear_stuck(bounty_id, claim_id)
            return AdmissionOutcome.ALREADY_SETTLED
        logger.error("claim_settlement_failed", bounty_id=bounty_id, claim_id=claim_id, tx_hash=tx_hash, error=str(e))
        session.mark_stuck(bounty_id, claim_id, str(e), tx_hash=tx_hash)
        return AdmissionOutcome.SETTLEMENT_FAILED

    session.clear_stuck(bounty_id, claim_id)
    logger.info("claim_accepted", bounty_id=bounty_id, claim_id=claim_id, tx_hash=tx_hash)
    return AdmissionOutcome.ACCEPTED


async def admit_claim(session, event: ClaimEvent) -> AdmissionOutcome:
    """Run one claim through evidence, scoring, decision and settlement."""
    ledger = session.ledger
    bounty = get_bounty(ledger, event.bounty_id)
    if is_bounty_settled(bounty):
        logger.info("claim_skipped_bounty_closed", bounty_id=event.bounty_id, claim_id=event.claim_id)
        return AdmissionOutcome.ALREADY_SETTLED

    try:
        evidence = await resolve_evidence(ledger, event.claim_id)
    except EvidenceUnresolvableError as e:
        logger.warning("claim_unverifiable", bounty_id=event.bounty_id, claim_id=event.claim_id, error=str(e))
        return AdmissionOutcome.UNVERIFIABLE

    score = obtain_score(bounty.name, bounty.description, evidence.image_url)
    decision = decide(score, session.accept_threshold)
    logger.info(
        "claim_judged",
        bounty_id=event.bounty_id,
        claim_id=event.claim_id,
        score=decision.score,
        threshold=decision.threshold,
        accepted=decision.accepted,
    )
    if not decision.accepted:
        return AdmissionOutcome.REJECTED

    return await settle_claim(session, event.bounty_id, event.claim_id)


async def readmit_claim(session, bounty_id: int, claim_id: int) -> AdmissionOutcome:
    """Operator re-trigger: run a claim through the pipeline again."""
    claim = next((c for c in get_claims(session.ledger, bounty_id) if c.id == claim_id), None)
    if claim is None:
        raise LookupError(f"claim {claim_id} not found on bounty {bounty_id}")
    if not same_address(claim.bounty_issuer, session.address):
        raise PermissionError(f"bounty {bounty_id} was not issued by this agent")

    event = ClaimEvent(
        claim_id=claim.id,
        bounty_id=claim.bounty_id,
        claim_issuer=claim.issuer,
        bounty_issuer=claim.bounty_issuer,
        name=claim.name,
        description=claim.description,
    )
    outcome = await admit_claim(session, event)
    if outcome != AdmissionOutcome.SETTLEMENT_FAILED:
        session.clear_stuck(bounty_id, claim_id)
    logger.info("claim_readmitted", bounty_id=bounty_id, claim_id=claim_id, outcome=outcome.value)
    return outcome
