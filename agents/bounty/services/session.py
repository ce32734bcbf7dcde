"""
Agent session — the process-wide state shared by the poll loop, the
issuance workflow and the API.

Single-writer fields:
  cursor          reconciler only (under poll_lock)
  fallback        generator only (under issue_lock)
  stuck_claims    judge only
  backfill_misses backfill only
"""
import asyncio
from datetime import datetime, timezone
from enum import Enum
from tenacity import RetryError
from shared.ledger import ConnectivityError, LedgerClient
from agents.bounty.config import ACCEPT_THRESHOLD
from agents.bounty.models.schemas import StuckClaim
from agents.bounty.services.generator import FallbackRotation
from agents.bounty.services.store import BountyStore
import structlog

logger = structlog.get_logger()


class PollState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"


class AgentSession:
    def __init__(
        self,
        ledger: LedgerClient,
        store: BountyStore,
        accept_threshold: int = ACCEPT_THRESHOLD,
        fallback: FallbackRotation | None = None,
    ):
        self.ledger = ledger
        self.store = store
        self.accept_threshold = accept_threshold
        self.fallback = fallback or FallbackRotation()
        self.cursor: int | None = None
        self.poll_state = PollState.IDLE
        self.poll_lock = asyncio.Lock()
        self.issue_lock = asyncio.Lock()
        self.stuck_claims: dict[tuple[int, int], StuckClaim] = {}
        # draft id -> bounty count at the last backfill scan that found nothing
        self.backfill_misses: dict[int, int] = {}

    @property
    def address(self) -> str:
        return self.ledger.address

    def advance_cursor(self, height: int):
        if self.cursor is not None and height < self.cursor:
            raise ValueError(f"cursor cannot move back from {self.cursor} to {height}")
        self.cursor = height

    def reconnect(self) -> bool:
        try:
            self.ledger.connect()
            return True
        except (ConnectivityError, RetryError) as e:
            logger.error("ledger_reconnect_failed", error=str(e))
            return False

    def mark_stuck(self, bounty_id: int, claim_id: int, reason: str, tx_hash: str | None = None):
        self.stuck_claims[(bounty_id, claim_id)] = StuckClaim(
            bounty_id=bounty_id,
            claim_id=claim_id,
            reason=reason,
            tx_hash=tx_hash,
            failed_at=datetime.now(timezone.utc),
        )

    def clear_stuck(self, bounty_id: int, claim_id: int):
        self.stuck_claims.pop((bounty_id, claim_id), None)


_session: AgentSession | None = None


def set_session(session: AgentSession | None):
    global _session
    _session = session


def get_session() -> AgentSession:
    if _session is None:
        raise RuntimeError("Agent session not initialized")
    return _session
