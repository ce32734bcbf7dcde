from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


# --- Ledger views ---

class ClaimEvent(BaseModel):
    claim_id: int
    bounty_id: int
    claim_issuer: str
    bounty_issuer: str
    name: str = ""
    description: str = ""
    block_number: int = 0
    log_index: int = 0
    tx_hash: Optional[str] = None


class BountyRecord(BaseModel):
    id: int
    issuer: str
    name: str
    description: str
    amount: int = 0
    claimer: str = ""
    created_at: int = 0
    claim_id: int = 0


class ClaimRecord(BaseModel):
    id: int
    issuer: str
    bounty_id: int
    bounty_issuer: str
    name: str = ""
    description: str = ""
    created_at: int = 0
    accepted: bool = False


# --- Off-chain payloads ---

class TokenMetadata(BaseModel):
    image: str = ""
    name: str = ""
    description: str = ""
    external_url: str = ""
    attributes: list = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class Evidence(BaseModel):
    claim_id: int
    metadata_url: str
    image_url: str
    media_type: Optional[str] = None
    size: Optional[int] = None


class GeneratedBounty(BaseModel):
    title: str = Field(..., min_length=3, max_length=120)
    description: str = Field(..., min_length=10, max_length=1000)

    model_config = {"str_strip_whitespace": True, "extra": "ignore"}


class ScoreDecision(BaseModel):
    score: Optional[int]
    threshold: int
    accepted: bool


# --- API responses ---

class HealthResponse(BaseModel):
    status: str = "ok"
    agent: str = "bounty"
    version: str = "1.0.0"
    address: str = ""
    cursor: Optional[int] = None
    poll_state: str = "idle"
    stuck_claims: int = 0


class CreateBountyResponse(BaseModel):
    success: bool = True
    bounty_id: str
    url: str


class NFTMetadata(BaseModel):
    image: str = ""
    name: str = ""
    description: str = ""
    external_url: str = ""
    attributes: list = Field(default_factory=list)
    error: Optional[str] = None


class ClaimNFT(BaseModel):
    token_id: str
    contract_address: str
    metadata: NFTMetadata


class ClaimResponse(BaseModel):
    id: str
    issuer: str
    bounty_id: str
    bounty_issuer: str
    name: str
    description: str
    created_at: datetime
    accepted: bool
    nft: ClaimNFT


class ClaimsResponse(BaseModel):
    success: bool = True
    claims: list[ClaimResponse]


class CurrentBounty(BaseModel):
    id: str
    day: int
    title: str
    description: str
    amount: str
    time_left: str
    submissions: int
    created_at: datetime
    url: Optional[str] = None


class CurrentBountyResponse(BaseModel):
    success: bool = True
    bounty: CurrentBounty


class AcceptedClaimSummary(BaseModel):
    id: str
    issuer: str


class PreviousBounty(BaseModel):
    id: str
    day: int
    title: str
    description: str
    winner: Optional[str] = None
    amount: str
    created_at: datetime
    transaction_hash: Optional[str] = None
    contract_bounty_id: Optional[str] = None
    accepted_claim: Optional[AcceptedClaimSummary] = None


class PreviousStats(BaseModel):
    total_bounties: int
    total_distributed: str


class PreviousBountiesResponse(BaseModel):
    success: bool = True
    stats: PreviousStats
    bounties: list[PreviousBounty]


class Stats(BaseModel):
    current_day: int
    total_rewards: str


class StatsResponse(BaseModel):
    success: bool = True
    stats: Stats


class StuckClaim(BaseModel):
    bounty_id: int
    claim_id: int
    reason: str
    tx_hash: Optional[str] = None
    failed_at: datetime


class StuckClaimsResponse(BaseModel):
    success: bool = True
    claims: list[StuckClaim]


class ReadmitResponse(BaseModel):
    success: bool = True
    bounty_id: int
    claim_id: int
    outcome: str
