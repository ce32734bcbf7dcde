"""
Blockchain Service — typed views over the POIDH bounty contract.

Thin functions that call the shared LedgerClient and turn raw tuples and
event logs into the agent's pydantic models.
"""
from shared.ledger import LedgerClient, LedgerError, tx_hash_hex
from agents.bounty.config import CLAIM_EVENT
from agents.bounty.models.schemas import BountyRecord, ClaimEvent, ClaimRecord

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def same_address(a: str | None, b: str | None) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


def _claim_event(log) -> ClaimEvent:
    args = log["args"]
    return ClaimEvent(
        claim_id=int(args["id"]),
        bounty_id=int(args["bountyId"]),
        claim_issuer=args["issuer"],
        bounty_issuer=args["bountyIssuer"],
        name=args.get("name", ""),
        description=args.get("description", ""),
        block_number=int(log.get("blockNumber") or 0),
        log_index=int(log.get("logIndex") or 0),
        tx_hash=tx_hash_hex(log["transactionHash"]) if log.get("transactionHash") else None,
    )


def fetch_claim_events(ledger: LedgerClient, from_block: int, to_block: int) -> list[ClaimEvent]:
    """ClaimCreated events in the range, in the order the node returned them."""
    return [_claim_event(log) for log in ledger.events_in_range(CLAIM_EVENT, from_block, to_block)]


def get_bounty(ledger: LedgerClient, bounty_id: int) -> BountyRecord:
    raw = ledger.read_state("bounties", int(bounty_id))
    try:
        return BountyRecord(
            id=int(raw[0]),
            issuer=raw[1],
            name=raw[2],
            description=raw[3],
            amount=int(raw[4]),
            claimer=raw[5],
            created_at=int(raw[6]),
            claim_id=int(raw[7]),
        )
    except (IndexError, TypeError, ValueError) as e:
        raise LedgerError(f"unexpected bounty tuple for #{bounty_id}: {raw!r}") from e


def bounty_count(ledger: LedgerClient) -> int:
    return int(ledger.read_state("bountyCounter"))


def get_claims(ledger: LedgerClient, bounty_id: int) -> list[ClaimRecord]:
    claims = []
    for raw in ledger.read_state("getClaimsByBountyId", int(bounty_id)):
        claims.append(ClaimRecord(
            id=int(raw[0]),
            issuer=raw[1],
            bounty_id=int(raw[2]),
            bounty_issuer=raw[3],
            name=raw[4],
            description=raw[5],
            created_at=int(raw[6]),
            accepted=bool(raw[7]),
        ))
    return claims


def is_bounty_settled(bounty: BountyRecord) -> bool:
    return bool(bounty.claimer) and bounty.claimer != ZERO_ADDRESS


def bounty_ids_from_receipt(ledger: LedgerClient, receipt) -> list[str]:
    return [str(ev["args"]["id"]) for ev in ledger.decode_receipt_events("BountyCreated", receipt)]


def bounty_created_in_block(ledger: LedgerClient, block_number: int) -> list:
    return ledger.events_in_range("BountyCreated", block_number, block_number)


def claim_accepted_events(ledger: LedgerClient, lookback: int) -> list:
    latest = ledger.current_height()
    return ledger.events_in_range("ClaimAccepted", max(latest - lookback, 0), latest)
