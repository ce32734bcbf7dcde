from datetime import datetime, timedelta, timezone

import pytest

from agents.bounty.services.tracker import (
    current_bounty, format_amount, get_stats, list_claims, previous_bounties, time_left,
)
from fakes import CLAIMER


def test_format_amount():
    assert format_amount() == "0.001 DEGEN"
    assert format_amount(10) == "0.01 DEGEN"
    assert format_amount(0) == "0 DEGEN"


def test_time_left():
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert time_left(now - timedelta(hours=3, minutes=30), now) == "20 hours"
    assert time_left(now - timedelta(hours=24), now) == "Ended"
    assert time_left(now - timedelta(days=3), now) == "Ended"


@pytest.mark.asyncio
async def test_no_current_bounty(session):
    assert await current_bounty(session) is None


@pytest.mark.asyncio
async def test_current_bounty_backfills_id_and_counts_submissions(session, ledger, store):
    draft = await store.add_draft("Top Hat Tea Time", "Tea in a top hat")
    ledger.add_bounty("Top Hat Tea Time", "Tea in a top hat")
    ledger.add_claim(0, 1)
    ledger.add_claim(0, 2)

    bounty = await current_bounty(session)

    assert bounty.id == "0"
    assert bounty.day == draft.id
    assert bounty.submissions == 2
    assert bounty.amount == "0.001 DEGEN"
    assert bounty.time_left == "23 hours"
    assert bounty.url == "https://poidh.xyz/degen/bounty/0"
    assert (await store.get(draft.id)).contract_bounty_id == "0"


@pytest.mark.asyncio
async def test_current_bounty_without_onchain_match(session, ledger, store):
    draft = await store.add_draft("Never submitted", "Lost before it reached the chain")

    bounty = await current_bounty(session)

    assert bounty.id == str(draft.id)
    assert bounty.submissions == 0
    assert bounty.url is None


@pytest.mark.asyncio
async def test_previous_bounties_report_winner_and_settlement(session, ledger, store):
    ledger.add_bounty("One", "First bounty")
    ledger.add_bounty("Two", "Second bounty")
    ledger.add_claim(0, 5)
    ledger.add_claim(0, 6)
    ledger.mark_accepted(0, 6)
    ledger.add_claim(1, 7)
    await store.add_draft("One", "First bounty", onchain_id="0")
    await store.add_draft("Two", "Second bounty", onchain_id="1")
    await store.add_draft("Three", "Current bounty")

    stats, bounties = await previous_bounties(session)

    assert [b.title for b in bounties] == ["Two", "One"]
    unsettled, settled = bounties
    assert unsettled.winner is None
    assert unsettled.transaction_hash is None
    assert settled.winner == CLAIMER
    assert settled.accepted_claim.id == "6"
    assert settled.transaction_hash == f"0x{ledger.height:064x}"
    assert stats.total_bounties == 2
    assert stats.total_distributed == "0.001 DEGEN"


@pytest.mark.asyncio
async def test_winner_survives_failed_settlement_lookup(session, ledger, store):
    ledger.add_bounty("One", "First bounty")
    ledger.add_claim(0, 5)
    ledger.mark_accepted(0, 5)
    ledger.events_fail = True
    await store.add_draft("One", "First bounty", onchain_id="0")
    await store.add_draft("Current", "Current bounty")

    stats, bounties = await previous_bounties(session)

    assert bounties[0].winner == CLAIMER
    assert bounties[0].transaction_hash is None
    assert stats.total_distributed == "0.001 DEGEN"


@pytest.mark.asyncio
async def test_list_claims_marks_missing_metadata(session, ledger):
    ledger.add_bounty("One", "First bounty")
    ledger.add_claim(0, 3)

    claims = await list_claims(session, 0)

    assert len(claims) == 1
    assert claims[0].id == "3"
    assert claims[0].nft.token_id == "3"
    assert claims[0].nft.metadata.error == "Failed to fetch NFT metadata"


@pytest.mark.asyncio
async def test_stats(session, store):
    await store.add_draft("One", "First bounty")
    await store.add_draft("Two", "Second bounty")

    stats = await get_stats(session)

    assert stats.current_day == 2
    assert stats.total_rewards == "0.002 DEGEN"
