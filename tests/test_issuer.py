"""Tests for bounty creation and on-chain id correlation."""
import asyncio
import threading

import pytest

from shared.ledger import ConfirmationTimeoutError, ConnectivityError, TransactionFailedError
from agents.bounty.errors import BountyIdUnresolvedError
from agents.bounty.models.schemas import GeneratedBounty
from agents.bounty.services import issuer
from agents.bounty.services.issuer import (
    backfill_bounty_id, bounty_url, create_bounty, stake_wei,
)
from fakes import OTHER

IDEA = GeneratedBounty(
    title="Top Hat Commute",
    description="Photograph yourself on your morning commute wearing a top hat.",
)
OTHER_IDEA = GeneratedBounty(
    title="Top Hat Picnic",
    description="Share a photo of a picnic where everyone wears a top hat.",
)


def _generate(idea):
    async def fake_generate(recent_titles, fallback):
        return idea
    return fake_generate


@pytest.fixture(autouse=True)
def fixed_idea(monkeypatch):
    seen = []

    async def fake_generate(recent_titles, fallback):
        seen.append(list(recent_titles))
        return IDEA

    monkeypatch.setattr(issuer, "generate_bounty_idea", fake_generate)
    return seen


def test_stake_is_configured_amount_in_wei():
    assert stake_wei() == 10**15


def test_bounty_url():
    assert bounty_url("42") == "https://poidh.xyz/degen/bounty/42"


class TestCreateBounty:

    @pytest.mark.asyncio
    async def test_creates_and_records_bounty(self, session, ledger, store):
        ledger.add_bounty("Older", "An older bounty from somebody else", issuer=OTHER)

        bounty_id = await create_bounty(session)

        assert bounty_id == "1"
        assert ledger.submitted == [("createSoloBounty", (IDEA.title, IDEA.description), 10**15)]
        draft = await store.latest()
        assert draft.title == IDEA.title
        assert draft.contract_bounty_id == "1"

    @pytest.mark.asyncio
    async def test_recent_titles_are_passed_to_generator(self, session, store, fixed_idea):
        await store.add_draft("Formal Fitness", "Exercise in a top hat", onchain_id="0")

        await create_bounty(session)

        assert fixed_idea == [["Formal Fitness"]]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", ["empty", "error"])
    async def test_id_recovered_from_block_events(self, session, ledger, store, mode):
        ledger.receipt_decode = mode

        bounty_id = await create_bounty(session)

        # the unrelated bounty created in the same block is not picked up
        assert bounty_id == "0"
        assert ledger.ranges == [("BountyCreated", ledger.height, ledger.height)]
        assert (await store.latest()).contract_bounty_id == "0"

    @pytest.mark.asyncio
    async def test_unresolved_id_keeps_draft_and_raises(self, session, ledger, store):
        ledger.receipt_decode = "empty"
        ledger.events_fail = True

        with pytest.raises(BountyIdUnresolvedError) as exc_info:
            await create_bounty(session)

        draft = await store.latest()
        assert draft.contract_bounty_id is None
        assert exc_info.value.local_id == draft.id
        assert exc_info.value.tx_hash == f"0x{1:064x}"
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_reverted_transaction_stores_nothing(self, session, ledger, store):
        ledger.confirm_error = TransactionFailedError("transaction reverted", tx_hash="0x01")

        with pytest.raises(TransactionFailedError):
            await create_bounty(session)

        assert await store.count() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        ConfirmationTimeoutError("not mined within 180s", tx_hash="0x01"),
        ConnectivityError("receipt request timed out"),
    ])
    async def test_retry_after_unconfirmed_creation_does_not_stake_again(
        self, session, ledger, store, monkeypatch, error,
    ):
        ledger.confirm_error = error

        with pytest.raises(type(error)):
            await create_bounty(session)

        pending = await store.latest()
        assert pending.title == IDEA.title
        assert pending.contract_bounty_id is None

        # the transaction was mined after all; the retry gets new content
        ledger.confirm_error = None
        monkeypatch.setattr(issuer, "generate_bounty_idea", _generate(OTHER_IDEA))

        assert await create_bounty(session) == "0"
        assert len(ledger.submitted) == 1
        assert await store.count() == 1
        assert (await store.get(pending.id)).contract_bounty_id == "0"

    @pytest.mark.asyncio
    async def test_stale_unconfirmed_creation_is_linked_then_new_bounty_issued(
        self, session, ledger, store, monkeypatch,
    ):
        monkeypatch.setattr(issuer, "RETRY_WINDOW_HOURS", 0)
        ledger.confirm_error = ConfirmationTimeoutError("not mined within 180s", tx_hash="0x01")
        with pytest.raises(ConfirmationTimeoutError):
            await create_bounty(session)
        pending = await store.latest()

        ledger.confirm_error = None
        monkeypatch.setattr(issuer, "generate_bounty_idea", _generate(OTHER_IDEA))

        assert await create_bounty(session) == "1"
        assert len(ledger.submitted) == 2
        assert (await store.get(pending.id)).contract_bounty_id == "0"
        assert (await store.latest()).title == OTHER_IDEA.title

    @pytest.mark.asyncio
    async def test_event_loop_runs_while_waiting_for_confirmation(self, session, ledger, monkeypatch):
        released = threading.Event()
        confirm = ledger.confirm

        def slow_confirm(tx_hash):
            if not released.wait(timeout=5):
                raise AssertionError("confirmation blocked the event loop")
            return confirm(tx_hash)

        monkeypatch.setattr(ledger, "confirm", slow_confirm)

        async def release():
            await asyncio.sleep(0.05)
            released.set()

        bounty_id, _ = await asyncio.gather(create_bounty(session), release())

        assert bounty_id == "0"

    @pytest.mark.asyncio
    async def test_unrecorded_bounty_is_adopted_instead_of_resubmitted(self, session, ledger, store):
        ledger.add_bounty(IDEA.title, IDEA.description)

        bounty_id = await create_bounty(session)

        assert bounty_id == "0"
        assert ledger.submitted == []
        assert (await store.latest()).contract_bounty_id == "0"

    @pytest.mark.asyncio
    async def test_orphan_adoption_links_existing_unlinked_draft(self, session, ledger, store):
        draft = await store.add_draft(IDEA.title, IDEA.description)
        ledger.add_bounty(IDEA.title, IDEA.description)

        assert await create_bounty(session) == "0"

        assert await store.count() == 1
        assert (await store.get(draft.id)).contract_bounty_id == "0"

    @pytest.mark.asyncio
    async def test_matching_bounty_from_another_issuer_is_not_adopted(self, session, ledger):
        ledger.add_bounty(IDEA.title, IDEA.description, issuer=OTHER)

        assert await create_bounty(session) == "1"
        assert len(ledger.submitted) == 1


class TestBackfill:

    @pytest.mark.asyncio
    async def test_backfills_once_and_skips_failing_index(self, session, ledger, store):
        draft = await store.add_draft("Hat Stack Challenge", "Balance three top hats")
        ledger.add_bounty("Hat Stack Challenge", "Balance three top hats")
        ledger.add_bounty("Something else", "Unrelated")
        ledger.add_bounty("Broken", "Cannot be read")
        ledger.bounty_read_failures = {2}

        assert await backfill_bounty_id(session, draft) == "0"
        assert (await store.get(draft.id)).contract_bounty_id == "0"

        ledger.bounty_read_failures = {0, 1, 2}
        assert await backfill_bounty_id(session, draft) == "0"

    @pytest.mark.asyncio
    async def test_skips_ids_linked_to_other_drafts(self, session, ledger, store):
        await store.add_draft("Same", "Same content", onchain_id="1")
        draft = await store.add_draft("Same", "Same content")
        ledger.add_bounty("Same", "Same content")
        ledger.add_bounty("Same", "Same content")

        assert await backfill_bounty_id(session, draft) == "0"

    @pytest.mark.asyncio
    async def test_no_match_leaves_draft_unlinked(self, session, ledger, store):
        draft = await store.add_draft("Nobody", "Never created on-chain")
        ledger.add_bounty("Other", "Other content")

        assert await backfill_bounty_id(session, draft) is None
        assert (await store.get(draft.id)).contract_bounty_id is None

    @pytest.mark.asyncio
    async def test_miss_is_not_rescanned_until_new_bounties_appear(self, session, ledger, store):
        draft = await store.add_draft("Nobody", "Never created on-chain")
        ledger.add_bounty("Other", "Other content")
        assert await backfill_bounty_id(session, draft) is None

        ledger.reads.clear()
        assert await backfill_bounty_id(session, draft) is None
        assert ledger.reads == [("bountyCounter", ())]

        ledger.add_bounty("Nobody", "Never created on-chain")
        assert await backfill_bounty_id(session, draft) == "1"
        assert draft.id not in session.backfill_misses
