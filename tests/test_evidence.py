import json

import httpx
import pytest

from agents.bounty.errors import EvidenceUnresolvableError
from agents.bounty.services import evidence
from agents.bounty.services.evidence import resolve_evidence, to_gateway_url

META_URL = "https://ipfs.io/ipfs/QmMeta"
IMAGE_URL = "https://ipfs.io/ipfs/QmImage"


@pytest.fixture
def gateway(monkeypatch):
    """Route evidence HTTP traffic to an in-process handler."""
    state = {
        "metadata": {"name": "claim", "image": "ipfs://QmImage"},
        "meta_status": 200,
        "head_status": 200,
        "content_type": "image/jpeg",
        "requests": [],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append((request.method, str(request.url)))
        if str(request.url) == META_URL:
            if state["meta_status"] != 200:
                return httpx.Response(state["meta_status"])
            return httpx.Response(200, content=json.dumps(state["metadata"]).encode())
        if request.method == "HEAD" and state["head_status"] != 200:
            return httpx.Response(state["head_status"])
        return httpx.Response(
            200,
            headers={"content-type": state["content_type"], "content-length": "2048"},
            content=b"\xff" * 2048,
        )

    monkeypatch.setattr(
        evidence, "_http_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return state


@pytest.fixture
def nft_ledger(ledger):
    ledger.token_uris[11] = "ipfs://QmMeta"
    return ledger


@pytest.mark.parametrize("uri,expected", [
    ("ipfs://QmAbc", "https://ipfs.io/ipfs/QmAbc"),
    ("ipfs://ipfs/QmAbc/1.png", "https://ipfs.io/ipfs/QmAbc/1.png"),
    ("https://example.com/a.png", "https://example.com/a.png"),
])
def test_to_gateway_url(uri, expected):
    assert to_gateway_url(uri) == expected


def test_to_gateway_url_custom_gateway():
    assert to_gateway_url("ipfs://QmAbc", "https://gw.example/ipfs") == "https://gw.example/ipfs/QmAbc"


@pytest.mark.asyncio
async def test_resolves_image_through_gateway(nft_ledger, gateway):
    ev = await resolve_evidence(nft_ledger, 11)

    assert ev.metadata_url == META_URL
    assert ev.image_url == IMAGE_URL
    assert ev.media_type == "image/jpeg"
    assert ev.size == 2048
    assert gateway["requests"] == [("GET", META_URL), ("HEAD", IMAGE_URL)]


@pytest.mark.asyncio
async def test_head_refused_falls_back_to_get(nft_ledger, gateway):
    gateway["head_status"] = 405

    ev = await resolve_evidence(nft_ledger, 11)

    assert ev.media_type == "image/jpeg"
    assert gateway["requests"][-1] == ("GET", IMAGE_URL)


@pytest.mark.asyncio
async def test_missing_token_uri_is_unresolvable(ledger, gateway):
    with pytest.raises(EvidenceUnresolvableError):
        await resolve_evidence(ledger, 11)
    assert gateway["requests"] == []


@pytest.mark.asyncio
async def test_metadata_http_error_is_unresolvable(nft_ledger, gateway):
    gateway["meta_status"] = 504

    with pytest.raises(EvidenceUnresolvableError):
        await resolve_evidence(nft_ledger, 11)


@pytest.mark.asyncio
async def test_metadata_without_image_is_unresolvable(nft_ledger, gateway):
    gateway["metadata"] = {"name": "claim"}

    with pytest.raises(EvidenceUnresolvableError, match="no image"):
        await resolve_evidence(nft_ledger, 11)


@pytest.mark.asyncio
async def test_non_image_evidence_is_unresolvable(nft_ledger, gateway):
    gateway["content_type"] = "text/html; charset=utf-8"

    with pytest.raises(EvidenceUnresolvableError, match="not an image"):
        await resolve_evidence(nft_ledger, 11)


@pytest.mark.asyncio
async def test_image_not_found_is_unresolvable(nft_ledger, gateway):
    gateway["head_status"] = 404

    with pytest.raises(EvidenceUnresolvableError):
        await resolve_evidence(nft_ledger, 11)
