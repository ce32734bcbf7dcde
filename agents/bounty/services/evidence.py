"""
Evidence Resolver — claim NFT → token metadata → image descriptor.

Claims are NFTs; their tokenURI points at a metadata JSON document whose
`image` field is the proof photo. Content-addressed (ipfs://) references
are rewritten to the configured HTTP gateway before fetching.
"""
import httpx
from pydantic import ValidationError
from shared.config import settings
from shared.ledger import LedgerClient, LedgerError
from agents.bounty.errors import EvidenceUnresolvableError
from agents.bounty.models.schemas import Evidence, TokenMetadata
import structlog

logger = structlog.get_logger()

IPFS_SCHEME = "ipfs://"


def to_gateway_url(uri: str, gateway: str | None = None) -> str:
    uri = uri.strip()
    if not uri.startswith(IPFS_SCHEME):
        return uri
    path = uri[len(IPFS_SCHEME):]
    if path.startswith("ipfs/"):
        path = path[len("ipfs/"):]
    return f"{(gateway or settings.IPFS_GATEWAY).rstrip('/')}/{path}"


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT, follow_redirects=True)


async def fetch_token_metadata(
    ledger: LedgerClient,
    claim_id: int,
    client: httpx.AsyncClient | None = None,
) -> tuple[str, TokenMetadata]:
    """Return (metadata_url, metadata) for a claim NFT."""
    try:
        token_uri = ledger.read_token_uri(int(claim_id))
    except LedgerError as e:
        raise EvidenceUnresolvableError(f"tokenURI({claim_id}) failed: {e}") from e
    if not token_uri:
        raise EvidenceUnresolvableError(f"claim {claim_id} has no tokenURI")

    metadata_url = to_gateway_url(token_uri)
    try:
        if client is None:
            async with _http_client() as own_client:
                resp = await own_client.get(metadata_url)
        else:
            resp = await client.get(metadata_url)
        resp.raise_for_status()
        metadata = TokenMetadata.model_validate(resp.json())
    except (httpx.HTTPError, ValueError, ValidationError) as e:
        raise EvidenceUnresolvableError(f"metadata for claim {claim_id} unavailable: {e}") from e
    return metadata_url, metadata


def _describe(resp: httpx.Response) -> tuple[str | None, int | None]:
    resp.raise_for_status()
    media_type = resp.headers.get("content-type", "").split(";")[0].strip().lower() or None
    length = resp.headers.get("content-length", "")
    return media_type, int(length) if length.isdigit() else None


async def _image_descriptor(client: httpx.AsyncClient, url: str) -> tuple[str | None, int | None]:
    resp = await client.head(url)
    if resp.status_code in (403, 405, 501):
        # Some gateways refuse HEAD; read the headers of a GET instead
        async with client.stream("GET", url) as streamed:
            return _describe(streamed)
    return _describe(resp)


async def resolve_evidence(ledger: LedgerClient, claim_id: int) -> Evidence:
    """Locate the claim's proof image and check it is fetchable."""
    async with _http_client() as client:
        metadata_url, metadata = await fetch_token_metadata(ledger, claim_id, client)
        if not metadata.image:
            raise EvidenceUnresolvableError(f"claim {claim_id} metadata has no image")

        image_url = to_gateway_url(metadata.image)
        if not image_url.startswith(("http://", "https://")):
            raise EvidenceUnresolvableError(f"claim {claim_id} image is not fetchable: {metadata.image[:60]}")

        try:
            media_type, size = await _image_descriptor(client, image_url)
        except httpx.HTTPError as e:
            raise EvidenceUnresolvableError(f"image for claim {claim_id} unavailable: {e}") from e

    if media_type and not media_type.startswith("image/"):
        raise EvidenceUnresolvableError(f"claim {claim_id} evidence is {media_type}, not an image")

    logger.debug("evidence_resolved", claim_id=claim_id, image=image_url, media_type=media_type, size=size)
    return Evidence(
        claim_id=int(claim_id),
        metadata_url=metadata_url,
        image_url=image_url,
        media_type=media_type,
        size=size,
    )
