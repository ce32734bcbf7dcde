"""
Ledger client — one signing identity talking to one contract (plus the
claim NFT used for token metadata) over JSON-RPC.

All methods are blocking and bounded by the provider's request timeout.
Failures are translated into the small error taxonomy below so callers
never have to know about web3/requests exception types.
"""
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import requests
from eth_account import Account
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from web3 import Web3
from web3.exceptions import (
    BadResponseFormat, ContractLogicError, ProviderConnectionError,
    TimeExhausted, Web3RPCError,
)
from web3.logs import DISCARD
from shared.config import settings
from shared.web3_client import get_web3
import structlog

logger = structlog.get_logger()

ABI_DIR = Path(__file__).parent / "abis"

_TRANSPORT_ERRORS = (
    requests.exceptions.RequestException,
    ProviderConnectionError,
    BadResponseFormat,
    ConnectionError,
    TimeoutError,
)


class LedgerError(Exception):
    """A ledger call did not produce a usable result."""


class ConnectivityError(LedgerError):
    """Node unreachable, timed out, or answered with a malformed response."""


class TransactionFailedError(LedgerError):
    """A transaction was rejected, reverted, or not mined in time."""

    def __init__(self, message: str, tx_hash: str | None = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ConfirmationTimeoutError(TransactionFailedError):
    """The transaction was broadcast but no receipt arrived in time; it may still be mined."""


def _load_abi(name: str) -> list:
    with open(ABI_DIR / f"{name}.json") as f:
        return json.load(f)


@contextmanager
def _rpc(action: str, rejected=LedgerError, node_error=ConnectivityError):
    try:
        yield
    except ContractLogicError as e:
        raise rejected(f"{action} reverted: {e}") from e
    except Web3RPCError as e:
        raise node_error(f"{action} rejected by node: {e}") from e
    except _TRANSPORT_ERRORS as e:
        raise ConnectivityError(f"{action} failed: {e}") from e


def tx_hash_hex(value) -> str:
    """Normalize a transaction hash (bytes or str) to lowercase 0x-hex."""
    if isinstance(value, str):
        return value.lower() if value.startswith("0x") else f"0x{value.lower()}"
    return Web3.to_hex(value).lower()


class LedgerClient:
    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        private_key: str = "",
        chain_id: int = 1,
        nft_address: str | None = None,
        abi_name: str = "PoidhV2",
        timeout: int | None = None,
        confirm_timeout: int = 180,
    ):
        self.rpc_url = rpc_url
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.nft_address = Web3.to_checksum_address(nft_address) if nft_address else None
        self.chain_id = chain_id
        self.timeout = timeout
        self.confirm_timeout = confirm_timeout
        self._abi = _load_abi(abi_name)
        self._nft_abi = _load_abi("ClaimNFT")
        self.account = Account.from_key(private_key) if private_key else None
        self._build()

    def _build(self):
        self.w3 = get_web3(self.rpc_url, self.timeout)
        self.contract = self.w3.eth.contract(address=self.contract_address, abi=self._abi)
        self.nft = (
            self.w3.eth.contract(address=self.nft_address, abi=self._nft_abi)
            if self.nft_address else None
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(ConnectivityError),
        reraise=True,
    )
    def connect(self) -> int:
        """Rebuild provider and contract handles, then check the node responds."""
        self._build()
        height = self.current_height()
        logger.info("ledger_connected", rpc=self.rpc_url, height=height)
        return height

    @property
    def address(self) -> str:
        return self.account.address if self.account else ""

    def current_height(self) -> int:
        with _rpc("eth_blockNumber"):
            return int(self.w3.eth.block_number)

    def events_in_range(self, event_name: str, from_block: int, to_block: int) -> list:
        """Logs of one event type between two heights (inclusive), in ledger order."""
        if from_block > to_block:
            raise ValueError(f"from_block {from_block} > to_block {to_block}")
        event = getattr(self.contract.events, event_name)
        with _rpc(f"get_logs {event_name}"):
            return list(event().get_logs(from_block=from_block, to_block=to_block))

    def read_state(self, fn_name: str, *args) -> Any:
        with _rpc(f"call {fn_name}"):
            return getattr(self.contract.functions, fn_name)(*args).call()

    def read_token_uri(self, token_id: int) -> str:
        if self.nft is None:
            raise LedgerError("claim NFT address not configured")
        with _rpc("call tokenURI"):
            return self.nft.functions.tokenURI(token_id).call()

    def submit_transaction(self, fn_name: str, *args, value: int = 0) -> str:
        """Sign and broadcast a contract call. Returns the tx hash.

        Gas is estimated by the node, so a call that would revert is refused
        here before anything is spent.
        """
        if not self.account:
            raise TransactionFailedError("PRIVATE_KEY not configured")
        fn = getattr(self.contract.functions, fn_name)(*args)
        with _rpc(f"submit {fn_name}", rejected=TransactionFailedError, node_error=TransactionFailedError):
            tx = fn.build_transaction({
                "from": self.account.address,
                "value": value,
                "nonce": self.w3.eth.get_transaction_count(self.account.address, "pending"),
                "gasPrice": self.w3.eth.gas_price,
                "chainId": self.chain_id,
            })
            signed = self.account.sign_transaction(tx)
            tx_hash = tx_hash_hex(self.w3.eth.send_raw_transaction(signed.raw_transaction))
        logger.info("tx_sent", fn=fn_name, tx_hash=tx_hash, value=value)
        return tx_hash

    def confirm(self, tx_hash: str):
        """Block until the transaction is mined; return its receipt."""
        try:
            with _rpc(f"receipt {tx_hash}"):
                receipt = self.w3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=self.confirm_timeout
                )
        except TimeExhausted as e:
            raise ConfirmationTimeoutError(
                f"{tx_hash} not mined within {self.confirm_timeout}s", tx_hash=tx_hash
            ) from e
        if receipt["status"] != 1:
            raise TransactionFailedError(f"{tx_hash} reverted", tx_hash=tx_hash)
        return receipt

    def decode_receipt_events(self, event_name: str, receipt) -> list:
        event = getattr(self.contract.events, event_name)
        try:
            return list(event().process_receipt(receipt, errors=DISCARD))
        except (ValueError, KeyError, TypeError) as e:
            raise LedgerError(f"could not decode {event_name} from receipt: {e}") from e


def get_ledger() -> LedgerClient:
    return LedgerClient(
        rpc_url=settings.RPC_URL,
        contract_address=settings.BOUNTY_CONTRACT_ADDRESS,
        private_key=settings.PRIVATE_KEY,
        chain_id=settings.CHAIN_ID,
        nft_address=settings.CLAIM_NFT_ADDRESS,
        timeout=settings.RPC_TIMEOUT,
        confirm_timeout=settings.TX_CONFIRM_TIMEOUT,
    )
