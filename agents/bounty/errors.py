"""
Agent-level failures. Ledger failures (ConnectivityError,
TransactionFailedError) live in shared.ledger.
"""


class EvidenceUnresolvableError(Exception):
    """A claim's evidence could not be located or fetched."""


class OracleUnavailableError(Exception):
    """The scoring model could not be reached or timed out."""


class MalformedScoreError(Exception):
    """The scoring model answered, but not with a usable score."""


class BountyIdUnresolvedError(Exception):
    """The creation transaction was mined but its bounty id is unknown.

    Funds are already spent; the draft is stored without an id so the
    backfill scan can repair it, and an operator should be told.
    """

    def __init__(self, tx_hash: str, local_id: int | None = None):
        super().__init__(f"Bounty id not found for transaction {tx_hash}")
        self.tx_hash = tx_hash
        self.local_id = local_id
