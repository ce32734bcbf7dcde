"""
Bounded best-effort scans over ledger records.

Candidates are produced lazily and the scan stops at the first hit, so a
check is only paid for the indices actually visited.
"""
from typing import Callable, Iterable, Iterator, TypeVar
from shared.ledger import LedgerError
import structlog

logger = structlog.get_logger()

T = TypeVar("T")


def candidate_indices(total: int, depth: int | None = None) -> Iterator[int]:
    """Indices total-1 down to 0, or only the newest `depth` of them."""
    stop = 0 if depth is None else max(total - depth, 0)
    yield from range(total - 1, stop - 1, -1)


def first_match(
    candidates: Iterable[T],
    matches: Callable[[T], bool],
) -> T | None:
    """Return the first candidate that matches.

    A check that fails with a LedgerError is logged and skipped; one bad
    index never ends the scan.
    """
    for candidate in candidates:
        try:
            if matches(candidate):
                return candidate
        except LedgerError as e:
            logger.warning("scan_candidate_failed", candidate=candidate, error=str(e))
    return None
