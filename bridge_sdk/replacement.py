"""
Search for a transaction that replaced a dropped one.

Wallets let users speed up or cancel a pending transaction by sending a new
one with the same nonce. The original hash then never resolves, so the
search goes by sender and nonce: find the first block where the sender's
nonce moved past the dropped transaction's nonce and look for the
transaction in that block.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .chains.base import SourceChainAdapter
from .models import ChainTransaction, ReplacementCache

logger = logging.getLogger(__name__)


class SearchOutcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not-found"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class ReplacementSearchResult:
    """
    Result of a replacement search.

    Attributes:
        outcome: FOUND (``tx_hash`` consumed the nonce), NOT_FOUND (the nonce
            was consumed but no acceptable replacement exists) or
            INCONCLUSIVE (nothing consumed the nonce yet, search again later)
        tx_hash: Hash of the replacement transaction when FOUND
        reason: Human-readable explanation when NOT_FOUND
    """
    outcome: SearchOutcome
    tx_hash: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def found(cls, tx_hash: str) -> "ReplacementSearchResult":
        return cls(SearchOutcome.FOUND, tx_hash=tx_hash)

    @classmethod
    def not_found(cls, reason: str) -> "ReplacementSearchResult":
        return cls(SearchOutcome.NOT_FOUND, reason=reason)

    @classmethod
    def inconclusive(cls) -> "ReplacementSearchResult":
        return cls(SearchOutcome.INCONCLUSIVE)


def _same_address(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").lower() == (b or "").lower()


class ReplacementTxFinder:
    """Finds speed-up or cancel transactions on the source chain."""

    def __init__(self, chain: SourceChainAdapter, logger: Optional[logging.Logger] = None):
        self.chain = chain
        self.logger = logger or logging.getLogger(__name__)

    def find(self, identity: ReplacementCache, lower_height_bound: int) -> ReplacementSearchResult:
        """
        Look for a mined transaction using the nonce of ``identity``.

        Args:
            identity: Sender, recipient, nonce and payload of the dropped transaction
            lower_height_bound: First block to search (already lowered by the reorg margin)

        Returns:
            The search result
        """
        sender = identity.from_address
        nonce = identity.nonce
        latest = self.chain.current_height()

        if self.chain.get_transaction_count(sender, latest) <= nonce:
            self.logger.debug(f"Nonce {nonce} of {sender} not used yet at block {latest}")
            return ReplacementSearchResult.inconclusive()

        # Blocks lower..latest are searched, so the nonce must be unused at lower - 1
        before = max(0, min(lower_height_bound, latest)) - 1
        if before >= 0 and self.chain.get_transaction_count(sender, before) > nonce:
            return ReplacementSearchResult.not_found(
                f"Nonce {nonce} of {sender} was used by block {before}, outside the replacement search range"
            )

        mined_at = self._first_block_past_nonce(sender, nonce, before, latest)
        candidate = self._find_in_block(sender, nonce, mined_at)
        if candidate is None:
            return ReplacementSearchResult.not_found(
                f"Could not find a transaction with nonce {nonce} from {sender} in block {mined_at}"
            )

        if not _same_address(candidate.to_address, identity.to_address):
            return ReplacementSearchResult.not_found(
                f"Transaction {candidate.hash} replaced the lock but was sent to {candidate.to_address} "
                f"instead of {identity.to_address} (cancelled)"
            )
        if candidate.input.lower() != identity.data.lower():
            return ReplacementSearchResult.not_found(
                f"Transaction {candidate.hash} replaced the lock with different call data"
            )

        self.logger.info(f"Found replacement transaction {candidate.hash} for nonce {nonce} of {sender}")
        return ReplacementSearchResult.found(candidate.hash)

    def _first_block_past_nonce(self, sender: str, nonce: int, lower: int, upper: int) -> int:
        # nonce(lower) <= nonce < nonce(upper)
        while upper - lower > 1:
            middle = (lower + upper) // 2
            if self.chain.get_transaction_count(sender, middle) > nonce:
                upper = middle
            else:
                lower = middle
        return upper

    def _find_in_block(self, sender: str, nonce: int, block_number: int) -> Optional[ChainTransaction]:
        for tx in self.chain.get_block_transactions(block_number):
            if _same_address(tx.from_address, sender) and tx.nonce == nonce:
                return tx
        return None
