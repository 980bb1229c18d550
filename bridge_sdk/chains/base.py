"""
Interfaces to the chains and services the transfer state machine reads.

The state machine only depends on these narrow contracts, so any RPC
client (or a test fake) can be plugged in.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models import ChainTransaction, LockEvent, TokenMetadata, TxReceipt


@dataclass
class LockParams:
    """Arguments of a source-chain lock transaction."""
    sender: str
    recipient: str
    amount: str
    fee: str = "0"


class SourceChainAdapter(ABC):
    """
    Source-chain RPC client.

    Every method performs a blocking network call; transport errors are
    raised to the caller unchanged.
    """

    @abstractmethod
    def chain_id(self) -> int:
        """Id of the chain the adapter is connected to."""
        pass

    @abstractmethod
    def get_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        """
        Look up a transaction receipt.

        Returns:
            The receipt, or None if the transaction is not mined (or unknown)
        """
        pass

    @abstractmethod
    def get_transaction(self, tx_hash: str) -> Optional[ChainTransaction]:
        """Look up a pending or mined transaction, None if unknown."""
        pass

    @abstractmethod
    def current_height(self) -> int:
        """Latest block number."""
        pass

    @abstractmethod
    def broadcast_lock(self, params: LockParams) -> str:
        """
        Sign and broadcast a lock transaction.

        Returns without waiting for the transaction to be mined.

        Returns:
            Transaction hash
        """
        pass

    @abstractmethod
    def get_revert_reason(self, tx_hash: str) -> str:
        """Best-effort reason a mined transaction reverted."""
        pass

    @abstractmethod
    def get_transaction_count(self, address: str, block_number: Optional[int] = None) -> int:
        """Nonce of ``address`` after ``block_number`` (latest when None)."""
        pass

    @abstractmethod
    def get_block_transactions(self, block_number: int) -> List[ChainTransaction]:
        """All transactions included in a block."""
        pass

    @abstractmethod
    def get_lock_events(self, receipt: TxReceipt) -> List[LockEvent]:
        """Bridge lock events emitted in the transaction of ``receipt``."""
        pass


class DestinationChainAdapter(ABC):
    """Destination-chain view of the bridge."""

    @abstractmethod
    def synced_height(self) -> int:
        """Latest source-chain block known to the destination chain's light client."""
        pass

    @abstractmethod
    def is_proof_used(self, proof: bytes) -> bool:
        """Whether the destination verifier already accepted ``proof``."""
        pass


class FinalityOracle(ABC):
    """Builds finality proofs for source-chain events."""

    @abstractmethod
    def find_proof(self, receipt: TxReceipt) -> bytes:
        """
        Build the proof of the bridge event in ``receipt``.

        Returns:
            Proof bytes, serialised for the destination verifier
        """
        pass


class Indexer(ABC):
    """Read access to an indexed transaction history."""

    @abstractmethod
    def query(self, query: str) -> List[Dict[str, Any]]:
        """Run a query and return result rows."""
        pass


class MetadataResolver(ABC):
    """Resolves fungible token metadata."""

    @abstractmethod
    def resolve(self, token_id: str) -> TokenMetadata:
        pass
