"""
Pending wallet approvals for NEAR-source transfers.

NEAR transactions are signed by the user's wallet, which may redirect away
from the application and come back later with either the transaction hash
or an error code. ``PendingApproval`` records which transfer is waiting on
the wallet and what the wallet reported, so ``check_lock`` can be polled
like any other step.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class ApprovalState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    LOST = "lost"


@dataclass(frozen=True)
class ApprovalOutcome:
    state: ApprovalState
    tx_hash: Optional[str] = None
    error_code: Optional[str] = None


class PendingApproval(ABC):
    """Tracks the wallet outcome of each transfer waiting for a signature."""

    @abstractmethod
    def request(self, transfer_id: str) -> None:
        """Mark ``transfer_id`` as waiting for the wallet."""
        pass

    @abstractmethod
    def outcome(self, transfer_id: str) -> ApprovalOutcome:
        """
        Current outcome for ``transfer_id``.

        A transfer that was never requested, or whose request was abandoned
        (e.g. the user closed the wallet page), is ``LOST``.
        """
        pass

    @abstractmethod
    def resolve(self, transfer_id: str, tx_hash: Optional[str] = None, error_code: Optional[str] = None) -> None:
        """Record the wallet's answer: a transaction hash or an error code."""
        pass

    @abstractmethod
    def clear(self, transfer_id: str) -> None:
        pass


class InMemoryApprovals(PendingApproval):
    """Process-local approvals, safe to share between threads."""

    def __init__(self):
        self._outcomes: Dict[str, ApprovalOutcome] = {}
        self._lock = threading.RLock()

    def request(self, transfer_id: str) -> None:
        with self._lock:
            self._outcomes[transfer_id] = ApprovalOutcome(ApprovalState.PENDING)

    def outcome(self, transfer_id: str) -> ApprovalOutcome:
        with self._lock:
            return self._outcomes.get(transfer_id, ApprovalOutcome(ApprovalState.LOST))

    def resolve(self, transfer_id: str, tx_hash: Optional[str] = None, error_code: Optional[str] = None) -> None:
        if (tx_hash is None) == (error_code is None):
            raise ValueError("Exactly one of tx_hash or error_code is required")
        if error_code is not None:
            resolved = ApprovalOutcome(ApprovalState.REJECTED, error_code=error_code)
        else:
            resolved = ApprovalOutcome(ApprovalState.APPROVED, tx_hash=tx_hash)
        with self._lock:
            self._outcomes[transfer_id] = resolved
        logger.debug(f"Wallet outcome for transfer {transfer_id}: {resolved.state.value}")

    def abandon(self, transfer_id: str) -> None:
        """Forget a pending request; the transfer then reads as ``LOST``."""
        self.clear(transfer_id)

    def clear(self, transfer_id: str) -> None:
        with self._lock:
            self._outcomes.pop(transfer_id, None)


@dataclass
class FunctionCallAction:
    """One NEAR function call action inside a transaction."""
    method_name: str
    args: Dict[str, Any] = field(default_factory=dict)
    gas: int = 0
    deposit: int = 0


class NearWallet(Protocol):
    """
    Signs and sends NEAR transactions on behalf of the user.

    Both methods return the transaction hash, or None when the wallet
    redirected and the hash will be delivered later via ``PendingApproval.resolve``.
    """

    account_id: str

    def function_call(
        self,
        contract_id: str,
        method_name: str,
        args: Dict[str, Any],
        gas: int,
        attached_deposit: int
    ) -> Optional[str]:
        ...

    def sign_and_send_transaction(self, receiver_id: str, actions: List[FunctionCallAction]) -> Optional[str]:
        ...
