"""
Transfer state machine.

Dispatches a transfer to the handler registered for its protocol type and
completed step. ``act`` performs the next user-visible action (for
transfers that need one, or failed transfers being retried); ``check_status``
polls the progress of an in-progress transfer.
"""
import logging
from typing import Dict, Iterable, Optional, Tuple

from ..exceptions import UnrecognizedStepError
from ..models import Step, Transfer, TransferStatus, step_rank
from .protocols.base import BridgeProtocol, Handler

logger = logging.getLogger(__name__)

DispatchKey = Tuple[str, Optional[Step]]


class TransferStateMachine:
    """
    Explicit ``{(protocol type, completed step) -> handler}`` tables.

    Example:
        machine = TransferStateMachine([ether_protocol, nep141_protocol])
        transfer = machine.check_status(transfer)
    """

    def __init__(self, protocols: Iterable[BridgeProtocol] = (), logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._protocols: Dict[str, BridgeProtocol] = {}
        self._act_table: Dict[DispatchKey, Handler] = {}
        self._status_table: Dict[DispatchKey, Handler] = {}
        for protocol in protocols:
            self.register(protocol)

    def register(self, protocol: BridgeProtocol) -> None:
        """Add a protocol's handlers, replacing any registered for the same type."""
        transfer_type = protocol.transfer_type
        if not transfer_type:
            raise ValueError(f"{type(protocol).__name__} has no transfer_type")
        for table in (self._act_table, self._status_table):
            for key in [key for key in table if key[0] == transfer_type]:
                del table[key]
        self._protocols[transfer_type] = protocol
        for step, handler in protocol.act_handlers().items():
            self._act_table[(transfer_type, step)] = handler
        for step, handler in protocol.status_handlers().items():
            self._status_table[(transfer_type, step)] = handler
        self.logger.debug(f"Registered protocol {transfer_type} with steps {[s.value for s in protocol.steps]}")

    @property
    def transfer_types(self) -> Tuple[str, ...]:
        return tuple(self._protocols)

    def protocol_for(self, transfer: Transfer) -> BridgeProtocol:
        try:
            return self._protocols[transfer.type]
        except KeyError:
            raise UnrecognizedStepError(
                f"Unknown transfer type '{transfer.type}' for transfer {transfer.id}", transfer.id
            )

    def act(self, transfer: Transfer) -> Transfer:
        """
        Perform the next action of a transfer that is waiting on the user or failed.

        Raises:
            UnrecognizedStepError: If no action exists for the transfer's type and step
        """
        if transfer.status not in (TransferStatus.ACTION_NEEDED, TransferStatus.FAILED):
            self.logger.warning(f"act called on transfer {transfer.id} with status {transfer.status.value}")
        return self._dispatch(self._act_table, "act on", transfer)

    def check_status(self, transfer: Transfer) -> Transfer:
        """
        Poll an in-progress transfer.

        Raises:
            UnrecognizedStepError: If no status check exists for the transfer's type and step
        """
        if transfer.status != TransferStatus.IN_PROGRESS:
            self.logger.warning(f"check_status called on transfer {transfer.id} with status {transfer.status.value}")
        return self._dispatch(self._status_table, "check status of", transfer)

    def _dispatch(self, table: Dict[DispatchKey, Handler], verb: str, transfer: Transfer) -> Transfer:
        self.protocol_for(transfer)
        handler = table.get((transfer.type, transfer.completed_step))
        if handler is None:
            step = transfer.completed_step.value if transfer.completed_step else None
            raise UnrecognizedStepError(
                f"Don't know how to {verb} transfer {transfer.id} of type {transfer.type} at step {step}",
                transfer.id
            )
        updated = handler(transfer)
        if step_rank(updated.completed_step) < step_rank(transfer.completed_step):
            raise RuntimeError(
                f"Transfer {transfer.id} regressed from {transfer.completed_step} to {updated.completed_step}"
            )
        if updated.status != transfer.status:
            self.logger.info(f"Transfer {transfer.id}: {transfer.status.value} -> {updated.status.value}")
        return updated
