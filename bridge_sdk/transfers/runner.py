"""
Serialised access to the state machine, one transfer at a time.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from ..models import Transfer, TransferStatus
from .machine import TransferStateMachine

logger = logging.getLogger(__name__)


class TransferRunner:
    """
    Runs state machine steps with a lock per transfer id.

    Two threads stepping the same transfer could broadcast its lock twice,
    so ``act``, ``check_status`` and ``poll`` on the same id never overlap.
    Different transfers proceed in parallel. A transfer's lock is dropped
    as soon as no thread holds or waits for it.
    """

    def __init__(self, machine: TransferStateMachine, logger: Optional[logging.Logger] = None):
        self.machine = machine
        self.logger = logger or logging.getLogger(__name__)
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _serialised(self, transfer_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(transfer_id, threading.Lock())
            self._users[transfer_id] = self._users.get(transfer_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                self._users[transfer_id] -= 1
                if not self._users[transfer_id]:
                    del self._users[transfer_id]
                    del self._locks[transfer_id]

    def act(self, transfer: Transfer) -> Transfer:
        with self._serialised(transfer.id):
            return self.machine.act(transfer)

    def check_status(self, transfer: Transfer) -> Transfer:
        with self._serialised(transfer.id):
            return self.machine.check_status(transfer)

    def poll(self, transfer: Transfer) -> Transfer:
        """
        Advance a transfer by one step according to its status.

        In-progress transfers are checked; complete transfers and transfers
        waiting on the user are returned unchanged.
        """
        with self._serialised(transfer.id):
            if transfer.status == TransferStatus.IN_PROGRESS:
                return self.machine.check_status(transfer)
            self.logger.debug(f"Transfer {transfer.id} is {transfer.status.value}, nothing to poll")
            return transfer
