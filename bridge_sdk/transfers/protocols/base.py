"""
Base class for bridge protocols.

A protocol declares its step sequence and two dispatch tables keyed by the
transfer's completed step: one for ``act`` (user-visible actions) and one
for ``check_status`` (passive polling).
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from ...models import Step, Transfer

Handler = Callable[[Transfer], Transfer]


class BridgeProtocol(ABC):
    """One bridge direction/asset combination and its step sequence."""

    transfer_type: str = ""
    source_network: str = ""
    destination_network: str = ""
    steps: Tuple[Step, ...] = ()

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(type(self).__module__)

    @property
    def terminal_step(self) -> Step:
        return self.steps[-1]

    @abstractmethod
    def act_handlers(self) -> Dict[Optional[Step], Handler]:
        """Handlers for transfers with status action-needed or failed."""
        pass

    @abstractmethod
    def status_handlers(self) -> Dict[Optional[Step], Handler]:
        """Handlers for transfers with status in-progress."""
        pass
