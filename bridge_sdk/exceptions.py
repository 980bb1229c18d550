"""
Exceptions for the bridge transfer SDK.
"""
from typing import Optional


class BridgeError(Exception):
    """Base exception for all bridge transfer errors."""
    pass


class ConfigError(BridgeError):
    """Raised when bridge parameters are missing or invalid."""
    pass


class WrongNetworkError(BridgeError):
    """Raised when the connected source chain is not the configured one."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Wrong source network, expected chain id {expected}, got {actual}")


class UnrecognizedStepError(BridgeError):
    """
    Raised when a transfer cannot be dispatched from its current step.

    The record is malformed (or belongs to an unknown protocol) and must not
    be retried automatically.
    """

    def __init__(self, message: str, transfer_id: Optional[str] = None):
        self.transfer_id = transfer_id
        super().__init__(message)


class EventNotFoundError(BridgeError):
    """Raised when a lock transaction does not contain the bridge event."""
    pass


class MalformedMessageError(BridgeError):
    """Raised when a protocol message does not decode to a valid recipient."""
    pass


class WrongDestinationError(BridgeError):
    """Raised when a lock event targets a different bridge account."""
    pass


class NearRpcError(BridgeError):
    """Raised when the NEAR JSON-RPC endpoint returns an error."""

    def __init__(self, message: str, error_name: Optional[str] = None):
        self.error_name = error_name
        super().__init__(message)


class IndexerError(BridgeError):
    """Raised when an indexer query fails or returns unusable rows."""
    pass


class ProofError(BridgeError):
    """Raised when the finality oracle cannot produce a proof."""
    pass
