"""
Bridge transfer SDK - track and recover transfers from Ethereum and NEAR to Aurora.
"""
from .client import BridgeClient
from .config import BridgeParams, NetworkConfig
from .exceptions import (
    BridgeError, ConfigError, EventNotFoundError, IndexerError, MalformedMessageError,
    NearRpcError, ProofError, UnrecognizedStepError, WrongDestinationError, WrongNetworkError
)
from .models import Step, TokenMetadata, Transfer, TransferStatus, TxReceipt
from .replacement import ReplacementSearchResult, ReplacementTxFinder, SearchOutcome
from .transfers import RecoveryBuilder, TransferRunner, TransferStateMachine
from .version import __version__

__all__ = [
    "BridgeClient",
    "BridgeParams",
    "NetworkConfig",
    "BridgeError",
    "ConfigError",
    "EventNotFoundError",
    "IndexerError",
    "MalformedMessageError",
    "NearRpcError",
    "ProofError",
    "UnrecognizedStepError",
    "WrongDestinationError",
    "WrongNetworkError",
    "Step",
    "TokenMetadata",
    "Transfer",
    "TransferStatus",
    "TxReceipt",
    "ReplacementSearchResult",
    "ReplacementTxFinder",
    "SearchOutcome",
    "RecoveryBuilder",
    "TransferRunner",
    "TransferStateMachine",
    "__version__",
]
