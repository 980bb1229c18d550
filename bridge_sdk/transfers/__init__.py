"""
Transfer lifecycle: state machine, protocols, recovery and discovery.
"""
from .approval import (
    ApprovalOutcome, ApprovalState, FunctionCallAction, InMemoryApprovals,
    NearWallet, PendingApproval
)
from .discovery import BatchDiscovery, DiscoveredTransfers
from .machine import TransferStateMachine
from .protocols import BridgeProtocol, NaturalEtherToAurora, NaturalNep141ToAurora, WrapNearToAurora
from .recovery import RecoveryBuilder, parse_ether_message, parse_nep141_message
from .runner import TransferRunner

__all__ = [
    "ApprovalOutcome",
    "ApprovalState",
    "FunctionCallAction",
    "InMemoryApprovals",
    "NearWallet",
    "PendingApproval",
    "BatchDiscovery",
    "DiscoveredTransfers",
    "TransferStateMachine",
    "BridgeProtocol",
    "NaturalEtherToAurora",
    "NaturalNep141ToAurora",
    "WrapNearToAurora",
    "RecoveryBuilder",
    "parse_ether_message",
    "parse_nep141_message",
    "TransferRunner",
]
