"""
Bridge protocols: step sequences and handlers per transfer type.
"""
from .base import BridgeProtocol, Handler
from .natural_ether import NaturalEtherToAurora
from .natural_nep141 import NaturalNep141ToAurora, WrapNearToAurora, resolve_token_metadata

__all__ = [
    "BridgeProtocol",
    "Handler",
    "NaturalEtherToAurora",
    "NaturalNep141ToAurora",
    "WrapNearToAurora",
    "resolve_token_metadata",
]
