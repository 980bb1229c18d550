"""
Chain adapters: the RPC clients and services the transfer state machine reads.
"""
from .base import (
    DestinationChainAdapter, FinalityOracle, Indexer, LockParams,
    MetadataResolver, SourceChainAdapter
)
from .ethereum import EthereumAdapter, Signer
from .indexer import HttpIndexer, build_action_receipts_query, build_indexer_tx_query
from .near import AuroraDestinationAdapter, NearMetadataResolver, NearRpcClient
from .proof import HttpProofOracle

__all__ = [
    "SourceChainAdapter",
    "DestinationChainAdapter",
    "FinalityOracle",
    "Indexer",
    "MetadataResolver",
    "LockParams",
    "EthereumAdapter",
    "Signer",
    "HttpIndexer",
    "build_indexer_tx_query",
    "build_action_receipts_query",
    "NearRpcClient",
    "AuroraDestinationAdapter",
    "NearMetadataResolver",
    "HttpProofOracle",
]
