"""
Find historical NEP-141 transfers to Aurora through the indexer.
"""
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, List, Optional

from ..chains.base import Indexer, MetadataResolver
from ..chains.indexer import build_indexer_tx_query
from ..chains.near import NearRpcClient, decode_success_value
from ..models import IndexedCall, Step, TokenMetadata, Transfer, TransferStatus, destination_token_name
from ..utils import deterministic_transfer_id, nanos_to_iso
from .protocols import natural_nep141

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


class DiscoveredTransfers:
    """
    Lazy, restartable result of a discovery query.

    Each iteration runs the indexer query again, so iterating twice without
    new chain activity yields equal transfers.
    """

    def __init__(self, discovery: "BatchDiscovery", from_block: str, to_block: str, sender: str,
                 nep141_address: str, symbol: Optional[str] = None, decimals: Optional[int] = None):
        self._discovery = discovery
        self.from_block = from_block
        self.to_block = to_block
        self.sender = sender
        self.nep141_address = nep141_address
        self.symbol = symbol
        self.decimals = decimals

    def __iter__(self) -> Iterator[Transfer]:
        return self._discovery._iter_transfers(
            self.from_block, self.to_block, self.sender, self.nep141_address, self.symbol, self.decimals
        )

    def to_list(self) -> List[Transfer]:
        return list(self)


class BatchDiscovery:
    """
    Enumerates completed ``ft_transfer_call`` locks to Aurora.

    Every candidate's on-chain outcome is checked: ``ft_transfer_call``
    returns the amount actually transferred, so calls that reverted or were
    refunded do not match the requested amount and are left out.
    """

    def __init__(
        self,
        near: NearRpcClient,
        indexer: Indexer,
        aurora_evm_account: str,
        metadata: Optional[MetadataResolver] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        logger: Optional[logging.Logger] = None
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.near = near
        self.indexer = indexer
        self.aurora_evm_account = aurora_evm_account
        self.metadata = metadata
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)

    def message_pattern(self, sender: str, nep141_address: str) -> "re.Pattern[str]":
        """Expected ``ft_transfer_call`` message for transfers of ``nep141_address``."""
        if nep141_address == self.aurora_evm_account:
            return re.compile(f"^{re.escape(sender)}:{natural_nep141.NETH_FEE_FIELD}[a-f0-9]{{40}}$")
        return re.compile(r"^[a-f0-9]{40}$")

    def find_all_transactions(
        self,
        from_block: str,
        to_block: str,
        sender: str,
        nep141_address: str
    ) -> List[IndexedCall]:
        """
        Indexed ``ft_transfer_call`` calls from ``sender`` to Aurora, not yet
        checked against their on-chain outcome.

        Args:
            from_block: NEAR block timestamp (nanoseconds)
            to_block: NEAR block timestamp or ``"latest"``
            sender: NEAR account that sent the tokens
            nep141_address: Token contract
        """
        rows = self.indexer.query(build_indexer_tx_query(from_block, to_block, sender, nep141_address))
        pattern = self.message_pattern(sender, nep141_address)
        calls = []
        for call in (IndexedCall.from_row(row) for row in rows):
            if call.method_name != "ft_transfer_call":
                continue
            if call.args_json.get("receiver_id") != self.aurora_evm_account:
                continue
            if not pattern.match(str(call.args_json.get("msg", ""))):
                continue
            calls.append(call)
        self.logger.debug(f"{len(calls)} of {len(rows)} indexed calls from {sender} look like locks to Aurora")
        return calls

    def find_all_transfers(
        self,
        from_block: str,
        to_block: str,
        sender: str,
        nep141_address: str,
        symbol: Optional[str] = None,
        decimals: Optional[int] = None
    ) -> DiscoveredTransfers:
        """
        Transfers of ``nep141_address`` from ``sender`` to Aurora in a block timestamp range.

        Returns:
            A lazy iterable; the indexer is queried when it is iterated
        """
        return DiscoveredTransfers(self, from_block, to_block, sender, nep141_address, symbol, decimals)

    def _iter_transfers(
        self,
        from_block: str,
        to_block: str,
        sender: str,
        nep141_address: str,
        symbol: Optional[str],
        decimals: Optional[int]
    ) -> Iterator[Transfer]:
        calls = self.find_all_transactions(from_block, to_block, sender, nep141_address)
        if not calls:
            return
        metadata = natural_nep141.resolve_token_metadata(
            nep141_address, self.aurora_evm_account, self.metadata, symbol, decimals
        )
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self._verify, call, sender, nep141_address, metadata)
                for call in calls
            ]
            # Joined in query order
            for future in futures:
                transfer = future.result()
                if transfer is not None:
                    yield transfer

    def _verify(
        self,
        call: IndexedCall,
        sender: str,
        nep141_address: str,
        metadata: TokenMetadata
    ) -> Optional[Transfer]:
        lock_tx = self.near.tx_status(call.tx_hash, sender)
        amount = str(call.args_json.get("amount", ""))
        success_value = decode_success_value(lock_tx)
        if success_value != amount:
            self.logger.info(
                f"Skipping {call.tx_hash}: transferred {success_value or 0} instead of {amount}"
            )
            return None

        timestamp = self.near.block_timestamp(lock_tx["transaction_outcome"]["block_hash"])
        message = call.args_json["msg"]
        return Transfer(
            id=deterministic_transfer_id(natural_nep141.TRANSFER_TYPE, call.tx_hash),
            type=natural_nep141.TRANSFER_TYPE,
            status=TransferStatus.COMPLETE,
            completed_step=Step.LOCK,
            start_time=nanos_to_iso(timestamp),
            amount=amount,
            decimals=metadata.decimals,
            symbol=metadata.symbol,
            source_token=nep141_address,
            source_token_name=metadata.symbol,
            destination_token_name=destination_token_name(metadata.symbol),
            sender=sender,
            recipient="0x" + message[-40:],
            lock_hashes=[call.tx_hash],
        )
