"""
Natural ETH from Ethereum to Aurora.

ETH is locked in the EthCustodian contract; once the NEAR-side Ethereum
light client has seen enough confirmations a relayer submits the proof and
Aurora mints the ETH to the recipient.
"""
import logging
from typing import Dict, Optional

from ...chains.base import DestinationChainAdapter, FinalityOracle, LockParams, SourceChainAdapter
from ...config import SAFE_REORG_MARGIN
from ...models import ReplacementCache, Step, Transfer, TransferStatus, destination_token_name
from ..._rate_limited_log import rate_limited_log
from ...replacement import ReplacementTxFinder
from ...utils import new_transfer_id, utc_now_iso
from .. import steps
from .base import BridgeProtocol, Handler

TRANSFER_TYPE = "aurora-ether/natural-ether/send-to-aurora"
DEFAULT_NEEDED_CONFIRMATIONS = 20


class NaturalEtherToAurora(BridgeProtocol):
    """Lock, wait for confirmations, then mint (finalized by the relayer)."""

    transfer_type = TRANSFER_TYPE
    source_network = "ethereum"
    destination_network = "aurora"
    steps = (Step.LOCK, Step.SYNC, Step.MINT)

    def __init__(
        self,
        source: SourceChainAdapter,
        destination: DestinationChainAdapter,
        oracle: FinalityOracle,
        needed_confirmations: int = DEFAULT_NEEDED_CONFIRMATIONS,
        expected_chain_id: Optional[int] = None,
        finder: Optional[ReplacementTxFinder] = None,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(logger)
        self.source = source
        self.destination = destination
        self.oracle = oracle
        self.needed_confirmations = needed_confirmations
        self.expected_chain_id = expected_chain_id
        self.finder = finder or ReplacementTxFinder(source, logger=self.logger)

    def act_handlers(self) -> Dict[Optional[Step], Handler]:
        # Minting is done by the relayer, there is no self-service SYNC -> MINT action
        return {
            None: self.lock,
            Step.LOCK: self.check_sync,
        }

    def status_handlers(self) -> Dict[Optional[Step], Handler]:
        return {
            None: self.check_lock,
            Step.LOCK: self.check_sync,
        }

    def draft(
        self,
        amount: str,
        sender: str,
        recipient: Optional[str] = None,
        symbol: str = "ETH",
        decimals: int = 18
    ) -> Transfer:
        """New transfer record, not yet locked."""
        return Transfer(
            id=new_transfer_id(),
            type=self.transfer_type,
            status=TransferStatus.ACTION_NEEDED,
            start_time=utc_now_iso(),
            amount=amount,
            decimals=decimals,
            symbol=symbol,
            source_token=None,
            source_token_name=symbol,
            destination_token_name=destination_token_name(symbol),
            sender=sender,
            recipient=recipient or sender,
            needed_confirmations=self.needed_confirmations,
        )

    def initiate(
        self,
        amount: str,
        sender: str,
        recipient: Optional[str] = None,
        symbol: str = "ETH",
        decimals: int = 18
    ) -> Transfer:
        """
        Start a transfer: create the record and broadcast the lock.

        Args:
            amount: Amount in wei
            sender: Ethereum address sending the ETH
            recipient: Aurora address (defaults to the sender's address)
            symbol: Token symbol for display
            decimals: Token decimals for display

        Returns:
            Transfer in progress with the lock hash recorded
        """
        return self.lock(self.draft(amount, sender, recipient, symbol, decimals))

    def lock(self, transfer: Transfer) -> Transfer:
        """
        Broadcast the lock transaction.

        Only waits for the transaction hash; ``check_lock`` polls for the
        receipt. The pending transaction's identity is cached so a
        replacement can be found if the user speeds it up or cancels it.
        """
        # Lower the replacement search boundary in case of a reorg
        safe_reorg_height = self.source.current_height() - SAFE_REORG_MARGIN
        lock_hash = self.source.broadcast_lock(
            LockParams(sender=transfer.sender, recipient=transfer.recipient, amount=transfer.amount)
        )
        pending = self.source.get_transaction(lock_hash)
        cache = None
        if pending is not None:
            cache = ReplacementCache(
                from_address=pending.from_address,
                to_address=pending.to_address,
                nonce=pending.nonce,
                data=pending.input,
                safe_reorg_height=max(0, safe_reorg_height),
            )
        else:
            self.logger.warning(f"Lock {lock_hash} not visible yet, replacement search disabled for {transfer.id}")

        return transfer.evolve(
            status=TransferStatus.IN_PROGRESS,
            replacement_cache=cache,
            lock_hashes=[*transfer.lock_hashes, lock_hash]
        )

    def check_lock(self, transfer: Transfer) -> Transfer:
        if self.expected_chain_id is not None:
            chain_id = self.source.chain_id()
            if chain_id != self.expected_chain_id:
                rate_limited_log(
                    f"Wrong eth network for check_lock, expected: {self.expected_chain_id}, got: {chain_id}",
                    level="warning",
                    logger_instance=self.logger
                )
                return transfer
        return steps.check_evm_lock(transfer, self.source, self.finder)

    def check_sync(self, transfer: Transfer) -> Transfer:
        return steps.check_sync(transfer, self.destination, self.oracle)
