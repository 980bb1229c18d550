"""
Rebuild transfers from chain history when the local record is lost.
"""
import logging
from typing import Optional, Tuple

from ..chains.base import DestinationChainAdapter, FinalityOracle, Indexer, MetadataResolver, SourceChainAdapter
from ..chains.indexer import build_action_receipts_query
from ..exceptions import EventNotFoundError, MalformedMessageError, WrongDestinationError
from ..models import IndexedCall, Step, Transfer, TransferStatus, destination_token_name
from ..utils import deterministic_transfer_id, is_aurora_address_hex, nanos_to_iso
from . import steps
from .protocols import natural_ether, natural_nep141

logger = logging.getLogger(__name__)

_FEE_FIELD_LENGTH = 64
_ADDRESS_LENGTH = 40


def _split_fee_and_recipient(payload: str, message: str) -> str:
    payload = payload.lower()
    if len(payload) == _FEE_FIELD_LENGTH + _ADDRESS_LENGTH:
        fee, payload = payload[:_FEE_FIELD_LENGTH], payload[_FEE_FIELD_LENGTH:]
        if not all(c in "0123456789abcdef" for c in fee):
            raise MalformedMessageError(f"Failed to parse fee in protocol message: {message!r}")
    if not is_aurora_address_hex(payload):
        raise MalformedMessageError(f"Failed to parse recipient in protocol message: {message!r}")
    return payload


def parse_ether_message(message: str) -> Tuple[str, str]:
    """
    Parse a natural-ether deposit message.

    The message is ``<destination account>:<recipient hex>``, optionally
    with a 32-byte fee field before the recipient.

    Returns:
        (destination account, 0x-prefixed recipient address)

    Raises:
        MalformedMessageError: If the message does not carry a valid recipient
    """
    account, separator, payload = message.partition(":")
    if not separator or not account:
        raise MalformedMessageError(f"Failed to parse destination account in protocol message: {message!r}")
    return account, "0x" + _split_fee_and_recipient(payload, message)


def parse_nep141_message(message: str) -> Tuple[Optional[str], str]:
    """
    Parse an ``ft_transfer_call`` message sent to Aurora.

    Plain NEP-141 messages are the bare recipient hex; nETH messages are
    ``<sender>:<fee><recipient hex>``.

    Returns:
        (sender from the message prefix or None, 0x-prefixed recipient address)
    """
    if ":" in message:
        sender, _, payload = message.partition(":")
        return sender, "0x" + _split_fee_and_recipient(payload, message)
    return None, "0x" + _split_fee_and_recipient(message, message)


class RecoveryBuilder:
    """
    Reconstructs transfer records from a lock transaction hash.

    Recovered records get a deterministic id, so recovering the same lock
    twice yields the same transfer.
    """

    def __init__(
        self,
        aurora_evm_account: str,
        source: Optional[SourceChainAdapter] = None,
        destination: Optional[DestinationChainAdapter] = None,
        oracle: Optional[FinalityOracle] = None,
        indexer: Optional[Indexer] = None,
        metadata: Optional[MetadataResolver] = None,
        needed_confirmations: int = natural_ether.DEFAULT_NEEDED_CONFIRMATIONS,
        logger: Optional[logging.Logger] = None
    ):
        self.aurora_evm_account = aurora_evm_account
        self.source = source
        self.destination = destination
        self.oracle = oracle
        self.indexer = indexer
        self.metadata = metadata
        self.needed_confirmations = needed_confirmations
        self.logger = logger or logging.getLogger(__name__)

    def recover_ether(
        self,
        lock_tx_hash: str,
        symbol: Optional[str] = None,
        decimals: Optional[int] = None
    ) -> Transfer:
        """
        Recover a natural-ether transfer to Aurora from its lock transaction.

        Args:
            lock_tx_hash: Hash of the ``depositToEVM`` transaction
            symbol: Display symbol (defaults to ETH)
            decimals: Display decimals (defaults to 18)

        Returns:
            The recovered transfer, with sync progress already checked

        Raises:
            EventNotFoundError: If the transaction emitted no deposit event
            MalformedMessageError: If the deposit message has no valid recipient
            WrongDestinationError: If the deposit targets another account
        """
        if self.source is None or self.destination is None or self.oracle is None:
            raise ValueError("recover_ether needs source, destination and oracle adapters")

        receipt = self.source.get_receipt(lock_tx_hash)
        if receipt is None:
            raise EventNotFoundError(f"No receipt for lock transaction {lock_tx_hash}")
        events = [
            event for event in self.source.get_lock_events(receipt)
            if event.tx_hash.lower() == lock_tx_hash.lower()
        ]
        if not events:
            raise EventNotFoundError(f"Unable to process lock transaction event of {lock_tx_hash}")
        event = events[0]

        account, recipient = parse_ether_message(event.message)
        if account != self.aurora_evm_account:
            raise WrongDestinationError(
                f"Lock {lock_tx_hash} targets {account}, expected {self.aurora_evm_account}"
            )

        symbol = symbol or "ETH"
        transfer = Transfer(
            id=deterministic_transfer_id(natural_ether.TRANSFER_TYPE, lock_tx_hash),
            type=natural_ether.TRANSFER_TYPE,
            status=TransferStatus.IN_PROGRESS,
            completed_step=Step.LOCK,
            amount=event.amount,
            decimals=18 if decimals is None else decimals,
            symbol=symbol,
            source_token=None,
            source_token_name=symbol,
            destination_token_name=destination_token_name(symbol),
            sender=event.sender,
            recipient=recipient,
            lock_hashes=[lock_tx_hash],
            lock_receipts=[receipt],
            needed_confirmations=self.needed_confirmations,
        )
        self.logger.info(f"Recovered transfer {transfer.id} from lock {lock_tx_hash}")
        return steps.check_sync(transfer, self.destination, self.oracle)

    def recover_nep141(
        self,
        lock_tx_hash: str,
        symbol: Optional[str] = None,
        decimals: Optional[int] = None
    ) -> Transfer:
        """
        Recover a NEP-141 transfer to Aurora from the indexed ``ft_on_transfer`` receipt.

        The query only returns receipts executed by the Aurora account, so a
        transaction sending tokens elsewhere has no matching receipt.

        Raises:
            EventNotFoundError: If no ``ft_on_transfer`` receipt reached Aurora
        """
        if self.indexer is None:
            raise ValueError("recover_nep141 needs an indexer")

        rows = self.indexer.query(build_action_receipts_query(lock_tx_hash, self.aurora_evm_account))
        calls = [IndexedCall.from_row(row) for row in rows]
        receipt = next(
            (
                call for call in calls
                if call.method_name == "ft_on_transfer"
                and is_aurora_address_hex(str(call.args_json.get("msg", ""))[-_ADDRESS_LENGTH:].lower())
            ),
            None
        )
        if receipt is None:
            raise EventNotFoundError(
                f"Failed to verify {self.aurora_evm_account} ft_on_transfer action receipt of {lock_tx_hash}"
            )

        nep141_address = receipt.predecessor_account_id
        metadata = natural_nep141.resolve_token_metadata(
            nep141_address, self.aurora_evm_account, self.metadata, symbol, decimals
        )
        message_sender, recipient = parse_nep141_message(receipt.args_json["msg"])
        sender = receipt.args_json.get("sender_id")
        if sender == self.aurora_evm_account:
            # nETH is forwarded by the Aurora account itself, the user is in the message
            sender = message_sender

        return Transfer(
            id=deterministic_transfer_id(natural_nep141.TRANSFER_TYPE, lock_tx_hash),
            type=natural_nep141.TRANSFER_TYPE,
            status=TransferStatus.COMPLETE,
            completed_step=Step.LOCK,
            start_time=nanos_to_iso(receipt.block_timestamp) if receipt.block_timestamp else None,
            amount=receipt.args_json["amount"],
            decimals=metadata.decimals,
            symbol=metadata.symbol,
            source_token=nep141_address,
            source_token_name=metadata.symbol,
            destination_token_name=destination_token_name(metadata.symbol),
            sender=sender,
            recipient=recipient,
            lock_hashes=[lock_tx_hash],
        )
