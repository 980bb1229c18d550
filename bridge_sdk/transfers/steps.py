"""
Step handlers shared by protocols with an EVM source chain.

Each handler takes a transfer and returns an updated copy. Network errors
from the adapters propagate to the caller: only conclusive chain outcomes
are written into the record.
"""
import logging

from .._rate_limited_log import rate_limited_log
from ..chains.base import DestinationChainAdapter, FinalityOracle, SourceChainAdapter
from ..exceptions import UnrecognizedStepError
from ..models import Step, Transfer, TransferStatus
from ..replacement import ReplacementTxFinder, SearchOutcome

logger = logging.getLogger(__name__)

FINALIZED_BY_RELAYER = "Transfer already finalized."


def check_evm_lock(
    transfer: Transfer,
    source: SourceChainAdapter,
    finder: ReplacementTxFinder,
    lock_is_terminal: bool = False
) -> Transfer:
    """
    Poll for the receipt of the latest lock transaction.

    Args:
        transfer: Transfer with a broadcast but unconfirmed lock
        source: Source chain adapter
        finder: Replacement finder used when the lock transaction was dropped
        lock_is_terminal: Complete the transfer once the lock succeeds

    Returns:
        The updated transfer, or ``transfer`` itself when nothing changed
    """
    lock_hash = transfer.last_lock_hash
    if lock_hash is None:
        raise UnrecognizedStepError(f"Transfer {transfer.id} has no lock transaction to check", transfer.id)

    receipt = source.get_receipt(lock_hash)

    if receipt is None:
        cache = transfer.replacement_cache
        if cache is None:
            rate_limited_log(f"No receipt yet for lock {lock_hash} of transfer {transfer.id}", logger_instance=logger)
            return transfer

        result = finder.find(cache, cache.safe_reorg_height)
        if result.outcome == SearchOutcome.INCONCLUSIVE:
            rate_limited_log(f"Lock {lock_hash} of transfer {transfer.id} still pending", logger_instance=logger)
            return transfer
        if result.outcome == SearchOutcome.NOT_FOUND:
            logger.warning(f"Lock {lock_hash} of transfer {transfer.id} was dropped: {result.reason}")
            return transfer.failed(result.reason)

        logger.info(f"Lock {lock_hash} of transfer {transfer.id} was replaced by {result.tx_hash}")
        if result.tx_hash != lock_hash:
            transfer = transfer.evolve(lock_hashes=[*transfer.lock_hashes, result.tx_hash])
        receipt = source.get_receipt(result.tx_hash)
        if receipt is None:
            return transfer

    if not receipt.succeeded:
        try:
            error = source.get_revert_reason(receipt.tx_hash)
        except Exception as e:
            logger.error(f"Revert reason lookup failed for {receipt.tx_hash}: {e}")
            error = f"Could not determine why transaction failed; encountered error: {e}"
        return transfer.failed(
            error,
            lock_receipts=[*transfer.lock_receipts, receipt],
            replacement_cache=None
        )

    logger.info(f"Lock {receipt.tx_hash} of transfer {transfer.id} confirmed in block {receipt.block_number}")
    return transfer.evolve(
        status=TransferStatus.COMPLETE if lock_is_terminal else TransferStatus.IN_PROGRESS,
        completed_step=Step.LOCK,
        lock_receipts=[*transfer.lock_receipts, receipt],
        replacement_cache=None
    )


def check_sync(
    transfer: Transfer,
    destination: DestinationChainAdapter,
    oracle: FinalityOracle
) -> Transfer:
    """
    Report confirmation progress and detect relayer finalization.

    Read-only and idempotent: with unchanged chain state, repeated calls
    return equal records.
    """
    receipt = transfer.last_lock_receipt
    if receipt is None:
        raise UnrecognizedStepError(f"Transfer {transfer.id} has no lock receipt to sync", transfer.id)

    synced_height = destination.synced_height()
    completed_confirmations = max(0, synced_height - receipt.block_number)

    if completed_confirmations > transfer.needed_confirmations:
        proof = oracle.find_proof(receipt)
        if destination.is_proof_used(proof):
            logger.info(f"Transfer {transfer.id} was finalized by the relayer")
            return transfer.evolve(
                completed_step=Step.MINT,
                completed_confirmations=completed_confirmations,
                status=TransferStatus.COMPLETE,
                errors=[*transfer.errors, FINALIZED_BY_RELAYER]
            )

    return transfer.evolve(
        completed_confirmations=completed_confirmations,
        status=TransferStatus.IN_PROGRESS
    )
