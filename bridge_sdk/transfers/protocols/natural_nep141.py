"""
NEP-141 tokens (and NEAR itself) from NEAR to Aurora.

The lock is a single ``ft_transfer_call`` to the Aurora engine, which mints
the bridged ERC-20 in the same NEAR transaction: once the lock succeeds the
transfer is complete. Native NEAR is first wrapped into wNEAR in the same
transaction.
"""
import logging
from typing import Dict, List, Optional

from ...chains.base import MetadataResolver
from ...chains.near import NearRpcClient
from ...models import Step, TokenMetadata, Transfer, TransferStatus, destination_token_name
from ...utils import nanos_to_iso, new_transfer_id, utc_now_iso
from ..approval import ApprovalState, FunctionCallAction, NearWallet, PendingApproval
from .base import BridgeProtocol, Handler

TRANSFER_TYPE = "aurora-nep141/natural-nep141/send-to-aurora"
WRAP_NEAR_TRANSFER_TYPE = "aurora-nep141/wrap-near/send-to-aurora"

NATIVE_NEAR = "NEAR"
NEAR_DECIMALS = 24

TGAS = 10 ** 12
FT_TRANSFER_CALL_GAS = 70 * TGAS
NEAR_DEPOSIT_GAS = 30 * TGAS
STORAGE_DEPOSIT_GAS = 50 * TGAS
ONE_YOCTO = 1

# nETH messages carry a fee field: <relayer_id>:<fee (32 bytes hex)><recipient hex>
NETH_FEE_FIELD = "0" * 64

WALLET_LOST = "Failed to process NEAR wallet transaction."


def resolve_token_metadata(
    nep141_address: str,
    aurora_evm_account: str,
    resolver: Optional[MetadataResolver] = None,
    symbol: Optional[str] = None,
    decimals: Optional[int] = None
) -> TokenMetadata:
    """
    Symbol and decimals of a token sent to Aurora.

    nETH (the Aurora account's own token) is always ETH with 18 decimals;
    other tokens use the explicit values, falling back to ``ft_metadata``.
    """
    if nep141_address == aurora_evm_account:
        return TokenMetadata(symbol="ETH", decimals=18)
    if symbol is not None and decimals is not None:
        return TokenMetadata(symbol=symbol, decimals=decimals)
    if resolver is None:
        raise ValueError(f"symbol and decimals are required for {nep141_address} without a metadata resolver")
    resolved = resolver.resolve(nep141_address)
    return TokenMetadata(
        symbol=symbol or resolved.symbol,
        decimals=resolved.decimals if decimals is None else decimals
    )


class NaturalNep141ToAurora(BridgeProtocol):
    """Direct lock of a NEP-141 token into the Aurora engine."""

    transfer_type = TRANSFER_TYPE
    source_network = "near"
    destination_network = "aurora"
    steps = (Step.LOCK,)

    def __init__(
        self,
        near: NearRpcClient,
        wallet: NearWallet,
        approvals: PendingApproval,
        aurora_evm_account: str,
        metadata: Optional[MetadataResolver] = None,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(logger)
        self.near = near
        self.wallet = wallet
        self.approvals = approvals
        self.aurora_evm_account = aurora_evm_account
        self.metadata = metadata

    def act_handlers(self) -> Dict[Optional[Step], Handler]:
        return {None: self.lock}

    def status_handlers(self) -> Dict[Optional[Step], Handler]:
        return {None: self.check_lock}

    def lock_message(self, transfer: Transfer) -> str:
        """``ft_transfer_call`` message telling Aurora who receives the tokens."""
        recipient_hex = transfer.recipient.lower()[2:]
        if transfer.source_token == self.aurora_evm_account:
            return f"{transfer.sender}:{NETH_FEE_FIELD}{recipient_hex}"
        return recipient_hex

    def send_to_aurora(
        self,
        nep141_address: str,
        amount: str,
        recipient: str,
        sender: Optional[str] = None,
        symbol: Optional[str] = None,
        decimals: Optional[int] = None
    ) -> Transfer:
        """
        Start sending ``amount`` of ``nep141_address`` to an Aurora address.

        Args:
            nep141_address: Token contract on NEAR
            amount: Amount in the token's base units
            recipient: 0x-prefixed Aurora address
            sender: NEAR account (defaults to the wallet's account)
            symbol: Token symbol, read from ft_metadata when omitted
            decimals: Token decimals, read from ft_metadata when omitted

        Returns:
            Transfer waiting for the wallet outcome
        """
        metadata = resolve_token_metadata(nep141_address, self.aurora_evm_account, self.metadata, symbol, decimals)
        transfer = Transfer(
            id=new_transfer_id(),
            type=self.transfer_type,
            status=TransferStatus.IN_PROGRESS,
            start_time=utc_now_iso(),
            amount=amount,
            decimals=metadata.decimals,
            symbol=metadata.symbol,
            source_token=nep141_address,
            source_token_name=metadata.symbol,
            destination_token_name=destination_token_name(metadata.symbol),
            sender=sender or self.wallet.account_id,
            recipient=recipient,
        )
        return self.lock(transfer)

    def lock(self, transfer: Transfer) -> Transfer:
        self.approvals.request(transfer.id)
        tx_hash = self.wallet.function_call(
            contract_id=transfer.source_token,
            method_name="ft_transfer_call",
            args={
                "receiver_id": self.aurora_evm_account,
                "amount": transfer.amount,
                "memo": None,
                "msg": self.lock_message(transfer),
            },
            gas=FT_TRANSFER_CALL_GAS,
            attached_deposit=ONE_YOCTO
        )
        return self._after_wallet(transfer, tx_hash)

    def _after_wallet(self, transfer: Transfer, tx_hash: Optional[str]) -> Transfer:
        if tx_hash is None:
            self.logger.info(f"Waiting for wallet approval of transfer {transfer.id}")
            return transfer.evolve(status=TransferStatus.IN_PROGRESS)
        self.approvals.resolve(transfer.id, tx_hash=tx_hash)
        self.logger.info(f"Lock {tx_hash} sent for transfer {transfer.id}")
        return transfer.evolve(
            status=TransferStatus.IN_PROGRESS,
            lock_hashes=[*transfer.lock_hashes, tx_hash]
        )

    def check_lock(self, transfer: Transfer) -> Transfer:
        outcome = self.approvals.outcome(transfer.id)

        if outcome.state == ApprovalState.PENDING:
            self.logger.debug(f"Waiting for wallet approval of transfer {transfer.id}")
            return transfer
        if outcome.state == ApprovalState.REJECTED:
            self.approvals.clear(transfer.id)
            return transfer.failed(f"Failed: {outcome.error_code}")
        if outcome.state == ApprovalState.LOST:
            if transfer.last_lock_hash is None:
                # The user closed the wallet page without approving or rejecting
                self.logger.error(f"{WALLET_LOST} Transfer {transfer.id}")
                return transfer.failed(WALLET_LOST)
            # Approval state did not survive a restart but the lock was recorded
            lock_hash = transfer.last_lock_hash
        else:
            lock_hash = outcome.tx_hash

        # use transfer.sender so a lock can be checked from another account
        lock_tx = self.near.tx_status(lock_hash, transfer.sender)
        failure = (lock_tx.get("status") or {}).get("Failure")
        lock_hashes = transfer.lock_hashes
        if transfer.last_lock_hash != lock_hash:
            lock_hashes = [*lock_hashes, lock_hash]
        if failure is not None:
            self.approvals.clear(transfer.id)
            return transfer.failed(f"Failed: {failure}", lock_hashes=lock_hashes)

        timestamp = self.near.block_timestamp(lock_tx["transaction_outcome"]["block_hash"])
        self.approvals.clear(transfer.id)
        return transfer.evolve(
            status=TransferStatus.COMPLETE,
            completed_step=Step.LOCK,
            start_time=nanos_to_iso(timestamp),
            lock_hashes=lock_hashes
        )


class WrapNearToAurora(NaturalNep141ToAurora):
    """Wrap native NEAR into wNEAR and lock it in one transaction."""

    transfer_type = WRAP_NEAR_TRANSFER_TYPE

    def __init__(
        self,
        near: NearRpcClient,
        wallet: NearWallet,
        approvals: PendingApproval,
        aurora_evm_account: str,
        wnear_nep141: str,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(near, wallet, approvals, aurora_evm_account, logger=logger)
        self.wnear_nep141 = wnear_nep141

    def act_handlers(self) -> Dict[Optional[Step], Handler]:
        return {None: self.lock_near}

    def wrap_and_send_to_aurora(
        self,
        amount: str,
        recipient: str,
        sender: Optional[str] = None,
        symbol: str = NATIVE_NEAR
    ) -> Transfer:
        """Start sending ``amount`` yoctoNEAR to an Aurora address."""
        transfer = Transfer(
            id=new_transfer_id(),
            type=self.transfer_type,
            status=TransferStatus.IN_PROGRESS,
            start_time=utc_now_iso(),
            amount=amount,
            decimals=NEAR_DECIMALS,
            symbol=symbol,
            source_token=NATIVE_NEAR,
            source_token_name=symbol,
            destination_token_name=destination_token_name(symbol),
            sender=sender or self.wallet.account_id,
            recipient=recipient,
        )
        return self.lock_near(transfer)

    def wrap_actions(self, transfer: Transfer) -> List[FunctionCallAction]:
        """Actions sent to the wNEAR contract, registering storage first when needed."""
        actions = []
        min_storage_balance = int(self.near.get_min_storage_balance(self.wnear_nep141))
        storage_balance = self.near.get_storage_balance(self.wnear_nep141, transfer.sender)
        if not storage_balance or int(storage_balance["total"]) < min_storage_balance:
            actions.append(FunctionCallAction(
                method_name="storage_deposit",
                args={"account_id": transfer.sender, "registration_only": True},
                gas=STORAGE_DEPOSIT_GAS,
                deposit=min_storage_balance
            ))
        actions.append(FunctionCallAction(
            method_name="near_deposit",
            args={},
            gas=NEAR_DEPOSIT_GAS,
            deposit=int(transfer.amount)
        ))
        actions.append(FunctionCallAction(
            method_name="ft_transfer_call",
            args={
                "receiver_id": self.aurora_evm_account,
                "amount": transfer.amount,
                "memo": None,
                "msg": self.lock_message(transfer),
            },
            gas=FT_TRANSFER_CALL_GAS,
            deposit=ONE_YOCTO
        ))
        return actions

    def lock_near(self, transfer: Transfer) -> Transfer:
        actions = self.wrap_actions(transfer)
        self.approvals.request(transfer.id)
        tx_hash = self.wallet.sign_and_send_transaction(self.wnear_nep141, actions)
        return self._after_wallet(transfer, tx_hash)
