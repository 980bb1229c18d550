"""
Ethereum source-chain adapter backed by web3.py.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol

from eth_account import Account
from eth_account.signers.base import BaseAccount
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound
from web3.logs import DISCARD

from ..config import BridgeParams, validate_https_url
from ..exceptions import ConfigError, WrongNetworkError
from ..models import ChainTransaction, LockEvent, TxReceipt
from ..utils import strip_hex_prefix
from .base import LockParams, SourceChainAdapter

logger = logging.getLogger(__name__)

# Gas used when estimation fails
DEFAULT_LOCK_GAS = 120000


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


class EthereumAdapter(SourceChainAdapter):
    """
    Source-chain adapter for the EthCustodian (natural ETH to Aurora) bridge.

    To broadcast locks the adapter needs either a private key or a custom
    signer; read-only use (polling, recovery) needs neither.
    """

    # Subset of the EthCustodian ABI used by the bridge
    ETH_CUSTODIAN_ABI = [
        {
            "inputs": [
                {"internalType": "string", "name": "ethRecipientOnNear", "type": "string"},
                {"internalType": "uint256", "name": "fee", "type": "uint256"}
            ],
            "name": "depositToEVM",
            "outputs": [],
            "stateMutability": "payable",
            "type": "function"
        },
        {
            "anonymous": False,
            "inputs": [
                {"indexed": True, "internalType": "address", "name": "sender", "type": "address"},
                {"indexed": False, "internalType": "string", "name": "recipient", "type": "string"},
                {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
                {"indexed": False, "internalType": "uint256", "name": "fee", "type": "uint256"}
            ],
            "name": "Deposited",
            "type": "event"
        }
    ]

    def __init__(
        self,
        rpc_url: str,
        custodian_address: str,
        expected_chain_id: Optional[int] = None,
        priv_key: Optional[str] = None,
        signer: Optional[Signer] = None,
        timeout: int = 30,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the adapter

        Args:
            rpc_url: Ethereum RPC endpoint URL
            custodian_address: EthCustodian contract address
            expected_chain_id: Chain id locks may be broadcast on
            priv_key: Ethereum private key (optional)
            signer: Custom signer object (optional)
            timeout: RPC request timeout in seconds
            logger: Optional logger instance

        Raises:
            ConfigError: If the RPC URL is not https (unless localhost)
        """
        validate_https_url("rpc_url", rpc_url)
        self.rpc_url = rpc_url
        self.expected_chain_id = expected_chain_id
        self.logger = logger or logging.getLogger(__name__)

        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self.custodian_address = Web3.to_checksum_address(custodian_address)
        self.custodian = self.w3.eth.contract(address=self.custodian_address, abi=self.ETH_CUSTODIAN_ABI)

        self.account: Optional[BaseAccount] = Account.from_key(priv_key) if priv_key else None
        self.signer = signer

    @classmethod
    def from_params(cls, params: BridgeParams, **kwargs: Any) -> "EthereumAdapter":
        return cls(
            rpc_url=params.eth_rpc,
            custodian_address=params.ether_custodian,
            expected_chain_id=params.eth_chain_id,
            timeout=params.http_timeout,
            **kwargs
        )

    @property
    def address(self) -> str:
        """
        Address locks are sent from

        Raises:
            ConfigError: If no account or signer is available
        """
        if self.account:
            return self.account.address
        if self.signer:
            return self.signer.address
        raise ConfigError("No account or signer available")

    def chain_id(self) -> int:
        return self.w3.eth.chain_id

    def get_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return TxReceipt.from_web3(receipt)

    def get_transaction(self, tx_hash: str) -> Optional[ChainTransaction]:
        try:
            tx = self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return None
        return ChainTransaction.from_web3(tx)

    def current_height(self) -> int:
        return self.w3.eth.block_number

    def get_transaction_count(self, address: str, block_number: Optional[int] = None) -> int:
        block = "latest" if block_number is None else block_number
        return self.w3.eth.get_transaction_count(Web3.to_checksum_address(address), block)

    def get_block_transactions(self, block_number: int) -> List[ChainTransaction]:
        block = self.w3.eth.get_block(block_number, full_transactions=True)
        return [ChainTransaction.from_web3(tx) for tx in block["transactions"]]

    def broadcast_lock(self, params: LockParams) -> str:
        """
        Send ``depositToEVM`` with the locked ETH as value.

        Only waits for a transaction hash; whether it gets mined is checked
        later by polling.

        Raises:
            WrongNetworkError: If the node is connected to another chain
            ConfigError: If no account or signer is available
        """
        if self.expected_chain_id is not None:
            actual = self.chain_id()
            if actual != self.expected_chain_id:
                raise WrongNetworkError(self.expected_chain_id, actual)

        from_address = self.address
        recipient_hex = strip_hex_prefix(params.recipient).lower()
        deposit = self.custodian.functions.depositToEVM(recipient_hex, int(params.fee))

        nonce = self.w3.eth.get_transaction_count(from_address, "pending")
        tx_params = {
            "from": from_address,
            "nonce": nonce,
            "value": int(params.amount),
            "gasPrice": self.w3.eth.gas_price,
        }
        try:
            # Add 10% buffer to gas estimate
            tx_params["gas"] = int(deposit.estimate_gas({"from": from_address, "value": int(params.amount)}) * 1.1)
        except (ContractLogicError, ValueError) as e:
            tx_params["gas"] = DEFAULT_LOCK_GAS
            self.logger.warning(f"Gas estimation failed, using default: {DEFAULT_LOCK_GAS}. Error: {e}")

        tx = deposit.build_transaction(tx_params)
        signed_tx = self.account.sign_transaction(tx) if self.account else self.signer.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        lock_hash = "0x" + bytes(tx_hash).hex() if isinstance(tx_hash, (bytes, bytearray)) else tx_hash
        self.logger.info(f"Lock transaction sent: {lock_hash}")
        return lock_hash

    def get_revert_reason(self, tx_hash: str) -> str:
        """Replay the transaction with ``eth_call`` at its block to read the revert message."""
        tx = self.w3.eth.get_transaction(tx_hash)
        call = {
            "from": tx["from"],
            "to": tx["to"],
            "data": tx["input"],
            "value": tx["value"],
            "gas": tx["gas"],
        }
        try:
            self.w3.eth.call(call, block_identifier=tx["blockNumber"])
        except ContractLogicError as e:
            return str(e.message or e)
        return "Transaction reverted without a reason"

    def get_lock_events(self, receipt: TxReceipt) -> List[LockEvent]:
        raw_receipt = self.w3.eth.get_transaction_receipt(receipt.tx_hash)
        events = self.custodian.events.Deposited().process_receipt(raw_receipt, errors=DISCARD)
        return [
            LockEvent(
                tx_hash=receipt.tx_hash,
                block_number=receipt.block_number,
                sender=event["args"]["sender"],
                message=event["args"]["recipient"],
                amount=str(event["args"]["amount"]),
                fee=str(event["args"]["fee"]),
            )
            for event in events
            if event["address"] == self.custodian_address
        ]
