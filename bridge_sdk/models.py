"""
Data models for the bridge transfer SDK.

Field aliases follow the camelCase keys used by the bridge frontends when
transfers are persisted, so ``Transfer.model_dump(by_alias=True)`` produces
a record other clients can read back.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TransferStatus(str, Enum):
    """Lifecycle status of a transfer."""
    ACTION_NEEDED = "action-needed"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"
    FAILED = "failed"


class Step(str, Enum):
    """Bridge steps a transfer can complete, in protocol order."""
    LOCK = "lock"
    SYNC = "sync"
    MINT = "mint"


_STEP_ORDER = {None: 0, Step.LOCK: 1, Step.SYNC: 2, Step.MINT: 3}


def step_rank(step: Optional[Step]) -> int:
    """Position of a completed step, with ``None`` (nothing done yet) first."""
    return _STEP_ORDER[step]


def to_jsonable(value: Any) -> Any:
    """Recursively convert web3 return values (HexBytes, AttributeDict) to plain JSON types."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, dict) or hasattr(value, "items"):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


class TokenMetadata(BaseModel):
    """Fungible token metadata needed to display amounts"""
    symbol: str
    decimals: int


class TxReceipt(BaseModel):
    """Transaction receipt from the source chain"""
    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(0, alias="gasUsed")
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_web3(cls, web3_receipt: Any) -> "TxReceipt":
        """
        Convert a web3 receipt to our TxReceipt model

        Args:
            web3_receipt: The web3 transaction receipt (AttributeDict)

        Returns:
            Our TxReceipt model
        """
        return cls.model_validate(to_jsonable(dict(web3_receipt)))


class ChainTransaction(BaseModel):
    """A transaction as returned by the source chain (pending or mined)"""
    hash: str
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    nonce: int
    input: str = "0x"
    value: int = 0
    block_number: Optional[int] = Field(None, alias="blockNumber")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_web3(cls, web3_tx: Any) -> "ChainTransaction":
        return cls.model_validate(to_jsonable(dict(web3_tx)))


class ReplacementCache(BaseModel):
    """
    Identity of the last broadcast lock transaction.

    Kept only while the lock is unconfirmed, to look for a transaction that
    replaced it (speed-up or cancel).
    """
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    nonce: int
    data: str = "0x"
    safe_reorg_height: int = Field(..., alias="safeReorgHeight")

    model_config = ConfigDict(populate_by_name=True)


class LockEvent(BaseModel):
    """Decoded bridge lock/deposit event"""
    tx_hash: str
    block_number: int
    sender: str
    message: str
    amount: str
    fee: str = "0"


class IndexedCall(BaseModel):
    """One function call row returned by the indexer"""
    tx_hash: str = Field(..., alias="originated_from_transaction_hash")
    method_name: str
    args_json: Dict[str, Any] = Field(default_factory=dict)
    predecessor_account_id: Optional[str] = Field(None, alias="receipt_predecessor_account_id")
    block_timestamp: Optional[int] = Field(None, alias="included_in_block_timestamp")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "IndexedCall":
        """Flatten the ``args`` column ({method_name, args_json}) of an indexer row."""
        args = row.get("args") or {}
        return cls.model_validate({
            **{key: value for key, value in row.items() if key != "args"},
            "method_name": args.get("method_name", ""),
            "args_json": args.get("args_json") or {},
        })


class Transfer(BaseModel):
    """
    Persisted, append-only state of one bridge transfer.

    Records are treated as immutable values: state machine operations
    return an updated copy and never mutate their input.
    """
    id: str
    type: str
    status: TransferStatus = TransferStatus.ACTION_NEEDED
    completed_step: Optional[Step] = Field(None, alias="completedStep")
    amount: str
    decimals: int
    symbol: str
    source_token: Optional[str] = Field(None, alias="sourceToken")
    source_token_name: str = Field(..., alias="sourceTokenName")
    destination_token_name: str = Field(..., alias="destinationTokenName")
    sender: str
    recipient: str
    start_time: Optional[str] = Field(None, alias="startTime")
    lock_hashes: List[str] = Field(default_factory=list, alias="lockHashes")
    lock_receipts: List[TxReceipt] = Field(default_factory=list, alias="lockReceipts")
    completed_confirmations: int = Field(0, ge=0, alias="completedConfirmations")
    needed_confirmations: int = Field(0, ge=0, alias="neededConfirmations")
    mint_hashes: List[str] = Field(default_factory=list, alias="mintHashes")
    errors: List[str] = Field(default_factory=list)
    replacement_cache: Optional[ReplacementCache] = Field(None, alias="ethCache")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_is_base_units(cls, value: Any) -> str:
        text = str(value)
        if not text.isdigit():
            raise ValueError(f"amount must be a non-negative integer in base units, got: {value!r}")
        return text

    @property
    def last_lock_hash(self) -> Optional[str]:
        return self.lock_hashes[-1] if self.lock_hashes else None

    @property
    def last_lock_receipt(self) -> Optional[TxReceipt]:
        return self.lock_receipts[-1] if self.lock_receipts else None

    def evolve(self, **updates: Any) -> "Transfer":
        """Return a copy with the given fields replaced."""
        return self.model_copy(update=updates)

    def failed(self, error: str, **updates: Any) -> "Transfer":
        """Return a copy marked failed with ``error`` appended to the audit trail."""
        return self.evolve(status=TransferStatus.FAILED, errors=[*self.errors, error], **updates)

    def to_record(self) -> Dict[str, Any]:
        """Serialise for storage, using the camelCase field names."""
        return self.model_dump(mode="json", by_alias=True)


def destination_token_name(source_token_name: str) -> str:
    """Name of the bridged token on Aurora."""
    return "a" + source_token_name
