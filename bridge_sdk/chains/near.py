"""
NEAR JSON-RPC client and the Aurora-on-NEAR destination adapter.
"""
import base64
import json
import logging
import struct
from typing import Any, Dict, Optional, Union

import requests
from cachetools import TTLCache

from ..config import BridgeParams, validate_https_url
from ..exceptions import NearRpcError
from ..models import TokenMetadata
from ..utils import create_session, strip_hex_prefix
from .base import DestinationChainAdapter, MetadataResolver

logger = logging.getLogger(__name__)


def borsh_string(value: str) -> bytes:
    """Borsh encoding of a string: u32 little-endian length followed by UTF-8 bytes."""
    encoded = value.encode("utf-8")
    return struct.pack("<I", len(encoded)) + encoded


class NearRpcClient:
    """
    Minimal NEAR JSON-RPC client.

    Only read calls are made; transactions are signed and sent by the
    user's wallet (see ``transfers.approval``).
    """

    def __init__(
        self,
        rpc_url: str,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        retry_count: int = 3
    ):
        validate_https_url("near_rpc", rpc_url)
        self.rpc_url = rpc_url
        self.session = session or create_session(retry_count)
        self.timeout = timeout

    def call(self, method: str, params: Any) -> Any:
        """
        Send one JSON-RPC request.

        Raises:
            NearRpcError: If the node returns an error
            requests.RequestException: On transport failures
        """
        logger.debug(f"NEAR RPC {method}: {params}")
        response = self.session.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": "dontcare", "method": method, "params": params},
            timeout=self.timeout
        )
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as e:
            raise NearRpcError(f"Invalid JSON response from NEAR RPC: {e}")
        if body.get("error"):
            error = body["error"]
            cause = error.get("cause") or {}
            raise NearRpcError(
                f"NEAR RPC {method} failed: {error.get('data') or error.get('message')}",
                error_name=cause.get("name") or error.get("name")
            )
        return body["result"]

    def view_function(
        self,
        contract_id: str,
        method_name: str,
        args: Union[None, bytes, Dict[str, Any]] = None
    ) -> bytes:
        """
        Call a view method and return the raw result bytes.

        Args:
            contract_id: Account the contract is deployed to
            method_name: View method name
            args: JSON-serialisable dict or raw bytes (e.g. borsh) passed as-is
        """
        if args is None:
            raw_args = b""
        elif isinstance(args, (bytes, bytearray)):
            raw_args = bytes(args)
        else:
            raw_args = json.dumps(args).encode("utf-8")
        result = self.call("query", {
            "request_type": "call_function",
            "finality": "final",
            "account_id": contract_id,
            "method_name": method_name,
            "args_base64": base64.b64encode(raw_args).decode("ascii"),
        })
        if "error" in result:
            raise NearRpcError(f"View call {contract_id}.{method_name} failed: {result['error']}")
        return bytes(result["result"])

    def view_json(
        self,
        contract_id: str,
        method_name: str,
        args: Optional[Dict[str, Any]] = None
    ) -> Any:
        return json.loads(self.view_function(contract_id, method_name, args or {}).decode("utf-8"))

    def tx_status(self, tx_hash: str, sender_id: str) -> Dict[str, Any]:
        """Final execution outcome of a transaction signed by ``sender_id``."""
        return self.call("tx", [tx_hash, sender_id])

    def block(self, block_id: Union[str, int]) -> Dict[str, Any]:
        return self.call("block", {"block_id": block_id})

    def block_timestamp(self, block_id: Union[str, int]) -> int:
        """Block timestamp in nanoseconds."""
        return int(self.block(block_id)["header"]["timestamp"])

    def get_min_storage_balance(self, nep141_address: str) -> str:
        """Minimum NEP-145 storage deposit, falling back to the legacy method name."""
        try:
            return self.view_json(nep141_address, "storage_balance_bounds")["min"]
        except NearRpcError:
            return self.view_json(nep141_address, "storage_minimum_balance")

    def get_storage_balance(self, nep141_address: str, account_id: str) -> Optional[Dict[str, str]]:
        try:
            return self.view_json(nep141_address, "storage_balance_of", {"account_id": account_id})
        except NearRpcError as e:
            logger.warning(f"Could not read storage balance of {account_id} on {nep141_address}: {e}")
            return None


def decode_success_value(outcome: Dict[str, Any]) -> Optional[str]:
    """
    Decode the ``SuccessValue`` of a NEAR execution outcome.

    ``ft_transfer_call`` returns the amount actually transferred as a JSON
    string, e.g. ``"1000"``. Returns None when the transaction failed.
    """
    status = outcome.get("status") or {}
    encoded = status.get("SuccessValue") if isinstance(status, dict) else None
    if encoded is None:
        return None
    try:
        value = json.loads(base64.b64decode(encoded).decode("utf-8"))
    except ValueError:
        return None
    return str(value)


class AuroraDestinationAdapter(DestinationChainAdapter):
    """Aurora engine and Ethereum light client, both deployed on NEAR."""

    def __init__(self, near: NearRpcClient, aurora_evm_account: str, eth_client_account: str):
        self.near = near
        self.aurora_evm_account = aurora_evm_account
        self.eth_client_account = eth_client_account

    @classmethod
    def from_params(cls, params: BridgeParams, near: Optional[NearRpcClient] = None) -> "AuroraDestinationAdapter":
        near = near or NearRpcClient(params.near_rpc, timeout=params.http_timeout)
        return cls(near, params.aurora_evm_account, params.eth_client_account)

    def synced_height(self) -> int:
        raw = self.near.view_function(self.eth_client_account, "last_block_number")
        return struct.unpack("<Q", raw[:8])[0]

    def is_proof_used(self, proof: bytes) -> bool:
        raw = self.near.view_function(self.aurora_evm_account, "is_used_proof", proof)
        return bool(raw[0]) if raw else False

    def get_erc20_from_nep141(self, nep141_address: str) -> str:
        """Address of the Aurora ERC-20 mirroring a NEP-141 token."""
        raw = self.near.view_function(self.aurora_evm_account, "get_erc20_from_nep141", borsh_string(nep141_address))
        return "0x" + raw.hex()

    def get_nep141_from_erc20(self, aurora_erc20_address: str) -> str:
        raw = self.near.view_function(
            self.aurora_evm_account,
            "get_nep141_from_erc20",
            bytes.fromhex(strip_hex_prefix(aurora_erc20_address.lower()))
        )
        return raw.decode("utf-8")


class NearMetadataResolver(MetadataResolver):
    """Reads NEP-148 ``ft_metadata``, caching results for an hour."""

    def __init__(self, near: NearRpcClient, ttl: int = 3600):
        self.near = near
        self._cache: TTLCache = TTLCache(maxsize=512, ttl=ttl)

    def resolve(self, token_id: str) -> TokenMetadata:
        cached = self._cache.get(token_id)
        if cached is not None:
            return cached
        metadata = self.near.view_json(token_id, "ft_metadata")
        resolved = TokenMetadata(symbol=metadata["symbol"], decimals=metadata["decimals"])
        self._cache[token_id] = resolved
        return resolved
