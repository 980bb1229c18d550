"""
Network configuration for the bridge transfer SDK.

Bridge parameters for known networks ship with the package in
``networks.json``. Values can be overridden per call or through
environment variables.
"""
import json
import logging
import os
import urllib.parse
from importlib import resources
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_NETWORK = "mainnet"
DEFAULT_HTTP_TIMEOUT = 30

# Blocks subtracted from the current height when a lock is broadcast, so a
# replacement search still covers the chain after a reorg.
SAFE_REORG_MARGIN = 20


def validate_https_url(name: str, url: str) -> None:
    """
    Reject plain-http endpoints unless they point at the local machine.

    Raises:
        ConfigError: If the URL does not use https and is not localhost
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.hostname or ""
    is_local = host in ("localhost", "127.0.0.1", "::1")
    if parsed.scheme != "https" and not is_local:
        raise ConfigError(f"{name} must use https:// for security (got: {parsed.scheme}://)")


class NetworkConfig:
    """Access to the bundled network definitions."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load network definitions, caching them on the class.

        Returns:
            Mapping of network name to raw bridge parameters
        """
        if cls._networks_cache is None:
            text = resources.files("bridge_sdk").joinpath("networks.json").read_text(encoding="utf-8")
            cls._networks_cache = json.loads(text)
        return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks))
            raise ConfigError(f"Unknown network '{network}'. Available networks: {available}")
        return networks[network]

    @staticmethod
    def _env_prefix(network: str) -> str:
        return network.upper().replace("-", "_")

    @classmethod
    def get_eth_rpc_url(cls, network: str, override: Optional[str] = None) -> str:
        """Ethereum RPC URL: explicit override, then ``<NETWORK>_ETH_RPC_URL``, then the bundled value."""
        if override:
            return override
        env_url = os.environ.get(f"{cls._env_prefix(network)}_ETH_RPC_URL")
        if env_url:
            return env_url
        return cls.get_network(network)["ethRpc"]

    @classmethod
    def get_near_rpc_url(cls, network: str, override: Optional[str] = None) -> str:
        """NEAR RPC URL: explicit override, then ``<NETWORK>_NEAR_RPC_URL``, then the bundled value."""
        if override:
            return override
        env_url = os.environ.get(f"{cls._env_prefix(network)}_NEAR_RPC_URL")
        if env_url:
            return env_url
        return cls.get_network(network)["nearRpc"]


class BridgeParams(BaseModel):
    """Parameters of one bridge deployment"""
    network: str = DEFAULT_NETWORK
    eth_chain_id: int = Field(..., alias="ethChainId")
    eth_rpc: str = Field(..., alias="ethRpc")
    near_rpc: str = Field(..., alias="nearRpc")
    ether_custodian: str = Field(..., alias="etherCustodian")
    aurora_evm_account: str = Field("aurora", alias="auroraEvmAccount")
    eth_client_account: str = Field(..., alias="ethClientAccount")
    wnear_nep141: str = Field("wrap.near", alias="wNearNep141")
    indexer_url: Optional[str] = Field(None, alias="indexerUrl")
    proof_service_url: Optional[str] = Field(None, alias="proofServiceUrl")
    needed_confirmations: int = Field(20, ge=0, alias="neededConfirmations")
    http_timeout: int = DEFAULT_HTTP_TIMEOUT

    model_config = {"populate_by_name": True}

    @classmethod
    def from_network(cls, network: Optional[str] = None, **overrides: Any) -> "BridgeParams":
        """
        Build bridge parameters from a bundled network definition.

        Args:
            network: Network name (defaults to ``BRIDGE_NETWORK`` or mainnet)
            **overrides: Field values (snake_case) taking precedence over the bundle

        Returns:
            Validated BridgeParams

        Raises:
            ConfigError: If the network is unknown or a value is invalid
        """
        network = network or os.environ.get("BRIDGE_NETWORK", DEFAULT_NETWORK)
        aliases = {field.alias: name for name, field in cls.model_fields.items() if field.alias}
        values = {aliases.get(key, key): value for key, value in NetworkConfig.get_network(network).items()}
        values["eth_rpc"] = NetworkConfig.get_eth_rpc_url(network, overrides.pop("eth_rpc", None))
        values["near_rpc"] = NetworkConfig.get_near_rpc_url(network, overrides.pop("near_rpc", None))
        timeout = os.environ.get("BRIDGE_HTTP_TIMEOUT")
        if timeout and "http_timeout" not in overrides:
            overrides["http_timeout"] = int(timeout)
        values.update(overrides)
        values["network"] = network
        try:
            params = cls.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"Invalid bridge parameters for network '{network}': {e}")
        params.validate_urls()
        logger.debug(f"Loaded bridge parameters for {network}")
        return params

    def validate_urls(self) -> None:
        for name in ("eth_rpc", "near_rpc", "indexer_url", "proof_service_url"):
            url = getattr(self, name)
            if url:
                validate_https_url(name, url)
