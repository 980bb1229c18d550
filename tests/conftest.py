"""
Pytest fixtures for the bridge transfer SDK tests.
"""
import pytest
from web3.providers.rpc import HTTPProvider

from bridge_sdk._rate_limited_log import reset_rate_limits
from bridge_sdk.config import NetworkConfig
from bridge_sdk.models import TokenMetadata, Transfer, TransferStatus
from bridge_sdk.transfers.approval import InMemoryApprovals
from bridge_sdk.transfers.machine import TransferStateMachine
from bridge_sdk.transfers.protocols import NaturalEtherToAurora, NaturalNep141ToAurora, WrapNearToAurora

from tests.fakes import (
    AURORA, RECIPIENT, SENDER, FakeDestination, FakeMetadata, FakeNearRpc, FakeOracle,
    FakeSourceChain, FakeWallet
)

# Constants for testing
TEST_ETH_RPC_URL = "https://eth.example.com"
TEST_NEAR_RPC_URL = "https://near.example.com"
TEST_INDEXER_URL = "https://indexer.example.com"
TEST_PROOF_URL = "https://proof.example.com"
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
WNEAR = "wrap.near"


@pytest.fixture(autouse=True)
def _reset_state():
    """Clear module-level caches so tests don't leak into each other."""
    reset_rate_limits()
    NetworkConfig._networks_cache = None
    yield
    reset_rate_limits()
    NetworkConfig._networks_cache = None


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    """
    def _dummy(self, method, params=None, _=None):
        if method == "eth_chainId":
            return {"jsonrpc": "2.0", "id": 1, "result": "0x1"}
        if method == "eth_gasPrice":
            return {"jsonrpc": "2.0", "id": 1, "result": "0x3b9aca00"}
        return {"jsonrpc": "2.0", "id": 1, "result": "0x0"}

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


@pytest.fixture
def source():
    chain = FakeSourceChain(height=1000)
    chain.base_nonces[SENDER] = 5
    return chain


@pytest.fixture
def destination():
    return FakeDestination(synced=0)


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def ether_protocol(source, destination, oracle):
    return NaturalEtherToAurora(source, destination, oracle, needed_confirmations=20, expected_chain_id=1)


@pytest.fixture
def near_rpc():
    return FakeNearRpc()


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def approvals():
    return InMemoryApprovals()


@pytest.fixture
def metadata():
    return FakeMetadata({"usdc.near": TokenMetadata(symbol="USDC", decimals=6)})


@pytest.fixture
def nep141_protocol(near_rpc, wallet, approvals, metadata):
    return NaturalNep141ToAurora(near_rpc, wallet, approvals, AURORA, metadata=metadata)


@pytest.fixture
def wrap_near_protocol(near_rpc, wallet, approvals):
    return WrapNearToAurora(near_rpc, wallet, approvals, AURORA, WNEAR)


@pytest.fixture
def machine(ether_protocol, nep141_protocol, wrap_near_protocol):
    return TransferStateMachine([ether_protocol, nep141_protocol, wrap_near_protocol])


@pytest.fixture
def ether_transfer(ether_protocol):
    """Draft natural ETH transfer of 1 ETH, nothing broadcast yet."""
    return ether_protocol.draft("1000000000000000000", SENDER, RECIPIENT)


@pytest.fixture
def make_transfer():
    """Build a transfer record with sensible defaults."""
    def _make(**overrides):
        values = dict(
            id="123",
            type="aurora-ether/natural-ether/send-to-aurora",
            status=TransferStatus.IN_PROGRESS,
            amount="1000",
            decimals=18,
            symbol="ETH",
            source_token_name="ETH",
            destination_token_name="aETH",
            sender=SENDER,
            recipient=RECIPIENT,
            needed_confirmations=20,
        )
        values.update(overrides)
        return Transfer(**values)
    return _make
