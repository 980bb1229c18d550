"""
BridgeClient - wires the chain adapters, protocols and state machine together.
"""
import logging
from typing import Any, Optional

from .chains.base import FinalityOracle, Indexer, MetadataResolver, SourceChainAdapter
from .chains.ethereum import EthereumAdapter, Signer
from .chains.indexer import HttpIndexer
from .chains.near import AuroraDestinationAdapter, NearMetadataResolver, NearRpcClient
from .chains.proof import HttpProofOracle
from .config import BridgeParams
from .exceptions import ConfigError
from .models import Transfer
from .transfers.approval import InMemoryApprovals, NearWallet, PendingApproval
from .transfers.discovery import BatchDiscovery, DiscoveredTransfers
from .transfers.machine import TransferStateMachine
from .transfers.protocols import NaturalEtherToAurora, NaturalNep141ToAurora, WrapNearToAurora
from .transfers.recovery import RecoveryBuilder
from .transfers.runner import TransferRunner


class BridgeClient:
    """
    Client for moving assets from Ethereum and NEAR to Aurora.

    Each collaborator can be passed in directly; anything omitted is built
    from ``params``. Operations whose collaborators are missing (no proof
    service, no indexer, no NEAR wallet) raise ``ConfigError``.

    Example:
        client = BridgeClient.from_network("testnet", eth_priv_key=key)
        transfer = client.send_ether_to_aurora(amount="1000000000000000")
        transfer = client.poll(transfer)
    """

    def __init__(
        self,
        params: BridgeParams,
        eth_priv_key: Optional[str] = None,
        eth_signer: Optional[Signer] = None,
        near_wallet: Optional[NearWallet] = None,
        source: Optional[SourceChainAdapter] = None,
        near: Optional[NearRpcClient] = None,
        oracle: Optional[FinalityOracle] = None,
        indexer: Optional[Indexer] = None,
        metadata: Optional[MetadataResolver] = None,
        approvals: Optional[PendingApproval] = None,
        max_workers: int = 8,
        logger: Optional[logging.Logger] = None
    ):
        self.params = params
        self.logger = logger or logging.getLogger(__name__)

        self.source = source or EthereumAdapter.from_params(
            params, priv_key=eth_priv_key, signer=eth_signer, logger=self.logger
        )
        self.near = near or NearRpcClient(params.near_rpc, timeout=params.http_timeout)
        self.destination = AuroraDestinationAdapter.from_params(params, near=self.near)
        if oracle is None and params.proof_service_url:
            oracle = HttpProofOracle(params.proof_service_url, timeout=params.http_timeout)
        self.oracle = oracle
        if indexer is None and params.indexer_url:
            indexer = HttpIndexer(params.indexer_url, timeout=params.http_timeout)
        self.indexer = indexer
        self.metadata = metadata or NearMetadataResolver(self.near)
        self.approvals = approvals or InMemoryApprovals()
        self.near_wallet = near_wallet

        self.ether = None
        if self.oracle is not None:
            self.ether = NaturalEtherToAurora(
                self.source,
                self.destination,
                self.oracle,
                needed_confirmations=params.needed_confirmations,
                expected_chain_id=params.eth_chain_id,
                logger=self.logger
            )
        else:
            self.logger.warning("No proof service configured, natural ETH transfers are disabled")

        self.nep141 = None
        self.wrap_near = None
        if near_wallet is not None:
            self.nep141 = NaturalNep141ToAurora(
                self.near, near_wallet, self.approvals, params.aurora_evm_account,
                metadata=self.metadata, logger=self.logger
            )
            self.wrap_near = WrapNearToAurora(
                self.near, near_wallet, self.approvals, params.aurora_evm_account,
                params.wnear_nep141, logger=self.logger
            )

        self.machine = TransferStateMachine(
            [p for p in (self.ether, self.nep141, self.wrap_near) if p is not None],
            logger=self.logger
        )
        self.runner = TransferRunner(self.machine, logger=self.logger)
        self.recovery = RecoveryBuilder(
            params.aurora_evm_account,
            source=self.source,
            destination=self.destination,
            oracle=self.oracle,
            indexer=self.indexer,
            metadata=self.metadata,
            needed_confirmations=params.needed_confirmations,
            logger=self.logger
        )
        self.discovery = None
        if self.indexer is not None:
            self.discovery = BatchDiscovery(
                self.near, self.indexer, params.aurora_evm_account,
                metadata=self.metadata, max_workers=max_workers, logger=self.logger
            )

    @classmethod
    def from_network(cls, network: Optional[str] = None, **kwargs: Any) -> "BridgeClient":
        """
        Create a client for a bundled network ("mainnet", "testnet").

        Keyword arguments naming ``BridgeParams`` fields override the bundled
        values; the rest are passed to the constructor.
        """
        param_fields = set(BridgeParams.model_fields)
        overrides = {key: kwargs.pop(key) for key in list(kwargs) if key in param_fields - {"network"}}
        return cls(BridgeParams.from_network(network, **overrides), **kwargs)

    def _require(self, component: Any, name: str) -> Any:
        if component is None:
            raise ConfigError(f"{name} is not configured for network '{self.params.network}'")
        return component

    def send_ether_to_aurora(self, amount: str, recipient: Optional[str] = None, sender: Optional[str] = None) -> Transfer:
        """
        Lock ETH for an Aurora address.

        Args:
            amount: Amount in wei
            recipient: Aurora address (defaults to the sender)
            sender: Ethereum address (defaults to the adapter's account)
        """
        ether = self._require(self.ether, "Proof service")
        return ether.initiate(amount, sender or self.source.address, recipient)

    def send_nep141_to_aurora(
        self,
        nep141_address: str,
        amount: str,
        recipient: str,
        symbol: Optional[str] = None,
        decimals: Optional[int] = None
    ) -> Transfer:
        nep141 = self._require(self.nep141, "NEAR wallet")
        return nep141.send_to_aurora(nep141_address, amount, recipient, symbol=symbol, decimals=decimals)

    def wrap_and_send_near_to_aurora(self, amount: str, recipient: str) -> Transfer:
        wrap_near = self._require(self.wrap_near, "NEAR wallet")
        return wrap_near.wrap_and_send_to_aurora(amount, recipient)

    def resolve_wallet(self, transfer_id: str, tx_hash: Optional[str] = None, error_code: Optional[str] = None) -> None:
        """Record what the NEAR wallet returned for a transfer after a redirect."""
        self.approvals.resolve(transfer_id, tx_hash=tx_hash, error_code=error_code)

    def act(self, transfer: Transfer) -> Transfer:
        return self.runner.act(transfer)

    def check_status(self, transfer: Transfer) -> Transfer:
        return self.runner.check_status(transfer)

    def poll(self, transfer: Transfer) -> Transfer:
        return self.runner.poll(transfer)

    def recover_ether(self, lock_tx_hash: str) -> Transfer:
        self._require(self.oracle, "Proof service")
        return self.recovery.recover_ether(lock_tx_hash)

    def recover_nep141(self, lock_tx_hash: str, symbol: Optional[str] = None, decimals: Optional[int] = None) -> Transfer:
        self._require(self.indexer, "Indexer")
        return self.recovery.recover_nep141(lock_tx_hash, symbol=symbol, decimals=decimals)

    def find_all_transfers(
        self,
        from_block: str,
        to_block: str,
        sender: str,
        nep141_address: str,
        symbol: Optional[str] = None,
        decimals: Optional[int] = None
    ) -> DiscoveredTransfers:
        discovery = self._require(self.discovery, "Indexer")
        return discovery.find_all_transfers(from_block, to_block, sender, nep141_address, symbol, decimals)
