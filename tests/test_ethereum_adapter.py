"""
Tests for the web3-backed Ethereum source adapter.
"""
import logging
from unittest.mock import MagicMock

import pytest
from hexbytes import HexBytes
from web3.datastructures import AttributeDict
from web3.exceptions import ContractLogicError, TransactionNotFound

from bridge_sdk.chains.base import LockParams
from bridge_sdk.chains.ethereum import DEFAULT_LOCK_GAS, EthereumAdapter
from bridge_sdk.exceptions import ConfigError, WrongNetworkError
from bridge_sdk.models import TxReceipt

from tests.conftest import TEST_ETH_RPC_URL, TEST_PRIV_KEY
from tests.fakes import CUSTODIAN, RECIPIENT, SENDER

LOCK_HASH = "0x" + "ab" * 32


@pytest.fixture
def signer():
    signer = MagicMock()
    signer.address = SENDER
    signer.sign_transaction.return_value = MagicMock(raw_transaction=b"signed")
    return signer


@pytest.fixture
def adapter(signer):
    adapter = EthereumAdapter(TEST_ETH_RPC_URL, CUSTODIAN, expected_chain_id=1, signer=signer)
    adapter.w3 = MagicMock()
    adapter.w3.eth.chain_id = 1
    adapter.w3.eth.get_transaction_count.return_value = 3
    adapter.w3.eth.gas_price = 10
    adapter.w3.eth.send_raw_transaction.return_value = HexBytes(LOCK_HASH)
    adapter.custodian = MagicMock()
    deposit = adapter.custodian.functions.depositToEVM.return_value
    deposit.estimate_gas.return_value = 100000
    deposit.build_transaction.side_effect = lambda params: {**params, "data": "0x5a4e"}
    return adapter


class TestConstruction:

    def test_rejects_plain_http(self):
        with pytest.raises(ConfigError):
            EthereumAdapter("http://eth.example.com", CUSTODIAN)

    def test_address_from_private_key(self):
        adapter = EthereumAdapter(TEST_ETH_RPC_URL, CUSTODIAN, priv_key=TEST_PRIV_KEY)
        assert adapter.address.startswith("0x")
        assert adapter.address == adapter.account.address

    def test_address_from_signer(self, signer):
        assert EthereumAdapter(TEST_ETH_RPC_URL, CUSTODIAN, signer=signer).address == SENDER

    def test_read_only_adapter_has_no_address(self):
        with pytest.raises(ConfigError):
            EthereumAdapter(TEST_ETH_RPC_URL, CUSTODIAN).address

    def test_chain_id_through_provider(self):
        # eth_chainId is stubbed to 0x1 for every HTTPProvider
        assert EthereumAdapter(TEST_ETH_RPC_URL, CUSTODIAN).chain_id() == 1


class TestBroadcastLock:

    def test_sends_deposit_to_evm(self, adapter, signer):
        tx_hash = adapter.broadcast_lock(LockParams(sender=SENDER, recipient=RECIPIENT, amount="1000"))

        assert tx_hash == LOCK_HASH
        adapter.custodian.functions.depositToEVM.assert_called_once_with(RECIPIENT[2:], 0)
        tx = signer.sign_transaction.call_args[0][0]
        assert tx["from"] == SENDER
        assert tx["nonce"] == 3
        assert tx["value"] == 1000
        assert tx["gas"] == 110000
        assert tx["gasPrice"] == 10
        adapter.w3.eth.get_transaction_count.assert_called_once_with(SENDER, "pending")
        adapter.w3.eth.send_raw_transaction.assert_called_once_with(b"signed")

    def test_wrong_network(self, adapter, signer):
        adapter.w3.eth.chain_id = 5

        with pytest.raises(WrongNetworkError) as exc_info:
            adapter.broadcast_lock(LockParams(sender=SENDER, recipient=RECIPIENT, amount="1"))

        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 5
        signer.sign_transaction.assert_not_called()

    def test_gas_estimation_failure_uses_default(self, adapter, signer, caplog):
        deposit = adapter.custodian.functions.depositToEVM.return_value
        deposit.estimate_gas.side_effect = ContractLogicError("execution reverted")

        with caplog.at_level(logging.WARNING):
            adapter.broadcast_lock(LockParams(sender=SENDER, recipient=RECIPIENT, amount="1"))

        assert signer.sign_transaction.call_args[0][0]["gas"] == DEFAULT_LOCK_GAS
        assert "Gas estimation failed" in caplog.text


class TestReads:

    def test_missing_receipt_and_transaction(self, adapter):
        adapter.w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("nope")
        adapter.w3.eth.get_transaction.side_effect = TransactionNotFound("nope")

        assert adapter.get_receipt(LOCK_HASH) is None
        assert adapter.get_transaction(LOCK_HASH) is None

    def test_receipt_is_converted(self, adapter):
        adapter.w3.eth.get_transaction_receipt.return_value = AttributeDict({
            "transactionHash": HexBytes(LOCK_HASH),
            "blockNumber": 42,
            "blockHash": HexBytes("0x" + "01" * 32),
            "status": 1,
        })

        receipt = adapter.get_receipt(LOCK_HASH)

        assert receipt.tx_hash == LOCK_HASH
        assert receipt.block_number == 42
        assert receipt.succeeded

    def test_transaction_count_at_block(self, adapter):
        adapter.get_transaction_count(SENDER)
        adapter.get_transaction_count(SENDER, 100)

        calls = adapter.w3.eth.get_transaction_count.call_args_list
        assert calls[0][0][1] == "latest"
        assert calls[1][0][1] == 100

    def test_block_transactions(self, adapter):
        adapter.w3.eth.get_block.return_value = {"transactions": [AttributeDict({
            "hash": HexBytes(LOCK_HASH),
            "from": SENDER,
            "to": CUSTODIAN,
            "nonce": 3,
            "input": HexBytes("0x5a4e"),
            "value": 1,
            "blockNumber": 7,
        })]}

        txs = adapter.get_block_transactions(7)

        adapter.w3.eth.get_block.assert_called_once_with(7, full_transactions=True)
        assert [(tx.hash, tx.nonce, tx.input) for tx in txs] == [(LOCK_HASH, 3, "0x5a4e")]

    def test_revert_reason(self, adapter):
        adapter.w3.eth.get_transaction.return_value = {
            "from": SENDER, "to": CUSTODIAN, "input": "0x", "value": 1, "gas": 21000, "blockNumber": 9
        }
        adapter.w3.eth.call.side_effect = ContractLogicError("execution reverted: not enough fee")

        assert adapter.get_revert_reason(LOCK_HASH) == "execution reverted: not enough fee"
        assert adapter.w3.eth.call.call_args[1] == {"block_identifier": 9}

    def test_revert_without_reason(self, adapter):
        adapter.w3.eth.get_transaction.return_value = {
            "from": SENDER, "to": CUSTODIAN, "input": "0x", "value": 1, "gas": 21000, "blockNumber": 9
        }
        assert adapter.get_revert_reason(LOCK_HASH) == "Transaction reverted without a reason"

    def test_lock_events_from_custodian_only(self, adapter):
        receipt = TxReceipt(tx_hash=LOCK_HASH, block_number=42, block_hash="0x01", status=1)
        event_args = {"sender": SENDER, "recipient": "aurora:" + RECIPIENT[2:], "amount": 1000, "fee": 0}
        adapter.custodian.events.Deposited.return_value.process_receipt.return_value = [
            {"address": adapter.custodian_address, "args": event_args},
            {"address": "0x" + "99" * 20, "args": event_args},
        ]

        events = adapter.get_lock_events(receipt)

        assert len(events) == 1
        assert events[0].message == "aurora:" + RECIPIENT[2:]
        assert events[0].amount == "1000"
        assert events[0].block_number == 42
