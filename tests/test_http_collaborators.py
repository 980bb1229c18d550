"""
Tests for the HTTP-backed collaborators: NEAR RPC, indexer and proof service.
"""
import base64
import json
import struct

import pytest
import requests

from bridge_sdk.chains.indexer import HttpIndexer, build_action_receipts_query, build_indexer_tx_query
from bridge_sdk.chains.near import (
    AuroraDestinationAdapter, NearMetadataResolver, NearRpcClient, borsh_string, decode_success_value
)
from bridge_sdk.chains.proof import HttpProofOracle
from bridge_sdk.exceptions import ConfigError, IndexerError, NearRpcError, ProofError
from bridge_sdk.models import TxReceipt

NEAR_RPC = "https://near.example.com"
INDEXER = "https://indexer.example.com/query"
PROOF = "https://proof.example.com"


def _view_result(value: bytes):
    return {"jsonrpc": "2.0", "id": "dontcare", "result": {"result": list(value), "logs": []}}


@pytest.fixture
def near():
    return NearRpcClient(NEAR_RPC, retry_count=0)


class TestNearRpcClient:

    def test_rejects_plain_http(self):
        with pytest.raises(ConfigError):
            NearRpcClient("http://near.example.com")

    def test_view_function_encodes_args(self, near, requests_mock):
        route = requests_mock.post(NEAR_RPC, json=_view_result(b'"ok"'))

        assert near.view_json("token.near", "ft_metadata", {"a": 1}) == "ok"

        body = route.last_request.json()
        assert body["method"] == "query"
        params = body["params"]
        assert params["request_type"] == "call_function"
        assert params["account_id"] == "token.near"
        assert params["method_name"] == "ft_metadata"
        assert json.loads(base64.b64decode(params["args_base64"])) == {"a": 1}

    def test_rpc_error_raises(self, near, requests_mock):
        requests_mock.post(NEAR_RPC, json={
            "jsonrpc": "2.0",
            "id": "dontcare",
            "error": {"name": "HANDLER_ERROR", "cause": {"name": "UNKNOWN_TRANSACTION"}, "data": "not found"},
        })

        with pytest.raises(NearRpcError) as exc_info:
            near.tx_status("hash", "alice.near")

        assert exc_info.value.error_name == "UNKNOWN_TRANSACTION"

    def test_http_errors_propagate(self, near, requests_mock):
        requests_mock.post(NEAR_RPC, status_code=404)
        with pytest.raises(requests.HTTPError):
            near.block("abc")

    def test_tx_status_and_block_timestamp(self, near, requests_mock):
        def respond(request, context):
            body = request.json()
            if body["method"] == "tx":
                assert body["params"] == ["hash", "alice.near"]
                return {"result": {"status": {"SuccessValue": ""}}}
            return {"result": {"header": {"timestamp": 1650000000000000000}}}

        requests_mock.post(NEAR_RPC, json=respond)

        assert near.tx_status("hash", "alice.near") == {"status": {"SuccessValue": ""}}
        assert near.block_timestamp("blockhash") == 1650000000000000000

    def test_min_storage_balance_falls_back_to_legacy_method(self, near, requests_mock):
        def respond(request, context):
            method_name = request.json()["params"]["method_name"]
            if method_name == "storage_balance_bounds":
                return {"error": {"name": "HANDLER_ERROR", "data": "MethodNotFound"}}
            return _view_result(b'"1250000000000000000000"')

        requests_mock.post(NEAR_RPC, json=respond)

        assert near.get_min_storage_balance("wrap.near") == "1250000000000000000000"

    def test_storage_balance_missing_account(self, near, requests_mock):
        requests_mock.post(NEAR_RPC, json={"error": {"name": "HANDLER_ERROR", "data": "unknown"}})
        assert near.get_storage_balance("wrap.near", "alice.near") is None


class TestAuroraDestinationAdapter:

    def test_synced_height(self, near, requests_mock):
        route = requests_mock.post(NEAR_RPC, json=_view_result(struct.pack("<Q", 15_000_000)))
        adapter = AuroraDestinationAdapter(near, "aurora", "client.bridge.near")

        assert adapter.synced_height() == 15_000_000
        assert route.last_request.json()["params"]["account_id"] == "client.bridge.near"

    @pytest.mark.parametrize("raw,used", [(b"\x01", True), (b"\x00", False), (b"", False)])
    def test_is_proof_used(self, near, requests_mock, raw, used):
        route = requests_mock.post(NEAR_RPC, json=_view_result(raw))
        adapter = AuroraDestinationAdapter(near, "aurora", "client.bridge.near")

        assert adapter.is_proof_used(b"\xde\xad") is used
        params = route.last_request.json()["params"]
        assert params["method_name"] == "is_used_proof"
        assert base64.b64decode(params["args_base64"]) == b"\xde\xad"

    def test_erc20_lookups(self, near, requests_mock):
        adapter = AuroraDestinationAdapter(near, "aurora", "client.bridge.near")

        route = requests_mock.post(NEAR_RPC, json=_view_result(bytes.fromhex("22" * 20)))
        assert adapter.get_erc20_from_nep141("usdc.near") == "0x" + "22" * 20
        args = base64.b64decode(route.last_request.json()["params"]["args_base64"])
        assert args == borsh_string("usdc.near")

        requests_mock.post(NEAR_RPC, json=_view_result(b"usdc.near"))
        assert adapter.get_nep141_from_erc20("0x" + "22" * 20) == "usdc.near"


def test_borsh_string():
    assert borsh_string("ab") == b"\x02\x00\x00\x00ab"


def test_decode_success_value():
    encoded = base64.b64encode(b'"100"').decode()
    assert decode_success_value({"status": {"SuccessValue": encoded}}) == "100"
    assert decode_success_value({"status": {"Failure": {}}}) is None
    assert decode_success_value({"status": {"SuccessValue": base64.b64encode(b"not json").decode()}}) is None


def test_metadata_resolver_caches(near, requests_mock):
    route = requests_mock.post(NEAR_RPC, json=_view_result(b'{"symbol": "USDC", "decimals": 6, "name": "USD Coin"}'))
    resolver = NearMetadataResolver(near)

    first = resolver.resolve("usdc.near")
    second = resolver.resolve("usdc.near")

    assert first.symbol == "USDC"
    assert first.decimals == 6
    assert second == first
    assert route.call_count == 1


class TestHttpIndexer:

    def test_query_returns_rows(self, requests_mock):
        rows = [{"originated_from_transaction_hash": "tx1", "args": {}}]
        route = requests_mock.post(INDEXER, json=rows)

        assert HttpIndexer(INDEXER, retry_count=0).query("SELECT 1") == rows
        assert route.last_request.json() == {"query": "SELECT 1"}

    def test_wrapped_rows(self, requests_mock):
        requests_mock.post(INDEXER, json={"rows": [{"a": 1}]})
        assert HttpIndexer(INDEXER, retry_count=0).query("q") == [{"a": 1}]

    @pytest.mark.parametrize("kwargs", [
        {"status_code": 500},
        {"text": "not json"},
        {"json": {"unexpected": True}},
        {"exc": requests.ConnectionError("refused")},
    ])
    def test_failures_raise_indexer_error(self, requests_mock, kwargs):
        requests_mock.post(INDEXER, **kwargs)
        with pytest.raises(IndexerError):
            HttpIndexer(INDEXER, retry_count=0).query("q")


class TestQueryBuilders:

    def test_tx_query_latest_has_no_upper_bound(self):
        query = build_indexer_tx_query("1650000000000000000", "latest", "alice.near", "usdc.near")
        assert "included_in_block_timestamp > 1650000000000000000" in query
        assert "included_in_block_timestamp <" not in query

    @pytest.mark.parametrize("args", [
        ("0", "latest", "alice.near' OR '1'='1", "usdc.near"),
        ("0", "latest", "alice.near", "USDC.near"),
        ("0; DROP", "latest", "alice.near", "usdc.near"),
        ("0", "soon", "alice.near", "usdc.near"),
    ])
    def test_tx_query_rejects_injection(self, args):
        with pytest.raises(ValueError):
            build_indexer_tx_query(*args)

    def test_action_receipts_query(self):
        tx_hash = "9fRmEMc3SPV4fXSvt1dVWFUxiZtsSvqLFNqDcYNVwRsb"
        query = build_action_receipts_query(tx_hash, "aurora")
        assert f"originated_from_transaction_hash = '{tx_hash}'" in query
        assert "receiver_account_id = 'aurora'" in query

    def test_action_receipts_query_rejects_short_hash(self):
        with pytest.raises(ValueError):
            build_action_receipts_query("abc", "aurora")


class TestHttpProofOracle:

    @pytest.fixture
    def receipt(self):
        return TxReceipt(tx_hash="0xabc", block_number=100, block_hash="0x01", status=1)

    def test_find_proof(self, requests_mock, receipt):
        route = requests_mock.post(f"{PROOF}/eth-proof", json={"proof": "0xdeadbeef"})

        assert HttpProofOracle(PROOF, retry_count=0).find_proof(receipt) == b"\xde\xad\xbe\xef"
        assert route.last_request.json() == {"txHash": "0xabc", "blockNumber": 100}

    @pytest.mark.parametrize("kwargs", [
        {"status_code": 503},
        {"json": {}},
        {"json": {"proof": "xyz"}},
        {"text": "<html>"},
    ])
    def test_failures_raise_proof_error(self, requests_mock, receipt, kwargs):
        requests_mock.post(f"{PROOF}/eth-proof", **kwargs)
        with pytest.raises(ProofError):
            HttpProofOracle(PROOF, retry_count=0).find_proof(receipt)
