"""
HTTP client for a NEAR indexer exposing SQL over HTTP, and query builders.
"""
import logging
import re
from typing import Any, Dict, List, Optional

import base58
import requests

from ..config import validate_https_url
from ..exceptions import IndexerError
from ..utils import create_session
from .base import Indexer

logger = logging.getLogger(__name__)

_ACCOUNT_ID = re.compile(r"^[a-z0-9._\-]{2,64}$")


def _checked(value: str, pattern: "re.Pattern[str]", name: str) -> str:
    # Values are interpolated into SQL, so only well-formed ids are accepted
    if not pattern.match(value):
        raise ValueError(f"Invalid {name}: {value!r}")
    return value


def checked_near_tx_hash(tx_hash: str) -> str:
    """Validate a base58 NEAR transaction hash (32 bytes)."""
    try:
        decoded = base58.b58decode(tx_hash)
    except ValueError:
        raise ValueError(f"Invalid transaction hash: {tx_hash!r}")
    if len(decoded) != 32:
        raise ValueError(f"Invalid transaction hash: {tx_hash!r}")
    return tx_hash


def _checked_timestamp(value: str, name: str) -> str:
    if not str(value).isdigit():
        raise ValueError(f"Invalid {name}: {value!r}")
    return str(value)


def build_indexer_tx_query(
    from_block: str,
    to_block: str,
    predecessor_account_id: str,
    receiver_account_id: str
) -> str:
    """
    Query the function calls ``predecessor_account_id`` made to
    ``receiver_account_id`` within a block timestamp range.

    Args:
        from_block: NEAR block timestamp (nanoseconds)
        to_block: NEAR block timestamp or ``"latest"``
        predecessor_account_id: Calling account
        receiver_account_id: Called contract
    """
    predecessor = _checked(predecessor_account_id, _ACCOUNT_ID, "predecessor account id")
    receiver = _checked(receiver_account_id, _ACCOUNT_ID, "receiver account id")
    query = f"""SELECT public.receipts.originated_from_transaction_hash, public.action_receipt_actions.args
    FROM public.receipts
    JOIN public.action_receipt_actions
    ON public.action_receipt_actions.receipt_id = public.receipts.receipt_id
    WHERE (receipt_predecessor_account_id = '{predecessor}'
      AND receipt_receiver_account_id = '{receiver}'
      AND included_in_block_timestamp > {_checked_timestamp(from_block, 'from block')}"""
    if to_block != "latest":
        query += f"\n      AND included_in_block_timestamp < {_checked_timestamp(to_block, 'to block')}"
    return query + "\n    )"


def build_action_receipts_query(lock_tx_hash: str, receiver_account_id: str) -> str:
    """Query the action receipts a transaction produced on ``receiver_account_id``."""
    tx_hash = checked_near_tx_hash(lock_tx_hash)
    receiver = _checked(receiver_account_id, _ACCOUNT_ID, "receiver account id")
    return f"""SELECT public.receipts.included_in_block_timestamp,
    public.action_receipt_actions.receipt_predecessor_account_id, public.action_receipt_actions.args
    FROM public.receipts
    JOIN public.action_receipt_actions
    ON public.action_receipt_actions.receipt_id = public.receipts.receipt_id
    WHERE (originated_from_transaction_hash = '{tx_hash}'
      AND receiver_account_id = '{receiver}'
    )"""


class HttpIndexer(Indexer):
    """Posts queries to an indexer endpoint returning JSON rows."""

    def __init__(
        self,
        url: str,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        retry_count: int = 3
    ):
        validate_https_url("indexer_url", url)
        self.url = url.rstrip("/")
        self.session = session or create_session(retry_count)
        self.timeout = timeout

    def query(self, query: str) -> List[Dict[str, Any]]:
        """
        Run a query.

        Raises:
            IndexerError: If the request fails or the response is not a list of rows
        """
        try:
            response = self.session.post(self.url, json={"query": query}, timeout=self.timeout)
            response.raise_for_status()
            rows = response.json()
        except requests.RequestException as e:
            logger.error(f"Indexer request failed: {e}")
            raise IndexerError(f"Indexer request failed: {e}")
        except ValueError as e:
            raise IndexerError(f"Invalid JSON response from indexer: {e}")
        if isinstance(rows, dict):
            rows = rows.get("rows", rows.get("data"))
        if not isinstance(rows, list):
            raise IndexerError(f"Unexpected indexer response: {rows!r}")
        logger.debug(f"Indexer returned {len(rows)} rows")
        return rows
