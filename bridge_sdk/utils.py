"""
Utility functions for the bridge transfer SDK.
"""
import hashlib
import re
import uuid
from datetime import datetime, timezone
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

_AURORA_ADDRESS_HEX = re.compile(r"^[a-f0-9]{40}$")


def create_session(retry_count: int = 3) -> requests.Session:
    """
    Create an HTTP session that retries connection errors and 5xx responses.

    Args:
        retry_count: Number of retries per request

    Returns:
        Configured requests session
    """
    session = requests.Session()
    retries = Retry(
        total=retry_count,
        backoff_factor=0.5,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET", "POST"],
        raise_on_status=False,
        connect=retry_count,
        read=retry_count,
        other=retry_count
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    return session


def new_transfer_id() -> str:
    """Random client-side transfer id."""
    return uuid.uuid4().hex


def deterministic_transfer_id(transfer_type: str, lock_tx_hash: str) -> str:
    """Id for a recovered transfer, stable across repeated recoveries of the same lock."""
    return hashlib.sha256(f"{transfer_type}:{lock_tx_hash}".encode()).hexdigest()[:32]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def nanos_to_iso(timestamp_ns: int) -> str:
    """Convert a NEAR block timestamp (nanoseconds) to ISO-8601."""
    return datetime.fromtimestamp(int(timestamp_ns) / 10 ** 9, tz=timezone.utc).isoformat()


def is_aurora_address_hex(value: Optional[str]) -> bool:
    """True for a lowercase, unprefixed 20-byte hex address as carried in bridge messages."""
    return bool(value) and bool(_AURORA_ADDRESS_HEX.match(value))


def strip_hex_prefix(value: str) -> str:
    return value[2:] if value.startswith("0x") else value
