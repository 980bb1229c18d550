"""
Finality oracle backed by an HTTP proof service.

The service builds the receipt inclusion proof of a source-chain event and
returns it already borsh-serialised for the Aurora verifier.
"""
import logging
from typing import Optional

import requests

from ..config import validate_https_url
from ..exceptions import ProofError
from ..models import TxReceipt
from ..utils import create_session, strip_hex_prefix
from .base import FinalityOracle

logger = logging.getLogger(__name__)


class HttpProofOracle(FinalityOracle):

    def __init__(
        self,
        url: str,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        retry_count: int = 3
    ):
        validate_https_url("proof_service_url", url)
        self.url = url.rstrip("/")
        self.session = session or create_session(retry_count)
        self.timeout = timeout

    def find_proof(self, receipt: TxReceipt) -> bytes:
        """
        Fetch the proof for the lock event in ``receipt``.

        Raises:
            ProofError: If the service fails or returns no proof
        """
        try:
            response = self.session.post(
                f"{self.url}/eth-proof",
                json={"txHash": receipt.tx_hash, "blockNumber": receipt.block_number},
                timeout=self.timeout
            )
            response.raise_for_status()
            result = response.json()
        except requests.RequestException as e:
            raise ProofError(f"Proof request failed for {receipt.tx_hash}: {e}")
        except ValueError as e:
            raise ProofError(f"Invalid JSON response from proof service: {e}")

        if "proof" not in result:
            raise ProofError(f"Missing proof in proof service response: {result}")
        try:
            return bytes.fromhex(strip_hex_prefix(result["proof"]))
        except ValueError as e:
            raise ProofError(f"Proof is not hex encoded: {e}")
