"""
Media storage client.

Pins voucher metadata documents to IPFS through a pinning service and
returns their ``ipfs://`` URI.
"""
import logging
from typing import Dict, Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ._retry import call_with_retries
from .exceptions import UpstreamError, UpstreamTimeoutError
from .models import VoucherMetadata
from .utils import validate_upstream_url
from .validator import is_valid_cid

logger = logging.getLogger(__name__)


def _build_session() -> requests.Session:
    # Pool-level reconnects only; status and timeout retries go through call_with_retries
    session = requests.Session()
    retries = Retry(
        total=1,
        connect=1,
        read=0,
        status=0,
        other=0,
        allowed_methods=["POST"],
        raise_on_status=False
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    return session


class MediaStorage:
    """
    Client for an IPFS pinner service.

    The service accepts ``POST {pinner_url}/pin`` with a JSON document and
    answers ``{"cid": "<CID>"}``.
    """

    def __init__(
        self,
        pinner_url: str,
        timeout: int = 10,
        max_retries: int = 3,
        backoff_base: float = 0.5,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the storage client

        Args:
            pinner_url: IPFS pinner service URL (e.g., "https://pin.myapp.com")
            timeout: Timeout for HTTP requests in seconds
            max_retries: Retries after the first attempt for 5xx and connection errors
            backoff_base: Base delay for exponential backoff in seconds
            session: Optional requests session

        Raises:
            ValueError: If the URL is insecure
        """
        validate_upstream_url("pinner_url", pinner_url)
        self.pinner_url = pinner_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.session = session or _build_session()

    def pin_json(self, payload: Dict[str, Any]) -> str:
        """
        Pin a JSON document.

        Args:
            payload: Document to pin

        Returns:
            CID string from the pinner service

        Raises:
            UpstreamError: If pinning fails or returns invalid data
        """
        return call_with_retries(
            lambda: self._pin_once(payload),
            "IPFS pinning",
            max_retries=self.max_retries,
            backoff_base=self.backoff_base
        )

    def pin_metadata(self, metadata: VoucherMetadata) -> str:
        """
        Pin voucher metadata.

        Args:
            metadata: Metadata to pin

        Returns:
            ipfs:// URI of the pinned document
        """
        document = metadata.model_dump(exclude_none=True)
        return f"ipfs://{self.pin_json(document)}"

    def _pin_once(self, payload: Dict[str, Any]) -> str:
        try:
            response = self.session.post(
                f"{self.pinner_url}/pin",
                json=payload,
                timeout=self.timeout
            )
        except requests.Timeout as e:
            raise UpstreamTimeoutError(f"IPFS pinning timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise UpstreamError(f"IPFS pinning failed: {e}") from e

        if response.status_code >= 500:
            raise UpstreamError(f"IPFS pinning failed: server error {response.status_code}")
        if response.status_code >= 400:
            # 4xx will not change on retry
            raise UpstreamError(f"IPFS pinning rejected: {response.status_code}", retryable=False)

        content_type = response.headers.get('Content-Type', '')
        if 'application/json' not in content_type:
            logger.warning(f"Unexpected Content-Type: {content_type} (expected application/json)")

        try:
            result = response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON response from pinner: {e}", retryable=False) from e

        cid = result.get("cid") if isinstance(result, dict) else None
        if not cid or not is_valid_cid(cid):
            raise UpstreamError(f"Missing or invalid CID in pinner response: {result}", retryable=False)

        logger.debug(f"Pinned document as {cid}")
        return cid
