"""
Client for the metadata service.

The service returns the current metadata digest of a chain, which is bound
into the signing payload, and the metadata proof the device app needs to
decode a transaction.
"""
import logging
import urllib.parse
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import DEFAULT_HTTP_TIMEOUT
from .exceptions import MetadataServiceError

DIGEST_LENGTH = 32


@runtime_checkable
class DigestFetcher(Protocol):
    """Source of the current metadata digest of a chain"""

    def fetch_digest(self, chain_id: str) -> bytes:
        ...


def _decode_hex(value: Any, field: str) -> bytes:
    if not isinstance(value, str):
        raise MetadataServiceError(f"Field '{field}' must be a hex string, got {type(value).__name__}")
    if value.startswith("0x"):
        value = value[2:]
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise MetadataServiceError(f"Field '{field}' is not valid hex: {str(e)}") from e


class MetadataService:
    """
    HTTP client for the metadata digest and metadata proof endpoints.

    Args:
        base_url: Service base URL (e.g., "https://api.zondax.ch/polkadot")
        retry_count: Number of HTTP retries (0 disables retries)
        timeout: Timeout for HTTP requests in seconds
        logger: Optional logger instance
    """

    def __init__(
        self,
        base_url: str,
        retry_count: int = 0,
        timeout: int = DEFAULT_HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        parsed = urllib.parse.urlparse(base_url)
        host = parsed.netloc.split(':')[0]
        is_local = host in ('localhost', '127.0.0.1')
        if parsed.scheme != 'https' and not is_local:
            raise ValueError(f"base_url must use https:// for security (got: {parsed.scheme}://)")

        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

        self.session = session or requests.Session()
        if retry_count > 0:
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["POST"],
                raise_on_status=False,
            )
            self.session.mount("http://", HTTPAdapter(max_retries=retries))
            self.session.mount("https://", HTTPAdapter(max_retries=retries))

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        self.logger.debug(f"POST {url}")
        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(f"Metadata service request failed: {e}")
            raise MetadataServiceError(f"Metadata service request to {path} failed: {str(e)}") from e

        content_type = response.headers.get('Content-Type', '')
        if 'application/json' not in content_type:
            self.logger.warning(f"Unexpected Content-Type: {content_type} (expected application/json)")
        try:
            result = response.json()
        except ValueError as e:
            raise MetadataServiceError(f"Invalid JSON response from metadata service: {str(e)}") from e
        if not isinstance(result, dict):
            raise MetadataServiceError(f"Unexpected metadata service response: {result!r}")
        return result

    def fetch_digest(self, chain_id: str) -> bytes:
        """
        Get the current metadata digest of a chain.

        Args:
            chain_id: Chain identifier (e.g., "dot")

        Returns:
            32-byte metadata digest

        Raises:
            MetadataServiceError: If the request fails or the digest is invalid
        """
        result = self._post("/node/metadata/hash", {"id": chain_id})
        if "metadataHash" not in result:
            raise MetadataServiceError(f"Missing metadataHash in response: {result}")
        digest = _decode_hex(result["metadataHash"], "metadataHash")
        if len(digest) != DIGEST_LENGTH:
            raise MetadataServiceError(
                f"Metadata digest must be {DIGEST_LENGTH} bytes, got {len(digest)}"
            )
        return digest

    def fetch_proof(self, chain_id: str, blob: bytes) -> bytes:
        """
        Get the metadata proof for a signing payload.

        Raises:
            MetadataServiceError: If the request fails or returns no proof
        """
        result = self._post(
            "/transaction/metadata",
            {"chain": {"id": chain_id}, "txBlob": blob.hex()},
        )
        if "txMetadata" not in result:
            raise MetadataServiceError(f"Missing txMetadata in response: {result}")
        return _decode_hex(result["txMetadata"], "txMetadata")
