"""
Tests for the metadata service client.
"""
import pytest
import requests

from polkaledger_sdk.exceptions import MetadataServiceError
from polkaledger_sdk.metadata import DigestFetcher, MetadataService
from tests.conftest import FakeMetadata

BASE_URL = "https://meta.example.com/polkadot"
DIGEST_HEX = "ab" * 32


@pytest.fixture
def service():
    return MetadataService(BASE_URL)


def test_fetch_digest(service, requests_mock):
    route = requests_mock.post(
        f"{BASE_URL}/node/metadata/hash",
        json={"metadataHash": DIGEST_HEX},
        headers={"Content-Type": "application/json"},
    )
    assert service.fetch_digest("dot") == bytes.fromhex(DIGEST_HEX)
    assert route.last_request.json() == {"id": "dot"}


def test_fetch_digest_with_prefix(service, requests_mock):
    requests_mock.post(f"{BASE_URL}/node/metadata/hash", json={"metadataHash": "0x" + DIGEST_HEX})
    assert service.fetch_digest("dot") == bytes.fromhex(DIGEST_HEX)


@pytest.mark.parametrize("body,match", [
    ({}, "Missing metadataHash"),
    ({"metadataHash": "zz"}, "not valid hex"),
    ({"metadataHash": "abcd"}, "32 bytes"),
    ({"metadataHash": 12}, "hex string"),
])
def test_fetch_digest_invalid_response(service, requests_mock, body, match):
    requests_mock.post(f"{BASE_URL}/node/metadata/hash", json=body)
    with pytest.raises(MetadataServiceError, match=match):
        service.fetch_digest("dot")


def test_fetch_digest_bad_hex_keeps_cause(service, requests_mock):
    requests_mock.post(f"{BASE_URL}/node/metadata/hash", json={"metadataHash": "0xzz"})
    with pytest.raises(MetadataServiceError) as exc_info:
        service.fetch_digest("dot")
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_fetch_digest_http_error(service, requests_mock):
    requests_mock.post(f"{BASE_URL}/node/metadata/hash", status_code=503)
    with pytest.raises(MetadataServiceError, match="request to /node/metadata/hash failed"):
        service.fetch_digest("dot")


def test_fetch_digest_connection_error(service, requests_mock):
    requests_mock.post(f"{BASE_URL}/node/metadata/hash", exc=requests.ConnectionError("down"))
    with pytest.raises(MetadataServiceError, match="down"):
        service.fetch_digest("dot")


def test_fetch_digest_invalid_json(service, requests_mock):
    requests_mock.post(f"{BASE_URL}/node/metadata/hash", text="not json")
    with pytest.raises(MetadataServiceError, match="Invalid JSON"):
        service.fetch_digest("dot")


def test_fetch_proof(service, requests_mock):
    route = requests_mock.post(f"{BASE_URL}/transaction/metadata", json={"txMetadata": "0x0102"})
    assert service.fetch_proof("dot", b"\xaa\xbb") == b"\x01\x02"
    assert route.last_request.json() == {"chain": {"id": "dot"}, "txBlob": "aabb"}


def test_fetch_proof_missing(service, requests_mock):
    requests_mock.post(f"{BASE_URL}/transaction/metadata", json={"error": "unknown chain"})
    with pytest.raises(MetadataServiceError, match="txMetadata"):
        service.fetch_proof("dot", b"\xaa")


def test_requires_https():
    with pytest.raises(ValueError, match="https"):
        MetadataService("http://meta.example.com")
    # Local endpoints are allowed without TLS
    MetadataService("http://localhost:8080/")


def test_digest_fetcher_interface(service):
    assert isinstance(service, DigestFetcher)
    assert isinstance(FakeMetadata(), DigestFetcher)
    assert not isinstance(object(), DigestFetcher)
