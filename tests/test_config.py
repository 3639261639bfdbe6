"""
Tests for the network configuration and registry.
"""
import os
from unittest.mock import patch

import pytest

from polkaledger_sdk.config import NetworkConfig, NetworkRegistry
from polkaledger_sdk.exceptions import UnknownNetworkError
from tests.conftest import KUSAMA, POLKADOT

# Sample network configuration
MOCK_NETWORKS = {
    "test-network": {
        "chainId": "tst",
        "rpc": "wss://test.example.com",
        "ss58Prefix": 42,
        "metadataUrl": "https://meta.example.com/test",
    }
}


@pytest.fixture
def mock_networks():
    NetworkConfig._networks_cache = MOCK_NETWORKS
    yield MOCK_NETWORKS
    # Reset cache for other tests
    NetworkConfig._networks_cache = None


class TestNetworkRegistry:
    """Lookup over every supported network plus an unknown one."""

    @pytest.mark.parametrize("name,profile", [("polkadot", POLKADOT), ("kusama", KUSAMA)])
    def test_lookup(self, registry, name, profile):
        assert registry.lookup(name) == profile

    def test_networks_do_not_overlap(self, registry):
        polkadot = registry.lookup("polkadot")
        kusama = registry.lookup("kusama")
        assert polkadot.chain_id != kusama.chain_id
        assert (polkadot.address_prefix, kusama.address_prefix) == (0, 2)

    def test_lookup_unknown(self, registry):
        with pytest.raises(UnknownNetworkError) as exc_info:
            registry.lookup("unknown")
        assert "polkadot" in str(exc_info.value)
        assert "kusama" in str(exc_info.value)

    def test_duplicate_chain_ids_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            NetworkRegistry({"a": POLKADOT, "b": POLKADOT})

    def test_names(self, registry):
        assert registry.names() == ["kusama", "polkadot"]


class TestPackagedNetworks:
    """The packaged network table."""

    def test_reference_configuration(self):
        NetworkConfig._networks_cache = None
        registry = NetworkRegistry.from_package()

        polkadot = registry.lookup("polkadot")
        assert polkadot.chain_id == "dot"
        assert polkadot.address_prefix == 0
        assert polkadot.rpc_endpoint.startswith("wss://")

        kusama = registry.lookup("kusama")
        assert kusama.chain_id == "ksm"
        assert kusama.address_prefix == 2

        with pytest.raises(UnknownNetworkError):
            registry.lookup("unknown")


class TestNetworkConfig:
    """Test NetworkConfig class."""

    def test_load_networks_cached(self, mock_networks):
        """Networks are served from the cache after the first load."""
        with patch("importlib.resources.files") as mock_files:
            result = NetworkConfig.load_networks()
            mock_files.assert_not_called()
        assert result == MOCK_NETWORKS

    def test_get_network_not_found(self, mock_networks):
        with pytest.raises(UnknownNetworkError) as exc_info:
            NetworkConfig.get_network("non-existent-network")
        assert "test-network" in str(exc_info.value)

    def test_get_rpc_url_default(self, mock_networks):
        assert NetworkConfig.get_rpc_url("test-network") == "wss://test.example.com"

    def test_get_rpc_url_override(self, mock_networks):
        result = NetworkConfig.get_rpc_url("test-network", override="wss://override.example.com")
        assert result == "wss://override.example.com"

    def test_get_rpc_url_env_var(self, mock_networks):
        with patch.dict(os.environ, {"TEST_NETWORK_RPC_URL": "wss://env.example.com"}):
            assert NetworkConfig.get_rpc_url("test-network") == "wss://env.example.com"

    def test_get_metadata_url_env_var(self, mock_networks):
        with patch.dict(os.environ, {"TEST_NETWORK_METADATA_URL": "https://env.example.com"}):
            assert NetworkConfig.get_metadata_url("test-network") == "https://env.example.com"

    def test_get_chain_id(self, mock_networks):
        assert NetworkConfig.get_chain_id("test-network") == "tst"

    def test_get_profile(self, mock_networks):
        profile = NetworkConfig.get_profile("test-network", metadata_url="https://other.example.com/")
        assert profile.name == "test-network"
        assert profile.chain_id == "tst"
        assert profile.address_prefix == 42
        assert profile.metadata_url == "https://other.example.com"
