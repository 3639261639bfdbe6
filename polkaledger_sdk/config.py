"""
Network configuration for the PolkaLedger SDK.

Networks ship as package data in ``networks.json``. Endpoints can be
overridden per call or through ``<NETWORK>_RPC_URL`` and
``<NETWORK>_METADATA_URL`` environment variables.
"""
import importlib.resources
import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

from .exceptions import UnknownNetworkError
from .models import NetworkProfile

logger = logging.getLogger(__name__)

DEFAULT_SUBMISSION_TIMEOUT = 120
DEFAULT_HTTP_TIMEOUT = 30


def _env_key(network: str, suffix: str) -> str:
    return f"{network.upper().replace('-', '_')}_{suffix}"


class NetworkConfig:
    """Access to the packaged network table."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load the packaged network table.

        Returns:
            Mapping of network name to raw configuration
        """
        if cls._networks_cache is None:
            resource = importlib.resources.files("polkaledger_sdk").joinpath("networks.json")
            with resource.open("r", encoding="utf-8") as f:
                cls._networks_cache = json.load(f)
            logger.debug(f"Loaded {len(cls._networks_cache)} networks")
        return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        """
        Get the raw configuration of a network.

        Raises:
            UnknownNetworkError: If the network is not configured
        """
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks))
            raise UnknownNetworkError(f"Unknown network: {network}. Available networks: {available}")
        return networks[network]

    @classmethod
    def get_rpc_url(cls, network: str, override: Optional[str] = None) -> str:
        if override:
            return override
        env_url = os.environ.get(_env_key(network, "RPC_URL"))
        if env_url:
            return env_url
        return cls.get_network(network)["rpc"]

    @classmethod
    def get_metadata_url(cls, network: str, override: Optional[str] = None) -> str:
        if override:
            return override
        env_url = os.environ.get(_env_key(network, "METADATA_URL"))
        if env_url:
            return env_url
        return cls.get_network(network)["metadataUrl"]

    @classmethod
    def get_chain_id(cls, network: str) -> str:
        return cls.get_network(network)["chainId"]

    @classmethod
    def get_profile(
        cls,
        network: str,
        rpc_url: Optional[str] = None,
        metadata_url: Optional[str] = None,
    ) -> NetworkProfile:
        """Build a ``NetworkProfile`` with overrides applied."""
        raw = cls.get_network(network)
        return NetworkProfile(
            name=network,
            chain_id=raw["chainId"],
            rpc_endpoint=cls.get_rpc_url(network, rpc_url),
            address_prefix=raw["ss58Prefix"],
            metadata_url=cls.get_metadata_url(network, metadata_url).rstrip("/"),
        )


class NetworkRegistry:
    """
    Immutable lookup table of network profiles.

    Construct it from fixtures in tests, or with ``from_package()`` for the
    packaged networks.
    """

    def __init__(self, profiles: Mapping[str, NetworkProfile]):
        chain_ids = [profile.chain_id for profile in profiles.values()]
        if len(set(chain_ids)) != len(chain_ids):
            raise ValueError(f"Duplicate chain identifiers in network profiles: {chain_ids}")
        self._profiles = dict(profiles)

    @classmethod
    def from_package(cls) -> "NetworkRegistry":
        return cls({name: NetworkConfig.get_profile(name) for name in NetworkConfig.load_networks()})

    def names(self):
        return sorted(self._profiles)

    def lookup(self, network: str) -> NetworkProfile:
        """
        Raises:
            UnknownNetworkError: If the network is not registered
        """
        try:
            return self._profiles[network]
        except KeyError:
            available = ", ".join(self.names())
            raise UnknownNetworkError(f"Unknown network: {network}. Available networks: {available}") from None
