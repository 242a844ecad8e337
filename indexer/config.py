"""Configuration management for the campaign event indexer."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

# Default public endpoints, keyed by APP_NETWORK then network name
DEFAULT_RPC_URLS = {
    "testnet": {
        "sonic": ["https://rpc.blaze.soniclabs.com"],
        "ethereum": [
            "https://1rpc.io/sepolia",
            "https://ethereum-sepolia-rpc.publicnode.com",
            "https://rpc2.sepolia.org",
        ],
    },
    "mainnet": {
        "sonic": ["https://rpc.soniclabs.com"],
        "ethereum": ["https://1rpc.io/eth"],
    },
}

DEFAULT_EXPLORER_TX_URLS = {
    "testnet": {
        "sonic": "https://testnet.sonicscan.org/tx/",
        "ethereum": "https://sepolia.etherscan.io/tx/",
    },
    "mainnet": {
        "sonic": "https://sonicscan.org/tx/",
        "ethereum": "https://etherscan.io/tx/",
    },
}

DEFAULT_BATCH_SIZES = {"sonic": 100000, "ethereum": 2000}
DEFAULT_START_BLOCKS = {"sonic": 70000000, "ethereum": 9900000}

DEFAULT_BTC_EXPLORER_URLS = {
    "mainnet": "https://blockstream.info/api/",
    "testnet": "https://blockstream.info/testnet/api/",
}

# Env var prefix per EVM network
NETWORK_ENV_PREFIXES = {"sonic": "SONIC", "ethereum": "ETH"}


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ContractConfig:
    """A contract monitored on one network."""

    name: str  # ABI name, e.g. "CampaignManager" or "FundEscrow"
    address: str

    def __post_init__(self) -> None:
        self.address = self.address.lower()


@dataclass
class NetworkConfig:
    """One EVM network the indexer scans."""

    name: str
    rpc_urls: List[str]
    contracts: List[ContractConfig]
    explorer_tx_url: str
    batch_size: int
    start_block: int
    rpc_timeout_seconds: float = 10.0

    def contract_address(self, name: str) -> Optional[str]:
        """Return the address of the named contract, if monitored."""
        for contract in self.contracts:
            if contract.name == name:
                return contract.address
        return None

    def validate(self) -> None:
        if not self.rpc_urls:
            raise ValueError(f"{self.name}: at least one RPC URL is required")
        if self.batch_size <= 0:
            raise ValueError(f"{self.name}: batch_size must be > 0")
        if self.start_block < 0:
            raise ValueError(f"{self.name}: start_block must be >= 0")
        if self.rpc_timeout_seconds <= 0:
            raise ValueError(f"{self.name}: rpc_timeout_seconds must be > 0")


@dataclass
class BitcoinConfig:
    """Bitcoin address derivation and explorer settings."""

    network: str = "mainnet"
    platform_xpub: Optional[str] = None
    explorer_url: Optional[str] = None
    request_timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        self.network = self.network.lower()
        if not self.explorer_url:
            self.explorer_url = DEFAULT_BTC_EXPLORER_URLS.get(self.network)
        if self.explorer_url and not self.explorer_url.endswith("/"):
            self.explorer_url += "/"

    @property
    def is_testnet(self) -> bool:
        return self.network == "testnet"

    def validate(self) -> None:
        if self.network not in DEFAULT_BTC_EXPLORER_URLS:
            raise ValueError("btc network must be 'mainnet' or 'testnet'")
        if self.request_timeout_seconds <= 0:
            raise ValueError("btc request_timeout_seconds must be > 0")


@dataclass
class Config:
    """Indexer configuration."""

    # Required
    db_url: str

    networks: List[NetworkConfig] = field(default_factory=list)
    bitcoin: BitcoinConfig = field(default_factory=BitcoinConfig)

    app_network: str = "testnet"
    sync_interval_seconds: float = 10.0
    resync_on_empty_registry: bool = True
    log_level: str = "INFO"

    # Oracle settings
    oracle_private_key: Optional[str] = None
    oracle_network: str = "sonic"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_url = os.getenv("DB_URL")
        if not db_url:
            raise ValueError("DB_URL environment variable is required")

        app_network = os.getenv("APP_NETWORK", "testnet").lower()
        if app_network not in DEFAULT_RPC_URLS:
            raise ValueError("APP_NETWORK must be 'mainnet' or 'testnet'")

        networks = []
        for name, prefix in NETWORK_ENV_PREFIXES.items():
            network = cls._network_from_env(name, prefix, app_network)
            if network is not None:
                networks.append(network)

        btc_network = os.getenv("BTC_NETWORK", "mainnet")
        bitcoin = BitcoinConfig(
            network=btc_network,
            platform_xpub=os.getenv("PLATFORM_XPUB") or None,
            explorer_url=os.getenv("BTC_EXPLORER_URL") or None,
            request_timeout_seconds=float(os.getenv("BTC_REQUEST_TIMEOUT_SECONDS", "10")),
        )

        return cls(
            db_url=db_url,
            networks=networks,
            bitcoin=bitcoin,
            app_network=app_network,
            sync_interval_seconds=float(os.getenv("SYNC_INTERVAL_SECONDS", "10")),
            resync_on_empty_registry=_env_bool("RESYNC_ON_EMPTY_REGISTRY", True),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            oracle_private_key=os.getenv("ORACLE_PRIVATE_KEY") or None,
            oracle_network=os.getenv("ORACLE_NETWORK", "sonic").lower(),
        )

    @staticmethod
    def _network_from_env(name: str, prefix: str, app_network: str) -> Optional[NetworkConfig]:
        contracts = []
        manager = os.getenv(f"{prefix}_CAMPAIGN_MANAGER_ADDRESS")
        escrow = os.getenv(f"{prefix}_FUND_ESCROW_ADDRESS")
        if manager:
            contracts.append(ContractConfig(name="CampaignManager", address=manager))
        if escrow:
            contracts.append(ContractConfig(name="FundEscrow", address=escrow))

        # A network without monitored contracts is disabled
        if not contracts:
            return None

        rpc_urls = _split_list(os.getenv(f"{prefix}_RPC_URLS")) or list(
            DEFAULT_RPC_URLS[app_network][name]
        )
        return NetworkConfig(
            name=name,
            rpc_urls=rpc_urls,
            contracts=contracts,
            explorer_tx_url=os.getenv(
                f"{prefix}_EXPLORER_TX_URL", DEFAULT_EXPLORER_TX_URLS[app_network][name]
            ),
            batch_size=int(os.getenv(f"{prefix}_BATCH_SIZE", str(DEFAULT_BATCH_SIZES[name]))),
            start_block=int(os.getenv(f"{prefix}_START_BLOCK", str(DEFAULT_START_BLOCKS[name]))),
            rpc_timeout_seconds=float(os.getenv(f"{prefix}_RPC_TIMEOUT_SECONDS", "10")),
        )

    def validate(self) -> None:
        """Validate configuration values."""
        if not self.db_url:
            raise ValueError("db_url is required")
        if self.sync_interval_seconds <= 0:
            raise ValueError("sync_interval_seconds must be > 0")
        names = [network.name for network in self.networks]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate network names: {names}")
        for network in self.networks:
            network.validate()
        self.bitcoin.validate()

    def get_network(self, name: str) -> NetworkConfig:
        """Look up a configured network by name.

        Raises:
            KeyError: If the network is not configured
        """
        for network in self.networks:
            if network.name == name:
                return network
        raise KeyError(f"Network not configured: {name}")

    @property
    def networks_by_name(self) -> Dict[str, NetworkConfig]:
        return {network.name: network for network in self.networks}
