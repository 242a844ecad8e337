"""Web3 client for EVM RPC interactions with multi-endpoint failover."""

from typing import Any, Callable, List, Tuple, TypeVar

from web3 import Web3
from web3.contract import Contract

from config import NetworkConfig
from eth.abi_loader import load_abi
from log import get_network_logger

T = TypeVar("T")


class RpcUnavailableError(ConnectionError):
    """Raised when every configured endpoint failed for a call."""
    pass


class EthereumClient:
    """RPC client for one network, trying each configured endpoint in order."""

    def __init__(self, network: NetworkConfig):
        """Initialize Web3 clients, one per endpoint.

        Args:
            network: Network configuration with RPC URLs and timeout
        """
        self.network = network
        self.logger = get_network_logger(__name__, network.name)
        self.endpoints: List[Tuple[str, Web3]] = [
            (url, Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": network.rpc_timeout_seconds})))
            for url in network.rpc_urls
        ]

    @property
    def web3(self) -> Web3:
        """Primary endpoint, used for contract reads and writes."""
        return self.endpoints[0][1]

    def call_with_failover(self, description: str, fn: Callable[[Web3], T]) -> T:
        """Run ``fn`` against each endpoint until one succeeds.

        Each endpoint is tried once, bounded by its request timeout.

        Raises:
            RpcUnavailableError: If all endpoints failed
        """
        last_error = None
        for url, w3 in self.endpoints:
            try:
                return fn(w3)
            except Exception as e:
                last_error = e
                self.logger.warning(f"{description} failed on {url}: {e}. Trying next endpoint...")
        raise RpcUnavailableError(
            f"All {len(self.endpoints)} RPC endpoints failed for {description}: {last_error}"
        )

    def get_latest_block(self) -> int:
        """Current chain head block number."""
        return self.call_with_failover("eth_blockNumber", lambda w3: w3.eth.block_number)

    def get_block_timestamp(self, block_number: int) -> int:
        """Unix timestamp of a block."""
        return self.call_with_failover(
            f"eth_getBlockByNumber({block_number})",
            lambda w3: int(w3.eth.get_block(block_number)["timestamp"]),
        )

    def get_logs(self, address: str, from_block: int, to_block: int) -> List[Any]:
        """Raw ``eth_getLogs`` for one address over an inclusive block range."""
        filter_params = {
            "address": Web3.to_checksum_address(address),
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        return self.call_with_failover(
            f"eth_getLogs({address}, {from_block}-{to_block})",
            lambda w3: list(w3.eth.get_logs(filter_params)),
        )

    def contract(self, contract_name: str, address: str) -> Contract:
        """Contract bound to the primary endpoint."""
        return self.web3.eth.contract(
            address=Web3.to_checksum_address(address), abi=load_abi(contract_name)
        )
