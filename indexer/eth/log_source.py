"""Raw log fetching for monitored contracts."""

from typing import Any, List

from errors import LogFetchError
from eth.client import EthereumClient, RpcUnavailableError
from eth.decoder import to_int


class ChainLogSource:
    """Fetches raw logs for one contract over a block range.

    Pure read: no state is kept between calls. Endpoint failover is bounded
    by the network's endpoint list, so a pass never stalls on retries.
    """

    def __init__(self, client: EthereumClient):
        self.client = client

    @property
    def network(self) -> str:
        return self.client.network.name

    def fetch_logs(self, address: str, from_block: int, to_block: int) -> List[Any]:
        """Fetch logs emitted by ``address`` in ``[from_block, to_block]``.

        Returns:
            Raw logs; empty when the contract emitted nothing in the range

        Raises:
            LogFetchError: If every endpoint failed
        """
        address = address.lower()
        try:
            logs = self.client.get_logs(address, from_block, to_block)
        except RpcUnavailableError as e:
            raise LogFetchError(
                f"{self.network}: could not fetch logs for {address} "
                f"in blocks {from_block}-{to_block}: {e}"
            ) from e

        if logs:
            blocks = sorted({to_int(log["blockNumber"]) for log in logs})
            self.client.logger.info(
                f"Found {len(logs)} raw logs for {address} in {from_block}-{to_block} "
                f"(blocks: {', '.join(str(b) for b in blocks)})"
            )
        return logs
