"""Read-through Bitcoin explorer client for derived campaign addresses."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from btc.deriver import BitcoinAddressDeriver
from btc.schema import AddressStats, Backer, BatchStatsEntry, ExplorerTx, MonitorStats
from config import BitcoinConfig
from errors import ExplorerError
from log import get_logger
from stats.formatting import sats_to_btc

logger = get_logger(__name__)

ANONYMOUS_BACKER = "Anonymous"

# Upper bound on concurrent explorer requests for batch stats
BATCH_STATS_WORKERS = 8


class BitcoinMonitor:
    """Answers "what has this address received" from a Blockstream-style API.

    Nothing is cached or persisted: every call reflects explorer state at
    call time.

    Example usage:
        monitor = BitcoinMonitor(config.bitcoin, deriver)
        stats = monitor.get_monitor_stats("bc1q...")
    """

    def __init__(
        self,
        config: BitcoinConfig,
        deriver: BitcoinAddressDeriver,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the monitor.

        Args:
            config: Bitcoin settings (explorer URL, timeout)
            deriver: Address deriver used by the batch variant
            client: HTTP client; one with the configured timeout is created if omitted
        """
        self.config = config
        self.deriver = deriver
        self.base_url = config.explorer_url
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=config.request_timeout_seconds)

    def close(self) -> None:
        """Close the HTTP client if this monitor created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "BitcoinMonitor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get_json(self, path: str) -> Any:
        """GET ``{explorer}{path}`` and parse JSON.

        Raises:
            ExplorerError: On timeout, HTTP error status or unreadable body
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"Fetching explorer data from: {url}")
        try:
            response = self.client.get(url)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching {url}")
            raise ExplorerError(f"Timeout fetching {path}") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"HTTP error fetching {url}: {e.response.status_code}")
            raise ExplorerError(f"HTTP {e.response.status_code} fetching {path}") from e
        except Exception as e:
            logger.warning(f"Error fetching {url}: {e}")
            raise ExplorerError(f"Failed to fetch {path}: {e}") from e

    def get_address_stats(self, address: str) -> AddressStats:
        """Confirmed and mempool funding totals for ``address``."""
        data = self._get_json(f"address/{address}")
        try:
            return AddressStats.model_validate(data)
        except ValidationError as e:
            raise ExplorerError(f"Unexpected address stats for {address}: {e}") from e

    def get_transactions(self, address: str) -> List[ExplorerTx]:
        """Recent transactions touching ``address``, newest first."""
        data = self._get_json(f"address/{address}/txs")
        try:
            return [ExplorerTx.model_validate(tx) for tx in data]
        except (TypeError, ValidationError) as e:
            raise ExplorerError(f"Unexpected transaction list for {address}: {e}") from e

    @staticmethod
    def backers_from_transactions(address: str, txs: Sequence[ExplorerTx]) -> List[Backer]:
        """Contributions to ``address``, attributed to each tx's first input.

        Transactions that paid nothing to the address (e.g. spends) are dropped.
        """
        now = datetime.now(timezone.utc)
        backers = []
        for tx in txs:
            amount_sats = tx.received_by(address)
            if amount_sats <= 0:
                continue
            block_time = (
                datetime.fromtimestamp(tx.status.block_time, tz=timezone.utc)
                if tx.status.block_time
                else now
            )
            backers.append(
                Backer(
                    address=tx.sender or ANONYMOUS_BACKER,
                    amount_btc=sats_to_btc(amount_sats),
                    txid=tx.txid,
                    time=block_time,
                    confirmed=tx.status.confirmed,
                )
            )
        return backers

    def get_monitor_stats(self, address: str) -> MonitorStats:
        """Balance, received total and backer list for one address.

        Raises:
            ExplorerError: If the explorer is unreachable or returns garbage
        """
        stats = self.get_address_stats(address)
        txs = self.get_transactions(address)
        unconfirmed = stats.unconfirmed_sats

        return MonitorStats(
            address=address,
            total_btc=sats_to_btc(stats.balance_sats),
            total_received_btc=sats_to_btc(stats.total_received_sats),
            unconfirmed_btc=sats_to_btc(unconfirmed),
            utxo_count=stats.funded_output_count,
            has_pending=unconfirmed > 0,
            backers=self.backers_from_transactions(address, txs),
        )

    def _batch_entry(self, internal_id: str) -> BatchStatsEntry:
        try:
            address = self.deriver.derive_address(internal_id)
            stats = self.get_address_stats(address)
        except Exception as e:
            logger.warning(f"BTC stats failed for campaign {internal_id}: {e}")
            return BatchStatsEntry(internal_id=internal_id, error=str(e))
        return BatchStatsEntry(
            internal_id=internal_id,
            address=address,
            total_received_btc=sats_to_btc(stats.total_received_sats),
            backer_count=stats.funded_output_count,
        )

    def get_batch_stats(self, internal_ids: Sequence[str]) -> List[BatchStatsEntry]:
        """Lightweight stats for many campaigns, fetched concurrently.

        A failing campaign gets an entry with ``error`` set instead of
        failing the batch. Entries come back in input order.
        """
        if not internal_ids:
            return []
        workers = min(BATCH_STATS_WORKERS, len(internal_ids))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="btc-stats") as pool:
            return list(pool.map(self._batch_entry, internal_ids))
