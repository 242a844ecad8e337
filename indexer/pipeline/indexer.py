"""Chain indexer - one crash-safe sync pass per network."""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config import Config, NetworkConfig
from db.sync_state import SyncCursorStore
from errors import LogFetchError
from eth.client import EthereumClient
from eth.log_source import ChainLogSource
from log import get_logger, get_network_logger
from pipeline.normalizer import BlockTimestampCache, EventNormalizer
from pipeline.schema import NormalizedEvent
from services.ledger import EventLedger

logger = get_logger(__name__)


@dataclass
class SyncResult:
    """Outcome of one network's sync pass."""

    network: str
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    logs_fetched: int = 0
    events_saved: int = 0
    failed_contracts: List[str] = field(default_factory=list)
    skipped: bool = False
    error: Optional[str] = None


class ChainIndexer:
    """Scans every configured network and commits events to the ledger."""

    def __init__(
        self,
        config: Config,
        ledger: EventLedger,
        cursor_store: SyncCursorStore,
        clients: Optional[Dict[str, EthereumClient]] = None,
    ):
        """Initialize indexer.

        Args:
            config: Configuration object
            ledger: Event ledger receiving normalized events
            cursor_store: Per-network sync cursors
            clients: EthereumClient per network (built from config if omitted)
        """
        self.config = config
        self.ledger = ledger
        self.cursor_store = cursor_store
        self.clients = clients if clients is not None else {
            network.name: EthereumClient(network) for network in config.networks
        }
        self.log_sources = {name: ChainLogSource(client) for name, client in self.clients.items()}
        self.normalizers = {network.name: EventNormalizer(network) for network in config.networks}
        # Non-blocking in-flight guard: a network never runs two passes at once
        self._in_flight = {network.name: threading.Lock() for network in config.networks}

    def sync_network(self, network: NetworkConfig) -> SyncResult:
        """Run one sync pass for ``network``.

        The cursor only advances after the batch is persisted, so a crash
        anywhere before that replays the same range on the next pass.
        """
        net_logger = get_network_logger(__name__, network.name)
        result = SyncResult(network=network.name)

        lock = self._in_flight[network.name]
        if not lock.acquire(blocking=False):
            net_logger.info("Previous pass still in flight, skipping")
            result.skipped = True
            return result

        try:
            client = self.clients[network.name]
            head = client.get_latest_block()
            from_block = self.cursor_store.get_cursor(network.name, network.start_block)

            if from_block >= head:
                net_logger.debug(f"No new blocks (cursor={from_block}, head={head})")
                result.skipped = True
                return result

            to_block = min(from_block + network.batch_size, head)
            result.from_block, result.to_block = from_block, to_block
            net_logger.info(f"Syncing blocks {from_block} to {to_block} (head={head})")

            timestamps = BlockTimestampCache(client)
            events: List[NormalizedEvent] = []
            for contract in network.contracts:
                try:
                    logs = self.log_sources[network.name].fetch_logs(contract.address, from_block, to_block)
                except LogFetchError as e:
                    net_logger.warning(f"Skipping {contract.name} ({contract.address}): {e}")
                    result.failed_contracts.append(contract.name)
                    continue

                result.logs_fetched += len(logs)
                for raw_log in logs:
                    try:
                        event = self.normalizers[network.name].normalize(raw_log, contract.name, timestamps)
                    except Exception as e:
                        net_logger.warning(f"Failed to normalize {contract.name} log: {e}")
                        continue
                    if event is not None:
                        events.append(event)

            result.events_saved = self.ledger.save_events(events)
            self.cursor_store.advance(network.name, to_block + 1)

            net_logger.info(
                f"Indexed blocks {from_block} to {to_block}: "
                f"{len(events)} events, {result.events_saved} new"
            )

        except Exception as e:
            net_logger.error(f"Sync pass failed: {e}", exc_info=True)
            result.error = str(e)
        finally:
            lock.release()

        return result

    def run_sync_pass(self) -> List[SyncResult]:
        """Sync every configured network concurrently and wait for all of them."""
        if not self.config.networks:
            logger.warning("No networks configured, nothing to sync")
            return []

        with ThreadPoolExecutor(max_workers=len(self.config.networks), thread_name_prefix="sync") as pool:
            return list(pool.map(self.sync_network, self.config.networks))
