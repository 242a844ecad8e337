"""Main indexer service with CLI."""

import argparse
import json
import signal
import sys
from dataclasses import asdict
from typing import Any, Dict, Optional

from btc.deriver import BitcoinAddressDeriver
from btc.monitor import BitcoinMonitor
from config import Config
from db.healthcheck import check_tables_exist
from db.session import Database
from db.sync_state import SyncCursorStore
from errors import IndexerError
from eth.client import EthereumClient
from eth.contract_reader import CampaignContractReader
from log import get_logger, setup_logging
from oracle.bridge import OracleBridge
from pipeline.indexer import ChainIndexer
from pipeline.scheduler import SyncScheduler
from services.ledger import EventLedger
from stats.projector import AggregateStatsProjector

logger = get_logger(__name__)

# Set by main() so the signal handler can stop the loop
_scheduler = None


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    if _scheduler is not None:
        _scheduler.stop()


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def build_clients(config: Config) -> Dict[str, EthereumClient]:
    return {network.name: EthereumClient(network) for network in config.networks}


def build_monitor(config: Config) -> BitcoinMonitor:
    return BitcoinMonitor(config.bitcoin, BitcoinAddressDeriver(config.bitcoin))


def build_projector(
    ledger: EventLedger, monitor: BitcoinMonitor, clients: Dict[str, EthereumClient]
) -> AggregateStatsProjector:
    return AggregateStatsProjector(
        ledger=ledger,
        monitor=monitor,
        contract_reader=CampaignContractReader(clients),
    )


def run_indexer(config: Config, database: Database, once: bool = False) -> None:
    """Run the sync loop (or a single pass).

    Args:
        config: Configuration object
        database: Ledger database
        once: Run exactly one pass and exit
    """
    global _scheduler

    ledger = EventLedger(database)
    cursor_store = SyncCursorStore(database)
    indexer = ChainIndexer(config, ledger, cursor_store, clients=build_clients(config))

    for network in config.networks:
        contracts = ", ".join(f"{c.name}={c.address}" for c in network.contracts)
        logger.info(f"[{network.name}] Monitoring {contracts} (batch={network.batch_size})")

    _scheduler = SyncScheduler(
        indexer,
        database,
        cursor_store,
        interval_seconds=config.sync_interval_seconds,
        resync_on_empty_registry=config.resync_on_empty_registry,
    )
    _scheduler.run(max_passes=1 if once else None)


def show_status(config: Config, database: Database) -> None:
    """Show indexer status.

    Args:
        config: Configuration object
        database: Ledger database
    """
    check_tables_exist(database)
    ledger = EventLedger(database)
    cursors = SyncCursorStore(database).all()

    print(f"App network: {config.app_network}")
    for name, client in build_clients(config).items():
        network = client.network
        last_block = cursors.get(name)
        try:
            head = client.get_latest_block()
        except Exception as e:
            logger.warning(f"[{name}] Could not read chain head: {e}")
            head = None

        print(f"[{name}]")
        print(f"  RPC URLs: {', '.join(network.rpc_urls)}")
        for contract in network.contracts:
            print(f"  {contract.name}: {contract.address}")
        print(f"  Next block to scan: {last_block if last_block is not None else f'{network.start_block} (not started)'}")
        print(f"  Latest block: {head if head is not None else 'unavailable'}")
        if head is not None and last_block is not None:
            print(f"  Blocks behind: {max(0, head - last_block)}")
        print(f"  Events: {ledger.count_events(name)}")

    print(f"Registered campaigns: {ledger.count_registrations()}")


def rebuild(database: Database, network: Optional[str] = None) -> None:
    """Drop sync cursors so the next pass re-scans from the start block."""
    check_tables_exist(database)
    removed = SyncCursorStore(database).reset(network)
    print(f"Reset {removed} cursor(s); events will be re-indexed on the next pass")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Campaign event indexer and raised-amount stats")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("run", help="Start the periodic sync loop")
    subparsers.add_parser("sync-once", help="Run a single sync pass for every network")
    subparsers.add_parser("status", help="Show indexer status")

    rebuild_parser = subparsers.add_parser("rebuild", help="Reset sync cursors to re-index from the start block")
    rebuild_parser.add_argument("--network", help="Only reset this network")

    address_parser = subparsers.add_parser("btc-address", help="Derive a campaign's BTC address")
    address_parser.add_argument("internal_id", help="Campaign internal id")

    monitor_parser = subparsers.add_parser("btc-monitor", help="Show what a BTC address has received")
    monitor_parser.add_argument("address", help="BTC address")

    batch_parser = subparsers.add_parser("btc-batch", help="Received totals for many BTC campaigns")
    batch_parser.add_argument("internal_ids", nargs="+", help="Campaign internal ids")

    campaign_parser = subparsers.add_parser("campaign-stats", help="Raised totals for a campaign")
    campaign_parser.add_argument("campaign_id", help="bytes32 campaign id")
    campaign_parser.add_argument("--currency", help="Funding currency (BTC selects the Bitcoin path)")
    campaign_parser.add_argument("--internal-id", help="Internal id for BTC address derivation")
    campaign_parser.add_argument("--network", help="Restrict to one network")

    creator_parser = subparsers.add_parser("creator-stats", help="Raised totals across a creator's campaigns")
    creator_parser.add_argument("creator", help="Creator address")

    subparsers.add_parser("platform-stats", help="Raised totals across all campaigns")

    record_parser = subparsers.add_parser("record-btc", help="Record a BTC contribution on-chain")
    record_parser.add_argument("campaign_id", help="bytes32 campaign id")
    record_parser.add_argument("amount_sats", type=int, help="Amount in satoshis")
    record_parser.add_argument("--txid", help="Bitcoin transaction id")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Load config
    try:
        config = Config.from_env()
        config.validate()
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)

    database = Database(config.db_url)

    # Setup signal handlers
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    # Execute command
    try:
        if args.command == "run":
            run_indexer(config, database)
        elif args.command == "sync-once":
            run_indexer(config, database, once=True)
        elif args.command == "status":
            show_status(config, database)
        elif args.command == "rebuild":
            rebuild(database, args.network)
        elif args.command == "btc-address":
            address = BitcoinAddressDeriver(config.bitcoin).derive_address(args.internal_id)
            print_json({"address": address, "network": config.bitcoin.network})
        elif args.command == "btc-monitor":
            with build_monitor(config) as monitor:
                print_json(monitor.get_monitor_stats(args.address).model_dump(mode="json"))
        elif args.command == "btc-batch":
            with build_monitor(config) as monitor:
                print_json([entry.model_dump(mode="json") for entry in monitor.get_batch_stats(args.internal_ids)])
        elif args.command in ("campaign-stats", "creator-stats", "platform-stats"):
            with build_monitor(config) as monitor:
                ledger = EventLedger(database)
                projector = build_projector(ledger, monitor, build_clients(config))
                if args.command == "campaign-stats":
                    totals = projector.campaign_totals(
                        args.campaign_id,
                        currency=args.currency,
                        internal_id=args.internal_id,
                        network=args.network,
                    )
                    print_json({
                        **totals.model_dump(mode="json"),
                        "activity": ledger.events_for_campaign(args.campaign_id, network=args.network),
                    })
                elif args.command == "creator-stats":
                    totals = projector.creator_totals(args.creator)
                    print_json({
                        **totals.model_dump(mode="json"),
                        "campaign_count": totals.campaign_count,
                        "activity": projector.creator_activity(args.creator),
                    })
                else:
                    print_json(projector.platform_totals().model_dump(mode="json"))
        elif args.command == "record-btc":
            client = EthereumClient(config.get_network(config.oracle_network))
            result = OracleBridge(config, client).record_external_contribution(
                args.campaign_id, args.amount_sats, txid=args.txid
            )
            print_json(asdict(result))
    except (IndexerError, KeyError, RuntimeError) as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        database.dispose()


if __name__ == "__main__":
    main()
