"""Tests for the per-network sync pass."""

from unittest.mock import MagicMock

import pytest

from config import Config, ContractConfig, NetworkConfig
from db.sync_state import SyncCursorStore
from eth.client import RpcUnavailableError
from pipeline.indexer import ChainIndexer
from services.ledger import EventLedger
from tests.factories import CAMPAIGN_ID, CREATOR, ESCROW_ADDRESS, MANAGER_ADDRESS, TOKEN


@pytest.fixture
def ledger(database):
    return EventLedger(database)


@pytest.fixture
def cursor_store(database):
    return SyncCursorStore(database)


def _logs_by_address(mapping):
    """get_logs side effect returning (or raising) per contract address."""

    def _get_logs(address, from_block, to_block):
        result = mapping.get(address.lower(), [])
        if isinstance(result, Exception):
            raise result
        return result

    return _get_logs


def test_sync_persists_events_and_advances_cursor(config, mock_client, ledger, cursor_store, logs):
    mock_client.get_logs.side_effect = _logs_by_address({
        MANAGER_ADDRESS: [logs.campaign_created(), logs.manager_funds_locked(amount=100), logs.untracked()],
        ESCROW_ADDRESS: [logs.escrow_funds_locked(amount=100)],
    })
    indexer = ChainIndexer(config, ledger, cursor_store, clients={"sonic": mock_client})

    result = indexer.sync_network(config.networks[0])

    assert result.error is None
    assert (result.from_block, result.to_block) == (1000, 1050)
    assert result.logs_fetched == 4
    assert result.events_saved == 3
    assert cursor_store.get_last_block("sonic") == 1051
    assert ledger.campaign_ids_for_creator(CREATOR) == [CAMPAIGN_ID]
    assert ledger.funds_locked_totals([CAMPAIGN_ID]) == {("sonic", TOKEN): 100}


def test_range_bounded_by_batch_size(config, mock_client, ledger, cursor_store):
    mock_client.get_latest_block.return_value = 5000
    indexer = ChainIndexer(config, ledger, cursor_store, clients={"sonic": mock_client})

    result = indexer.sync_network(config.networks[0])

    assert result.to_block == 1100
    mock_client.get_logs.assert_any_call(MANAGER_ADDRESS, 1000, 1100)
    mock_client.get_logs.assert_any_call(ESCROW_ADDRESS, 1000, 1100)
    assert cursor_store.get_last_block("sonic") == 1101


def test_skip_when_cursor_at_head(config, mock_client, ledger, cursor_store):
    cursor_store.advance("sonic", 1050)
    indexer = ChainIndexer(config, ledger, cursor_store, clients={"sonic": mock_client})

    result = indexer.sync_network(config.networks[0])

    assert result.skipped is True
    mock_client.get_logs.assert_not_called()
    assert cursor_store.get_last_block("sonic") == 1050


def test_contract_fetch_failure_does_not_abort_network(config, mock_client, ledger, cursor_store, logs):
    mock_client.get_logs.side_effect = _logs_by_address({
        MANAGER_ADDRESS: RpcUnavailableError("all endpoints down"),
        ESCROW_ADDRESS: [logs.escrow_funds_locked(amount=42)],
    })
    indexer = ChainIndexer(config, ledger, cursor_store, clients={"sonic": mock_client})

    result = indexer.sync_network(config.networks[0])

    assert result.failed_contracts == ["CampaignManager"]
    assert result.events_saved == 1
    assert cursor_store.get_last_block("sonic") == 1051


def test_cursor_not_advanced_when_persistence_fails(config, mock_client, cursor_store, logs):
    mock_client.get_logs.side_effect = _logs_by_address({ESCROW_ADDRESS: [logs.escrow_funds_locked()]})
    ledger = MagicMock()
    ledger.save_events.side_effect = RuntimeError("database unavailable")
    indexer = ChainIndexer(config, ledger, cursor_store, clients={"sonic": mock_client})

    result = indexer.sync_network(config.networks[0])

    assert result.error == "database unavailable"
    assert cursor_store.get_last_block("sonic") is None


def test_replay_after_crash_is_idempotent(config, mock_client, ledger, cursor_store, logs, database):
    mock_client.get_logs.side_effect = _logs_by_address({
        MANAGER_ADDRESS: [logs.campaign_created()],
        ESCROW_ADDRESS: [logs.escrow_funds_locked(amount=100)],
    })
    indexer = ChainIndexer(config, ledger, cursor_store, clients={"sonic": mock_client})

    indexer.sync_network(config.networks[0])
    # Simulate a crash before the cursor write: same range is scanned again
    cursor_store.reset("sonic")
    second = indexer.sync_network(config.networks[0])

    assert second.events_saved == 0
    assert ledger.count_events() == 2
    assert ledger.funds_locked_totals([CAMPAIGN_ID]) == {("sonic", TOKEN): 100}


def test_in_flight_network_is_not_reentered(config, mock_client, ledger, cursor_store):
    indexer = ChainIndexer(config, ledger, cursor_store, clients={"sonic": mock_client})
    indexer._in_flight["sonic"].acquire()
    try:
        result = indexer.sync_network(config.networks[0])
    finally:
        indexer._in_flight["sonic"].release()

    assert result.skipped is True
    mock_client.get_latest_block.assert_not_called()


def test_one_network_failure_does_not_affect_others(network_config, mock_client, ledger, cursor_store):
    eth_network = NetworkConfig(
        name="ethereum",
        rpc_urls=["http://eth.test"],
        contracts=[ContractConfig(name="CampaignManager", address="0x" + "11" * 20)],
        explorer_tx_url="https://sepolia.etherscan.io/tx/",
        batch_size=2000,
        start_block=500,
    )
    eth_client = MagicMock()
    eth_client.network = eth_network
    eth_client.get_latest_block.side_effect = RpcUnavailableError("unreachable")
    config = Config(db_url="sqlite://", networks=[network_config, eth_network])
    indexer = ChainIndexer(config, ledger, cursor_store, clients={"sonic": mock_client, "ethereum": eth_client})

    results = {r.network: r for r in indexer.run_sync_pass()}

    assert results["ethereum"].error is not None
    assert results["sonic"].error is None
    assert cursor_store.all() == {"sonic": 1051}


def test_run_sync_pass_without_networks(ledger, cursor_store):
    indexer = ChainIndexer(Config(db_url="sqlite://"), ledger, cursor_store, clients={})
    assert indexer.run_sync_pass() == []
