"""Tests for the Bitcoin explorer monitor."""

from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest

from btc.monitor import ANONYMOUS_BACKER, BitcoinMonitor
from config import BitcoinConfig
from errors import ExplorerError

ADDRESS = "bc1qcampaignaddress0000000000000000000000"
SENDER = "bc1qsenderaddress000000000000000000000000"
ELSEWHERE = "bc1qsomeoneelse0000000000000000000000000"


def _stats(address, chain_funded=0, chain_spent=0, mempool_funded=0, mempool_spent=0, chain_count=0, mempool_count=0):
    return {
        "address": address,
        "chain_stats": {
            "funded_txo_count": chain_count,
            "funded_txo_sum": chain_funded,
            "spent_txo_count": 0,
            "spent_txo_sum": chain_spent,
            "tx_count": chain_count,
        },
        "mempool_stats": {
            "funded_txo_count": mempool_count,
            "funded_txo_sum": mempool_funded,
            "spent_txo_count": 0,
            "spent_txo_sum": mempool_spent,
            "tx_count": mempool_count,
        },
    }


TXS = [
    {
        # unconfirmed, input not resolved
        "txid": "aa" * 32,
        "vin": [{"prevout": None}],
        "vout": [{"scriptpubkey_address": ADDRESS, "value": 25_000_000}],
        "status": {"confirmed": False},
    },
    {
        "txid": "bb" * 32,
        "vin": [{"prevout": {"scriptpubkey_address": SENDER, "value": 600_000_000}}],
        "vout": [
            {"scriptpubkey_address": ADDRESS, "value": 500_000_000},
            {"scriptpubkey_address": SENDER, "value": 99_990_000},
        ],
        "status": {"confirmed": True, "block_height": 800000, "block_time": 1700000000},
    },
    {
        # a spend from the campaign address pays nothing to it
        "txid": "cc" * 32,
        "vin": [{"prevout": {"scriptpubkey_address": ADDRESS, "value": 1000}}],
        "vout": [{"scriptpubkey_address": ELSEWHERE, "value": 900}],
        "status": {"confirmed": True, "block_time": 1700000100},
    },
]


def _monitor(routes, deriver=None):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.replace("/api/", "", 1)
        if path not in routes:
            return httpx.Response(404, text="Address not found")
        status, body = routes[path]
        return httpx.Response(status, json=body)

    config = BitcoinConfig(network="mainnet")
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return BitcoinMonitor(config, deriver or MagicMock(), client=client)


def test_monitor_stats():
    monitor = _monitor({
        f"address/{ADDRESS}": (200, _stats(ADDRESS, chain_funded=500_000_000, mempool_funded=25_000_000,
                                           chain_count=1, mempool_count=1)),
        f"address/{ADDRESS}/txs": (200, TXS),
    })

    stats = monitor.get_monitor_stats(ADDRESS)

    assert stats.total_received_btc == Decimal("5.25")
    assert stats.unconfirmed_btc == Decimal("0.25")
    assert stats.total_btc == Decimal("5.25")
    assert stats.utxo_count == 2
    assert stats.has_pending is True


def test_monitor_backers():
    monitor = _monitor({
        f"address/{ADDRESS}": (200, _stats(ADDRESS, chain_funded=500_000_000)),
        f"address/{ADDRESS}/txs": (200, TXS),
    })

    backers = monitor.get_monitor_stats(ADDRESS).backers

    assert [b.txid for b in backers] == ["aa" * 32, "bb" * 32]
    pending, confirmed = backers
    assert pending.address == ANONYMOUS_BACKER
    assert pending.amount_btc == Decimal("0.25")
    assert pending.confirmed is False
    assert confirmed.address == SENDER
    assert confirmed.amount_btc == Decimal("5")
    assert confirmed.time.timestamp() == 1700000000


def test_balance_accounts_for_spends():
    monitor = _monitor({
        f"address/{ADDRESS}": (200, _stats(ADDRESS, chain_funded=300, chain_spent=100, mempool_funded=50, mempool_spent=20)),
        f"address/{ADDRESS}/txs": (200, []),
    })

    stats = monitor.get_monitor_stats(ADDRESS)

    assert stats.unconfirmed_btc == Decimal("0.0000003")
    assert stats.total_received_btc == Decimal("0.0000035")
    assert stats.total_btc == Decimal("0.0000023")


def test_no_pending_when_mempool_empty():
    monitor = _monitor({
        f"address/{ADDRESS}": (200, _stats(ADDRESS, chain_funded=1000)),
        f"address/{ADDRESS}/txs": (200, []),
    })

    assert monitor.get_monitor_stats(ADDRESS).has_pending is False


def test_explorer_http_error():
    monitor = _monitor({f"address/{ADDRESS}": (500, {"error": "boom"})})

    with pytest.raises(ExplorerError, match="HTTP 500"):
        monitor.get_monitor_stats(ADDRESS)


def test_batch_stats_isolates_failures():
    deriver = MagicMock()
    deriver.derive_address.side_effect = lambda internal_id: f"bc1q{internal_id}"
    routes = {
        f"address/bc1q{n}": (200, _stats(f"bc1q{n}", chain_funded=n * 100_000_000, chain_count=n, mempool_count=1))
        for n in (1, 2, 4, 5)
    }
    routes["address/bc1q3"] = (503, {"error": "unavailable"})
    monitor = _monitor(routes, deriver=deriver)

    entries = monitor.get_batch_stats(["1", "2", "3", "4", "5"])

    assert [e.internal_id for e in entries] == ["1", "2", "3", "4", "5"]
    assert [e.total_received_btc for e in entries] == [Decimal(1), Decimal(2), None, Decimal(4), Decimal(5)]
    assert [e.backer_count for e in entries] == [2, 3, None, 5, 6]
    assert entries[2].error is not None
    assert entries[2].address is None
    assert all(e.error is None for i, e in enumerate(entries) if i != 2)
    assert entries[0].address == "bc1q1"


def test_batch_stats_empty():
    assert _monitor({}).get_batch_stats([]) == []


def test_batch_stats_reports_derivation_errors():
    deriver = MagicMock()
    deriver.derive_address.side_effect = ValueError("bad key")
    monitor = _monitor({}, deriver=deriver)

    entries = monitor.get_batch_stats(["x"])

    assert entries[0].error == "bad key"


def test_close_leaves_injected_client_open():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))

    with BitcoinMonitor(BitcoinConfig(network="mainnet"), MagicMock(), client=client):
        pass

    assert client.is_closed is False


def test_close_shuts_owned_client():
    with BitcoinMonitor(BitcoinConfig(network="mainnet"), MagicMock()) as monitor:
        assert monitor.client.is_closed is False

    assert monitor.client.is_closed is True
