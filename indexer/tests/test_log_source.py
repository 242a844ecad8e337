"""Tests for RPC endpoint failover and log fetching."""

from unittest.mock import MagicMock, PropertyMock

import pytest

from errors import LogFetchError
from eth.client import EthereumClient, RpcUnavailableError
from eth.log_source import ChainLogSource
from tests.factories import MANAGER_ADDRESS


def _endpoint(get_logs=None, block_number=None, error=None):
    w3 = MagicMock()
    if error is not None:
        w3.eth.get_logs.side_effect = error
        type(w3.eth).block_number = PropertyMock(side_effect=error)
    else:
        w3.eth.get_logs.return_value = get_logs or []
        w3.eth.block_number = block_number
    return w3


@pytest.fixture
def client(network_config):
    return EthereumClient(network_config)


def test_client_builds_one_provider_per_endpoint(client, network_config):
    assert [url for url, _ in client.endpoints] == network_config.rpc_urls


def test_failover_to_next_endpoint(client, logs):
    raw = logs.campaign_created()
    primary = _endpoint(error=TimeoutError("read timed out"))
    fallback = _endpoint(get_logs=[raw])
    client.endpoints = [("http://a", primary), ("http://b", fallback)]

    result = ChainLogSource(client).fetch_logs(MANAGER_ADDRESS.upper().replace("0X", "0x"), 1000, 1100)

    assert result == [raw]
    filter_params = fallback.eth.get_logs.call_args[0][0]
    assert filter_params["fromBlock"] == 1000
    assert filter_params["toBlock"] == 1100
    assert filter_params["address"].lower() == MANAGER_ADDRESS


def test_all_endpoints_failing_raises_fetch_error(client):
    client.endpoints = [
        ("http://a", _endpoint(error=ConnectionError("refused"))),
        ("http://b", _endpoint(error=ConnectionError("refused"))),
    ]

    with pytest.raises(LogFetchError):
        ChainLogSource(client).fetch_logs(MANAGER_ADDRESS, 1, 2)


def test_empty_range_is_not_an_error(client):
    client.endpoints = [("http://a", _endpoint(get_logs=[]))]

    assert ChainLogSource(client).fetch_logs(MANAGER_ADDRESS, 1, 2) == []


def test_latest_block_failover(client):
    client.endpoints = [
        ("http://a", _endpoint(error=ConnectionError("refused"))),
        ("http://b", _endpoint(block_number=1234)),
    ]

    assert client.get_latest_block() == 1234


def test_latest_block_all_failing(client):
    client.endpoints = [("http://a", _endpoint(error=ConnectionError("refused")))]

    with pytest.raises(RpcUnavailableError):
        client.get_latest_block()


def test_hex_block_numbers_in_raw_logs(client, logs):
    raw = logs.campaign_created()
    raw["blockNumber"] = "0x3f2"
    client.endpoints = [("http://a", _endpoint(get_logs=[raw]))]

    assert ChainLogSource(client).fetch_logs(MANAGER_ADDRESS, 1000, 1100) == [raw]
