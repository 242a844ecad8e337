"""Shared fixtures: an isolated ledger database and raw log builders."""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest

from config import BitcoinConfig, Config, ContractConfig, NetworkConfig
from db.models import Base
from db.session import Database
from pipeline.schema import NormalizedEvent
from tests.factories import (
    CAMPAIGN_ID,
    DONOR,
    ESCROW_ADDRESS,
    MANAGER_ADDRESS,
    TEST_XPUB,
    TOKEN,
    LogFactory,
    tx_hash,
)


@pytest.fixture
def database():
    """Ledger database; in-memory SQLite unless TEST_DB_URL is set."""
    db = Database(os.getenv("TEST_DB_URL", "sqlite://"))
    db.create_all()
    yield db
    Base.metadata.drop_all(db.engine)
    db.dispose()


@pytest.fixture
def network_config() -> NetworkConfig:
    return NetworkConfig(
        name="sonic",
        rpc_urls=["http://rpc-primary.test", "http://rpc-fallback.test"],
        contracts=[
            ContractConfig(name="CampaignManager", address=MANAGER_ADDRESS),
            ContractConfig(name="FundEscrow", address=ESCROW_ADDRESS),
        ],
        explorer_tx_url="https://testnet.sonicscan.org/tx/",
        batch_size=100,
        start_block=1000,
    )


@pytest.fixture
def config(network_config) -> Config:
    return Config(
        db_url="sqlite://",
        networks=[network_config],
        bitcoin=BitcoinConfig(network="mainnet", platform_xpub=TEST_XPUB),
        sync_interval_seconds=0.01,
    )


@pytest.fixture
def mock_client(network_config):
    """EthereumClient stand-in: head at 1050, fixed block timestamps, no logs."""
    client = MagicMock()
    client.network = network_config
    client.get_latest_block.return_value = 1050
    client.get_block_timestamp.return_value = 1700000000
    client.get_logs.return_value = []
    return client


@pytest.fixture
def logs() -> LogFactory:
    return LogFactory()


@pytest.fixture
def make_event():
    """Build NormalizedEvents directly, bypassing decoding."""

    def _make(
        event_name: str,
        args: Dict[str, Any],
        tx: Optional[str] = None,
        log_index: int = 0,
        network: str = "sonic",
        block_number: int = 1000,
        campaign_id: Optional[str] = CAMPAIGN_ID,
    ) -> NormalizedEvent:
        tx = tx or tx_hash(block_number * 100 + log_index)
        return NormalizedEvent(
            id=NormalizedEvent.make_id(network, tx, log_index),
            network=network,
            block_number=block_number,
            transaction_hash=tx,
            log_index=log_index,
            event_name=event_name,
            args=args,
            explorer_url=f"https://testnet.sonicscan.org/tx/{tx}",
            campaign_id=campaign_id,
            block_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    return _make


@pytest.fixture
def make_deposit(make_event):
    """Escrow-style FundsLocked event with a donor."""

    def _make(amount: int, donor: str = DONOR, token: str = TOKEN, campaign_id: str = CAMPAIGN_ID, **kwargs):
        args = {"id": campaign_id, "token": token, "donor": donor, "amount": str(amount)}
        return make_event("FundsLocked", args, campaign_id=campaign_id, **kwargs)

    return _make
