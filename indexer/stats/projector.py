"""Query-time raised totals for campaigns, creators and the platform."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from btc.monitor import BitcoinMonitor
from errors import ConfigurationError, ExplorerError
from eth.contract_reader import CampaignContractReader
from log import get_logger
from services.ledger import EventLedger, RaisedBuckets
from stats.formatting import format_address

logger = get_logger(__name__)

BITCOIN_NETWORK = "bitcoin"
BITCOIN_TOKEN = "BTC"

# Default cap for creator activity feeds
CREATOR_ACTIVITY_LIMIT = 50


class RaisedBucket(BaseModel):
    """Amount raised in one (network, token) denomination.

    EVM amounts are in the token's smallest unit; Bitcoin amounts are in
    BTC. Buckets are never summed across denominations.
    """
    network: str
    token: str
    amount: Decimal
    source: str  # "ledger", "contract" or "bitcoin"


class CampaignTotals(BaseModel):
    campaign_id: str
    currency: Optional[str] = None
    buckets: List[RaisedBucket] = Field(default_factory=list)
    has_pending: bool = False
    error: Optional[str] = None


class CreatorTotals(BaseModel):
    creator: str
    campaign_ids: List[str] = Field(default_factory=list)
    buckets: List[RaisedBucket] = Field(default_factory=list)
    backer_count: int = 0

    @property
    def campaign_count(self) -> int:
        return len(self.campaign_ids)


class PlatformTotals(BaseModel):
    buckets: List[RaisedBucket] = Field(default_factory=list)
    campaign_count: int = 0
    backer_count: int = 0


def _ledger_buckets(totals: RaisedBuckets) -> List[RaisedBucket]:
    return [
        RaisedBucket(network=network, token=token, amount=Decimal(amount), source="ledger")
        for (network, token), amount in sorted(totals.items())
    ]


class AggregateStatsProjector:
    """Merges ledger sums, live contract reads and Bitcoin monitor output."""

    def __init__(
        self,
        ledger: EventLedger,
        monitor: Optional[BitcoinMonitor] = None,
        contract_reader: Optional[CampaignContractReader] = None,
    ):
        self.ledger = ledger
        self.monitor = monitor
        self.contract_reader = contract_reader

    def campaign_totals(
        self,
        campaign_id: str,
        currency: Optional[str] = None,
        internal_id: Optional[str] = None,
        network: Optional[str] = None,
    ) -> CampaignTotals:
        """Raised totals for one campaign.

        Bitcoin campaigns report what their derived address received.
        Other campaigns sum the ledger's FundsLocked rows, falling back to
        the contract's ``pledged`` value when the ledger has none yet.

        Args:
            campaign_id: bytes32 campaign id
            currency: Funding currency ("BTC" selects the Bitcoin path)
            internal_id: Id used for Bitcoin address derivation (defaults to campaign_id)
            network: Restrict EVM totals to one network

        Raises:
            ConfigurationError: If the Bitcoin path is requested without a usable platform key
        """
        campaign_id = campaign_id.lower()
        totals = CampaignTotals(campaign_id=campaign_id, currency=currency)

        if currency and currency.upper() == BITCOIN_TOKEN:
            return self._bitcoin_totals(totals, internal_id or campaign_id)

        ledger_totals = self.ledger.funds_locked_totals([campaign_id])
        if network:
            ledger_totals = {key: value for key, value in ledger_totals.items() if key[0] == network}

        if ledger_totals:
            totals.buckets = _ledger_buckets(ledger_totals)
            return totals

        return self._contract_totals(totals, network)

    def _bitcoin_totals(self, totals: CampaignTotals, internal_id: str) -> CampaignTotals:
        if self.monitor is None:
            raise ConfigurationError("Bitcoin monitor not configured")

        address = self.monitor.deriver.derive_address(internal_id)
        try:
            stats = self.monitor.get_monitor_stats(address)
        except ExplorerError as e:
            logger.warning(f"BTC totals unavailable for {totals.campaign_id}: {e}")
            totals.error = str(e)
            return totals

        totals.buckets = [
            RaisedBucket(
                network=BITCOIN_NETWORK,
                token=BITCOIN_TOKEN,
                amount=stats.total_received_btc,
                source="bitcoin",
            )
        ]
        totals.has_pending = stats.has_pending
        return totals

    def _contract_totals(self, totals: CampaignTotals, network: Optional[str]) -> CampaignTotals:
        if self.contract_reader is None:
            return totals

        # Without an explicit network, only those with a CampaignManager
        networks = [network] if network else self.contract_reader.readable_networks()
        for name in networks:
            try:
                campaign = self.contract_reader.get_campaign(name, totals.campaign_id)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.warning(f"Contract read failed for {totals.campaign_id} on {name}: {e}")
                totals.error = str(e)
                continue

            if campaign is None:
                continue
            totals.currency = totals.currency or campaign.currency
            totals.buckets.append(
                RaisedBucket(
                    network=name,
                    token=campaign.currency,
                    amount=Decimal(campaign.pledged),
                    source="contract",
                )
            )
        return totals

    def creator_campaign_ids(self, creator: str) -> List[str]:
        """Campaigns registered to ``creator``; scans CampaignCreated events if the registry is cold."""
        campaign_ids = self.ledger.campaign_ids_for_creator(creator)
        if not campaign_ids:
            campaign_ids = self.ledger.campaign_ids_from_created_events(creator)
            if campaign_ids:
                logger.info(f"Registry has no rows for {creator}, resolved {len(campaign_ids)} campaigns from events")
        return campaign_ids

    def creator_totals(self, creator: str) -> CreatorTotals:
        creator = format_address(creator)
        if not creator:
            return CreatorTotals(creator="")
        campaign_ids = self.creator_campaign_ids(creator)
        if not campaign_ids:
            return CreatorTotals(creator=creator)

        return CreatorTotals(
            creator=creator,
            campaign_ids=campaign_ids,
            buckets=_ledger_buckets(self.ledger.funds_locked_totals(campaign_ids)),
            backer_count=self.ledger.distinct_donor_count(campaign_ids),
        )

    def creator_activity(self, creator: str, limit: int = CREATOR_ACTIVITY_LIMIT) -> List[Dict[str, Any]]:
        """Newest events across a creator's campaigns."""
        creator = format_address(creator)
        if not creator:
            return []
        return self.ledger.events_for_campaigns(self.creator_campaign_ids(creator), limit=limit)

    def platform_totals(self) -> PlatformTotals:
        """Raised by (network, token) across every campaign in the ledger."""
        return PlatformTotals(
            buckets=_ledger_buckets(self.ledger.funds_locked_totals()),
            campaign_count=self.ledger.count_registrations(),
            backer_count=self.ledger.distinct_donor_count(),
        )
