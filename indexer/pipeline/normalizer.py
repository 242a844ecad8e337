"""Turns raw contract logs into NormalizedEvent records."""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from config import NetworkConfig
from eth.client import EthereumClient
from eth.decoder import EventDecoder, to_json_safe
from log import get_network_logger
from pipeline.schema import CAMPAIGN_ID_FIELDS, EventName, NormalizedEvent, pick_first

# "0x" + 40 hex chars: an address where a bytes32 id (66 chars) was expected
ADDRESS_HEX_LENGTH = 42


def extract_campaign_id(args: Mapping[str, Any]) -> Optional[str]:
    """Campaign id from JSON-safe args: ``id`` first, then ``campaignId``; lowercase."""
    campaign_id = pick_first(args, CAMPAIGN_ID_FIELDS)
    if not isinstance(campaign_id, str):
        return None
    return campaign_id.lower()


class BlockTimestampCache:
    """Block timestamps looked up once per block for the duration of a pass.

    Timestamps are best-effort: a failed lookup falls back to the current
    time and the event is still accepted.
    """

    def __init__(self, client: EthereumClient):
        self.client = client
        self.logger = get_network_logger(__name__, client.network.name)
        self._cache: Dict[int, datetime] = {}

    def get(self, block_number: int) -> datetime:
        if block_number not in self._cache:
            try:
                timestamp = self.client.get_block_timestamp(block_number)
                self._cache[block_number] = datetime.fromtimestamp(timestamp, tz=timezone.utc)
            except Exception as e:
                self.logger.warning(f"Timestamp lookup failed for block {block_number}, using now: {e}")
                self._cache[block_number] = datetime.now(timezone.utc)
        return self._cache[block_number]

    def __len__(self) -> int:
        return len(self._cache)


class EventNormalizer:
    """Decodes and normalizes logs for one network."""

    def __init__(self, network: NetworkConfig):
        self.network = network
        self.logger = get_network_logger(__name__, network.name)
        self._decoders: Dict[str, EventDecoder] = {}

    def _decoder(self, contract_name: str) -> EventDecoder:
        if contract_name not in self._decoders:
            self._decoders[contract_name] = EventDecoder(contract_name)
        return self._decoders[contract_name]

    def normalize(
        self,
        log: Mapping[str, Any],
        contract_name: str,
        timestamps: BlockTimestampCache,
    ) -> Optional[NormalizedEvent]:
        """Normalize one raw log.

        Args:
            log: Raw log from ChainLogSource
            contract_name: ABI name of the emitting contract
            timestamps: Pass-scoped block timestamp cache

        Returns:
            NormalizedEvent, or None if the log is not decodable
        """
        decoded = self._decoder(contract_name).decode(log)
        if decoded is None:
            return None

        args = {name: to_json_safe(value) for name, value in decoded.args.items()}
        campaign_id = extract_campaign_id(args)

        event_id = NormalizedEvent.make_id(self.network.name, decoded.tx_hash, decoded.log_index)
        if (
            campaign_id
            and len(campaign_id) == ADDRESS_HEX_LENGTH
            and decoded.event_name == EventName.CAMPAIGN_CREATED.value
        ):
            self.logger.warning(
                f"CampaignCreated id for {event_id} is an address ({campaign_id}), "
                "creator linkage may fail"
            )

        return NormalizedEvent(
            id=event_id,
            network=self.network.name,
            block_number=decoded.block_number,
            transaction_hash=decoded.tx_hash,
            log_index=decoded.log_index,
            event_name=decoded.event_name,
            args=args,
            explorer_url=f"{self.network.explorer_tx_url}{decoded.tx_hash}",
            campaign_id=campaign_id,
            block_timestamp=timestamps.get(decoded.block_number),
        )
