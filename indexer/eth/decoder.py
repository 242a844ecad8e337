"""Event log decoder."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from web3 import Web3

from eth.abi_loader import load_abi
from eth.topics import topic_map
from log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DecodedLog:
    """A log matched against a contract ABI, args still in web3 types."""

    event_name: str
    args: Dict[str, Any]
    block_number: int
    tx_hash: str
    log_index: int
    address: str


def to_hex(value: Any) -> str:
    """0x-prefixed lowercase hex for bytes/HexBytes/str values."""
    if isinstance(value, str):
        return value.lower() if value.startswith("0x") else "0x" + value.lower()
    return Web3.to_hex(value).lower()


def to_int(value: Any) -> int:
    """Block numbers and log indexes arrive as ints from web3, hex strings from raw RPC."""
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


def to_json_safe(value: Any) -> Any:
    """Convert a decoded ABI value into a JSON-safe representation.

    Integers become decimal strings (uint256 exceeds float precision),
    bytes become 0x-hex, and structs carrying a ``hash`` field collapse
    to that hash.
    """
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        if "hash" in value:
            return to_json_safe(value["hash"])
        return {str(key): to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(item) for item in value]
    return str(value)


class EventDecoder:
    """Decodes raw logs emitted by one contract type."""

    def __init__(self, contract_name: str):
        """Initialize decoder.

        Args:
            contract_name: ABI name (e.g., "CampaignManager")
        """
        self.contract_name = contract_name
        # Provider-less instance, only its ABI codec is used
        self._contract = Web3().eth.contract(abi=load_abi(contract_name))
        self._topics = topic_map(contract_name)

    def decode(self, log: Mapping[str, Any]) -> Optional[DecodedLog]:
        """Decode a log receipt into structured event data.

        Args:
            log: Raw log receipt from get_logs

        Returns:
            DecodedLog, or None if the log matches no known event of this
            contract or its topics/data are malformed
        """
        topics = log.get("topics") or []
        if not topics:
            return None

        event_topic = to_hex(topics[0])
        event_abi = self._topics.get(event_topic)
        if event_abi is None:
            logger.debug(f"Event not found in {self.contract_name} ABI for topic {event_topic}")
            return None

        event_name = event_abi["name"]
        try:
            event_handler = getattr(self._contract.events, event_name)
            decoded = event_handler().process_log(log)
        except Exception as e:
            logger.warning(
                f"Failed to decode {self.contract_name}.{event_name} "
                f"in tx {to_hex(log.get('transactionHash', b''))}: {e}"
            )
            return None

        return DecodedLog(
            event_name=decoded["event"],
            args=dict(decoded["args"]),
            block_number=to_int(log["blockNumber"]),
            tx_hash=to_hex(log["transactionHash"]),
            log_index=to_int(log["logIndex"]),
            address=str(log.get("address", "")).lower(),
        )
