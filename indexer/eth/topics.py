"""Event topic hash computation."""

from typing import Any, Dict

from web3 import Web3

from eth.abi_loader import event_abis

# Cache topic hashes by signature
_TOPIC_CACHE: Dict[str, str] = {}


def event_signature(event_abi: Dict[str, Any]) -> str:
    """Canonical signature, e.g. ``FundsLocked(bytes32,address,address,uint256)``."""
    input_types = [inp["type"] for inp in event_abi.get("inputs", [])]
    return f"{event_abi['name']}({','.join(input_types)})"


def compute_topic(signature: str) -> str:
    """Compute keccak256 hash of event signature.

    Args:
        signature: Event signature (e.g., "CampaignCreated(bytes32,address)")

    Returns:
        Topic hash (0x-prefixed lowercase hex string)
    """
    if signature not in _TOPIC_CACHE:
        # Web3.to_hex always carries the 0x prefix, HexBytes.hex() may not
        _TOPIC_CACHE[signature] = Web3.to_hex(Web3.keccak(text=signature)).lower()
    return _TOPIC_CACHE[signature]


def topic_map(contract_name: str) -> Dict[str, Dict[str, Any]]:
    """Map topic0 -> event ABI for every event of a contract."""
    return {compute_topic(event_signature(abi)): abi for abi in event_abis(contract_name)}

