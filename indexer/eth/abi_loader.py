"""ABI file loader."""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from log import get_logger

logger = get_logger(__name__)

# ABI directory relative to this file
ABI_DIR = Path(__file__).parent.parent / "abi"

CAMPAIGN_MANAGER = "CampaignManager"


@lru_cache(maxsize=None)
def _read_abi(contract_name: str) -> tuple:
    abi_path = ABI_DIR / f"{contract_name}.json"

    if not abi_path.exists():
        raise FileNotFoundError(
            f"ABI file not found: {abi_path}. "
            f"Expected file at: {abi_path.absolute()}"
        )

    try:
        with open(abi_path, "r") as f:
            abi = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in ABI file {abi_path}: {e}") from e

    if not isinstance(abi, list):
        raise ValueError(f"ABI must be a list, got {type(abi)}")

    logger.debug(f"Loaded ABI for {contract_name} ({len(abi)} entries)")
    return tuple(abi)


def load_abi(contract_name: str) -> List[Dict[str, Any]]:
    """Load ABI from JSON file.

    Args:
        contract_name: Contract name (e.g., "CampaignManager" or "FundEscrow")

    Returns:
        ABI as list of dictionaries

    Raises:
        FileNotFoundError: If ABI file doesn't exist
        ValueError: If ABI file is invalid JSON
    """
    return list(_read_abi(contract_name))


def event_abis(contract_name: str) -> List[Dict[str, Any]]:
    """Only the event entries of a contract's ABI."""
    return [entry for entry in load_abi(contract_name) if entry.get("type") == "event"]
