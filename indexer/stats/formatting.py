"""Unit conversions for raised amounts."""

from decimal import Decimal
from typing import Optional

# 1 BTC = 10^8 sats
SATS_PER_BTC = Decimal("100000000")

# sats -> 18-decimal units: (sats / 10^8) * 10^18
SATS_TO_WEI_FACTOR = 10 ** 10


def sats_to_btc(sats: Optional[int]) -> Decimal:
    """Convert satoshis to BTC, exactly."""
    if sats is None:
        return Decimal("0")
    return Decimal(sats) / SATS_PER_BTC


def sats_to_wei(sats: int) -> int:
    """Scale satoshis to the 18-decimal units the campaign contracts account in."""
    if sats < 0:
        raise ValueError(f"amount must be >= 0, got {sats}")
    return int(sats) * SATS_TO_WEI_FACTOR


def format_address(address: Optional[str]) -> Optional[str]:
    """Normalize an address to lowercase."""
    return address.lower() if address else None
