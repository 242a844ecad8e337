"""Bitcoin address derivation and explorer monitoring for BTC-funded campaigns."""

from btc.deriver import BitcoinAddressDeriver
from btc.monitor import BitcoinMonitor

__all__ = [
    "BitcoinAddressDeriver",
    "BitcoinMonitor",
]
