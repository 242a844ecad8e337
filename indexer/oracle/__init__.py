"""Oracle writes of external (Bitcoin) contributions to the campaign contract."""

from oracle.bridge import OracleBridge

__all__ = [
    "OracleBridge",
]
