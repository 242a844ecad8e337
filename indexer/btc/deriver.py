"""Deterministic per-campaign Bitcoin receiving addresses."""

import hashlib

from bip_utils import Bip32KeyNetVersions, Bip32Secp256k1, P2WPKHAddrEncoder

from config import BitcoinConfig
from errors import ConfigurationError
from log import get_logger

logger = get_logger(__name__)

# BIP32 version bytes (public, private) per network
KEY_NET_VERSIONS = {
    "mainnet": Bip32KeyNetVersions(b"\x04\x88\xb2\x1e", b"\x04\x88\xad\xe4"),  # xpub / xprv
    "testnet": Bip32KeyNetVersions(b"\x04\x35\x87\xcf", b"\x04\x35\x83\x94"),  # tpub / tprv
}

# Segwit human-readable part per network
SEGWIT_HRP = {"mainnet": "bc", "testnet": "tb"}

# Receive branch of the m/0/index path
RECEIVE_BRANCH = 0

# Indices >= 2^31 are hardened and need the private key
HARDENED_OFFSET = 2 ** 31


def child_index(internal_id: str) -> int:
    """Non-hardened child index for a campaign: first 4 bytes of sha256(id) mod 2^31."""
    digest = hashlib.sha256(internal_id.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big") % HARDENED_OFFSET


class BitcoinAddressDeriver:
    """Derives a P2WPKH address per campaign from the platform xpub.

    Stateless: the same key and internal id always give the same address,
    so nothing is stored and no locking is needed.
    """

    def __init__(self, config: BitcoinConfig):
        self.config = config
        self._root = None

    def _root_key(self) -> Bip32Secp256k1:
        if self._root is not None:
            return self._root
        if not self.config.platform_xpub:
            raise ConfigurationError("Platform xpub not configured (PLATFORM_XPUB)")
        try:
            self._root = Bip32Secp256k1.FromExtendedKey(
                self.config.platform_xpub, KEY_NET_VERSIONS[self.config.network]
            )
        except Exception as e:
            # A wrong version prefix means the key belongs to the other network
            raise ConfigurationError(
                f"BTC address derivation failed: {e}. "
                f"Check if your PLATFORM_XPUB matches the {self.config.network} network."
            ) from e
        return self._root

    def derive_address(self, internal_id: str) -> str:
        """Segwit receiving address for the campaign ``internal_id``.

        Raises:
            ConfigurationError: If no xpub is configured or it is for another network
        """
        index = child_index(internal_id)
        child = self._root_key().ChildKey(RECEIVE_BRANCH).ChildKey(index)
        address = P2WPKHAddrEncoder.EncodeKey(
            child.PublicKey().RawCompressed().ToBytes(),
            hrp=SEGWIT_HRP[self.config.network],
        )
        logger.debug(f"Derived {address} for campaign {internal_id} (m/{RECEIVE_BRANCH}/{index})")
        return address
