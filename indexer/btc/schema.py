"""Pydantic models for Blockstream-style explorer responses and monitor output."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _ExplorerModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TxoStats(_ExplorerModel):
    """``chain_stats`` / ``mempool_stats`` block of ``GET address/{addr}``."""
    funded_txo_count: int = 0
    funded_txo_sum: int = 0
    spent_txo_count: int = 0
    spent_txo_sum: int = 0
    tx_count: int = 0


class AddressStats(_ExplorerModel):
    address: str
    chain_stats: TxoStats = Field(default_factory=TxoStats)
    mempool_stats: TxoStats = Field(default_factory=TxoStats)

    @property
    def unconfirmed_sats(self) -> int:
        return self.mempool_stats.funded_txo_sum - self.mempool_stats.spent_txo_sum

    @property
    def total_received_sats(self) -> int:
        return self.chain_stats.funded_txo_sum + self.mempool_stats.funded_txo_sum

    @property
    def balance_sats(self) -> int:
        return self.chain_stats.funded_txo_sum - self.chain_stats.spent_txo_sum + self.unconfirmed_sats

    @property
    def funded_output_count(self) -> int:
        return self.chain_stats.funded_txo_count + self.mempool_stats.funded_txo_count


class PrevOut(_ExplorerModel):
    scriptpubkey_address: Optional[str] = None
    value: int = 0


class TxInput(_ExplorerModel):
    prevout: Optional[PrevOut] = None


class TxOutput(_ExplorerModel):
    scriptpubkey_address: Optional[str] = None
    value: int = 0


class TxStatus(_ExplorerModel):
    confirmed: bool = False
    block_height: Optional[int] = None
    block_time: Optional[int] = None


class ExplorerTx(_ExplorerModel):
    """One entry of ``GET address/{addr}/txs``."""
    txid: str
    vin: List[TxInput] = Field(default_factory=list)
    vout: List[TxOutput] = Field(default_factory=list)
    status: TxStatus = Field(default_factory=TxStatus)

    def received_by(self, address: str) -> int:
        """Satoshis this transaction paid to ``address``."""
        return sum(out.value for out in self.vout if out.scriptpubkey_address == address)

    @property
    def sender(self) -> Optional[str]:
        """Address of the first input's previous output, when the explorer resolved it."""
        if not self.vin or self.vin[0].prevout is None:
            return None
        return self.vin[0].prevout.scriptpubkey_address


class Backer(BaseModel):
    """A contribution to a monitored address, attributed to its first input."""
    address: str
    amount_btc: Decimal
    txid: str
    time: datetime
    confirmed: bool


class MonitorStats(BaseModel):
    """What a derived address has received, as of the explorer call."""
    address: str
    total_btc: Decimal  # current balance incl. mempool
    total_received_btc: Decimal
    unconfirmed_btc: Decimal
    utxo_count: int
    has_pending: bool
    backers: List[Backer] = Field(default_factory=list)


class BatchStatsEntry(BaseModel):
    """Lightweight per-campaign stats; ``error`` set when that address failed."""
    internal_id: str
    address: Optional[str] = None
    total_received_btc: Optional[Decimal] = None
    backer_count: Optional[int] = None
    error: Optional[str] = None
