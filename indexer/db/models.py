"""SQLAlchemy ORM models for the ledger tables.

NOTE: These models map to EXISTING tables. The indexer does NOT run
migrations; only tests call ``Base.metadata.create_all``.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Column, DateTime, Index, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncState(Base):
    """Per-network sync cursor (maps to 'sync_state' table)."""

    __tablename__ = "sync_state"

    network = Column(String(32), primary_key=True)
    last_block = Column(BigInteger, nullable=False)


class Event(Base):
    """Normalized on-chain event (maps to 'events' table).

    Rows are append-only; ``id`` is ``{network}-{tx_hash}-{log_index}``.
    """

    __tablename__ = "events"
    __table_args__ = (Index("idx_events_campaign_id", "campaign_id"),)

    id = Column(String(160), primary_key=True)
    network = Column(String(32), nullable=False)
    block_number = Column(BigInteger, nullable=False)
    transaction_hash = Column(String(66), nullable=False)  # 0x + 64 hex chars
    event_name = Column(String(100), nullable=False)
    args = Column(JSON, nullable=False)  # JSON-safe decoded arguments
    explorer_url = Column(Text, nullable=True)
    campaign_id = Column(String(66), nullable=True)  # lowercase bytes32 hex
    block_timestamp = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_dict(self) -> dict:
        """Row as a JSON-friendly dict, the shape activity feeds return."""
        return {
            "id": self.id,
            "network": self.network,
            "block_number": self.block_number,
            "transaction_hash": self.transaction_hash,
            "event_name": self.event_name,
            "args": self.args,
            "explorer_url": self.explorer_url,
            "campaign_id": self.campaign_id,
            "time": self.block_timestamp.isoformat() if self.block_timestamp else None,
        }


class CampaignRegistration(Base):
    """Campaign -> creator mapping (maps to 'campaigns' table).

    Only ``campaign_id`` and ``creator`` are touched by the indexer.
    """

    __tablename__ = "campaigns"
    __table_args__ = (Index("idx_campaigns_creator", "creator"),)

    campaign_id = Column(String(66), primary_key=True)
    creator = Column(String(42), nullable=False)
