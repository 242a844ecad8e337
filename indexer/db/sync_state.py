"""Per-network sync cursor (watermark) persistence."""

from typing import Dict, Optional

from sqlalchemy import delete, func, select

from db.models import CampaignRegistration, SyncState
from db.session import Database
from log import get_logger

logger = get_logger(__name__)


class SyncCursorStore:
    """Reads and advances the last scanned block per network.

    ``last_block`` is the next block to scan: after a pass over
    ``[from, to]`` the cursor is written as ``to + 1``.
    """

    def __init__(self, database: Database):
        self.database = database

    def get_last_block(self, network: str) -> Optional[int]:
        """Stored cursor for ``network``, or None if never synced."""
        with self.database.session() as session:
            row = session.get(SyncState, network)
            return row.last_block if row else None

    def get_cursor(self, network: str, start_block: int) -> int:
        """Stored cursor, seeded with ``start_block`` when no row exists."""
        last_block = self.get_last_block(network)
        if last_block is None:
            logger.info(f"No sync state for {network}, starting from block {start_block}")
            return start_block
        return last_block

    def advance(self, network: str, block: int) -> None:
        """Upsert the cursor for ``network``.

        Only called after the batch ending at ``block - 1`` is persisted.
        """
        stmt = self.database.insert(SyncState).values(network=network, last_block=block)
        stmt = stmt.on_conflict_do_update(
            index_elements=["network"],
            set_={"last_block": stmt.excluded.last_block},
        )
        with self.database.session() as session:
            session.execute(stmt)
        logger.debug(f"Advanced {network} cursor to {block}")

    def all(self) -> Dict[str, int]:
        with self.database.session() as session:
            rows = session.execute(select(SyncState.network, SyncState.last_block)).all()
            return {network: last_block for network, last_block in rows}

    def reset(self, network: Optional[str] = None) -> int:
        """Delete stored cursors so the next pass backfills from the start block.

        Args:
            network: Only reset this network (None = all networks)

        Returns:
            Number of cursors removed
        """
        stmt = delete(SyncState)
        if network is not None:
            stmt = stmt.where(SyncState.network == network)
        with self.database.session() as session:
            removed = session.execute(stmt).rowcount or 0
        logger.warning(f"Reset sync state ({network or 'all networks'}): {removed} cursor(s) removed")
        return removed

    def reset_if_registry_empty(self) -> bool:
        """Reset all cursors when the campaign registry holds no rows.

        Boot-time repair: an empty registry with advanced cursors means the
        CampaignCreated history was lost and must be re-scanned.

        Returns:
            True if cursors were reset
        """
        with self.database.session() as session:
            count = session.execute(select(func.count()).select_from(CampaignRegistration)).scalar_one()
        if count:
            return False
        logger.warning("Campaign registry is empty, resetting sync state to re-index events")
        self.reset()
        return True
