"""Event ledger - idempotent event persistence and read projections."""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError
from sqlalchemy import func, select

from db.models import CampaignRegistration, Event
from db.session import Database
from log import get_logger
from pipeline.schema import (
    CREATOR_FIELDS,
    EventName,
    FundsLockedArgs,
    NormalizedEvent,
    parse_event_args,
    pick_first,
)

logger = get_logger(__name__)

# (network, token) -> raised amount in the token's smallest unit
RaisedBuckets = Dict[Tuple[str, str], int]


def _lower_all(values: Iterable[str]) -> List[str]:
    return sorted({value.lower() for value in values if value})


class EventLedger:
    """Append-only store of normalized events plus the campaign registry.

    Every write is keyed by event identity, so replaying a block range is
    a no-op for rows already stored.
    """

    def __init__(self, database: Database):
        self.database = database

    # -- writes -----------------------------------------------------------

    def insert_event(self, session, event: NormalizedEvent) -> bool:
        """Insert event (idempotent).

        Returns:
            True if the event was inserted, False if it already existed
        """
        stmt = self.database.insert(Event).values(
            id=event.id,
            network=event.network,
            block_number=event.block_number,
            transaction_hash=event.transaction_hash,
            event_name=event.event_name,
            args=event.args,
            explorer_url=event.explorer_url,
            campaign_id=event.campaign_id,
            block_timestamp=event.block_timestamp,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["id"])
        result = session.execute(stmt)
        return result.rowcount == 1

    def register_campaign(self, session, campaign_id: str, creator: str) -> None:
        """Upsert campaign -> creator; the latest observed creator wins."""
        stmt = self.database.insert(CampaignRegistration).values(
            campaign_id=campaign_id.lower(),
            creator=creator.lower(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["campaign_id"],
            set_={"creator": stmt.excluded.creator},
        )
        session.execute(stmt)

    def save_events(self, events: Sequence[NormalizedEvent]) -> int:
        """Persist events and derive campaign registrations.

        Each event commits in its own transaction: one bad row is logged
        and skipped without rolling back the others. Calling this twice
        with the same events leaves the ledger unchanged.

        Args:
            events: Normalized events from one sync pass

        Returns:
            Number of newly inserted events
        """
        if not events:
            return 0

        logger.info(f"Saving {len(events)} events...")
        inserted_count = 0

        for event in events:
            try:
                with self.database.session() as session:
                    inserted = self.insert_event(session, event)

                    if event.event_name == EventName.CAMPAIGN_CREATED.value and event.campaign_id:
                        creator = event.creator()
                        if creator:
                            self.register_campaign(session, event.campaign_id, creator)
                            logger.info(f"Registered campaign {event.campaign_id} with creator {creator}")

                if inserted:
                    inserted_count += 1
                    logger.debug(f"Persisted {event.event_name} with ID {event.id}")
                else:
                    logger.debug(f"Event already exists (idempotent): {event.id}")

            except Exception as e:
                logger.error(f"Error saving event {event.id}: {e}", exc_info=True)
                # Continue with next event

        logger.info(f"Saved {inserted_count} new events ({len(events) - inserted_count} already present or failed)")
        return inserted_count

    # -- reads ------------------------------------------------------------

    def events_for_campaign(self, campaign_id: str, network: Optional[str] = None) -> List[Dict[str, Any]]:
        """Activity feed for one campaign, newest first.

        Donor-less FundsLocked rows (the manager-side duplicate of an escrow
        deposit) are left out.
        """
        stmt = select(Event).where(Event.campaign_id == campaign_id.lower())
        if network:
            stmt = stmt.where(Event.network == network.lower())
        stmt = stmt.order_by(Event.block_number.desc(), Event.id.desc())

        with self.database.session() as session:
            rows = session.execute(stmt).scalars().all()

        return [
            row.to_dict()
            for row in rows
            if row.event_name != EventName.FUNDS_LOCKED.value or (row.args or {}).get("donor")
        ]

    def events_for_campaigns(self, campaign_ids: Iterable[str], limit: int = 50) -> List[Dict[str, Any]]:
        """Events across a set of campaigns, newest first, capped at ``limit``."""
        ids = _lower_all(campaign_ids)
        if not ids:
            return []

        stmt = (
            select(Event)
            .where(Event.campaign_id.in_(ids))
            .order_by(Event.block_number.desc(), Event.id.desc())
            .limit(limit)
        )
        with self.database.session() as session:
            return [row.to_dict() for row in session.execute(stmt).scalars().all()]

    def _donor_deposits(self, campaign_ids: Optional[Iterable[str]]) -> List[Tuple[str, FundsLockedArgs]]:
        """(network, typed args) for every FundsLocked row carrying a donor.

        Args:
            campaign_ids: Restrict to these campaigns (None = all campaigns)
        """
        stmt = select(Event.id, Event.network, Event.args).where(
            Event.event_name == EventName.FUNDS_LOCKED.value
        )
        if campaign_ids is not None:
            ids = _lower_all(campaign_ids)
            if not ids:
                return []
            stmt = stmt.where(Event.campaign_id.in_(ids))

        with self.database.session() as session:
            rows = session.execute(stmt).all()

        deposits = []
        for event_id, network, args in rows:
            try:
                typed = parse_event_args(EventName.FUNDS_LOCKED.value, args or {})
            except ValidationError as e:
                logger.warning(f"Skipping malformed FundsLocked row {event_id}: {e}")
                continue
            if typed.donor:
                deposits.append((network, typed))
        return deposits

    def funds_locked_totals(self, campaign_ids: Optional[Iterable[str]] = None) -> RaisedBuckets:
        """Sum of FundsLocked amounts grouped by (network, token).

        Amounts are summed as Python ints, exact at uint256 scale.
        """
        totals: RaisedBuckets = defaultdict(int)
        for network, args in self._donor_deposits(campaign_ids):
            totals[(network, args.token)] += args.amount
        return dict(totals)

    def distinct_donor_count(self, campaign_ids: Optional[Iterable[str]] = None) -> int:
        """Number of distinct donor addresses across the campaigns."""
        return len({args.donor for _, args in self._donor_deposits(campaign_ids)})

    def campaign_ids_for_creator(self, creator: str) -> List[str]:
        """Campaign ids registered to ``creator``."""
        stmt = select(CampaignRegistration.campaign_id).where(
            CampaignRegistration.creator == creator.lower()
        )
        with self.database.session() as session:
            return sorted(session.execute(stmt).scalars().all())

    def campaign_ids_from_created_events(self, creator: str) -> List[str]:
        """Campaign ids whose CampaignCreated event names ``creator``.

        Fallback for when the registry has not been populated yet.
        """
        stmt = select(Event.campaign_id, Event.args).where(
            Event.event_name == EventName.CAMPAIGN_CREATED.value,
            Event.campaign_id.is_not(None),
        )
        creator = creator.lower()
        with self.database.session() as session:
            rows = session.execute(stmt).all()

        ids = set()
        for campaign_id, args in rows:
            candidate = pick_first(args or {}, CREATOR_FIELDS)
            if isinstance(candidate, str) and candidate.lower() == creator:
                ids.add(campaign_id)
        return sorted(ids)

    def count_registrations(self) -> int:
        with self.database.session() as session:
            return session.execute(select(func.count()).select_from(CampaignRegistration)).scalar_one()

    def count_events(self, network: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(Event)
        if network:
            stmt = stmt.where(Event.network == network)
        with self.database.session() as session:
            return session.execute(stmt).scalar_one()
