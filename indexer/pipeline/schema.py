"""Pydantic models for normalized events and their typed arguments."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventName(str, Enum):
    """Event names the ledger understands."""
    CAMPAIGN_CREATED = "CampaignCreated"
    FUNDS_LOCKED = "FundsLocked"
    FUNDS_RELEASED = "FundsReleased"
    MILESTONE_RELEASED = "MilestoneReleased"


# Ordered candidate argument names per concept; contract versions differ
CAMPAIGN_ID_FIELDS = ("id", "campaignId")
CREATOR_FIELDS = ("creator", "owner", "admin")


def pick_first(args: Mapping[str, Any], fields: Sequence[str]) -> Optional[Any]:
    """Return the first non-empty value among ``fields``, in order."""
    for name in fields:
        value = args.get(name)
        if value:
            return value
    return None


def _lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


class EventArgs(BaseModel):
    """Base for typed event arguments.

    Unrecognized fields are kept in ``model_extra`` so newer contract
    versions do not lose data.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("*")
    @classmethod
    def lowercase_hex(cls, v: Any) -> Any:
        """Addresses and ids compare case-insensitively; store them lowercase."""
        return _lower(v)

    @property
    def unknown_fields(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class CampaignCreatedArgs(EventArgs):
    id: str
    creator: Optional[str] = None


class FundsLockedArgs(EventArgs):
    id: str
    token: str
    amount: int
    donor: Optional[str] = None  # only the escrow's FundsLocked carries a donor


class FundsReleasedArgs(EventArgs):
    id: str
    token: str
    amount: int


class MilestoneReleasedArgs(EventArgs):
    id: str
    milestone_index: int = Field(alias="milestoneIndex")


class UnknownEventArgs(EventArgs):
    pass


EVENT_ARGS_MODELS: Dict[str, Type[EventArgs]] = {
    EventName.CAMPAIGN_CREATED.value: CampaignCreatedArgs,
    EventName.FUNDS_LOCKED.value: FundsLockedArgs,
    EventName.FUNDS_RELEASED.value: FundsReleasedArgs,
    EventName.MILESTONE_RELEASED.value: MilestoneReleasedArgs,
}


def parse_event_args(event_name: str, args: Mapping[str, Any]) -> EventArgs:
    """Typed view of a stored ``args`` mapping, selected by event name.

    Known events missing their required fields raise ``ValidationError``.
    """
    data = dict(args)
    model = EVENT_ARGS_MODELS.get(event_name, UnknownEventArgs)
    if model is not UnknownEventArgs and "id" not in data:
        # Older contract versions name the campaign id "campaignId"
        for name in CAMPAIGN_ID_FIELDS:
            if data.get(name):
                data["id"] = data.pop(name)
                break
    return model.model_validate(data)


class NormalizedEvent(BaseModel):
    """An immutable, normalized record of one on-chain log.

    Attributes:
        id: ``{network}-{transaction_hash}-{log_index}``, the idempotency key
        network: Network the log was emitted on
        block_number: Block containing the log
        transaction_hash: Transaction hash (lowercase hex)
        log_index: Position of the log in its block
        event_name: Decoded event name
        args: JSON-safe decoded arguments (integers as decimal strings)
        explorer_url: Transaction link on the network's block explorer
        campaign_id: Lowercase bytes32 campaign id, if the event has one
        block_timestamp: Block time, or ingestion time if the lookup failed
    """
    model_config = ConfigDict(frozen=True)

    id: str
    network: str
    block_number: int
    transaction_hash: str
    log_index: int
    event_name: str
    args: Dict[str, Any]
    explorer_url: Optional[str] = None
    campaign_id: Optional[str] = None
    block_timestamp: datetime

    @field_validator("network", "transaction_hash")
    @classmethod
    def lowercase(cls, v: str) -> str:
        """Ensure identifiers are lowercase."""
        return v.lower()

    @staticmethod
    def make_id(network: str, transaction_hash: str, log_index: int) -> str:
        return f"{network}-{transaction_hash}-{log_index}"

    @property
    def typed_args(self) -> EventArgs:
        return parse_event_args(self.event_name, self.args)

    def creator(self) -> Optional[str]:
        """Creator address of a CampaignCreated event, by field priority."""
        creator = pick_first(self.args, CREATOR_FIELDS)
        return creator.lower() if isinstance(creator, str) else None
