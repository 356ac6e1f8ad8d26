"""Pydantic schemas for validating inbound team payloads."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Payload(BaseModel):
    # Accept both snake_case and the camelCase names used by clients
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid"
    )


class TeamRegistration(_Payload):
    """Request body for registering a team."""

    name: str = Field(
        description="Display name of the airline team",
        min_length=1,
        max_length=64
    )
    team_id: Optional[str] = Field(
        default=None,
        description="Optional caller-chosen identifier"
    )


class TeamDecisionUpdate(_Payload):
    """A partial update of a team's decisions. Omitted fields are left unchanged."""

    price: Optional[float] = Field(
        default=None,
        description="Retail price per seat",
        ge=0
    )
    fix_seats_requested: Optional[int] = Field(
        default=None,
        description="Number of fixed-price seats to bid for",
        ge=0
    )
    fix_seat_bid_price: Optional[float] = Field(
        default=None,
        description="Offered price per fixed seat",
        ge=0
    )
    pooling_allocation: Optional[float] = Field(
        default=None,
        description="Percent of total aircraft seats to back with pooled inventory",
        ge=0,
        le=100
    )

    def changes(self) -> dict:
        """Return only the fields that were provided."""
        return self.model_dump(exclude_none=True)
