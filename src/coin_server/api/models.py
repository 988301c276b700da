"""
Pydantic models for API requests and responses.

Request bodies use the field names game front-ends already send (``gameId``
in camelCase, everything else lower case). Fields are optional at the model
level so that a missing phone or amount reaches the ledger and is rejected
there with the same message as any other invalid input.

Models are organized into two categories:
1. Request models: Data sent FROM the client TO the server
2. Response models: Data sent FROM the server TO the client
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# REQUEST MODELS (Client → Server)
# ============================================================================


def _reject_bool(value: object) -> object:
    """Refuse JSON booleans where a number is expected."""
    if isinstance(value, bool):
        raise ValueError("must be an integer")
    return value


class RegisterRequest(BaseModel):
    """
    Registration request.

    Attributes:
        phone: Raw phone number; normalized server-side
        name: Optional display name
    """

    phone: str | int | None = None
    name: str | None = None


class PartyResultRequest(BaseModel):
    """
    Result of one party game for one player.

    Attributes:
        phone: Raw phone number; normalized server-side
        game_id: Game identifier (sent as ``gameId``)
        score: Score achieved, default 0
        coins: Coins to credit, default 0
    """

    model_config = ConfigDict(populate_by_name=True)

    phone: str | int | None = None
    game_id: str | int | None = Field(default=None, alias="gameId")
    score: int | None = None
    coins: int | None = None

    @field_validator("score", "coins", mode="before")
    @classmethod
    def reject_bools(cls, value: object) -> object:
        return _reject_bool(value)


class SpendRequest(BaseModel):
    """
    Request to spend coins.

    Attributes:
        phone: Raw phone number; normalized server-side
        amount: Positive number of coins to debit
        reason: Optional tag recorded as the event source
    """

    phone: str | int | None = None
    amount: int | None = None
    reason: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def reject_bools(cls, value: object) -> object:
        return _reject_bool(value)


# ============================================================================
# RESPONSE MODELS (Server → Client)
# ============================================================================


class OkResponse(BaseModel):
    """Acknowledgement for successful mutations."""

    ok: bool = True


class CoinsResponse(BaseModel):
    """Current balance for a player."""

    coins: int


class PartyScoreModel(BaseModel):
    """Score state for one game."""

    model_config = ConfigDict(populate_by_name=True)

    game_id: str = Field(alias="gameId")
    last_score: int = Field(alias="lastScore")
    best_score: int = Field(alias="bestScore")
    updated_at: str | None = Field(default=None, alias="updatedAt")


class PlayerResponse(BaseModel):
    """
    Player profile.

    Attributes:
        phone: Normalized player key
        name: Display name
        coins: Current balance
        last_source: Source tag of the last mutation
        party_scores: Per-game scores keyed by game id
    """

    model_config = ConfigDict(populate_by_name=True)

    phone: str
    name: str
    coins: int
    last_source: str | None = Field(default=None, alias="lastSource")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    party_scores: dict[str, PartyScoreModel] = Field(
        default_factory=dict, alias="partyScores"
    )


class EventModel(BaseModel):
    """One event-log row."""

    model_config = ConfigDict(populate_by_name=True)

    seq: int
    event_id: str = Field(alias="eventId")
    source: str
    amount: int
    score: int | None = None
    created_at: str = Field(alias="createdAt")


class EventsResponse(BaseModel):
    """Newest-first event history for a player."""

    events: list[EventModel]
