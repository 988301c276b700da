"""Shared DB-layer dataclasses for repository contracts."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class PartyScore:
    """
    Score state for one player in one party game.

    Attributes:
        game_id: Game identifier as submitted with the party result.
        last_score: Score of the most recent result.
        best_score: Highest score ever submitted (never decreases).
        updated_at: ISO-8601 UTC timestamp of the last result.
    """

    game_id: str
    last_score: int
    best_score: int
    updated_at: str | None = None


@dataclass(slots=True)
class PlayerRecord:
    """
    Materialized player ledger row.

    Attributes:
        phone: Normalized phone key.
        name: Display name (empty string when never supplied).
        coins: Current balance; equals the sum of the player's event amounts.
        last_source: Source tag of the last mutation.
        version: Write counter used for compare-and-swap updates.
        created_at: ISO-8601 UTC timestamp of the first write.
        updated_at: ISO-8601 UTC timestamp of the last write.
        party_scores: Per-game score state keyed by game id. Only populated
            by reads that ask for it.
    """

    phone: str
    name: str
    coins: int
    last_source: str | None
    version: int
    created_at: str
    updated_at: str
    party_scores: dict[str, PartyScore] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class PlayerEvent:
    """
    One immutable row of the append-only event log.

    Attributes:
        seq: Insertion order across the whole log.
        event_id: 32-character lowercase hex identifier (UUID4).
        phone: Player key the event belongs to.
        source: ``party:<gameId>``, ``spend`` or a caller-supplied reason.
        amount: Signed coin delta (positive credit, negative debit).
        score: Submitted score for party results, ``None`` otherwise.
        created_at: ISO-8601 UTC timestamp assigned inside the transaction.
    """

    seq: int
    event_id: str
    phone: str
    source: str
    amount: int
    score: int | None
    created_at: str


@dataclass(slots=True, frozen=True)
class LedgerTotals:
    """Balance-versus-log totals for one player, used by ledger verification."""

    phone: str
    coins: int
    event_total: int
    event_count: int
