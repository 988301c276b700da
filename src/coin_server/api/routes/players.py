"""Player endpoints (registration, profile)."""

from fastapi import APIRouter, Depends, HTTPException

from coin_server.api.auth import require_secret
from coin_server.api.models import OkResponse, PartyScoreModel, PlayerResponse, RegisterRequest
from coin_server.api.routes.utils import get_store
from coin_server.db.store import LedgerStore
from coin_server.ledger import get_player, register_player


def router() -> APIRouter:
    """Build the player router."""
    api = APIRouter(dependencies=[Depends(require_secret)])

    @api.post("/register", response_model=OkResponse)
    def register(request: RegisterRequest, store: LedgerStore = Depends(get_store)):
        """
        Create or refresh a player profile.

        Idempotent; balance and scores are left alone.
        """
        register_player(store, request.phone, request.name)
        return OkResponse()

    @api.get("/player", response_model=PlayerResponse)
    def player_profile(phone: str | None = None, store: LedgerStore = Depends(get_store)):
        """Return a player's profile with per-game scores."""
        player = get_player(store, phone)
        if player is None:
            raise HTTPException(status_code=404, detail="player not found")
        return PlayerResponse(
            phone=player.phone,
            name=player.name,
            coins=player.coins,
            last_source=player.last_source,
            created_at=player.created_at,
            updated_at=player.updated_at,
            party_scores={
                game_id: PartyScoreModel(
                    game_id=score.game_id,
                    last_score=score.last_score,
                    best_score=score.best_score,
                    updated_at=score.updated_at,
                )
                for game_id, score in player.party_scores.items()
            },
        )

    return api
