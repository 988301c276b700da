"""Coin endpoints (party results, spending, balance, history)."""

import logging

from fastapi import APIRouter, Depends

from coin_server.api.auth import require_secret
from coin_server.api.models import (
    CoinsResponse,
    EventModel,
    EventsResponse,
    OkResponse,
    PartyResultRequest,
    SpendRequest,
)
from coin_server.api.routes.utils import get_store
from coin_server.db.constants import DEFAULT_EVENT_LIMIT
from coin_server.db.store import LedgerStore
from coin_server.ledger import award_party_result, get_balance, list_events, spend_coins

logger = logging.getLogger(__name__)


def router() -> APIRouter:
    """Build the coin router."""
    api = APIRouter(dependencies=[Depends(require_secret)])

    @api.post("/partyResult", response_model=OkResponse)
    def party_result(request: PartyResultRequest, store: LedgerStore = Depends(get_store)):
        """
        Record a party game result.

        Credits ``coins`` and updates the player's last and best score for
        ``gameId`` in one transaction.
        """
        result = award_party_result(
            store,
            request.phone,
            request.game_id,
            score=request.score,
            coins=request.coins,
        )
        logger.info(
            "partyResult %s game=%s coins=%+d balance=%d",
            result.phone,
            result.game_id,
            result.event.amount,
            result.coins,
        )
        return OkResponse()

    @api.post("/spend", response_model=OkResponse)
    def spend(request: SpendRequest, store: LedgerStore = Depends(get_store)):
        """
        Spend coins.

        Rejected with 400 ``insufficient funds`` when the balance is too low;
        nothing is written in that case.
        """
        result = spend_coins(store, request.phone, request.amount, request.reason)
        logger.info("spend %s amount=%d balance=%d", result.phone, result.amount, result.coins)
        return OkResponse()

    @api.get("/coins", response_model=CoinsResponse)
    def coins(phone: str | None = None, store: LedgerStore = Depends(get_store)):
        """Return the current balance, 0 for unknown players."""
        return CoinsResponse(coins=get_balance(store, phone))

    @api.get("/events", response_model=EventsResponse)
    def events(
        phone: str | None = None,
        limit: int = DEFAULT_EVENT_LIMIT,
        store: LedgerStore = Depends(get_store),
    ):
        """Return the player's event history, newest first."""
        rows = list_events(store, phone, limit=limit)
        return EventsResponse(
            events=[
                EventModel(
                    seq=event.seq,
                    event_id=event.event_id,
                    source=event.source,
                    amount=event.amount,
                    score=event.score,
                    created_at=event.created_at,
                )
                for event in rows
            ]
        )

    return api
