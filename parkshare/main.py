from __future__ import annotations

import os
import random
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from parkshare.ai import GeminiClient, TextModel
from parkshare.config import Settings, settings as default_settings
from parkshare.data_loader import load_seed_spots
from parkshare.exceptions import ParkShareError, parkshare_exception_handler
from parkshare.logging_config import get_logger, setup_logging
from parkshare.models import (
    ALL_TYPES,
    Booking,
    DraftUpdate,
    FilterChange,
    ListingDraft,
    ParkingSpot,
    SearchQuery,
    SpotType,
    ViewChange,
)
from parkshare.services import filter_spots
from parkshare.state import AppState, SessionStore
from parkshare import views

SESSION_COOKIE = "parkshare_session"

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, model: TextModel | None = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.log_level, settings.log_format)

    def new_state() -> AppState:
        seed = load_seed_spots(settings.seed_path)
        rng = random.Random(settings.random_seed) if settings.random_seed is not None else random.Random()
        state = AppState(spots=seed.spots, settings=settings, rng=rng)
        state.reset_draft()
        return state

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        seed = load_seed_spots(settings.seed_path)
        logger.info("Loaded %d seed parking spots from %s", len(seed.spots), seed.source)
        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY is not set; AI features will use fallbacks")
        yield
        app.state.sessions.clear()

    app = FastAPI(title="ParkShare API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.model = model or GeminiClient.from_settings(settings)
    app.state.sessions = SessionStore(new_state)

    app.add_exception_handler(ParkShareError, parkshare_exception_handler)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def get_state(request: Request, response: Response) -> AppState:
        cookie = request.cookies.get(SESSION_COOKIE)
        session_id, state = request.app.state.sessions.get(cookie)
        if session_id != cookie:
            response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
            logger.info("Started new session", extra={"session_id": session_id})
        return state

    async def get_model(request: Request) -> TextModel:
        return request.app.state.model

    @app.get("/health")
    def health(request: Request):
        return {
            "status": "ok",
            "sessions": len(request.app.state.sessions),
            "ai_configured": bool(settings.gemini_api_key),
        }

    @app.get("/view")
    async def current_view(state: AppState = Depends(get_state)) -> dict:
        return views.render(state)

    @app.post("/view")
    async def switch_view(change: ViewChange, state: AppState = Depends(get_state)) -> dict:
        state.set_view(change.view)
        return views.render(state)

    @app.post("/filter")
    async def set_filter(change: FilterChange, state: AppState = Depends(get_state)) -> dict:
        state.set_filter(change.type)
        return views.render(state)

    @app.post("/map/toggle")
    async def toggle_map(state: AppState = Depends(get_state)) -> dict:
        state.toggle_map()
        return views.render(state)

    @app.get("/spots", response_model=list[ParkingSpot])
    async def list_spots(type: str = ALL_TYPES, state: AppState = Depends(get_state)) -> list[ParkingSpot]:
        """
        List the session's parking spots.

        - **type**: one of Driveway, Garage, Underground, Street, Lot or All
        """
        if type != ALL_TYPES and type not in {t.value for t in SpotType}:
            raise HTTPException(status_code=422, detail=f"Unknown spot type: {type}")
        return filter_spots(state.spots, type)

    @app.post("/spots/{spot_id}/hover")
    async def hover_spot(spot_id: str, state: AppState = Depends(get_state)) -> dict:
        state.hover(spot_id)
        return views.render(state)

    @app.delete("/spots/hover")
    async def unhover_spot(state: AppState = Depends(get_state)) -> dict:
        state.hover(None)
        return views.render(state)

    @app.post("/spots/{spot_id}/select")
    async def select_spot(spot_id: str, state: AppState = Depends(get_state)) -> dict:
        state.select_spot(spot_id)
        return views.render(state)

    @app.post("/modal/close")
    async def close_modal(state: AppState = Depends(get_state)) -> dict:
        state.close_modal()
        return views.render(state)

    @app.post("/search")
    async def smart_search(
        body: SearchQuery,
        state: AppState = Depends(get_state),
        model: TextModel = Depends(get_model),
    ) -> dict:
        """
        Ask the text model which spots match a natural-language request.

        Failures degrade to an empty recommendation list.
        """
        await state.search(model, body.query)
        return views.render(state)

    @app.post("/bookings", response_model=Booking)
    async def confirm_booking(spot_id: str | None = None, state: AppState = Depends(get_state)) -> Booking:
        """Book the spot open in the modal, or ``spot_id`` when given, for the standard duration."""
        return state.confirm_booking(spot_id)

    @app.get("/bookings", response_model=list[Booking])
    async def list_bookings(state: AppState = Depends(get_state)) -> list[Booking]:
        return state.bookings

    @app.patch("/host/draft", response_model=ListingDraft)
    async def update_draft(update: DraftUpdate, state: AppState = Depends(get_state)) -> ListingDraft:
        return state.update_draft(update)

    @app.post("/host/draft/description", response_model=ListingDraft)
    async def ai_description(
        state: AppState = Depends(get_state),
        model: TextModel = Depends(get_model),
    ) -> ListingDraft:
        await state.ai_generate_description(model)
        return state.draft

    @app.post("/host/draft/price", response_model=ListingDraft)
    async def ai_price(
        state: AppState = Depends(get_state),
        model: TextModel = Depends(get_model),
    ) -> ListingDraft:
        await state.ai_suggest_price(model)
        return state.draft

    @app.post("/host/listings", response_model=ParkingSpot, status_code=201)
    async def publish_listing(state: AppState = Depends(get_state)) -> ParkingSpot:
        return state.publish_listing()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
