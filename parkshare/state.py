from __future__ import annotations

import random
import secrets
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from typing import Callable

from starlette.concurrency import run_in_threadpool

from parkshare.ai import TextModel, generate_description, recommend_spots, suggest_price
from parkshare.config import Settings, settings as default_settings
from parkshare.exceptions import ListingValidationError, SpotNotFoundError
from parkshare.logging_config import get_logger
from parkshare.models import (
    ALL_TYPES,
    AIRecommendation,
    Booking,
    DraftUpdate,
    ListingDraft,
    ParkingSpot,
    SpotType,
    ViewMode,
)
from parkshare.services import IdGenerator, create_booking, create_listing, find_spot, new_id

logger = get_logger(__name__)

SEARCH = "search"
DESCRIPTION = "description"
PRICE = "price"


@dataclass
class AppState:
    """Everything one browser session can see and change.

    Mutated only from the event loop. AI calls run in a worker thread; each
    kind of call is single-flight, so a newer request supersedes an older one
    and the older result is dropped.
    """

    spots: list[ParkingSpot]
    settings: Settings = field(default_factory=lambda: default_settings)
    rng: random.Random = field(default_factory=random.Random)
    id_factory: IdGenerator = new_id

    view: ViewMode = ViewMode.GUEST
    show_map: bool = False
    bookings: list[Booking] = field(default_factory=list)
    search_query: str = ""
    recommendations: list[AIRecommendation] = field(default_factory=list)
    active_filter: SpotType | str = ALL_TYPES
    selected_spot_id: str | None = None
    hovered_spot_id: str | None = None
    draft: ListingDraft = field(default_factory=ListingDraft)

    _latest: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    _pending: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    @property
    def is_searching(self) -> bool:
        return self._pending[SEARCH] > 0

    @property
    def is_generating(self) -> bool:
        return self._pending[DESCRIPTION] > 0

    @property
    def is_pricing(self) -> bool:
        return self._pending[PRICE] > 0

    @property
    def selected_spot(self) -> ParkingSpot | None:
        if self.selected_spot_id is None:
            return None
        return find_spot(self.spots, self.selected_spot_id)

    def _supersede(self, kind: str) -> int:
        self._latest[kind] += 1
        return self._latest[kind]

    async def _single_flight(self, kind: str, fn: Callable, *args):
        token = self._supersede(kind)
        self._pending[kind] += 1
        try:
            result = await run_in_threadpool(fn, *args)
        finally:
            self._pending[kind] -= 1
        if token != self._latest[kind]:
            logger.info("Discarding superseded %s result", kind)
            return None, False
        return result, True

    # Navigation

    def set_view(self, view: ViewMode) -> None:
        self.view = ViewMode(view)
        self.recommendations = []
        self._supersede(SEARCH)

    def set_filter(self, spot_type: SpotType | str) -> None:
        self.active_filter = spot_type if spot_type == ALL_TYPES else SpotType(spot_type)

    def toggle_map(self) -> bool:
        self.show_map = not self.show_map
        return self.show_map

    def hover(self, spot_id: str | None) -> None:
        self.hovered_spot_id = spot_id

    def select_spot(self, spot_id: str) -> ParkingSpot:
        spot = find_spot(self.spots, spot_id)
        if spot is None:
            raise SpotNotFoundError(spot_id)
        self.selected_spot_id = spot.id
        return spot

    def close_modal(self) -> None:
        self.selected_spot_id = None

    # Guest actions

    async def search(self, model: TextModel, query: str) -> list[AIRecommendation]:
        self.search_query = query
        if not query.strip():
            self.recommendations = []
            self._supersede(SEARCH)
            return self.recommendations

        recs, current = await self._single_flight(SEARCH, recommend_spots, model, query, list(self.spots))
        if current:
            self.recommendations = recs
        return self.recommendations

    def recommendation_for(self, spot_id: str) -> AIRecommendation | None:
        for r in self.recommendations:
            if r.spot_id == spot_id:
                return r
        return None

    def confirm_booking(self, spot_id: str | None = None) -> Booking:
        spot_id = spot_id or self.selected_spot_id
        spot = find_spot(self.spots, spot_id) if spot_id else None
        if spot is None:
            raise SpotNotFoundError(spot_id or "")

        booking = create_booking(
            spot,
            user_id=self.settings.demo_user_id,
            hours=self.settings.booking_hours,
            id_factory=self.id_factory,
        )
        self.bookings.insert(0, booking)
        self.selected_spot_id = None
        logger.info("Booked spot %s for %s (total %.2f)", spot.id, booking.user_id, booking.total_price)
        return booking

    # Host actions

    def update_draft(self, update: DraftUpdate) -> ListingDraft:
        changes = update.model_dump(exclude_none=True)
        self.draft = ListingDraft.model_validate({**self.draft.model_dump(), **changes})
        return self.draft

    def reset_draft(self) -> None:
        self.draft = ListingDraft(price_per_hour=self.settings.default_draft_price)
        # Answers still in flight belong to the old draft.
        self._supersede(DESCRIPTION)
        self._supersede(PRICE)

    def _require_address(self) -> None:
        if not self.draft.address.strip():
            raise ListingValidationError("Enter an address first.")

    async def ai_generate_description(self, model: TextModel) -> str:
        self._require_address()
        text, current = await self._single_flight(DESCRIPTION, generate_description, model, self.draft.model_copy())
        if current:
            self.draft = self.draft.model_copy(update={"description": text})
        return self.draft.description

    async def ai_suggest_price(self, model: TextModel) -> float:
        self._require_address()
        price, current = await self._single_flight(
            PRICE,
            suggest_price,
            model,
            self.draft.address,
            self.draft.type.value,
            self.settings.fallback_price,
        )
        if current:
            self.draft = self.draft.model_copy(update={"price_per_hour": price})
        return self.draft.price_per_hour

    def publish_listing(self) -> ParkingSpot:
        spot = create_listing(
            self.draft,
            self.rng,
            host_id=self.settings.demo_user_id,
            id_factory=self.id_factory,
            s=self.settings,
        )
        self.spots.insert(0, spot)
        self.set_view(ViewMode.GUEST)
        self.reset_draft()
        logger.info("Published listing %s (%s)", spot.id, spot.title)
        return spot


class SessionStore:
    """In-memory ``AppState`` per session id, oldest evicted first."""

    def __init__(self, factory: Callable[[], AppState], max_sessions: int = 1000):
        self._factory = factory
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, AppState] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str | None) -> tuple[str, AppState]:
        if session_id and session_id in self._sessions:
            self._sessions.move_to_end(session_id)
            return session_id, self._sessions[session_id]

        session_id = secrets.token_urlsafe(16)
        self._sessions[session_id] = self._factory()
        while len(self._sessions) > self._max_sessions:
            self._sessions.popitem(last=False)
        return session_id, self._sessions[session_id]

    def clear(self) -> None:
        self._sessions.clear()
