from __future__ import annotations

import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from parkshare.config import Settings, settings as default_settings
from parkshare.exceptions import ListingValidationError
from parkshare.models import ALL_TYPES, Booking, BookingStatus, ListingDraft, Location, ParkingSpot, SpotType

IdGenerator = Callable[[], str]


def new_id() -> str:
    return uuid.uuid4().hex[:9]


def filter_spots(spots: Iterable[ParkingSpot], spot_type: SpotType | str = ALL_TYPES) -> list[ParkingSpot]:
    if spot_type == ALL_TYPES:
        return list(spots)
    wanted = SpotType(spot_type)
    return [s for s in spots if s.type == wanted]


def find_spot(spots: Iterable[ParkingSpot], spot_id: str) -> ParkingSpot | None:
    for s in spots:
        if s.id == spot_id:
            return s
    return None


def create_booking(
    spot: ParkingSpot,
    user_id: str = default_settings.demo_user_id,
    hours: int = default_settings.booking_hours,
    now: datetime | None = None,
    id_factory: IdGenerator = new_id,
) -> Booking:
    start = now or datetime.now(timezone.utc)
    return Booking(
        id=id_factory(),
        spot_id=spot.id,
        user_id=user_id,
        start_time=start,
        end_time=start + timedelta(hours=hours),
        total_price=spot.price_per_hour * hours,
        status=BookingStatus.UPCOMING,
    )


def validate_draft(draft: ListingDraft) -> None:
    if not draft.title.strip() or not draft.address.strip():
        raise ListingValidationError("Please fill in the title and address.")
    if not draft.price_per_hour > 0:
        raise ListingValidationError("Please enter a valid hourly rate.")


def jitter_location(rng: random.Random, s: Settings = default_settings) -> Location:
    """A point within ``location_jitter / 2`` degrees of the reference point."""
    return Location(
        lat=s.reference_lat + (rng.random() - 0.5) * s.location_jitter,
        lng=s.reference_lng + (rng.random() - 0.5) * s.location_jitter,
    )


def create_listing(
    draft: ListingDraft,
    rng: random.Random,
    host_id: str = default_settings.demo_user_id,
    id_factory: IdGenerator = new_id,
    s: Settings = default_settings,
) -> ParkingSpot:
    validate_draft(draft)
    spot_id = id_factory()
    return ParkingSpot(
        id=spot_id,
        title=draft.title.strip(),
        description=draft.description.strip(),
        address=draft.address.strip(),
        price_per_hour=draft.price_per_hour,
        type=draft.type,
        features=list(draft.features),
        image_url=s.placeholder_image_url.format(seed=spot_id),
        rating=5.0,
        reviews_count=0,
        host_id=host_id,
        location=jitter_location(rng, s),
    )


def project_to_map(location: Location, s: Settings = default_settings) -> tuple[float, float]:
    """Linear projection of a lat/lng onto the simulated map, in percent.

    Returns ``(x, y)`` clamped to ``0..100``; y grows southwards.
    """
    x = (location.lng - s.map_min_lng) / (s.map_max_lng - s.map_min_lng) * 100.0
    y = (s.map_max_lat - location.lat) / (s.map_max_lat - s.map_min_lat) * 100.0
    return (max(0.0, min(100.0, x)), max(0.0, min(100.0, y)))
