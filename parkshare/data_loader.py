from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Iterable

from pydantic import ValidationError

from parkshare.logging_config import get_logger
from parkshare.models import Location, ParkingSpot, SpotType

logger = get_logger(__name__)

_UNSPLASH = "https://images.unsplash.com/{photo}?auto=format&fit=crop&q=80&w=800"

INITIAL_SPOTS: list[ParkingSpot] = [
    ParkingSpot(
        id="1",
        title="Downtown Secure Underground",
        description=(
            "Modern, well-lit underground parking right in the financial district. "
            "24/7 security and wide bays."
        ),
        address="450 Montgomery St, San Francisco, CA",
        price_per_hour=12,
        type=SpotType.UNDERGROUND,
        features=["EV Charging", "CCTV", "Security Guard"],
        image_url=_UNSPLASH.format(photo="photo-1506521781263-d8422e82f27a"),
        rating=4.9,
        reviews_count=128,
        host_id="host-1",
        location=Location(lat=37.7937, lng=-122.4025),
    ),
    ParkingSpot(
        id="2",
        title="Private Driveway near Stadium",
        description=(
            "Perfect for game days. Just a 5-minute walk from the entrance. "
            "No blocking, easy access."
        ),
        address="24 Willie Mays Plaza, San Francisco, CA",
        price_per_hour=25,
        type=SpotType.DRIVEWAY,
        features=["Easy Access", "Gated"],
        image_url=_UNSPLASH.format(photo="photo-1621944190310-e3cca1564bd7"),
        rating=4.7,
        reviews_count=45,
        host_id="host-2",
        location=Location(lat=37.7786, lng=-122.3893),
    ),
    ParkingSpot(
        id="3",
        title="Clean Residential Garage",
        description="Extra wide garage in a quiet neighborhood. Safe for high-end vehicles.",
        address="1200 Pacific Ave, San Francisco, CA",
        price_per_hour=8,
        type=SpotType.GARAGE,
        features=["Indoors", "Quiet"],
        image_url=_UNSPLASH.format(photo="photo-1590674899484-d5640e854abe"),
        rating=4.8,
        reviews_count=67,
        host_id="host-3",
        location=Location(lat=37.7950, lng=-122.4172),
    ),
    ParkingSpot(
        id="4",
        title="Mission District Spot",
        description="Standard driveway space. Close to popular bars and restaurants.",
        address="890 Valencia St, San Francisco, CA",
        price_per_hour=6,
        type=SpotType.DRIVEWAY,
        features=["Affordable"],
        image_url=_UNSPLASH.format(photo="photo-1573348722427-f1d6819fdf98"),
        rating=4.5,
        reviews_count=89,
        host_id="host-4",
        location=Location(lat=37.7593, lng=-122.4215),
    ),
]


@dataclass(frozen=True)
class LoadResult:
    spots: list[ParkingSpot]
    source: str


def _row_get(row: dict, keys: Iterable[str], default: object | None = None) -> object | None:
    for k in keys:
        if k in row and row[k] is not None and row[k] != "":
            return row[k]
    return default


def _normalize_spot(row: dict, idx: int) -> ParkingSpot | None:
    location = row.get("location") if isinstance(row.get("location"), dict) else {}
    lat = _row_get(location, ["lat", "latitude"], _row_get(row, ["lat", "latitude"]))
    lng = _row_get(location, ["lng", "lon", "longitude"], _row_get(row, ["lng", "lon", "longitude"]))
    if lat is None or lng is None:
        return None

    features = row.get("features") or []
    if isinstance(features, str):
        features = [f.strip() for f in features.split(",")]

    try:
        return ParkingSpot(
            id=str(_row_get(row, ["id", "spot_id"], idx + 1)),
            title=str(_row_get(row, ["title", "name"], "")),
            description=str(_row_get(row, ["description", "desc"], "")),
            address=str(_row_get(row, ["address"], "")),
            price_per_hour=_row_get(row, ["price_per_hour", "pricePerHour", "price"]),
            type=_row_get(row, ["type", "spot_type"]),
            features=features,
            image_url=str(_row_get(row, ["image_url", "imageUrl"], "")),
            rating=_row_get(row, ["rating"], 5.0),
            reviews_count=_row_get(row, ["reviews_count", "reviewsCount"], 0),
            host_id=str(_row_get(row, ["host_id", "hostId"], "host-unknown")),
            location=Location(lat=lat, lng=lng),
        )
    except ValidationError as e:
        logger.warning("Skipping seed row %d: %s", idx, e.errors()[0].get("msg", e))
        return None


def load_spots_from_file(path: str) -> LoadResult:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Seed spot file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext != ".json":
        raise ValueError(f"Unsupported file extension: {ext} (expected .json)")

    with open(path, "r", encoding="utf-8") as f:
        obj = json.load(f)

    if isinstance(obj, dict) and isinstance(obj.get("spots"), list):
        obj = obj["spots"]
    if not isinstance(obj, list):
        raise ValueError(f"Unsupported JSON structure in {path}")

    spots: list[ParkingSpot] = []
    seen: set[str] = set()
    for idx, row in enumerate(obj):
        if not isinstance(row, dict):
            continue
        s = _normalize_spot(row, idx)
        if s is None:
            continue
        if s.id in seen:
            logger.warning("Skipping duplicate seed spot id %s", s.id)
            continue
        seen.add(s.id)
        spots.append(s)
    return LoadResult(spots=spots, source=path)


def load_seed_spots(path: str | None = None) -> LoadResult:
    """Return a fresh copy of the seed spots.

    With ``path`` the spots come from a JSON file; otherwise the built-in
    San Francisco set is used.
    """
    if path:
        return load_spots_from_file(path)
    return LoadResult(spots=[s.model_copy(deep=True) for s in INITIAL_SPOTS], source="builtin")
