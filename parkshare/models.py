from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class SpotType(str, Enum):
    DRIVEWAY = "Driveway"
    GARAGE = "Garage"
    UNDERGROUND = "Underground"
    STREET = "Street"
    LOT = "Lot"


# Wildcard filter value matching every SpotType.
ALL_TYPES = "All"


class BookingStatus(str, Enum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ViewMode(str, Enum):
    GUEST = "guest"
    HOST = "host"
    BOOKINGS = "bookings"


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        v = " ".join(str(v).split())
        if not v or v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


class ParkingSpot(BaseModel):
    id: str
    title: str
    description: str = ""
    address: str
    price_per_hour: float = Field(..., gt=0)
    type: SpotType
    features: list[str] = []
    image_url: str = ""
    rating: float = Field(5.0, ge=0, le=5)
    reviews_count: int = Field(0, ge=0)
    host_id: str
    location: Location

    @field_validator("features")
    @classmethod
    def _unique_features(cls, v: list[str]) -> list[str]:
        return _dedupe(v)


class Booking(BaseModel):
    id: str
    spot_id: str
    user_id: str
    start_time: datetime
    end_time: datetime
    total_price: float
    status: BookingStatus = BookingStatus.UPCOMING


class AIRecommendation(BaseModel):
    spot_id: str
    reason: str
    grounding_link: str | None = None


class ListingDraft(BaseModel):
    """Host form contents before publishing."""

    title: str = ""
    address: str = ""
    description: str = ""
    type: SpotType = SpotType.DRIVEWAY
    price_per_hour: float = 10.0
    features: list[str] = []

    @field_validator("features")
    @classmethod
    def _unique_features(cls, v: list[str]) -> list[str]:
        return _dedupe(v)


class DraftUpdate(BaseModel):
    title: str | None = None
    address: str | None = None
    description: str | None = None
    type: SpotType | None = None
    price_per_hour: float | None = Field(None, gt=0)
    features: list[str] | None = None


class ViewChange(BaseModel):
    view: ViewMode


class FilterChange(BaseModel):
    type: SpotType | str = ALL_TYPES

    @field_validator("type")
    @classmethod
    def _known_type(cls, v: SpotType | str) -> SpotType | str:
        if isinstance(v, SpotType) or v == ALL_TYPES:
            return v
        return SpotType(v)


class SearchQuery(BaseModel):
    query: str = ""
