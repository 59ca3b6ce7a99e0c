from __future__ import annotations

from typing import Any

from parkshare.models import ALL_TYPES, ParkingSpot, SpotType, ViewMode
from parkshare.services import filter_spots, find_spot, project_to_map
from parkshare.state import AppState

BRAND = "ParkShare Simplified"
FILTER_OPTIONS: list[str] = [
    ALL_TYPES,
    SpotType.GARAGE.value,
    SpotType.DRIVEWAY.value,
    SpotType.UNDERGROUND.value,
    SpotType.LOT.value,
]
NAV_TABS = [
    (ViewMode.GUEST, "Find Parking"),
    (ViewMode.BOOKINGS, "My Bookings"),
    (ViewMode.HOST, "Switch to Hosting"),
]
EMPTY_LIST_TEXT = "No spots found in this category."
EMPTY_BOOKINGS_TEXT = "No active reservations found."


def _filter_value(state: AppState) -> str:
    f = state.active_filter
    return f.value if isinstance(f, SpotType) else str(f)


def navbar(state: AppState) -> dict[str, Any]:
    return {
        "brand": BRAND,
        "tabs": [
            {"view": v.value, "label": label, "active": state.view == v}
            for v, label in NAV_TABS
        ],
    }


def spot_card(state: AppState, spot: ParkingSpot) -> dict[str, Any]:
    rec = state.recommendation_for(spot.id)
    return {
        **spot.model_dump(mode="json"),
        "ai_pick": rec is not None,
        "recommendation_reason": rec.reason if rec else None,
        "grounding_link": rec.grounding_link if rec else None,
        "hovered": state.hovered_spot_id == spot.id,
    }


def map_marker(state: AppState, spot: ParkingSpot) -> dict[str, Any]:
    x, y = project_to_map(spot.location, state.settings)
    return {
        "spot_id": spot.id,
        "label": f"${spot.price_per_hour:g}",
        "x": round(x, 2),
        "y": round(y, 2),
        "recommended": state.recommendation_for(spot.id) is not None,
        "hovered": state.hovered_spot_id == spot.id,
    }


def browse_view(state: AppState) -> dict[str, Any]:
    visible = filter_spots(state.spots, state.active_filter)
    return {
        "filters": [
            {"type": t, "active": t == _filter_value(state)} for t in FILTER_OPTIONS
        ],
        "search": {"query": state.search_query, "pending": state.is_searching},
        "show_map": state.show_map,
        "spots": [spot_card(state, s) for s in visible],
        "empty_text": EMPTY_LIST_TEXT if not visible else None,
        "map": {
            "label": state.settings.map_label,
            "markers": [map_marker(state, s) for s in visible],
        },
    }


def bookings_view(state: AppState) -> dict[str, Any]:
    rows = []
    for b in state.bookings:
        spot = find_spot(state.spots, b.spot_id)
        rows.append(
            {
                **b.model_dump(mode="json"),
                "spot_title": spot.title if spot else None,
                "spot_address": spot.address if spot else None,
                "spot_image_url": spot.image_url if spot else None,
                "scheduled_for": b.start_time.strftime("%B %d, %Y at %I:%M %p"),
            }
        )
    return {
        "bookings": rows,
        "empty_text": EMPTY_BOOKINGS_TEXT if not rows else None,
    }


def host_view(state: AppState) -> dict[str, Any]:
    return {
        "draft": state.draft.model_dump(mode="json"),
        "spot_types": [t.value for t in SpotType if t != SpotType.STREET],
        "describe_button": "WRITING..." if state.is_generating else "WRITE WITH AI",
        "price_button": "THINKING..." if state.is_pricing else "AI SUGGEST",
        "generating": state.is_generating,
        "pricing": state.is_pricing,
    }


def booking_modal(state: AppState) -> dict[str, Any] | None:
    spot = state.selected_spot
    if spot is None:
        return None
    hours = state.settings.booking_hours
    return {
        "spot": spot.model_dump(mode="json"),
        "duration_label": f"{hours} Hours",
        "total_price": spot.price_per_hour * hours,
    }


def render(state: AppState) -> dict[str, Any]:
    """Full view model for the current tab."""
    if state.view == ViewMode.HOST:
        body = host_view(state)
    elif state.view == ViewMode.BOOKINGS:
        body = bookings_view(state)
    else:
        body = browse_view(state)

    return {
        "view": state.view.value,
        "navbar": navbar(state),
        "body": body,
        "modal": booking_modal(state),
    }
