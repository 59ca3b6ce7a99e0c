from datetime import datetime, timezone

from parkshare import views
from parkshare.models import AIRecommendation, Booking, ViewMode


def test_browse_view_defaults(state):
    data = views.render(state)
    assert data["view"] == "guest"
    assert data["navbar"]["brand"] == "ParkShare Simplified"
    assert [t["active"] for t in data["navbar"]["tabs"]] == [True, False, False]

    body = data["body"]
    assert [f["type"] for f in body["filters"]] == ["All", "Garage", "Driveway", "Underground", "Lot"]
    assert body["filters"][0]["active"] is True
    assert body["empty_text"] is None
    assert body["map"]["label"] == "SAN FRANCISCO, CA"
    assert [m["label"] for m in body["map"]["markers"]] == ["$12", "$25", "$8", "$6"]


def test_empty_category(state):
    state.set_filter("Lot")
    body = views.render(state)["body"]
    assert body["spots"] == []
    assert body["empty_text"] == "No spots found in this category."
    assert body["map"]["markers"] == []


def test_dangling_recommendation_matches_nothing(state):
    state.recommendations = [
        AIRecommendation(spot_id="99", reason="Ghost spot."),
        AIRecommendation(spot_id="3", reason="Quiet."),
    ]
    cards = views.render(state)["body"]["spots"]
    assert [c["id"] for c in cards if c["ai_pick"]] == ["3"]
    assert len(cards) == 4


def test_hovered_marker(state):
    state.hover("2")
    markers = {m["spot_id"]: m for m in views.render(state)["body"]["map"]["markers"]}
    assert markers["2"]["hovered"] is True
    assert markers["1"]["hovered"] is False
    for m in markers.values():
        assert 0 <= m["x"] <= 100
        assert 0 <= m["y"] <= 100


def test_bookings_view_tolerates_missing_spot(state):
    state.set_view(ViewMode.BOOKINGS)
    assert views.render(state)["body"]["empty_text"] == "No active reservations found."

    start = datetime(2026, 3, 14, 15, 5, tzinfo=timezone.utc)
    state.bookings.insert(
        0,
        Booking(id="x", spot_id="gone", user_id="user-1", start_time=start, end_time=start, total_price=10),
    )
    row = views.render(state)["body"]["bookings"][0]
    assert row["spot_title"] is None
    assert row["status"] == "upcoming"
    assert row["scheduled_for"] == "March 14, 2026 at 03:05 PM"


def test_host_view_buttons(state):
    state.set_view(ViewMode.HOST)
    body = views.render(state)["body"]
    assert body["describe_button"] == "WRITE WITH AI"
    assert body["price_button"] == "AI SUGGEST"
    assert "Street" not in body["spot_types"]
    assert body["draft"]["type"] == "Driveway"

    state._pending["description"] += 1
    assert views.render(state)["body"]["describe_button"] == "WRITING..."


def test_modal(state):
    state.select_spot("2")
    modal = views.render(state)["modal"]
    assert modal["spot"]["title"] == "Private Driveway near Stadium"
    assert modal["total_price"] == 50
