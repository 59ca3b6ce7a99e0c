import asyncio
import threading

import pytest

from parkshare.exceptions import AIServiceError, ListingValidationError, SpotNotFoundError
from parkshare.models import AIRecommendation, BookingStatus, DraftUpdate, SpotType, ViewMode
from parkshare.state import AppState, SessionStore

from conftest import FakeModel


def test_initial_state(state):
    assert state.view == ViewMode.GUEST
    assert len(state.spots) == 4
    assert state.bookings == []
    assert not state.is_searching
    assert state.selected_spot is None


def test_set_view_discards_recommendations(state):
    state.recommendations = [AIRecommendation(spot_id="1", reason="Nice.")]
    state.set_view(ViewMode.BOOKINGS)
    assert state.view == ViewMode.BOOKINGS
    assert state.recommendations == []


def test_set_filter(state):
    state.set_filter("Garage")
    assert state.active_filter == SpotType.GARAGE
    state.set_filter("All")
    assert state.active_filter == "All"
    with pytest.raises(ValueError):
        state.set_filter("Helipad")


def test_toggle_map(state):
    assert state.toggle_map() is True
    assert state.toggle_map() is False


def test_select_unknown_spot(state):
    with pytest.raises(SpotNotFoundError):
        state.select_spot("99")
    assert state.selected_spot_id is None


def test_search_sets_recommendations(state):
    model = FakeModel('[{"spotId": "3", "reason": "Quiet and safe."}]')
    recs = asyncio.run(state.search(model, "quiet garage"))
    assert [r.spot_id for r in recs] == ["3"]
    assert state.recommendation_for("3").reason == "Quiet and safe."
    assert state.recommendation_for("1") is None
    assert state.search_query == "quiet garage"
    assert not state.is_searching


def test_blank_search_clears_without_calling_model(state):
    state.recommendations = [AIRecommendation(spot_id="1", reason="Nice.")]
    model = FakeModel(error=AssertionError("model should not be called"))
    assert asyncio.run(state.search(model, "   ")) == []
    assert model.prompts == []


def test_failed_search_clears_pending_flag(state):
    model = FakeModel(error=AIServiceError("down"))
    assert asyncio.run(state.search(model, "anything")) == []
    assert not state.is_searching


def test_newer_search_supersedes_older(state):
    release = threading.Event()

    def reply(prompt):
        if '"first"' in prompt:
            release.wait(5)
            return '[{"spotId": "1", "reason": "old"}]'
        release.set()
        return '[{"spotId": "2", "reason": "new"}]'

    model = FakeModel(reply)

    async def run():
        return await asyncio.gather(state.search(model, "first"), state.search(model, "second"))

    asyncio.run(run())
    assert [(r.spot_id, r.reason) for r in state.recommendations] == [("2", "new")]
    assert not state.is_searching


def test_view_change_discards_in_flight_search(state):
    async def run():
        model = FakeModel('[{"spotId": "1", "reason": "late"}]')
        task = asyncio.create_task(state.search(model, "downtown"))
        await asyncio.sleep(0)
        state.set_view(ViewMode.HOST)
        await task

    asyncio.run(run())
    assert state.recommendations == []


def test_confirm_booking_prepends_and_closes_modal(state):
    state.select_spot("1")
    first = state.confirm_booking()
    second = state.confirm_booking("4")

    assert state.bookings == [second, first]
    assert first.total_price == 24
    assert first.status == BookingStatus.UPCOMING
    assert first.id == "id-1"
    assert state.selected_spot_id is None


def test_confirm_booking_unknown_spot(state):
    with pytest.raises(SpotNotFoundError):
        state.confirm_booking("99")
    with pytest.raises(SpotNotFoundError):
        state.confirm_booking()
    assert state.bookings == []


def test_publish_empty_title_is_rejected(state):
    state.update_draft(DraftUpdate(address="1 Market St"))
    with pytest.raises(ListingValidationError):
        state.publish_listing()
    assert len(state.spots) == 4
    assert state.draft.address == "1 Market St"


def test_publish_listing(state):
    state.set_view(ViewMode.HOST)
    state.update_draft(DraftUpdate(title="SOMA Garage", address="1 Market St", type=SpotType.GARAGE))
    spot = state.publish_listing()

    assert state.spots[0] is spot
    assert len(state.spots) == 5
    assert spot.id == "id-1"
    assert state.view == ViewMode.GUEST
    assert state.draft.title == ""
    assert state.draft.price_per_hour == 10


def test_ai_helpers_need_an_address(state):
    model = FakeModel("10")
    with pytest.raises(ListingValidationError, match="address"):
        asyncio.run(state.ai_suggest_price(model))
    with pytest.raises(ListingValidationError, match="address"):
        asyncio.run(state.ai_generate_description(model))
    assert model.prompts == []


def test_ai_suggest_price_updates_draft(state):
    state.update_draft(DraftUpdate(address="1 Market St"))
    assert asyncio.run(state.ai_suggest_price(FakeModel("Around $18.50/hr"))) == 18.5
    assert state.draft.price_per_hour == 18.5
    assert not state.is_pricing


def test_ai_suggest_price_falls_back(state):
    state.update_draft(DraftUpdate(address="1 Market St"))
    assert asyncio.run(state.ai_suggest_price(FakeModel("no idea"))) == 12


def test_ai_generate_description_updates_draft(state):
    state.update_draft(DraftUpdate(address="1 Market St", title="Keep me"))
    text = asyncio.run(state.ai_generate_description(FakeModel("Safe. Convenient.")))
    assert text == "Safe. Convenient."
    assert state.draft.description == "Safe. Convenient."
    assert state.draft.title == "Keep me"
    assert not state.is_generating


def test_session_store_creates_and_reuses(state):
    store = SessionStore(lambda: state)
    sid, got = store.get(None)
    assert got is state
    assert store.get(sid) == (sid, state)
    other, _ = store.get("unknown")
    assert other != sid
    assert len(store) == 2


def test_session_store_evicts_oldest(seed_spots):
    store = SessionStore(lambda: AppState(spots=list(seed_spots)), max_sessions=2)
    a, _ = store.get(None)
    b, _ = store.get(None)
    store.get(a)
    c, _ = store.get(None)
    assert len(store) == 2
    new_b, _ = store.get(b)
    assert new_b != b


@pytest.mark.parametrize("field", ["description", "price_per_hour"])
def test_publish_discards_ai_answer_for_old_draft(state, field):
    release = threading.Event()

    def reply(prompt):
        release.wait(5)
        return "Stale text about 1 Old St." if field == "description" else "$40"

    model = FakeModel(reply)
    state.update_draft(DraftUpdate(title="Old spot", address="1 Old St"))

    async def run():
        helper = state.ai_generate_description if field == "description" else state.ai_suggest_price
        task = asyncio.create_task(helper(model))
        await asyncio.sleep(0)
        state.publish_listing()
        release.set()
        await task

    asyncio.run(run())
    assert state.spots[0].title == "Old spot"
    assert state.draft.title == ""
    assert state.draft.description == ""
    assert state.draft.price_per_hour == 10
    assert not state.is_generating
    assert not state.is_pricing
