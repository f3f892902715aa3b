from __future__ import annotations

from storefinder.config import LocationPolicy, Settings
from storefinder.models import Coordinates, SearchPage
from storefinder.services.geolocation import GeolocationProvider, ReportedPosition
from storefinder.services.session import LOCATION_NOT_READY, FinderSession
from storefinder.services.suggestions import FuzzySuggestions

PUNE = Coordinates(latitude=18.52, longitude=73.86)


def _session(fake_api, settings, source=None, policy=LocationPolicy.FALLBACK):
    source = source or ReportedPosition(PUNE.latitude, PUNE.longitude)
    provider = GeolocationProvider(source, policy=policy, fallback=Coordinates(latitude=18.5204, longitude=73.8567))
    return FinderSession(fake_api, provider, settings=settings)


def test_search_then_load_more_renders_decorated_results(fake_api, stores, settings, run):
    fake_api.pages[("bike repair", 1)] = SearchPage(stores=stores("bike", 3), total_pages=2)
    fake_api.pages[("bike repair", 2)] = SearchPage(stores=stores("bike", 2, start=3), total_pages=2)
    session = _session(fake_api, settings)

    async def scenario():
        await session.start()
        session.type("bike repair")
        await session.commit()
        first = session.view()
        await session.load_more()
        return first, session.view()

    first, second = run(scenario())
    assert first.location_status == "located"
    assert first.committed_query == "bike repair"
    assert len(first.results) == 3
    assert first.has_more is True
    assert first.can_load_more is True

    assert [v.store.id for v in second.results] == ["bike-0", "bike-1", "bike-2", "bike-3", "bike-4"]
    assert second.results[0].distance_km == 0.0
    assert second.results[1].distance_km > 0
    assert second.results[0].links.call == "tel:+919876500000"
    assert second.results[0].links.chat == "https://wa.me/919876500000"
    assert second.has_more is False
    assert second.phase == "idle"
    assert second.outcome == "success"
    assert second.can_load_more is False


def test_blank_search_browses_default_query(fake_api, stores, settings, run):
    fake_api.pages[("advertisement", 1)] = SearchPage(stores=stores("ad", 1), total_pages=1)
    session = _session(fake_api, settings)

    async def scenario():
        await session.start()
        await session.commit()

    run(scenario())
    assert fake_api.calls[0][0] == "advertisement"


def test_blocked_location_disables_search_until_reported(fake_api, stores, settings, run):
    fake_api.pages[("shoes", 1)] = SearchPage(stores=stores("shoe", 2), total_pages=1)
    session = _session(fake_api, settings, source=ReportedPosition(denied=True), policy=LocationPolicy.BLOCK)

    async def scenario():
        await session.start()
        blocked = session.view()
        await session.select("shoes")
        waiting = session.view()
        await session.set_location(PUNE)
        return blocked, waiting, session.view()

    blocked, waiting, ready = run(scenario())
    assert blocked.location_status == "unavailable"
    assert blocked.advisory
    assert waiting.advisory == LOCATION_NOT_READY
    assert waiting.results == []
    assert fake_api.calls == [("shoes", PUNE, 1)]
    assert ready.location_status == "located"
    assert len(ready.results) == 2
    assert ready.advisory is None


def test_fallback_location_is_used_for_search(fake_api, stores, settings, run):
    fake_api.pages[("atm", 1)] = SearchPage(stores=stores("atm", 1), total_pages=1)
    session = _session(fake_api, settings, source=ReportedPosition(denied=True))

    async def scenario():
        await session.start()
        await session.select("atm")

    run(scenario())
    assert session.view().location_status == "fallback"
    assert fake_api.calls[0][1] == Coordinates(latitude=18.5204, longitude=73.8567)


def test_location_change_resets_committed_search(fake_api, stores, settings, run):
    mumbai = Coordinates(latitude=19.076, longitude=72.8777)
    fake_api.pages[("cafe", 1)] = SearchPage(stores=stores("cafe", 3), total_pages=3)
    fake_api.pages[("cafe", 2)] = SearchPage(stores=stores("cafe", 3, start=3), total_pages=3)
    session = _session(fake_api, settings)

    async def scenario():
        await session.start()
        await session.select("cafe")
        await session.load_more()
        await session.set_location(PUNE)
        unchanged = len(fake_api.calls)
        await session.set_location(mumbai)
        return unchanged

    unchanged = run(scenario())
    assert unchanged == 2
    assert fake_api.calls[-1] == ("cafe", mumbai, 1)
    view = session.view()
    assert view.page == 1
    assert len(view.results) == 3


def test_suggestions_show_up_in_view(fake_api, settings, run):
    fake_api.suggestions["bi"] = ["Bike Repair"]
    session = _session(fake_api, settings)

    async def scenario():
        await session.start()
        session.type("bi")
        await session.query.wait_idle()
        shown = session.view()
        session.dismiss_suggestions()
        return shown, session.view()

    shown, dismissed = run(scenario())
    assert [s.label for s in shown.suggestions] == ["Bike Repair"]
    assert shown.query_text == "bi"
    assert dismissed.suggestions == []


def test_fuzzy_mode_matches_loaded_store_names(fake_api, stores, run):
    settings = Settings(debounce_s=0.0, suggestion_mode="fuzzy", fuzzy_max_distance=2)
    fake_api.pages[("bike", 1)] = SearchPage(stores=stores("bike", 2), total_pages=1)
    session = _session(fake_api, settings)
    assert isinstance(session.query.source, FuzzySuggestions)

    async def scenario():
        await session.start()
        await session.select("bike")
        session.type("bike store 1")
        await session.query.wait_idle()

    run(scenario())
    assert [s.label for s in session.query.suggestions] == ["Bike Store 0", "Bike Store 1"]
    assert fake_api.autocomplete_calls == []


def test_distance_order_is_a_view_option(fake_api, stores, settings, run):
    fake_api.pages[("cafe", 1)] = SearchPage(stores=list(reversed(stores("cafe", 3))), total_pages=1)
    session = _session(fake_api, settings)

    async def scenario():
        await session.start()
        await session.select("cafe")

    run(scenario())
    assert [v.store.id for v in session.view().results] == ["cafe-2", "cafe-1", "cafe-0"]
    nearest = session.view(order="distance").results
    assert [v.store.id for v in nearest] == ["cafe-0", "cafe-1", "cafe-2"]
    assert nearest[0].distance_km == 0.0


def test_auto_search_commits_after_typing_pauses(fake_api, stores, run):
    settings = Settings(debounce_s=0.0, auto_search=True)
    fake_api.pages[("shoes", 1)] = SearchPage(stores=stores("shoe", 3), total_pages=2)
    fake_api.pages[("shoes", 2)] = SearchPage(stores=stores("shoe", 3, start=3), total_pages=2)
    fake_api.pages[("bike", 1)] = SearchPage(stores=stores("bike", 1), total_pages=1)
    session = _session(fake_api, settings)

    async def scenario():
        await session.start()
        session.type("shoes")
        await session.query.wait_idle()
        await session.load_more()
        paged = session.view()
        session.type("bike")
        await session.query.wait_idle()
        return paged, session.view()

    paged, typed = run(scenario())
    assert paged.page == 2
    assert paged.load_count == 1
    assert typed.committed_query == "bike"
    assert typed.page == 1
    assert typed.load_count == 0
    assert [v.store.id for v in typed.results] == ["bike-0"]
    assert fake_api.calls[-1] == ("bike", PUNE, 1)


def test_typing_without_auto_search_keeps_results(fake_api, stores, settings, run):
    fake_api.pages[("shoes", 1)] = SearchPage(stores=stores("shoe", 2), total_pages=1)
    session = _session(fake_api, settings)

    async def scenario():
        await session.start()
        await session.select("shoes")
        session.type("bike")
        await session.query.wait_idle()

    run(scenario())
    view = session.view()
    assert view.query_text == "bike"
    assert view.committed_query == "shoes"
    assert len(view.results) == 2
    assert [c[0] for c in fake_api.calls] == ["shoes"]
