import asyncio

import pytest

from placefinder.controller import SearchController, SearchPhase
from placefinder.errors import ProviderError, ResolutionError
from placefinder.models import Candidate, Coordinates, Selection

from conftest import PARIS, FakeSource, eventually

DEBOUNCE = 0.02
GRACE = 0.02

NEW_YORK = Candidate("New York", "nominatim", Coordinates(40.7128, -74.006), 7)
PREDICTION = Candidate("Paris, France", "google", None, "p1")


def _controller(source, recorder, **kwargs):
    options = dict(debounce_seconds=DEBOUNCE, blur_grace_seconds=GRACE,
                   request_timeout=0.5)
    options.update(kwargs)
    return SearchController(source, recorder, **options)


async def _type(controller, text, interval=0.001):
    for i in range(1, len(text) + 1):
        controller.input(text[:i])
        await asyncio.sleep(interval)


@pytest.mark.asyncio
async def test_fast_typing_issues_one_lookup(recorder):
    source = FakeSource({"Paris": [PARIS]})
    controller = _controller(source, recorder, debounce_seconds=0.05)

    await _type(controller, "Paris")
    assert controller.phase == SearchPhase.resolving
    await controller.wait_idle()

    assert source.calls == ["Paris"]
    assert controller.state.candidates == [PARIS]
    assert controller.phase == SearchPhase.suggesting
    # every keystroke was reported, none with coordinates
    assert [label for label, _ in recorder.calls] == ["P", "Pa", "Par", "Pari", "Paris"]
    assert all(coords is None for _, coords in recorder.calls)


@pytest.mark.asyncio
async def test_short_text_clears_without_lookup(recorder):
    source = FakeSource({"Pa": [PARIS]})
    controller = _controller(source, recorder)

    controller.input("P")
    await controller.wait_idle()

    assert source.calls == []
    assert controller.state.candidates == []
    assert not controller.state.is_loading


@pytest.mark.asyncio
async def test_stale_response_is_discarded(recorder):
    slow = asyncio.Event()
    source = FakeSource({"Par": [NEW_YORK], "Paris": [PARIS]})
    source.gates["Par"] = slow
    controller = _controller(source, recorder)

    controller.input("Par")
    await eventually(lambda: source.calls == ["Par"])
    controller.input("Paris")
    await eventually(lambda: controller.state.candidates == [PARIS])
    request_id = controller.state.last_request_id

    slow.set()
    await controller.wait_idle()

    assert controller.state.candidates == [PARIS]
    assert controller.state.last_request_id == request_id
    assert not controller.state.is_loading


@pytest.mark.asyncio
async def test_scenario_a_zero_results(recorder):
    controller = _controller(FakeSource({"Pa": []}), recorder)

    controller.input("Pa")
    await controller.wait_idle()

    state = controller.state
    assert state.candidates == []
    assert not state.is_loading
    assert not state.search_failed
    assert controller.phase == SearchPhase.typing


@pytest.mark.asyncio
async def test_lookup_failure_is_a_silent_empty_list(recorder):
    source = FakeSource({"Paris": ProviderError("proxy", "HTTP 502")})
    controller = _controller(source, recorder)

    controller.input("Paris")
    await controller.wait_idle()

    assert controller.state.candidates == []
    assert controller.state.search_failed
    assert not controller.state.is_loading
    assert recorder.last == ("Paris", None)


@pytest.mark.asyncio
async def test_hanging_lookup_times_out(recorder):
    source = FakeSource({"Paris": [PARIS]})
    source.gates["Paris"] = asyncio.Event()  # never set
    controller = _controller(source, recorder, request_timeout=0.05)

    controller.input("Paris")
    await eventually(lambda: controller.state.is_loading)
    await controller.wait_idle()

    assert not controller.state.is_loading
    assert controller.state.search_failed


@pytest.mark.asyncio
async def test_scenario_b_select_resolved_candidate(recorder):
    controller = _controller(FakeSource({"Paris": [PARIS]}), recorder)
    await _type(controller, "Paris")
    await controller.wait_idle()

    selection = await controller.select(controller.state.candidates[0])

    expected = Selection("Paris, Île-de-France, France", Coordinates(48.8566, 2.3522))
    assert selection == expected
    assert recorder.last == ("Paris, Île-de-France, France", Coordinates(48.8566, 2.3522))
    assert controller.state.text == "Paris, Île-de-France, France"
    assert controller.state.has_valid_selection
    assert controller.state.candidates == []
    assert controller.phase == SearchPhase.committed


@pytest.mark.asyncio
async def test_selecting_twice_yields_same_selection(recorder):
    source = FakeSource(details=Coordinates(48.8566, 2.3522))
    controller = _controller(source, recorder)

    first = await controller.select(PREDICTION)
    second = await controller.select(PREDICTION)

    assert first == second == Selection("Paris, France", Coordinates(48.8566, 2.3522))
    assert recorder.calls[-1] == recorder.calls[-2]


@pytest.mark.asyncio
async def test_unresolved_candidate_is_resolved_before_commit(recorder):
    gate = asyncio.Event()
    source = FakeSource({"Paris": [PREDICTION]}, details=Coordinates(48.8566, 2.3522))
    source.resolve_gate = gate
    controller = _controller(source, recorder)
    controller.input("Paris")
    await controller.wait_idle()

    task = controller.select(PREDICTION)
    assert not controller.state.show_suggestions
    assert not controller.state.has_valid_selection
    assert controller.phase == SearchPhase.resolving

    gate.set()
    selection = await task
    assert selection.coordinates == Coordinates(48.8566, 2.3522)
    assert source.resolve_calls == [PREDICTION]


@pytest.mark.asyncio
async def test_scenario_c_details_failure_clears_field(recorder):
    source = FakeSource({"Paris": [PREDICTION]}, details=ResolutionError("HTTP 502"))
    controller = _controller(source, recorder)
    controller.input("Paris")
    await controller.wait_idle()

    assert await controller.select(PREDICTION) is None

    assert controller.state.text == ""
    assert not controller.state.has_valid_selection
    assert recorder.last == ("", None)


@pytest.mark.asyncio
async def test_scenario_d_edit_after_commit_clears_coordinates(recorder):
    source = FakeSource({"New York": [NEW_YORK]})
    controller = _controller(source, recorder)
    await _type(controller, "New York")
    await controller.wait_idle()
    await controller.select(NEW_YORK)
    assert controller.phase == SearchPhase.committed

    controller.input("New Yor")

    # synchronous: no await between the edit and these checks
    assert recorder.last == ("New Yor", None)
    assert not controller.state.has_valid_selection
    assert controller.state.selection is None
    assert controller.phase == SearchPhase.resolving
    assert source.calls == ["New York"]
    await controller.wait_idle()
    assert source.calls == ["New York", "New Yor"]


@pytest.mark.asyncio
async def test_edit_during_resolution_discards_it(recorder):
    gate = asyncio.Event()
    source = FakeSource(details=Coordinates(48.8566, 2.3522))
    source.resolve_gate = gate
    controller = _controller(source, recorder)
    controller.input("Paris")

    task = controller.select(PREDICTION)
    controller.input("Pariss")
    gate.set()

    assert await task is None
    await controller.wait_idle()
    assert controller.state.text == "Pariss"
    assert not controller.state.has_valid_selection
    assert all(coords is None for _, coords in recorder.calls)


@pytest.mark.asyncio
async def test_keyboard_navigation_is_bounded(recorder):
    others = [Candidate(f"Paris {i}", "nominatim", Coordinates(i, i), i) for i in range(2)]
    controller = _controller(FakeSource({"Paris": [PARIS, *others]}), recorder)
    controller.input("Paris")
    await controller.wait_idle()

    assert controller.key("enter") is None
    for _ in range(5):
        controller.key("down")
    assert controller.state.selected_index == 2
    for _ in range(5):
        controller.key("up")
    assert controller.state.selected_index == -1

    controller.key("down")
    selection = await controller.key("enter")
    assert selection.label == PARIS.label


@pytest.mark.asyncio
async def test_escape_keeps_text_and_selection(recorder):
    controller = _controller(FakeSource({"Paris": [PARIS]}), recorder)
    controller.input("Paris")
    await controller.wait_idle()
    calls = len(recorder.calls)

    controller.key("escape")

    assert not controller.state.show_suggestions
    assert controller.state.text == "Paris"
    assert controller.state.candidates == [PARIS]
    assert len(recorder.calls) == calls
    assert controller.key("down") is None
    assert controller.state.selected_index == -1


@pytest.mark.asyncio
async def test_blur_without_selection_clears_text(recorder):
    controller = _controller(FakeSource({"Paris": [PARIS]}), recorder)
    controller.input("Paris")
    await controller.wait_idle()

    controller.blur()
    assert controller.state.text == "Paris"
    await controller.wait_idle()

    assert controller.state.text == ""
    assert recorder.last == ("", None)


@pytest.mark.asyncio
async def test_click_during_blur_grace_wins(recorder):
    gate = asyncio.Event()
    source = FakeSource({"Paris": [PREDICTION]}, details=Coordinates(48.8566, 2.3522))
    source.resolve_gate = gate
    controller = _controller(source, recorder)
    controller.input("Paris")
    await controller.wait_idle()

    controller.blur()
    task = controller.select(PREDICTION)
    await asyncio.sleep(GRACE * 3)  # grace expires while details are pending
    gate.set()

    assert await task == Selection("Paris, France", Coordinates(48.8566, 2.3522))
    await controller.wait_idle()
    assert controller.state.text == "Paris, France"
    assert recorder.last == ("Paris, France", Coordinates(48.8566, 2.3522))


@pytest.mark.asyncio
async def test_blur_after_commit_keeps_selection(recorder):
    controller = _controller(FakeSource(), recorder)
    await controller.select(PARIS)

    controller.blur()
    await controller.wait_idle()

    assert controller.state.text == PARIS.label
    assert controller.state.has_valid_selection


@pytest.mark.asyncio
async def test_close_cancels_pending_work(recorder):
    source = FakeSource({"Paris": [PARIS]})
    controller = _controller(source, recorder)
    controller.input("Paris")
    controller.close()
    await asyncio.sleep(DEBOUNCE * 3)

    assert source.calls == []
    with pytest.raises(RuntimeError):
        controller.input("Lyon")


@pytest.mark.asyncio
async def test_hanging_resolution_times_out_and_clears(recorder):
    source = FakeSource({"Paris": [PREDICTION]}, details=Coordinates(48.8566, 2.3522))
    source.resolve_gate = asyncio.Event()  # never set
    controller = _controller(source, recorder, request_timeout=0.05)
    controller.input("Paris")
    await controller.wait_idle()

    assert await controller.select(PREDICTION) is None

    assert controller.state.text == ""
    assert not controller.state.has_valid_selection
    assert recorder.last == ("", None)
    assert controller.phase == SearchPhase.idle


@pytest.mark.asyncio
async def test_focus_within_grace_keeps_text(recorder):
    controller = _controller(FakeSource({"Paris": [PARIS]}), recorder)
    controller.input("Paris")
    await controller.wait_idle()

    controller.blur()
    controller.focus()
    await asyncio.sleep(GRACE * 3)
    await controller.wait_idle()

    assert controller.state.text == "Paris"
    assert controller.state.show_suggestions
    assert recorder.last == ("Paris", None)


@pytest.mark.asyncio
async def test_external_reset_drops_committed_selection(recorder):
    controller = _controller(FakeSource(), recorder)
    await controller.select(PARIS)
    assert controller.phase == SearchPhase.committed

    controller.set_has_coordinates(False)

    assert not controller.state.has_valid_selection
    assert controller.state.selection is None
    assert controller.phase == SearchPhase.typing

    controller.blur()
    await controller.wait_idle()
    assert controller.state.text == ""
    assert recorder.last == ("", None)
