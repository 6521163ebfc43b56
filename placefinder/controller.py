"""Incremental location search for one input field.

``SearchController`` keeps what the user sees (text, suggestion list,
highlight) consistent with asynchronous lookups and with the rule that
coordinates are only trusted while the field shows the label they were
committed with.

Everything runs on one asyncio event loop.  Input handlers (``input``,
``key``, ``focus``, ``blur``, ``select``) are synchronous and must be
called from inside that loop; network work happens in tasks the
controller owns:

* a debounce task per keystroke, cancelled by the next keystroke;
* a lookup task per issued ``Query``, whose result is applied only if its
  ``request_id`` is still the latest one issued;
* a resolution task per selection, discarded if the text was edited or
  another selection started in the meantime;
* a blur grace task, which clears unresolved text after a short delay.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Set

from placefinder import constants
from placefinder.errors import LocationError
from placefinder.models import Candidate, Coordinates, Query, SearchState, Selection
from placefinder.sources import LocationSource

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, Optional[Coordinates]], None]
RenderCallback = Callable[[SearchState], None]


class SearchPhase(str, Enum):
    idle = "idle"
    typing = "typing"
    resolving = "resolving"
    suggesting = "suggesting"
    committed = "committed"


class SearchController:

    def __init__(self, source: LocationSource, on_change: ChangeCallback, *,
                 on_render: Optional[RenderCallback] = None,
                 debounce_seconds: float = constants.DEBOUNCE_SECONDS,
                 blur_grace_seconds: float = constants.BLUR_GRACE_SECONDS,
                 request_timeout: float = constants.REQUEST_TIMEOUT,
                 min_query_length: int = constants.MIN_QUERY_LENGTH,
                 has_coordinates: bool = False):
        self.source = source
        self.on_change = on_change
        self.on_render = on_render
        self.debounce_seconds = debounce_seconds
        self.blur_grace_seconds = blur_grace_seconds
        self.request_timeout = request_timeout
        self.min_query_length = min_query_length

        self.state = SearchState(has_valid_selection=has_coordinates)

        self._debounce_task: Optional[asyncio.Task] = None
        self._blur_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        # Bumped by every edit and every selection; a pending resolution
        # only commits if the generation it started with is still current.
        self._generation = 0
        self._selecting = False
        self._closed = False

    # ------------------------------------------------------------------
    # Input events
    # ------------------------------------------------------------------

    def input(self, text: str) -> None:
        """Handle the field's text changing to *text*."""
        self._ensure_open()
        state = self.state
        if text == state.text:
            return

        state.text = text
        self._generation += 1
        self._selecting = False
        if state.has_valid_selection or state.selection is not None:
            logger.debug("Text diverged from committed label; clearing coordinates")
            state.has_valid_selection = False
            state.selection = None
        self.on_change(text, None)

        self._cancel(self._debounce_task)
        self._debounce_task = self._spawn(self._debounce(text))
        state.show_suggestions = True
        state.selected_index = -1
        self._render()

    def key(self, name: str) -> Optional[asyncio.Future]:
        """Handle a navigation key: ``down``, ``up``, ``enter`` or ``escape``.

        Returns the pending selection when ``enter`` commits a candidate.
        """
        self._ensure_open()
        state = self.state
        if not state.show_suggestions or not state.candidates:
            return None

        name = name.lower()
        if name == "down":
            state.selected_index = min(state.selected_index + 1, len(state.candidates) - 1)
        elif name == "up":
            state.selected_index = max(state.selected_index - 1, -1)
        elif name == "enter":
            if state.highlighted is None:
                return None
            return self.select(state.highlighted)
        elif name == "escape":
            state.show_suggestions = False
        else:
            return None
        self._render()
        return None

    def focus(self) -> None:
        self._ensure_open()
        self._cancel(self._blur_task)
        if len(self.state.text) >= self.min_query_length:
            self.state.show_suggestions = True
            self._render()

    def blur(self) -> None:
        """Clear unresolved text once the grace delay has passed.

        The delay lets a click on a suggestion, which also blurs the field,
        start its selection first.
        """
        self._ensure_open()
        self._cancel(self._blur_task)
        self._blur_task = self._spawn(self._blur_after_grace())

    def select(self, candidate: Candidate) -> "asyncio.Future[Optional[Selection]]":
        """Commit *candidate*, resolving its coordinates first if needed.

        A candidate that already has coordinates is committed before this
        returns.  Otherwise the list is dismissed at once and the details
        lookup runs in a task.  Either way the returned awaitable yields the
        committed ``Selection``, or None when resolution failed or was
        superseded.
        """
        self._ensure_open()
        self._generation += 1
        self._selecting = True
        self._supersede_lookups()
        self._cancel(self._debounce_task)
        self.state.show_suggestions = False
        self.state.selected_index = -1

        if candidate.is_resolved:
            done = asyncio.get_running_loop().create_future()
            done.set_result(self._commit(candidate))
            return done

        self._render()
        return self._spawn(self._resolve_and_commit(candidate, self._generation))

    def set_has_coordinates(self, has_coordinates: bool) -> None:
        """Sync with the consumer's view of whether coordinates are stored."""
        self.state.has_valid_selection = has_coordinates
        if not has_coordinates:
            self.state.selection = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SearchPhase:
        state = self.state
        if state.has_valid_selection and state.text:
            return SearchPhase.committed
        if not state.text:
            return SearchPhase.idle
        debouncing = self._debounce_task is not None and not self._debounce_task.done()
        if state.is_loading or debouncing or self._selecting:
            return SearchPhase.resolving
        if state.show_suggestions and state.candidates:
            return SearchPhase.suggesting
        return SearchPhase.typing

    async def wait_idle(self) -> None:
        """Wait until no debounce, lookup, resolution or blur task is pending."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def close(self) -> None:
        """Cancel all pending work.  The controller cannot be used afterwards."""
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def _debounce(self, text: str) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if len(text.strip()) < self.min_query_length:
            self._supersede_lookups()
            self.state.candidates = []
            self._render()
            return
        self._issue(text)

    def _issue(self, text: str) -> Query:
        state = self.state
        query = Query(text=text, request_id=state.last_request_id + 1)
        state.last_request_id = query.request_id
        state.is_loading = True
        state.search_failed = False
        self._render()
        logger.debug(f"Issuing lookup #{query.request_id} for '{text}'")
        self._spawn(self._lookup(query))
        return query

    async def _lookup(self, query: Query) -> None:
        failed = False
        try:
            candidates: List[Candidate] = list(await asyncio.wait_for(
                self.source.search(query.text), self.request_timeout))
        except asyncio.TimeoutError:
            logger.warning(f"Lookup #{query.request_id} timed out after {self.request_timeout}s")
            candidates, failed = [], True
        except LocationError as exc:
            logger.warning(f"Lookup #{query.request_id} failed: {exc}")
            candidates, failed = [], True
        except Exception:
            logger.exception(f"Lookup #{query.request_id} raised unexpectedly")
            candidates, failed = [], True

        state = self.state
        if self._closed or query.request_id != state.last_request_id:
            logger.debug(f"Discarding stale response #{query.request_id} "
                         f"(latest is #{state.last_request_id})")
            return

        state.candidates = candidates
        state.is_loading = False
        state.search_failed = failed
        state.selected_index = -1
        self._render()

    async def _resolve_and_commit(self, candidate: Candidate,
                                  generation: int) -> Optional[Selection]:
        resolved: Optional[Candidate]
        try:
            resolved = await asyncio.wait_for(
                self.source.resolve(candidate), self.request_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Resolving '{candidate.label}' timed out")
            resolved = None
        except LocationError as exc:
            logger.warning(f"Resolving '{candidate.label}' failed: {exc}")
            resolved = None
        except Exception:
            logger.exception(f"Resolving '{candidate.label}' raised unexpectedly")
            resolved = None

        if self._closed or generation != self._generation:
            logger.debug(f"Discarding superseded selection of '{candidate.label}'")
            return None

        if resolved is None or not resolved.is_resolved:
            self._clear()
            return None
        return self._commit(resolved)

    def _commit(self, resolved: Candidate) -> Selection:
        self._selecting = False
        selection = Selection(label=resolved.label, coordinates=resolved.coordinates)
        state = self.state
        state.text = selection.label
        state.selection = selection
        state.has_valid_selection = True
        state.candidates = []
        state.show_suggestions = False
        self.on_change(selection.label, selection.coordinates)
        self._render()
        logger.info(f"Committed '{selection.label}' at {selection.coordinates}")
        return selection

    async def _blur_after_grace(self) -> None:
        await asyncio.sleep(self.blur_grace_seconds)
        state = self.state
        if self._selecting:
            return
        if state.text and not state.has_valid_selection:
            logger.debug(f"Field left without a selection; clearing '{state.text}'")
            self._clear()
        elif state.show_suggestions:
            state.show_suggestions = False
            self._render()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _clear(self) -> None:
        """Reset to an empty, unresolved field and tell the consumer."""
        state = self.state
        self._generation += 1
        self._selecting = False
        self._cancel(self._debounce_task)
        self._supersede_lookups()
        state.text = ""
        state.selection = None
        state.has_valid_selection = False
        state.candidates = []
        state.selected_index = -1
        state.show_suggestions = False
        self.on_change("", None)
        self._render()

    def _supersede_lookups(self) -> None:
        """Make every in-flight lookup stale without issuing a new one."""
        self.state.last_request_id += 1
        self.state.is_loading = False

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is not None and not task.done():
            task.cancel()

    def _render(self) -> None:
        if self.on_render is not None:
            self.on_render(self.state)

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("SearchController is closed")
