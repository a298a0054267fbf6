"""Debounced airport autocomplete.

`AirportLookup` holds the query/debounce/staleness logic and knows nothing
about the UI; `AirportSearch` is the NiceGUI widget on top of it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from nicegui import ui

from amadeus_client import get_client
from models import Airport

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.3
MIN_QUERY_LENGTH = 2


class Debouncer:
    """Run only the last of a burst of calls, ``delay`` seconds after it.

    Only the waiting period is cancellable; once ``fn`` has started it runs
    to completion.
    """

    def __init__(self, delay: float = DEBOUNCE_SECONDS):
        self.delay = delay
        self._task: Optional[asyncio.Task] = None

    def call(self, fn: Callable[..., Awaitable[None]], *args) -> asyncio.Task:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(fn, *args))
        return self._task

    async def _run(self, fn, *args) -> None:
        await asyncio.sleep(self.delay)
        # Past the wait: later calls no longer cancel this one.
        self._task = None
        await fn(*args)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()


async def search_airports(keyword: str) -> List[Airport]:
    records = await asyncio.to_thread(get_client().search_airports, keyword)
    return [Airport.from_api(r) for r in records]


class AirportLookup:
    """Keystroke handling for one autocomplete field.

    Results are delivered only for the latest query; a response that arrives
    after the user typed something else is dropped.
    """

    def __init__(
        self,
        search: Callable[[str], Awaitable[List[Airport]]],
        on_results: Callable[[str, List[Airport]], None],
        on_loading: Optional[Callable[[str], None]] = None,
        delay: float = DEBOUNCE_SECONDS,
        min_length: int = MIN_QUERY_LENGTH,
    ):
        self._search = search
        self._on_results = on_results
        self._on_loading = on_loading
        self._debouncer = Debouncer(delay)
        self.min_length = min_length
        self.latest_query = ''

    def update(self, query: str) -> Optional[asyncio.Task]:
        self.latest_query = query
        if len(query) < self.min_length:
            self._debouncer.cancel()
            self._on_results(query, [])
            return None
        return self._debouncer.call(self._run, query)

    def cancel(self) -> None:
        """Forget the pending query; in-flight responses will be dropped."""
        self._debouncer.cancel()
        self.latest_query = ''

    async def _run(self, query: str) -> None:
        if self._on_loading:
            self._on_loading(query)
        try:
            results = await self._search(query)
        except Exception as e:
            logger.warning(f"Airport lookup failed for {query!r}: {e}")
            results = []

        if query != self.latest_query:
            logger.debug(f"Dropping stale airport results for {query!r}")
            return
        self._on_results(query, results)


class AirportSearch:
    """Text input with a debounced airport dropdown."""

    def __init__(
        self,
        label: str,
        placeholder: str,
        on_select: Callable[[Optional[Airport]], None],
        search: Callable[[str], Awaitable[List[Airport]]] = search_airports,
    ):
        self.on_select = on_select
        self.selected: Optional[Airport] = None
        self.loading = False
        self.results: List[Airport] = []
        self.lookup = AirportLookup(search, self._show_results, self._show_loading)

        with ui.element('div').classes('airportSearch'):
            self.input = ui.input(
                label=label,
                placeholder=placeholder,
                on_change=self._on_change,
            ).props('dense outlined').classes('w-full')
            with self.input.add_slot('prepend'):
                ui.icon('flight').classes('muted')

            # Quasar closes the menu on any click outside of it.
            with ui.menu().props('no-parent-event no-focus fit') as self.menu:
                self.results_list = ui.list().props('dense separator').classes('airportResults')

    @property
    def code(self) -> str:
        return self.selected.iata_code if self.selected else ''

    def _on_change(self, e) -> None:
        value = (e.value or '').strip()
        if self.selected:
            if value == self.selected.display_name:
                return
            # The text no longer names the picked airport.
            self.selected = None
            self.on_select(None)
        self.lookup.update(value)

    def _show_loading(self, query: str) -> None:
        self.loading = True
        self._render()
        self.menu.open()

    def _show_results(self, query: str, results: List[Airport]) -> None:
        self.loading = False
        self.results = results
        if len(query) < self.lookup.min_length:
            self.menu.close()
            return
        self._render()
        self.menu.open()

    def _render(self) -> None:
        self.results_list.clear()
        with self.results_list:
            if self.loading:
                ui.item('Searching...').classes('muted')
                return
            if not self.results:
                ui.item('No airports found').classes('muted')
                return
            for airport in self.results:
                with ui.item(on_click=lambda a=airport: self._select(a)):
                    with ui.item_section():
                        ui.item_label(airport.display_name).style('font-weight:700')
                        ui.item_label(airport.detail_line).props('caption')

    def _select(self, airport: Airport) -> None:
        self.lookup.cancel()
        self.selected = airport
        self.input.value = airport.display_name
        self.menu.close()
        self.on_select(airport)
