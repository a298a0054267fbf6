"""
Flight Search - Main Application
Search live Amadeus flight offers, then filter and sort them in the browser.
"""
import asyncio
import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

from nicegui import ui, app as nicegui_app

from amadeus_client import get_client
from api import router as api_router
from autocomplete import AirportSearch
from config import config_help_text, load_config
from filters import (
    SORT_MODES,
    STOP_BUCKETS,
    FilterState,
    active_filter_count,
    apply_filters,
    available_airlines,
    price_bounds,
    sort_offers,
)
from models import Airport, FlightOffer, Itinerary, SearchParams, format_duration, parse_offers
from price_history import chart_summary

logger = logging.getLogger(__name__)

GENERIC_ERROR = 'Something went wrong'
SKELETON_CARDS = 5

nicegui_app.include_router(api_router)


def _static_dir() -> Path:
    return Path(__file__).resolve().parent / 'static'


def _add_theme_assets() -> None:
    """Serve and include the custom theme."""
    static_dir = _static_dir()
    if static_dir.exists():
        nicegui_app.add_static_files('/static', str(static_dir))
        ui.add_head_html('<link rel="stylesheet" href="/static/theme.css">')
    ui.add_head_html('<meta name="viewport" content="width=device-width, initial-scale=1">')


def _fmt_time(value: Optional[datetime]) -> str:
    return value.strftime('%H:%M') if value else '--:--'


def _fmt_day(value: Optional[datetime]) -> str:
    return value.strftime('%b %d') if value else ''


class FlightSearchApp:
    """Main application controller."""

    def __init__(self):
        self.all_flights: List[FlightOffer] = []
        self.filtered_flights: List[FlightOffer] = []
        self.filters = FilterState()
        self.sort_mode = SORT_MODES[0]

        # Search form state
        self.origin: Optional[Airport] = None
        self.destination: Optional[Airport] = None
        self.trip_type = 'Round Trip'
        self.departure_date = ''
        self.return_date = ''
        self.adults = 1

        self.loading = False

        # UI refs
        self.search_button = None
        self.return_date_input = None
        self.results_area = None
        self.chart_container = None
        self.filters_container = None
        self.list_container = None

    def create_ui(self):
        """Build the complete UI."""
        _add_theme_assets()

        with ui.column().classes('wrap'):
            self._create_topbar()
            self._create_search_form()
            self.results_area = ui.column().classes('resultsArea')
            self._render_results()

    def _create_topbar(self):
        with ui.row().classes('topbar'):
            with ui.row().classes('brand'):
                with ui.element('div').classes('avatar'):
                    ui.icon('flight', color='white')
                with ui.column().style('gap:2px'):
                    ui.label('Flight Search Engine').classes('name')
                    ui.label('Find the best flight deals worldwide').classes('headline')

    # ------------------------------------------------------------------
    # Search form
    # ------------------------------------------------------------------

    def _create_search_form(self):
        today = date.today().isoformat()

        with ui.element('div').classes('panel').style('margin-top: 24px;'):
            ui.toggle(
                ['Round Trip', 'One Way'],
                value=self.trip_type,
                on_change=self._on_trip_type_change,
            ).props('no-caps unelevated')

            with ui.row().classes('formGrid'):
                AirportSearch('Origin', 'Where from?', on_select=lambda a: setattr(self, 'origin', a))
                AirportSearch('Destination', 'Where to?', on_select=lambda a: setattr(self, 'destination', a))

                ui.input(
                    label='Departure Date',
                    on_change=self._on_departure_change,
                ).props(f'type=date dense outlined min={today}')

                self.return_date_input = ui.input(
                    label='Return Date',
                    on_change=lambda e: setattr(self, 'return_date', e.value or ''),
                ).props(f'type=date dense outlined min={today}')

                ui.number(
                    label='Passengers',
                    value=self.adults,
                    min=1,
                    max=9,
                    precision=0,
                    on_change=lambda e: setattr(self, 'adults', max(1, min(9, int(e.value or 1)))),
                ).props('dense outlined')

            self.search_button = ui.button(
                'Search Flights',
                icon='search',
                on_click=self._on_search_click,
            ).classes('btn primary w-full').style('margin-top:16px')

    def _on_trip_type_change(self, e):
        self.trip_type = e.value
        self.return_date_input.set_visibility(self.trip_type == 'Round Trip')

    def _on_departure_change(self, e):
        self.departure_date = e.value or ''
        minimum = self.departure_date or date.today().isoformat()
        self.return_date_input.props(f'min={minimum}')

    def _build_params(self) -> Optional[SearchParams]:
        if not self.origin or not self.destination or not self.departure_date:
            return None
        return SearchParams(
            origin=self.origin.iata_code,
            destination=self.destination.iata_code,
            departure_date=self.departure_date,
            adults=self.adults,
            return_date=(self.return_date or None) if self.trip_type == 'Round Trip' else None,
        )

    async def _on_search_click(self):
        if self.loading:
            return

        params = self._build_params()
        if params is None:
            ui.notify('Please fill in all fields', type='negative', position='top-right')
            return

        self._set_loading(True)
        try:
            payload = await asyncio.to_thread(get_client().search_flights, params)
            offers = parse_offers(payload)
        except Exception:
            logger.exception('Flight search failed')
            offers = []

        if not offers:
            ui.notify(GENERIC_ERROR, type='negative', position='top-right')

        self.all_flights = offers
        self.filters = FilterState()
        self._set_loading(False)

    def _set_loading(self, loading: bool):
        self.loading = loading
        self.search_button.set_enabled(not loading)
        self.search_button.set_text('Searching Flights...' if loading else 'Search Flights')
        self._render_results()

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _render_results(self):
        if self.results_area is None:
            return
        self.results_area.clear()

        with self.results_area:
            if not self.loading and not self.all_flights:
                self._render_welcome()
                return

            self.chart_container = ui.element('div').classes('panel')
            with ui.row().classes('resultsGrid'):
                self.filters_container = ui.column().classes('panel filtersPanel')
                with ui.column().classes('resultsColumn'):
                    with ui.row().style('justify-content:flex-end; width:100%'):
                        ui.select(
                            SORT_MODES,
                            label='Sort',
                            value=self.sort_mode,
                            on_change=lambda e: self._set_and_rerender('sort_mode', e.value),
                        ).props('dense outlined').style('width: 224px')
                    self.list_container = ui.column().classes('dealList')

        self._refresh_filtered()

    def _render_welcome(self):
        with ui.element('div').classes('panel emptyState'):
            ui.icon('flight', size='48px').classes('accent')
            ui.label('Start Your Journey').classes('h2')
            ui.label(
                'Enter your travel details above to search for the best flight deals. '
                'We compare prices from hundreds of airlines to find you the perfect flight.'
            ).classes('muted')

    def _set_and_rerender(self, attr: str, value):
        setattr(self, attr, value)
        self._refresh_filtered()

    def _refresh_filtered(self):
        """Recompute the filtered view and redraw everything that depends on it."""
        self.filtered_flights = sort_offers(apply_filters(self.all_flights, self.filters), self.sort_mode)
        self._render_chart()
        self._render_filters()
        self._render_list()

    def _render_chart(self):
        self.chart_container.clear()
        if self.loading:
            with self.chart_container:
                ui.skeleton(height='256px').classes('w-full')
            return

        stats, points = chart_summary(self.filtered_flights)
        if stats is None:
            return

        with self.chart_container:
            with ui.row().style('justify-content:space-between; align-items:center; width:100%'):
                with ui.column().style('gap:2px'):
                    ui.label('Price Trends').classes('sectionTitle').style('margin:0')
                    ui.label('Illustrative trend around current prices · not historical data').classes('muted')
                with ui.row().classes('bestPrice'):
                    ui.icon('trending_down')
                    ui.label(f'Best: ${round(stats.lowest)}')

            ui.echart({
                'grid': {'left': 48, 'right': 16, 'top': 16, 'bottom': 32},
                'tooltip': {'trigger': 'axis'},
                'xAxis': {
                    'type': 'category',
                    'data': [datetime.fromisoformat(p.date).strftime('%b %d') for p in points],
                },
                'yAxis': {'type': 'value', 'scale': True, 'axisLabel': {'formatter': '${value}'}},
                'series': [{
                    'type': 'line',
                    'smooth': True,
                    'data': [p.price for p in points],
                    'lineStyle': {'width': 3},
                }],
            }).classes('priceChart')

            with ui.row().classes('statsRow'):
                for title, value, css in (
                    ('Lowest', stats.lowest, 'positive'),
                    ('Average', stats.average, ''),
                    ('Highest', stats.highest, 'negative'),
                ):
                    with ui.column().classes('stat'):
                        ui.label(title).classes('muted')
                        ui.label(f'${round(value)}').classes(f'statValue {css}')

    def _render_filters(self):
        self.filters_container.clear()
        low, high = price_bounds(self.all_flights)

        with self.filters_container:
            with ui.row().style('align-items:center; gap:8px'):
                ui.icon('filter_list')
                ui.label('Filters').classes('sectionTitle').style('margin:0')
                count = active_filter_count(self.filters, (low, high))
                if count:
                    ui.label(str(count)).classes('badge')

            ui.label('Price Range').classes('filterTitle')
            if self.loading:
                ui.skeleton(height='40px').classes('w-full')
            else:
                ceiling = self.filters.max_price if self.filters.max_price is not None else high
                # QSlider emits 'change' once the drag ends.
                ui.slider(
                    min=low,
                    max=max(high, low + 1),
                    value=ceiling,
                ).props('label').on('change', lambda e: self._on_price_change(e.args))
                with ui.row().style('justify-content:space-between; width:100%'):
                    ui.label(f'${low}').classes('muted')
                    ui.label(f'Up to ${round(ceiling)}').style('font-weight:600')
                    ui.label(f'${high}').classes('muted')

            ui.label('Stops').classes('filterTitle')
            if self.loading:
                for _ in range(3):
                    ui.skeleton(height='16px').classes('w-full')
            else:
                for bucket, text in STOP_BUCKETS.items():
                    ui.checkbox(
                        text,
                        value=bucket in self.filters.stops,
                        on_change=lambda e, b=bucket: self._toggle('stop', b),
                    )

            ui.label('Airlines').classes('filterTitle')
            if self.loading:
                for _ in range(SKELETON_CARDS):
                    ui.skeleton(height='16px').classes('w-full')
            else:
                for code in available_airlines(self.all_flights):
                    ui.checkbox(
                        code,
                        value=code in self.filters.airlines,
                        on_change=lambda e, c=code: self._toggle('airline', c),
                    )

            if active_filter_count(self.filters, (low, high)):
                ui.button('Clear all filters', on_click=self._clear_filters).props('flat no-caps')

    def _on_price_change(self, value):
        _, high = price_bounds(self.all_flights)
        value = float(value)
        self.filters.max_price = None if value >= high else value
        self._refresh_filtered()

    def _toggle(self, kind: str, value: str):
        if kind == 'stop':
            self.filters.toggle_stop(value)
        else:
            self.filters.toggle_airline(value)
        self._refresh_filtered()

    def _clear_filters(self):
        self.filters.clear()
        self._refresh_filtered()

    def _render_list(self):
        self.list_container.clear()

        with self.list_container:
            if self.loading:
                for _ in range(SKELETON_CARDS):
                    self._render_loading_card()
                return

            if not self.filtered_flights:
                with ui.element('div').classes('panel emptyState'):
                    ui.icon('error_outline', size='32px').classes('muted')
                    ui.label('No flights match your filters').classes('h2')
                    ui.label('Try adjusting your filters to see more results').classes('muted')
                return

            ui.label(f'Showing {len(self.filtered_flights)} of {len(self.all_flights)} flights').classes('muted')
            for offer in self.filtered_flights:
                self._render_flight_card(offer)

    def _render_loading_card(self):
        with ui.card().classes('dealCard'):
            with ui.row().style('gap:16px; width:100%; align-items:center'):
                with ui.column().style('flex:1; gap:8px'):
                    ui.skeleton(width='30%', height='16px')
                    ui.skeleton(width='100%', height='40px')
                ui.skeleton(width='96px', height='48px')

    def _render_flight_card(self, offer: FlightOffer):
        outbound = offer.outbound
        if outbound is None or not outbound.segments:
            return
        inbound = offer.inbound

        with ui.card().classes('dealCard'):
            with ui.row().style('justify-content:space-between; align-items:center; gap:24px; flex-wrap:wrap; width:100%'):
                with ui.column().style('flex:1; gap:12px'):
                    self._render_itinerary(outbound, 'flight_takeoff' if inbound else 'flight')
                    if inbound is not None and inbound.segments:
                        ui.separator()
                        self._render_itinerary(inbound, 'flight_land')

                with ui.column().style('align-items:flex-end; gap:4px'):
                    ui.label(f'${offer.price_total:,.2f}').classes('priceTag')
                    ui.label('per person').classes('muted')
                    ui.button('Select Flight').classes('btn primary small')

    def _render_itinerary(self, itinerary: Itinerary, icon: str):
        first = itinerary.segments[0]
        last = itinerary.segments[-1]

        with ui.row().style('align-items:center; gap:8px'):
            ui.icon(icon).classes('accent')
            ui.label(first.flight_code).classes('muted')

        with ui.row().style('align-items:center; gap:16px; width:100%'):
            self._render_endpoint(_fmt_time(first.departure_dt), first.departure_iata, _fmt_day(first.departure_dt))
            with ui.column().style('flex:1; align-items:center; gap:2px'):
                ui.label(format_duration(itinerary.duration)).classes('muted')
                ui.element('div').classes('routeLine')
                ui.label(itinerary.stops_text).classes('muted')
            self._render_endpoint(_fmt_time(last.arrival_dt), last.arrival_iata, _fmt_day(last.arrival_dt))

        if itinerary.via:
            ui.label(f"Via: {', '.join(itinerary.via)}").classes('muted')

    @staticmethod
    def _render_endpoint(time_text: str, iata: str, day: str):
        with ui.column().style('align-items:center; gap:0'):
            ui.label(time_text).style('font-size:1.5rem; font-weight:800')
            ui.label(iata).style('font-weight:600')
            ui.label(day).classes('muted')


@ui.page('/')
def index():
    """Main page route."""
    app_instance = FlightSearchApp()
    app_instance.create_ui()


if __name__ in {'__main__', '__mp_main__'}:
    logging.basicConfig(level=logging.INFO)

    if not load_config().has_amadeus:
        logger.warning(config_help_text())

    ui.run(
        title='Flight Search Engine',
        favicon='✈️',
        reload=False,
        port=int(os.getenv('PORT', '8080'))
    )
