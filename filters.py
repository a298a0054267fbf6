"""Client-side filtering and sorting of fetched flight offers.

Everything here works on the offers already in memory; nothing triggers a
provider call. Filters are recomputed from scratch on every change.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

from models import FlightOffer

# "2" also covers anything with more stops.
STOP_BUCKETS = {
    '0': 'Direct',
    '1': '1 Stop',
    '2': '2+ Stops',
}

SORT_MODES = ['Best price', 'Fastest', 'Fewest stops', 'Earliest departure']


def stop_bucket(stops: int) -> str:
    return str(min(max(stops, 0), 2))


@dataclass
class FilterState:
    """Current filter selections. Unset criteria impose no constraint."""
    max_price: Optional[float] = None
    stops: Set[str] = field(default_factory=set)
    airlines: Set[str] = field(default_factory=set)

    def toggle_stop(self, bucket: str) -> None:
        self.stops ^= {bucket}

    def toggle_airline(self, code: str) -> None:
        self.airlines ^= {code}

    def clear(self) -> None:
        self.max_price = None
        self.stops = set()
        self.airlines = set()


def matches(offer: FlightOffer, state: FilterState) -> bool:
    if state.max_price is not None and offer.price_total > state.max_price:
        return False
    if state.stops and stop_bucket(offer.stops) not in state.stops:
        return False
    if state.airlines and offer.airline not in state.airlines:
        return False
    return True


def apply_filters(offers: Iterable[FlightOffer], state: FilterState) -> List[FlightOffer]:
    """Return the offers satisfying every active criterion, in input order."""
    return [o for o in offers if matches(o, state)]


def price_bounds(offers: Iterable[FlightOffer]) -> Tuple[int, int]:
    """(floor of cheapest, ceil of most expensive); (0, 0) for no offers."""
    prices = [o.price_total for o in offers]
    if not prices:
        return 0, 0
    return math.floor(min(prices)), math.ceil(max(prices))


def available_airlines(offers: Iterable[FlightOffer]) -> List[str]:
    return sorted({o.airline for o in offers if o.airline})


def active_filter_count(state: FilterState, bounds: Tuple[int, int]) -> int:
    price_active = state.max_price is not None and state.max_price < bounds[1]
    return int(price_active) + len(state.stops) + len(state.airlines)


def _duration_key(offer: FlightOffer) -> int:
    minutes = offer.outbound.duration_minutes if offer.outbound else None
    return minutes if minutes is not None else 10 ** 6


def sort_offers(offers: Iterable[FlightOffer], mode: str) -> List[FlightOffer]:
    if mode == 'Fastest':
        return sorted(offers, key=lambda o: (_duration_key(o), o.price_total))
    if mode == 'Fewest stops':
        return sorted(offers, key=lambda o: (o.stops, o.price_total))
    if mode == 'Earliest departure':
        return sorted(offers, key=lambda o: (o.departure_at, o.price_total))
    return sorted(offers, key=lambda o: (o.price_total, o.stops, o.departure_at))
