"""
Data models for the flight search application.

The provider owns these shapes; the models only read what the UI needs and
keep the original payload around.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

_DURATION_RE = re.compile(r'PT(?:(\d+)H)?(?:(\d+)M)?')


def parse_duration_minutes(duration: str) -> Optional[int]:
    """Convert an ISO-8601 duration like ``PT5H30M`` to minutes."""
    match = _DURATION_RE.fullmatch(duration or '')
    if not match or not any(match.groups()):
        return None
    hours, minutes = match.groups()
    return int(hours or 0) * 60 + int(minutes or 0)


def format_duration(duration: str) -> str:
    """``PT5H30M`` -> ``5h 30m``. Unknown formats are returned as-is."""
    match = _DURATION_RE.fullmatch(duration or '')
    if not match or not any(match.groups()):
        return duration
    hours, minutes = match.groups()
    parts = []
    if hours:
        parts.append(f"{int(hours)}h")
    if minutes:
        parts.append(f"{int(minutes)}m")
    return ' '.join(parts)


@dataclass(frozen=True)
class Airport:
    """An airport or city returned by the locations search."""
    id: str
    iata_code: str
    name: str
    city_name: str = ""
    country_name: str = ""
    sub_type: str = "AIRPORT"

    @classmethod
    def from_api(cls, record: dict) -> 'Airport':
        address = record.get('address') or {}
        return cls(
            id=record.get('id', ''),
            iata_code=record.get('iataCode', ''),
            name=record.get('name', ''),
            city_name=address.get('cityName', ''),
            country_name=address.get('countryName', ''),
            sub_type=record.get('subType', 'AIRPORT'),
        )

    @property
    def display_name(self) -> str:
        """Format for the search input: PARIS (CDG)"""
        return f"{self.city_name or self.name} ({self.iata_code})"

    @property
    def detail_line(self) -> str:
        return ', '.join(p for p in (self.name, self.country_name) if p)


@dataclass(frozen=True)
class FlightSegment:
    carrier_code: str
    number: str
    departure_iata: str
    departure_at: str
    arrival_iata: str
    arrival_at: str
    duration: str = ""

    @classmethod
    def from_api(cls, record: dict) -> 'FlightSegment':
        departure = record.get('departure') or {}
        arrival = record.get('arrival') or {}
        return cls(
            carrier_code=record.get('carrierCode', ''),
            number=str(record.get('number', '')),
            departure_iata=departure.get('iataCode', ''),
            departure_at=departure.get('at', ''),
            arrival_iata=arrival.get('iataCode', ''),
            arrival_at=arrival.get('at', ''),
            duration=record.get('duration', ''),
        )

    @property
    def flight_code(self) -> str:
        return f"{self.carrier_code} {self.number}".strip()

    @property
    def departure_dt(self) -> Optional[datetime]:
        try:
            return datetime.fromisoformat(self.departure_at)
        except ValueError:
            return None

    @property
    def arrival_dt(self) -> Optional[datetime]:
        try:
            return datetime.fromisoformat(self.arrival_at)
        except ValueError:
            return None


@dataclass(frozen=True)
class Itinerary:
    """One directional journey; segment order is the provider's."""
    segments: List[FlightSegment]
    duration: str = ""

    @classmethod
    def from_api(cls, record: dict) -> 'Itinerary':
        return cls(
            segments=[FlightSegment.from_api(s) for s in record.get('segments', [])],
            duration=record.get('duration', ''),
        )

    @property
    def stops(self) -> int:
        return max(len(self.segments) - 1, 0)

    @property
    def stops_text(self) -> str:
        if self.stops == 0:
            return 'Direct'
        if self.stops == 1:
            return '1 Stop'
        return f'{self.stops} Stops'

    @property
    def via(self) -> List[str]:
        """Connection airports, in travel order."""
        return [s.arrival_iata for s in self.segments[:-1]]

    @property
    def duration_minutes(self) -> Optional[int]:
        return parse_duration_minutes(self.duration)


@dataclass
class FlightOffer:
    """A priced offer with its outbound and optional return itinerary."""
    id: str
    price_total: float
    currency: str
    itineraries: List[Itinerary]
    validating_airline_codes: List[str] = field(default_factory=list)
    raw_payload: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, record: dict) -> 'FlightOffer':
        price = record.get('price') or {}
        return cls(
            id=str(record.get('id', '')),
            price_total=float(price.get('total') or price.get('grandTotal') or 0),
            currency=price.get('currency', ''),
            itineraries=[Itinerary.from_api(i) for i in record.get('itineraries', [])],
            validating_airline_codes=list(record.get('validatingAirlineCodes') or []),
            raw_payload=record,
        )

    @property
    def outbound(self) -> Optional[Itinerary]:
        return self.itineraries[0] if self.itineraries else None

    @property
    def inbound(self) -> Optional[Itinerary]:
        return self.itineraries[1] if len(self.itineraries) > 1 else None

    @property
    def stops(self) -> int:
        return self.outbound.stops if self.outbound else 0

    @property
    def airline(self) -> str:
        if self.validating_airline_codes:
            return self.validating_airline_codes[0]
        if self.outbound and self.outbound.segments:
            return self.outbound.segments[0].carrier_code
        return ''

    @property
    def departure_at(self) -> str:
        if self.outbound and self.outbound.segments:
            return self.outbound.segments[0].departure_at
        return ''

    @property
    def formatted_price(self) -> str:
        return f"{self.price_total:,.2f} {self.currency}".strip()

    def __repr__(self) -> str:
        route = ''
        if self.outbound and self.outbound.segments:
            route = f"{self.outbound.segments[0].departure_iata}→{self.outbound.segments[-1].arrival_iata}, "
        return f"FlightOffer({self.id}, {route}{self.formatted_price})"


def parse_offers(payload: dict) -> List[FlightOffer]:
    """Parse a flight-offers response body, keeping provider order."""
    return [FlightOffer.from_api(o) for o in (payload or {}).get('data') or []]


@dataclass
class SearchParams:
    """Form input. Presence is the only validation."""
    origin: str
    destination: str
    departure_date: str
    adults: int = 1
    return_date: Optional[str] = None

