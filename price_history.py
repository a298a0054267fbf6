"""Price aggregation for the results chart.

The provider only quotes current prices, so the trend line shown next to the
results is generated: a sine wave around the current average price. It is
marked ``synthetic`` everywhere it travels and must not be presented as
historical data.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from models import FlightOffer

SYNTHETIC_AMPLITUDE = 0.1


@dataclass(frozen=True)
class PricePoint:
    date: str
    price: float
    synthetic: bool = False


@dataclass(frozen=True)
class PriceStats:
    lowest: float
    average: float
    highest: float


def price_stats(points: Sequence[PricePoint]) -> Optional[PriceStats]:
    if not points:
        return None
    prices = [p.price for p in points]
    return PriceStats(
        lowest=min(prices),
        average=sum(prices) / len(prices),
        highest=max(prices),
    )


def offer_stats(offers: Iterable[FlightOffer]) -> Optional[PriceStats]:
    """Stats over the current quotes themselves."""
    return price_stats([PricePoint(date='', price=o.price_total) for o in offers])


def synthetic_price_history(
    offers: Sequence[FlightOffer],
    days: int = 7,
    end: Optional[date] = None,
) -> List[PricePoint]:
    """Illustrative ``days``-long series ending at ``end`` (default today)."""
    if not offers or days <= 0:
        return []
    end = end or date.today()
    average = sum(o.price_total for o in offers) / len(offers)

    points = []
    for i in range(days):
        day = end - timedelta(days=days - 1 - i)
        variation = SYNTHETIC_AMPLITUDE * math.sin(2 * math.pi * i / days)
        points.append(PricePoint(
            date=day.isoformat(),
            price=round(average * (1 + variation), 2),
            synthetic=True,
        ))
    return points


def chart_summary(
    offers: Sequence[FlightOffer],
    days: int = 7,
    end: Optional[date] = None,
) -> Tuple[Optional[PriceStats], List[PricePoint]]:
    """Real quote stats for the badge and tiles, plus the illustrative line."""
    return offer_stats(offers), synthetic_price_history(offers, days=days, end=end)
