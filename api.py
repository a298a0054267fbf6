"""JSON proxy endpoints.

Mounted into the NiceGUI app (which is a FastAPI app), so browser code and
external clients can reach the provider without holding credentials.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from amadeus_client import (
    AIRPORTS_FAILED_MESSAGE,
    FLIGHTS_FAILED_MESSAGE,
    AmadeusAPIError,
    AmadeusClient,
    get_client,
)
from models import SearchParams

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _error_message(exc: Exception, fallback: str) -> str:
    if isinstance(exc, AmadeusAPIError):
        return exc.message or fallback
    return str(exc) or fallback


@router.get("/airports")
def airports_endpoint(
    keyword: Optional[str] = None,
    client: AmadeusClient = Depends(get_client),
):
    if not keyword:
        return _error("Keyword is required", 400)

    try:
        return client.search_airports(keyword)
    except Exception as exc:
        logger.exception("Airport search failed for %r", keyword)
        return _error(_error_message(exc, AIRPORTS_FAILED_MESSAGE), 500)


@router.get("/flights")
def flights_endpoint(
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    departureDate: Optional[str] = None,
    adults: Optional[str] = None,
    returnDate: Optional[str] = None,
    client: AmadeusClient = Depends(get_client),
):
    if not origin or not destination or not departureDate or not adults:
        return _error("Missing required parameters", 400)

    try:
        adult_count = int(adults)
    except ValueError:
        return _error("Invalid adults parameter", 400)
    if adult_count < 1:
        return _error("Invalid adults parameter", 400)

    params = SearchParams(
        origin=origin,
        destination=destination,
        departure_date=departureDate,
        adults=adult_count,
        return_date=returnDate or None,
    )
    try:
        return client.search_flights(params)
    except Exception as exc:
        logger.exception("Flight search failed for %s->%s", origin, destination)
        return _error(_error_message(exc, FLIGHTS_FAILED_MESSAGE), 500)
