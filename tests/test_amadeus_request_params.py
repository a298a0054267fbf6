from __future__ import annotations

from types import SimpleNamespace
from urllib.parse import unquote

import pytest
import requests

from amadeus_client import (
    AIRPORTS_FAILED_MESSAGE,
    FLIGHTS_FAILED_MESSAGE,
    AmadeusAPIError,
    AmadeusClient,
    AmadeusConfig,
    AmadeusErrorCode,
)
from models import SearchParams


class _Resp:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload if payload is not None else {"data": []}
        self.text = text

    def json(self):
        return self._payload


def _client(token_manager=None) -> AmadeusClient:
    return AmadeusClient(
        config=AmadeusConfig(client_id="id", client_secret="secret", timeout=1),
        token_manager=token_manager or SimpleNamespace(get_token=lambda: "dummy", invalidate=lambda: None),
    )


def _capture(monkeypatch, client, response=None):
    calls = []

    def fake_get(url, params=None, headers=None, timeout=None):
        calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        return response or _Resp()

    monkeypatch.setattr(client.session, "get", fake_get)
    return calls


def _encoded(call) -> str:
    return requests.Request("GET", call["url"], params=call["params"]).prepare().url


def test_search_flights_builds_one_way_query(monkeypatch):
    c = _client()
    calls = _capture(monkeypatch, c, _Resp(payload={"data": [{"id": "1"}]}))

    result = c.search_flights(SearchParams("JFK", "LAX", "2026-06-01", adults=1))

    assert result == {"data": [{"id": "1"}]}
    assert len(calls) == 1
    assert calls[0]["url"] == "https://test.api.amadeus.com/v2/shopping/flight-offers"
    assert calls[0]["headers"]["Authorization"] == "Bearer dummy"
    assert _encoded(calls[0]).endswith(
        "?originLocationCode=JFK&destinationLocationCode=LAX&departureDate=2026-06-01&adults=1&max=50"
    )


def test_search_flights_includes_return_date_for_round_trip(monkeypatch):
    c = _client()
    calls = _capture(monkeypatch, c)

    c.search_flights(SearchParams("JFK", "LAX", "2026-06-01", adults=2, return_date="2026-06-08"))

    assert calls[0]["params"]["returnDate"] == "2026-06-08"
    assert calls[0]["params"]["adults"] == 2


def test_search_airports_fixes_page_size_and_subtypes(monkeypatch):
    c = _client()
    calls = _capture(monkeypatch, c, _Resp(payload={"data": [{"iataCode": "CDG"}], "meta": {}}))

    result = c.search_airports("par")

    assert result == [{"iataCode": "CDG"}]
    assert calls[0]["url"].endswith("/v1/reference-data/locations")
    assert unquote(_encoded(calls[0])).endswith("?keyword=par&subType=AIRPORT,CITY&page[limit]=10")


def test_search_flights_upstream_error_is_generic(monkeypatch):
    c = _client()
    calls = _capture(monkeypatch, c, _Resp(status_code=500, text="internal"))

    with pytest.raises(AmadeusAPIError) as exc_info:
        c.search_flights(SearchParams("JFK", "LAX", "2026-06-01"))

    assert exc_info.value.message == FLIGHTS_FAILED_MESSAGE
    assert exc_info.value.code == AmadeusErrorCode.AMADEUS_UPSTREAM_ERROR
    assert len(calls) == 1  # no retry


def test_search_airports_network_error(monkeypatch):
    c = _client()

    def boom(*args, **kwargs):
        raise requests.exceptions.ConnectionError("down")

    monkeypatch.setattr(c.session, "get", boom)

    with pytest.raises(AmadeusAPIError) as exc_info:
        c.search_airports("par")

    assert exc_info.value.message == AIRPORTS_FAILED_MESSAGE
    assert exc_info.value.code == AmadeusErrorCode.AMADEUS_NETWORK_ERROR


def test_search_airports_timeout(monkeypatch):
    c = _client()

    def slow(*args, **kwargs):
        raise requests.exceptions.Timeout()

    monkeypatch.setattr(c.session, "get", slow)

    with pytest.raises(AmadeusAPIError) as exc_info:
        c.search_airports("par")

    assert exc_info.value.code == AmadeusErrorCode.AMADEUS_TIMEOUT


def test_unauthorized_response_invalidates_token(monkeypatch):
    invalidated = []
    c = _client(SimpleNamespace(get_token=lambda: "stale", invalidate=lambda: invalidated.append(True)))
    _capture(monkeypatch, c, _Resp(status_code=401, text="expired"))

    with pytest.raises(AmadeusAPIError) as exc_info:
        c.search_flights(SearchParams("JFK", "LAX", "2026-06-01"))

    assert exc_info.value.code == AmadeusErrorCode.AMADEUS_BAD_REQUEST
    assert invalidated == [True]


def test_auth_failure_propagates_before_request(monkeypatch):
    def fail():
        raise AmadeusAPIError(AmadeusErrorCode.AMADEUS_AUTH_FAILED, "Failed to authenticate with Amadeus API")

    c = _client(SimpleNamespace(get_token=fail, invalidate=lambda: None))
    calls = _capture(monkeypatch, c)

    with pytest.raises(AmadeusAPIError) as exc_info:
        c.search_airports("par")

    assert exc_info.value.message == "Failed to authenticate with Amadeus API"
    assert calls == []
