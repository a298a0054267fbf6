"""
Amadeus Self-Service API client

Thin read-only wrapper around two Amadeus endpoints:
- Flight Offers Search (/v2/shopping/flight-offers)
- Airport & City Search (/v1/reference-data/locations)

Implements OAuth2 client-credentials authentication with an in-memory token
cache. Every call is a single attempt: failures surface as AmadeusAPIError
and are never retried.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass
from enum import Enum

import requests

from config import TEST_BASE_URL, load_config
from models import SearchParams

logger = logging.getLogger(__name__)

TOKEN_REFRESH_SKEW_SECONDS = 60
DEFAULT_TOKEN_LIFETIME_SECONDS = 1799
MAX_FLIGHT_OFFERS = 50
AIRPORT_PAGE_LIMIT = 10
LOCATION_SUBTYPES = "AIRPORT,CITY"

AUTH_FAILED_MESSAGE = "Failed to authenticate with Amadeus API"
FLIGHTS_FAILED_MESSAGE = "Failed to search flights"
AIRPORTS_FAILED_MESSAGE = "Failed to search airports"


# ============================================================================
# ERROR CODES
# ============================================================================

class AmadeusErrorCode(Enum):
    """Structured error codes for Amadeus API errors."""
    AMADEUS_AUTH_FAILED = "AMADEUS_AUTH_FAILED"
    AMADEUS_BAD_REQUEST = "AMADEUS_BAD_REQUEST"
    AMADEUS_UPSTREAM_ERROR = "AMADEUS_UPSTREAM_ERROR"
    AMADEUS_TIMEOUT = "AMADEUS_TIMEOUT"
    AMADEUS_NETWORK_ERROR = "AMADEUS_NETWORK_ERROR"


class AmadeusAPIError(Exception):
    """Provider failure. ``message`` is safe to show to users."""
    def __init__(self, code: AmadeusErrorCode, message: str, details: dict = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class AmadeusConfig:
    """Configuration for Amadeus API client.

    Leave ``client_id``/``client_secret`` empty to read them from the
    environment (config.env) on every token refresh.
    """
    client_id: str = ""
    client_secret: str = ""
    base_url: str = TEST_BASE_URL
    timeout: int = 15

    @staticmethod
    def from_env() -> 'AmadeusConfig':
        return AmadeusConfig(base_url=load_config().base_url)


def _env_credentials() -> Tuple[str, str]:
    cfg = load_config()
    return cfg.amadeus_client_id, cfg.amadeus_client_secret


# ============================================================================
# TOKEN MANAGER
# ============================================================================

class TokenManager:
    """Manages OAuth2 token lifecycle with caching and early refresh.

    The lock is held across the refresh, so callers arriving while a token
    request is in flight wait for it instead of issuing their own.
    """

    def __init__(
        self,
        config: AmadeusConfig,
        credentials: Optional[Callable[[], Tuple[str, str]]] = None,
    ):
        self.config = config
        self._credentials = credentials
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._lock = threading.Lock()

    def get_token(self) -> str:
        """Get a valid access token, refreshing if needed."""
        with self._lock:
            if self._is_token_valid():
                return self._token
            return self._fetch_new_token()

    def _is_token_valid(self) -> bool:
        """Check if current token is valid with 60s buffer."""
        if not self._token or not self._expires_at:
            return False
        return datetime.utcnow() < (self._expires_at - timedelta(seconds=TOKEN_REFRESH_SKEW_SECONDS))

    def _resolve_credentials(self) -> Tuple[str, str]:
        if self._credentials is not None:
            return self._credentials()
        if self.config.client_id and self.config.client_secret:
            return self.config.client_id, self.config.client_secret
        return _env_credentials()

    def _fetch_new_token(self) -> str:
        """Fetch a new access token from Amadeus."""
        client_id, client_secret = self._resolve_credentials()
        if not client_id or not client_secret:
            logger.error("Amadeus credentials missing (AMADEUS_CLIENT_ID/AMADEUS_CLIENT_SECRET)")
            raise AmadeusAPIError(
                AmadeusErrorCode.AMADEUS_AUTH_FAILED,
                AUTH_FAILED_MESSAGE,
                {"reason": "missing credentials"}
            )

        url = f"{self.config.base_url}/v1/security/oauth2/token"

        try:
            response = requests.post(
                url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": client_id,
                    "client_secret": client_secret
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.config.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error during auth: {e}")
            raise AmadeusAPIError(
                AmadeusErrorCode.AMADEUS_AUTH_FAILED,
                AUTH_FAILED_MESSAGE,
                {"reason": str(e)}
            ) from e

        if response.status_code != 200:
            logger.error(f"Token fetch failed: {response.status_code}")
            raise AmadeusAPIError(
                AmadeusErrorCode.AMADEUS_AUTH_FAILED,
                AUTH_FAILED_MESSAGE,
                {"status": response.status_code, "body": response.text[:200]}
            )

        try:
            data = response.json()
            token = data["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise AmadeusAPIError(
                AmadeusErrorCode.AMADEUS_AUTH_FAILED,
                AUTH_FAILED_MESSAGE,
                {"reason": "malformed token response"}
            ) from e

        expires_in = int(data.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS)
        self._token = token
        self._expires_at = datetime.utcnow() + timedelta(seconds=expires_in)
        logger.info(f"Amadeus token acquired, expires in {expires_in}s")
        return self._token

    def invalidate(self):
        """Drop the cached token so the next call refreshes."""
        with self._lock:
            self._token = None
            self._expires_at = None


# ============================================================================
# AMADEUS CLIENT
# ============================================================================

class AmadeusClient:
    """Read-only Amadeus client shared by the UI and the proxy endpoints."""

    def __init__(self, config: Optional[AmadeusConfig] = None, token_manager: Optional[TokenManager] = None):
        self.config = config or AmadeusConfig.from_env()
        self.token_manager = token_manager or TokenManager(self.config)

        self._request_count = 0
        self._request_lock = threading.Lock()

        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": "FlightSearch/1.0"
        })

    def _increment_request_count(self) -> int:
        with self._request_lock:
            self._request_count += 1
            return self._request_count

    def _get(self, endpoint: str, params: dict, failure_message: str) -> dict:
        """Single authenticated GET. Any failure raises with ``failure_message``."""
        token = self.token_manager.get_token()
        url = f"{self.config.base_url}{endpoint}"
        request_id = self._increment_request_count()
        logger.info(f"[REQ-{request_id}] GET {endpoint}")

        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.config.timeout
            )
        except requests.exceptions.Timeout as e:
            logger.warning(f"[REQ-{request_id}] Timeout")
            raise AmadeusAPIError(AmadeusErrorCode.AMADEUS_TIMEOUT, failure_message) from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"[REQ-{request_id}] Network error: {e}")
            raise AmadeusAPIError(
                AmadeusErrorCode.AMADEUS_NETWORK_ERROR,
                failure_message,
                {"reason": str(e)}
            ) from e

        if response.status_code != 200:
            code = (
                AmadeusErrorCode.AMADEUS_BAD_REQUEST
                if 400 <= response.status_code < 500
                else AmadeusErrorCode.AMADEUS_UPSTREAM_ERROR
            )
            if response.status_code == 401:
                # Server-side revocation; the next call fetches a fresh token.
                self.token_manager.invalidate()
            logger.warning(f"[REQ-{request_id}] HTTP {response.status_code}: {response.text[:200]}")
            raise AmadeusAPIError(
                code,
                failure_message,
                {"status": response.status_code, "body": response.text[:200]}
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AmadeusAPIError(AmadeusErrorCode.AMADEUS_UPSTREAM_ERROR, failure_message) from e

        logger.info(f"[REQ-{request_id}] Success")
        return payload

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    def search_flights(self, params: SearchParams) -> dict:
        """
        Search flight offers for one route and date.

        Args:
            params: Search form input

        Returns:
            Provider response body ({"data": [...], "dictionaries": {...}})
        """
        query: Dict[str, object] = {
            "originLocationCode": params.origin,
            "destinationLocationCode": params.destination,
            "departureDate": params.departure_date,
            "adults": params.adults,
            "max": MAX_FLIGHT_OFFERS,
        }
        if params.return_date:
            query["returnDate"] = params.return_date

        logger.info(f"Flight search: {params.origin}->{params.destination} on {params.departure_date}")
        return self._get("/v2/shopping/flight-offers", query, FLIGHTS_FAILED_MESSAGE)

    def search_airports(self, keyword: str) -> List[dict]:
        """Keyword search over airports and cities, first page of 10."""
        payload = self._get(
            "/v1/reference-data/locations",
            {
                "keyword": keyword,
                "subType": LOCATION_SUBTYPES,
                "page[limit]": AIRPORT_PAGE_LIMIT,
            },
            AIRPORTS_FAILED_MESSAGE,
        )
        return payload.get("data", [])


_client_instance = None
_client_lock = threading.Lock()


def get_client() -> AmadeusClient:
    '''Get or create the process-wide client (one token cache per process).'''
    global _client_instance
    with _client_lock:
        if _client_instance is None:
            _client_instance = AmadeusClient()
        return _client_instance
