"""
Tests for the OAuth2 token cache

Tests cover:
- Token fetch + caching within the validity window
- Refresh inside the 60s expiry buffer
- Failure mapping to a generic authentication error
- Credentials read at refresh time
"""

import threading
from datetime import datetime, timedelta
from unittest.mock import Mock, patch

import pytest
import requests

from amadeus_client import (
    AUTH_FAILED_MESSAGE,
    AmadeusAPIError,
    AmadeusConfig,
    AmadeusErrorCode,
    TokenManager,
)


@pytest.fixture
def config():
    return AmadeusConfig(
        client_id="test_client_id",
        client_secret="test_client_secret",
        base_url="https://test.api.amadeus.com",
        timeout=5,
    )


def _token_response(token="test_token_123", expires_in=1799, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = {"access_token": token, "expires_in": expires_in}
    response.text = ""
    return response


class TestTokenManager:

    def test_fetch_new_token_success(self, config):
        with patch('requests.post') as mock_post:
            mock_post.return_value = _token_response()

            manager = TokenManager(config)
            token = manager.get_token()

            assert token == "test_token_123"
            mock_post.assert_called_once()
            args, kwargs = mock_post.call_args
            assert args[0] == "https://test.api.amadeus.com/v1/security/oauth2/token"
            assert kwargs["data"] == {
                "grant_type": "client_credentials",
                "client_id": "test_client_id",
                "client_secret": "test_client_secret",
            }
            assert kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"

    def test_token_caching(self, config):
        """Calls within the validity window reuse the token."""
        with patch('requests.post') as mock_post:
            mock_post.return_value = _token_response("cached_token")

            manager = TokenManager(config)
            tokens = [manager.get_token() for _ in range(5)]

            assert tokens == ["cached_token"] * 5
            assert mock_post.call_count == 1

    def test_token_refresh_when_expired(self, config):
        with patch('requests.post') as mock_post:
            mock_post.return_value = _token_response("first")

            manager = TokenManager(config)
            assert manager.get_token() == "first"

            # Inside the 60s buffer counts as expired
            manager._expires_at = datetime.utcnow() + timedelta(seconds=30)
            mock_post.return_value = _token_response("second")

            assert manager.get_token() == "second"
            assert manager.get_token() == "second"
            assert mock_post.call_count == 2

    def test_token_still_valid_outside_buffer(self, config):
        with patch('requests.post') as mock_post:
            mock_post.return_value = _token_response()

            manager = TokenManager(config)
            manager.get_token()
            manager._expires_at = datetime.utcnow() + timedelta(seconds=120)
            manager.get_token()

            assert mock_post.call_count == 1

    def test_missing_expires_in_uses_default_lifetime(self, config):
        with patch('requests.post') as mock_post:
            response = _token_response()
            response.json.return_value = {"access_token": "abc"}
            mock_post.return_value = response

            manager = TokenManager(config)
            manager.get_token()

            remaining = (manager._expires_at - datetime.utcnow()).total_seconds()
            assert 1700 < remaining <= 1799

    def test_auth_failure_raises_error(self, config):
        with patch('requests.post') as mock_post:
            mock_post.return_value = _token_response(status_code=401)

            manager = TokenManager(config)

            with pytest.raises(AmadeusAPIError) as exc_info:
                manager.get_token()

            assert exc_info.value.code == AmadeusErrorCode.AMADEUS_AUTH_FAILED
            assert exc_info.value.message == AUTH_FAILED_MESSAGE
            assert mock_post.call_count == 1

    def test_network_error_is_not_retried(self, config):
        with patch('requests.post') as mock_post:
            mock_post.side_effect = requests.exceptions.ConnectionError("boom")

            manager = TokenManager(config)

            with pytest.raises(AmadeusAPIError) as exc_info:
                manager.get_token()

            assert exc_info.value.message == AUTH_FAILED_MESSAGE
            assert mock_post.call_count == 1

    def test_malformed_token_response(self, config):
        with patch('requests.post') as mock_post:
            response = _token_response()
            response.json.return_value = {"unexpected": True}
            mock_post.return_value = response

            with pytest.raises(AmadeusAPIError) as exc_info:
                TokenManager(config).get_token()

            assert exc_info.value.code == AmadeusErrorCode.AMADEUS_AUTH_FAILED

    def test_missing_credentials_fail_without_request(self):
        manager = TokenManager(AmadeusConfig(), credentials=lambda: ("", ""))

        with patch('requests.post') as mock_post:
            with pytest.raises(AmadeusAPIError) as exc_info:
                manager.get_token()

            mock_post.assert_not_called()
        assert exc_info.value.message == AUTH_FAILED_MESSAGE

    def test_credentials_are_read_on_each_refresh(self):
        creds = iter([("id-1", "secret-1"), ("id-2", "secret-2")])
        manager = TokenManager(AmadeusConfig(), credentials=lambda: next(creds))

        with patch('requests.post') as mock_post:
            mock_post.return_value = _token_response()
            manager.get_token()
            manager.invalidate()
            manager.get_token()

            sent = [call.kwargs["data"]["client_id"] for call in mock_post.call_args_list]
            assert sent == ["id-1", "id-2"]

    def test_invalidate_clears_token(self, config):
        with patch('requests.post') as mock_post:
            mock_post.return_value = _token_response("token_1")

            manager = TokenManager(config)
            manager.get_token()
            manager.invalidate()

            mock_post.return_value = _token_response("token_2")

            assert manager.get_token() == "token_2"
            assert mock_post.call_count == 2

    def test_concurrent_callers_share_one_refresh(self, config):
        started = threading.Event()
        release = threading.Event()

        def slow_post(*args, **kwargs):
            started.set()
            release.wait(timeout=5)
            return _token_response("shared")

        with patch('requests.post', side_effect=slow_post) as mock_post:
            manager = TokenManager(config)
            results = []
            threads = [threading.Thread(target=lambda: results.append(manager.get_token())) for _ in range(4)]
            for t in threads:
                t.start()
            started.wait(timeout=5)
            release.set()
            for t in threads:
                t.join(timeout=5)

            assert results == ["shared"] * 4
            assert mock_post.call_count == 1
