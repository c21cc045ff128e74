"""Tests for client.py — FeatureClient SDK with retries and per-user cache."""

import json
import pytest
from unittest.mock import MagicMock, patch

import httpx

from plangate.client import ClientFeatureCheck, ClientFeatures, FeatureClient


def _mock_response(data: dict, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data
    return resp


FEATURES = {
    "features": {"calendarSync": True, "bookingConfig": False, "maxProjects": 3, "maxSocialLinks": -1},
    "plan_id": "plan-1",
    "plan_name": "pro",
    "role": "USER",
    "bypass": False,
}


class TestFeatureClientInit:
    def test_defaults(self):
        client = FeatureClient()
        assert client.server_url == "http://localhost:8080"
        assert client.api_key is None
        assert client.max_retries == 3
        assert client.cache_ttl == 60
        client.close()

    def test_custom_params(self):
        client = FeatureClient(
            server_url="http://custom:9090/",
            api_key="svc-key",
            cache_ttl=5,
            timeout=10,
            max_retries=5,
        )
        assert client.server_url == "http://custom:9090"
        assert client.api_key == "svc-key"
        assert client.max_retries == 5
        client.close()

    def test_context_manager_closes(self):
        with FeatureClient() as client:
            client._http = MagicMock()
        client._http.close.assert_called_once()


class TestGetFeatures:
    def test_parses_response(self):
        client = FeatureClient(api_key="svc-key")
        client._http = MagicMock()
        client._http.get.return_value = _mock_response(FEATURES)

        result = client.get_features("user-1")
        assert result.ok
        assert result.plan_name == "pro"
        assert result.features["maxProjects"] == 3
        path = client._http.get.call_args[0][0]
        assert path == "/users/user-1/features"
        headers = client._http.get.call_args[1]["headers"]
        assert headers["X-Plangate-Api-Key"] == "svc-key"
        client.close()

    def test_can_use_and_limits(self):
        client = FeatureClient()
        client._http = MagicMock()
        client._http.get.return_value = _mock_response(FEATURES)

        assert client.can_use("user-1", "calendarSync") is True
        assert client.can_use("user-1", "bookingConfig") is False
        assert client.can_use("user-1", "maxProjects") is True
        assert client.can_use("user-1", "videoGallery") is False
        assert client.get_limit("user-1", "maxProjects") == 3
        assert client.get_limit("user-1", "maxSocialLinks") == -1
        assert client.get_limit("user-1", "calendarSync") is None
        client.close()

    def test_unknown_user(self):
        client = FeatureClient()
        client._http = MagicMock()
        client._http.get.return_value = _mock_response({"detail": "User not found"}, status_code=404)

        result = client.get_features("ghost")
        assert not result.ok
        assert result.code == "NOT_FOUND"
        assert result.can_use("calendarSync") is False
        client.close()


class TestCache:
    def test_second_call_served_from_cache(self):
        client = FeatureClient()
        client._http = MagicMock()
        client._http.get.return_value = _mock_response(FEATURES)

        client.get_features("user-1")
        client.can_use("user-1", "calendarSync")
        assert client._http.get.call_count == 1
        client.close()

    def test_bypass_cache(self):
        client = FeatureClient()
        client._http = MagicMock()
        client._http.get.return_value = _mock_response(FEATURES)

        client.get_features("user-1")
        client.get_features("user-1", use_cache=False)
        assert client._http.get.call_count == 2
        client.close()

    @patch("plangate.client.time.time")
    def test_cache_expires(self, mock_time):
        client = FeatureClient(cache_ttl=60)
        client._http = MagicMock()
        client._http.get.return_value = _mock_response(FEATURES)

        mock_time.return_value = 1000.0
        client.get_features("user-1")
        mock_time.return_value = 1061.0
        client.get_features("user-1")
        assert client._http.get.call_count == 2
        client.close()

    def test_errors_not_cached(self):
        client = FeatureClient()
        client._http = MagicMock()
        client._http.get.side_effect = [
            _mock_response({}, status_code=404),
            _mock_response(FEATURES),
        ]

        assert not client.get_features("user-1").ok
        assert client.get_features("user-1").ok
        client.close()

    def test_invalidate_one_user(self):
        client = FeatureClient()
        client._http = MagicMock()
        client._http.get.return_value = _mock_response(FEATURES)

        client.get_features("user-1")
        client.get_features("user-2")
        client.invalidate("user-1")
        client.get_features("user-1")
        client.get_features("user-2")
        assert client._http.get.call_count == 3
        client.close()

    def test_zero_ttl_disables_cache(self):
        client = FeatureClient(cache_ttl=0)
        client._http = MagicMock()
        client._http.get.return_value = _mock_response(FEATURES)

        client.get_features("user-1")
        client.get_features("user-1")
        assert client._http.get.call_count == 2
        client.close()


class TestGetFeature:
    def test_single_feature(self):
        client = FeatureClient()
        client._http = MagicMock()
        client._http.get.return_value = _mock_response(
            {"feature": "maxProjects", "allowed": True, "limit": 3}
        )

        result = client.get_feature("user-1", "maxProjects")
        assert result == ClientFeatureCheck(feature="maxProjects", allowed=True, limit=3)
        assert client._http.get.call_args[0][0] == "/users/user-1/features/maxProjects"
        client.close()

    def test_single_feature_error(self):
        client = FeatureClient()
        client._http = MagicMock()
        client._http.get.return_value = _mock_response({}, status_code=403)

        result = client.get_feature("user-1", "maxProjects")
        assert result.allowed is False
        assert result.code == "CLIENT_ERROR"
        client.close()


class TestClientFeatures:
    def test_bool_is_not_a_limit(self):
        features = ClientFeatures(user_id="u", features={"a": True, "b": 0})
        assert features.get_limit("a") is None
        assert features.get_limit("b") == 0
        assert features.can_use("b") is True


# ── Resilience ──


class TestRetryOnTimeout:
    @patch("plangate.client.time.sleep")
    def test_retry_on_timeout(self, mock_sleep):
        client = FeatureClient(max_retries=3)
        client._http = MagicMock()
        client._http.get.side_effect = httpx.TimeoutException("timeout")

        result = client.get_features("user-1")
        assert result.code == "CONNECTION_ERROR"
        assert client._http.get.call_count == 3
        assert mock_sleep.call_count == 2
        client.close()


class TestNoRetryOn4xx:
    def test_no_retry_on_403(self):
        client = FeatureClient(max_retries=3)
        client._http = MagicMock()
        client._http.get.return_value = _mock_response({}, status_code=403)

        result = client._request("get", "/users/u/features")
        assert result["code"] == "CLIENT_ERROR"
        assert client._http.get.call_count == 1
        client.close()


class TestRetryOn5xx:
    @patch("plangate.client.time.sleep")
    def test_retry_on_500(self, mock_sleep):
        client = FeatureClient(max_retries=3)
        client._http = MagicMock()
        client._http.get.return_value = _mock_response({}, status_code=500)

        result = client._request("get", "/users/u/features")
        assert result["code"] == "SERVER_ERROR"
        assert client._http.get.call_count == 3
        client.close()

    @patch("plangate.client.time.sleep")
    def test_recovers_after_429(self, mock_sleep):
        client = FeatureClient(max_retries=3)
        client._http = MagicMock()
        client._http.get.side_effect = [
            _mock_response({}, status_code=429),
            _mock_response(FEATURES),
        ]

        result = client.get_features("user-1")
        assert result.ok
        mock_sleep.assert_called_once_with(0.5)
        client.close()


class TestRetriesExhausted:
    @patch("plangate.client.time.sleep")
    def test_all_retries_exhausted(self, mock_sleep):
        client = FeatureClient(max_retries=2)
        client._http = MagicMock()
        client._http.get.side_effect = httpx.ConnectError("refused")

        result = client._request("get", "/users/u/features")
        assert result["code"] == "CONNECTION_ERROR"
        assert "2 retries exhausted" in result["error"]
        client.close()


class TestJsonError:
    def test_json_decode_error(self):
        client = FeatureClient()
        client._http = MagicMock()
        resp = MagicMock()
        resp.status_code = 200
        resp.json.side_effect = json.JSONDecodeError("bad", "", 0)
        client._http.get.return_value = resp

        result = client._request("get", "/users/u/features")
        assert result["code"] == "JSON_ERROR"
        client.close()
