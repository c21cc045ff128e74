"""
FeatureClient SDK — sync client for Plangate.

Used by consuming services (gallery, booking, profile pages) to ask what a
user may do without talking to the database themselves.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import httpx


@dataclass
class ClientFeatures:
    """Effective feature map returned by the SDK."""

    user_id: str
    features: dict[str, Union[bool, int]] = field(default_factory=dict)
    plan_id: Optional[str] = None
    plan_name: Optional[str] = None
    role: Optional[str] = None
    bypass: bool = False
    code: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        return not self.code

    def can_use(self, feature_key: str) -> bool:
        """A numeric value means the feature is granted with that limit."""
        value = self.features.get(feature_key)
        if isinstance(value, bool):
            return value
        return value is not None

    def get_limit(self, feature_key: str) -> Optional[int]:
        value = self.features.get(feature_key)
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value


@dataclass
class ClientFeatureCheck:
    """Result of get_feature() call."""

    feature: str
    allowed: bool = False
    limit: Optional[int] = None
    code: str = ""
    message: str = ""


class FeatureClient:
    """
    Synchronous HTTP client for Plangate.

    Successful feature maps are cached per user for ``cache_ttl`` seconds.
    Errors are never cached and never raised: failed lookups come back with
    ``code`` set and deny every feature.
    """

    def __init__(
        self,
        server_url: str = "http://localhost:8080",
        api_key: Optional[str] = None,
        cache_ttl: int = 60,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
    ):
        self.server_url = server_url.rstrip("/")
        self.api_key = api_key
        self.cache_ttl = cache_ttl
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._cache: dict[str, tuple[float, ClientFeatures]] = {}
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
        )

    def _headers(self) -> dict[str, str]:
        headers = {}
        if self.api_key:
            headers["X-Plangate-Api-Key"] = self.api_key
        return headers

    def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Central HTTP method with retry and structured error handling.

        Retries on:
        - httpx.TimeoutException
        - 5xx status codes
        - 429 (rate limit)

        No retry on other 4xx errors.

        Returns parsed JSON on success, or structured error dict on failure.
        """
        kwargs.setdefault("headers", self._headers())
        last_error = None
        for attempt in range(self.max_retries):
            try:
                resp = getattr(self._http, method)(path, **kwargs)
                if resp.status_code >= 500 or resp.status_code == 429:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < self.max_retries - 1:
                        time.sleep(self.retry_backoff_base * (2 ** attempt))
                        continue
                    return {
                        "error": f"Server error: {resp.status_code}",
                        "code": "SERVER_ERROR",
                    }
                if resp.status_code == 404:
                    return {"error": "Not found", "code": "NOT_FOUND"}
                if resp.status_code >= 400:
                    return {
                        "error": f"Client error: {resp.status_code}",
                        "code": "CLIENT_ERROR",
                    }
                return resp.json()
            except httpx.TimeoutException:
                last_error = "timeout"
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except httpx.HTTPError as e:
                last_error = str(e)
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except json.JSONDecodeError:
                return {"error": "Invalid JSON response", "code": "JSON_ERROR"}

        return {"error": f"All {self.max_retries} retries exhausted: {last_error}", "code": "CONNECTION_ERROR"}

    def _cached(self, user_id: str) -> Optional[ClientFeatures]:
        entry = self._cache.get(user_id)
        if entry is None:
            return None
        cached_at, features = entry
        if (time.time() - cached_at) >= self.cache_ttl:
            del self._cache[user_id]
            return None
        return features

    # ── Features ──

    def get_features(self, user_id: str, use_cache: bool = True) -> ClientFeatures:
        """Fetch the effective feature map for a user."""
        if use_cache:
            cached = self._cached(user_id)
            if cached is not None:
                return cached

        data = self._request("get", f"/users/{user_id}/features")
        if "error" in data:
            return ClientFeatures(
                user_id=user_id,
                code=data.get("code", "ERROR"),
                message=data.get("error", ""),
            )

        features = ClientFeatures(
            user_id=user_id,
            features=data.get("features", {}),
            plan_id=data.get("plan_id"),
            plan_name=data.get("plan_name"),
            role=data.get("role"),
            bypass=data.get("bypass", False),
        )
        if self.cache_ttl > 0:
            self._cache[user_id] = (time.time(), features)
        return features

    def get_feature(self, user_id: str, feature_key: str) -> ClientFeatureCheck:
        """Ask the server about one feature (never cached)."""
        data = self._request("get", f"/users/{user_id}/features/{feature_key}")
        if "error" in data:
            return ClientFeatureCheck(
                feature=feature_key,
                code=data.get("code", "ERROR"),
                message=data.get("error", ""),
            )
        return ClientFeatureCheck(
            feature=data.get("feature", feature_key),
            allowed=data.get("allowed", False),
            limit=data.get("limit"),
        )

    def can_use(self, user_id: str, feature_key: str) -> bool:
        return self.get_features(user_id).can_use(feature_key)

    def get_limit(self, user_id: str, feature_key: str) -> Optional[int]:
        return self.get_features(user_id).get_limit(feature_key)

    def invalidate(self, user_id: Optional[str] = None) -> None:
        """Drop the cached map for one user, or for everyone."""
        if user_id is None:
            self._cache.clear()
        else:
            self._cache.pop(user_id, None)

    # ── Lifecycle ──

    def close(self) -> None:
        """Close the HTTP client."""
        self._http.close()

    def __enter__(self) -> "FeatureClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
