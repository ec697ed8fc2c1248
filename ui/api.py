"""
The frontend's side of the HTTP conversation with our API.

Main things it does:
1. api_request() - send JSON, get JSON back, raise ApiError("<status>: <text>") if it failed
2. get_query() - cached GETs, so a dashboard doesn't hit the same URL five times
3. invalidate_queries() / set_query_data() - poke the cache after a change

It works with a plain httpx.Client pointed at the server, or with anything
that quacks like one (FastAPI's TestClient is an httpx.Client too).

Watch out for:
- The client keeps the session cookie, so use ONE ApiClient per logged in person
- The cache never expires by itself, invalidate it after you change something
"""

import json
import logging

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A request came back with a non-2xx status."""

    def __init__(self, status_code, text):
        self.status_code = status_code
        self.text = text
        super().__init__(f"{status_code}: {text}")

    @property
    def detail(self):
        """The server's "detail" message when there is one, otherwise the raw text."""
        try:
            detail = json.loads(self.text).get("detail")
        except (ValueError, AttributeError):
            return self.text
        if isinstance(detail, list):                        # pydantic 422 errors
            return "; ".join(d.get("msg", "") for d in detail)
        return detail or self.text


def _raise_for_status(response: httpx.Response):
    if response.is_success:
        return
    text = response.text or response.reason_phrase
    raise ApiError(response.status_code, text)


def _clean(params):
    return {k: v for k, v in (params or {}).items() if v is not None}


def _cache_key(url, params=None):
    clean = _clean(params)
    if not clean:
        return url
    return url + "?" + "&".join(f"{k}={clean[k]}" for k in sorted(clean))


class ApiClient:

    def __init__(self, base_url="http://localhost:5000", client=None, timeout=10.0):
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self.cache = {}

    def close(self):
        self.client.close()

    def api_request(self, method, url, data=None):
        """Send a request with an optional JSON body, returns the decoded JSON (or None)."""
        response = self.client.request(method, url, json=data)
        _raise_for_status(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def get_query(self, url, params=None, on_401="throw"):
        """Cached GET. With on_401="return_none" a 401 gives None instead of an ApiError."""
        key = _cache_key(url, params)
        if key in self.cache:
            return self.cache[key]

        response = self.client.get(url, params=_clean(params) or None)
        if response.status_code == 401 and on_401 == "return_none":
            return None
        _raise_for_status(response)

        data = response.json()
        self.cache[key] = data
        return data

    def set_query_data(self, url, data, params=None):
        self.cache[_cache_key(url, params)] = data

    def invalidate_queries(self, prefix=""):
        """Forget every cached GET whose URL starts with prefix (everything by default)."""
        stale = [key for key in self.cache if key.startswith(prefix)]
        for key in stale:
            del self.cache[key]
        return len(stale)
