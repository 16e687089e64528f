"""Thin JSON client for the Onsite Atlas backend API."""

import logging
from typing import Any, Optional

import requests

from config import API_BASE_URL, API_TIMEOUT, API_TOKEN
from designer.errors import ExternalServiceError

logger = logging.getLogger("OnsiteAtlas.services.api")


class ApiClient:
    """Issues requests and unwraps the ``{success, message, data, meta}`` envelope.

    Every failure (network, non-2xx, ``success: false``) surfaces as
    ExternalServiceError.
    """

    def __init__(self, base_url: str = API_BASE_URL, token: str = API_TOKEN,
                 timeout: float = API_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if token:
            self._session.headers.update({"Authorization": f"Bearer {token}"})

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def request(self, method: str, endpoint: str, params: Optional[dict] = None,
                json: Any = None) -> dict:
        """Return the decoded response body (an envelope dict)."""
        url = self._url(endpoint)
        try:
            resp = self._session.request(method, url, params=params, json=json,
                                         timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise ExternalServiceError(f"Could not reach the server: {e}") from e

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if not resp.ok:
            message = body.get("message") or f"Request failed with status {resp.status_code}"
            logger.error("%s %s returned %s: %s", method, url, resp.status_code, message)
            raise ExternalServiceError(message, status=resp.status_code)
        if body.get("success") is False:
            message = body.get("message") or "Request was not successful"
            logger.error("%s %s reported failure: %s", method, url, message)
            raise ExternalServiceError(message, status=resp.status_code)
        return body

    def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        return self.request("GET", endpoint, params=params)

    def post(self, endpoint: str, json: Any = None) -> dict:
        return self.request("POST", endpoint, json=json)

    def put(self, endpoint: str, json: Any = None) -> dict:
        return self.request("PUT", endpoint, json=json)

    def patch(self, endpoint: str, json: Any = None) -> dict:
        return self.request("PATCH", endpoint, json=json)

    def delete(self, endpoint: str) -> dict:
        return self.request("DELETE", endpoint)
