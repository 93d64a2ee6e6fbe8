"""Thin ``requests`` wrapper performing exactly one GET per call.

Retries are not handled here; callers wrap calls in ``RetryPolicy.execute``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import requests
from requests import Response, Session
from requests.exceptions import JSONDecodeError, RequestException, Timeout

logger = logging.getLogger(__name__)


class HTTPClientError(RuntimeError):
    """Raised when a request fails at the transport or HTTP level."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        malformed: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.malformed = malformed


@dataclass(frozen=True)
class HTTPClientConfig:
    """Configuration for a provider's HTTP client."""

    base_url: str
    timeout: float = 10.0
    headers: Mapping[str, str] = field(default_factory=dict)


class HTTPClient:
    """Issue JSON GET requests against a single provider base URL."""

    def __init__(
        self,
        config: HTTPClientConfig,
        session: Optional[Session] = None,
    ) -> None:
        self._config = config
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        url = self.build_url(path)
        try:
            response = self._session.get(
                url,
                params=params,
                headers=dict(self._config.headers) or None,
                timeout=self._config.timeout,
            )
        except Timeout as exc:
            raise HTTPClientError(
                f"Timed out after {self._config.timeout}s fetching {url}", url=url
            ) from exc
        except RequestException as exc:
            raise HTTPClientError(f"Transport error fetching {url}: {exc}", url=url) from exc

        return self._handle_response(response, url)

    def build_url(self, path: str) -> str:
        base = self._config.base_url.rstrip("/")
        suffix = path.lstrip("/")
        return f"{base}/{suffix}" if suffix else base

    @staticmethod
    def _handle_response(response: Response, url: str) -> Dict[str, Any]:
        status = response.status_code
        if status >= 500:
            raise HTTPClientError(f"Server error {status}", status_code=status, url=url)
        if status >= 400:
            raise HTTPClientError(
                f"Client error {status}: {response.text[:200]}", status_code=status, url=url
            )

        try:
            payload = response.json()
        except (JSONDecodeError, ValueError) as exc:
            raise HTTPClientError("Invalid JSON response", url=url, malformed=True) from exc

        if not isinstance(payload, dict):
            raise HTTPClientError("Expected a JSON object response", url=url, malformed=True)
        return payload
