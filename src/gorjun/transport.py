"""
HTTP transport for the Kurjun REST surface.

A thin wrapper over ``requests.Session`` that knows the base URL and
maps every ``requests`` failure to TransportError. It never interprets
HTTP status codes: the auth endpoints signal errors in the body and the
file endpoints by status, so callers decide.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import requests

from .errors import TransportError

logger = logging.getLogger("gorjun.transport")

API_PREFIX = "/kurjun/rest"
DEFAULT_TIMEOUT = 30


@dataclass(frozen=True)
class Response:
    """Status and body of a finished request."""

    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class HTTPTransport:
    """Blocking HTTPS client bound to one repository host.

    Args:
        hostname: Host, optionally with port (e.g. "cdn.example.com:8338").
        scheme: URL scheme, "https" unless testing against plain HTTP.
        timeout: Per-request timeout in seconds.
        verify: Verify TLS certificates.
        session: Reuse an existing requests.Session.
    """

    def __init__(
        self,
        hostname: str,
        scheme: str = "https",
        timeout: float = DEFAULT_TIMEOUT,
        verify: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.hostname = hostname
        self.scheme = scheme
        self.timeout = timeout
        self.verify = verify
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.hostname}{API_PREFIX}"

    def url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Response:
        url = self.url(endpoint)
        logger.debug("%s %s", method, url)
        try:
            resp = self._session.request(
                method, url, timeout=self.timeout, verify=self.verify, **kwargs,
            )
            body = resp.text
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        logger.debug("%s %s -> %s", method, url, resp.status_code)
        return Response(status_code=resp.status_code, text=body)

    def get(self, endpoint: str, params: Optional[dict[str, str]] = None) -> Response:
        return self._request("GET", endpoint, params=params)

    def post_form(self, endpoint: str, data: dict[str, str]) -> Response:
        """POST an application/x-www-form-urlencoded body."""
        return self._request("POST", endpoint, data=data)

    def post_multipart(
        self,
        endpoint: str,
        file_path: Path,
        fields: Optional[dict[str, str]] = None,
        file_field: str = "file",
    ) -> Response:
        """POST a multipart form with one file part and plain fields.

        The file is streamed from disk and closed on every path.
        """
        with open(file_path, "rb") as fh:
            files = {file_field: (file_path.name, fh)}
            return self._request("POST", endpoint, files=files, data=fields or {})

    def delete(self, endpoint: str, params: Optional[dict[str, str]] = None) -> Response:
        return self._request("DELETE", endpoint, params=params)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> HTTPTransport:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
