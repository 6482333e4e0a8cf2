from __future__ import annotations

from typing import Any, Dict, Optional

import httpx


class CrawlError(Exception):
    """Base class for crawl failures."""


class TransportError(CrawlError):
    """An HTTP fetch failed (connection error, timeout or non-2xx status)."""

    def __init__(self, url: str, reason: str, *, link_id: Optional[str] = None) -> None:
        self.url = url
        self.reason = reason
        self.link_id = link_id
        super().__init__(f"GET {url} failed: {reason}")


class ParseError(CrawlError):
    """A fetched document did not have the expected structure."""

    def __init__(self, link_id: str, reason: str) -> None:
        self.link_id = link_id
        self.reason = reason
        super().__init__(f"Failed to parse section {link_id}: {reason}")


class PersistError(CrawlError):
    """Writing a durable file failed.

    The serialized payload is kept on the exception so the caller can emit it
    for manual recovery.
    """

    def __init__(self, path: str, payload: str, reason: str) -> None:
        self.path = path
        self.payload = payload
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}")


class CatalogError(CrawlError):
    """An existing catalog file could not be read or is not a valid catalog."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to load catalog {path}: {reason}")


class Spider:
    """Minimal spider contract.

    Subclasses implement fetch(). All spiders share one blocking GET helper so
    that a run can pass a single httpx.Client through every request.
    """

    name: str = "base"

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.timeout = float(timeout)
        self.headers = headers or {"User-Agent": "LectureIndex-Crawler/0.1"}
        self.client = client

    def fetch(self, *args: Any, **kwargs: Any) -> Any:
        raise NotImplementedError

    # --- Internals ---
    def _get(self, url: str, *, link_id: Optional[str] = None) -> str:
        return self._request(url, link_id=link_id).text

    def _get_bytes(self, url: str, *, link_id: Optional[str] = None) -> bytes:
        """Raw body, for documents that declare their own encoding (XML)."""
        return self._request(url, link_id=link_id).content

    def _request(self, url: str, *, link_id: Optional[str] = None) -> httpx.Response:
        try:
            if self.client is not None:
                r = self.client.get(url)
            else:
                with httpx.Client(timeout=self.timeout, headers=self.headers, follow_redirects=True) as client:
                    r = client.get(url)
            r.raise_for_status()
            return r
        except httpx.HTTPStatusError as exc:
            raise TransportError(url, f"HTTP {exc.response.status_code}", link_id=link_id) from exc
        except httpx.HTTPError as exc:
            raise TransportError(url, str(exc) or type(exc).__name__, link_id=link_id) from exc
