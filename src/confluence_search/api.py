"""Confluence REST API client."""

import asyncio
from typing import Any

import requests
from loguru import logger

from confluence_search.errors import NetworkError
from confluence_search.urls import sanitize_base_url

SEARCH_EXPAND = "ancestors,space.icon,history.createdBy,version"


class ConfluenceApi:
    """Encapsulated Confluence REST API.

    Authentication rides on the session: a personal access token when one is
    configured, otherwise whatever cookies the caller puts on ``sess``.
    """

    def __init__(self, base_url: str, *, token: str | None = None, timeout: float = 30) -> None:
        self.base_url = sanitize_base_url(base_url)
        self.timeout = timeout
        self.sess = requests.Session()
        self.sess.headers["Accept"] = "application/json"
        if token:
            self.sess.headers["Authorization"] = f"Bearer {token}"

        logger.debug("API ready: {!r}, token {}", self.base_url, "set" if token else "not set")

    def call(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """Invoke a REST endpoint with GET, return json.

        Raises:
            NetworkError: On transport failure, HTTP error status or invalid JSON.
        """
        url = f"{self.base_url}/rest/api/{path}"
        logger.debug("Making request: {!r} {}", path, repr(params)[:64])
        try:
            r = self.sess.get(url, params=params, timeout=self.timeout)
            r.raise_for_status()
            rv: dict[str, Any] = r.json()
        except requests.RequestException as e:
            msg = f"Request to {path!r} failed: {e}"
            raise NetworkError(msg) from e
        except ValueError as e:
            msg = f"Invalid JSON from {path!r}: {e}"
            raise NetworkError(msg) from e
        if not isinstance(rv, dict):
            msg = f"Unexpected response from {path!r}: {type(rv).__name__}"
            raise NetworkError(msg)
        return rv

    async def search(self, cql: str, *, limit: int, offset: int) -> dict[str, Any]:
        """Fetch one page of content search results."""
        params = {"cql": cql, "limit": limit, "start": offset, "expand": SEARCH_EXPAND}
        return await asyncio.to_thread(self.call, "content/search", params)

    async def get_content(self, content_id: str) -> dict[str, Any]:
        """Fetch a single content item in the same shape as a search result."""
        return await asyncio.to_thread(self.call, f"content/{content_id}", {"expand": SEARCH_EXPAND})

    async def get_content_body(self, content_id: str) -> str:
        """Fetch the storage-format body of a content item."""
        data = await asyncio.to_thread(self.call, f"content/{content_id}", {"expand": "body.storage"})
        body = ((data.get("body") or {}).get("storage") or {}).get("value")
        return body or "(No content)"
