"""
Notion REST Client

Thin wrapper over a requests.Session holding the Notion credentials. Every
call is a single HTTP request with an explicit timeout; non-2xx responses are
turned into NotionAPIError subclasses carrying the status code and Notion's
error message, and transport failures into the same classes without a status.
"""

import time
from typing import Any, Dict, List, Optional

import requests

from ..config.constants import (
    DEFAULT_TIMEOUT,
    MAX_PAGE_SIZE,
    NOTION_BLOCKS_URL,
    NOTION_DATABASES_URL,
    NOTION_HEADERS,
    NOTION_PAGES_URL,
)
from ..exceptions import NotionAPIError, PerRecordWriteError, RemoteQueryError
from ..utils.structured_logger import StructuredLogger, get_logger


def _error_details(response: requests.Response):
    """Pull Notion's error message and code out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500], None
    if not isinstance(body, dict):
        return str(body)[:500], None
    return body.get("message") or response.reason, body.get("code")


class NotionClient:
    """
    Notion API client bound to one integration token.

    Args:
        token: Notion integration token
        session: Optional requests.Session (created when omitted)
        logger: Optional StructuredLogger for API call tracing
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        token: str,
        session: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.session = session or requests.Session()
        self.session.headers.update({
            **NOTION_HEADERS,
            "Authorization": f"Bearer {token}",
        })
        self.logger = logger or get_logger(__name__)
        self.timeout = timeout

    def _request(self, method: str, url: str, error_cls=NotionAPIError, **kwargs):
        self.logger.log_api_call("notion", url, method)
        start = time.time()
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise error_cls(f"Notion API {method} {url} failed: {e}") from e
        self.logger.log_api_response("notion", response.status_code, time.time() - start)

        if not response.ok:
            message, code = _error_details(response)
            raise error_cls(
                f"Notion API {method} {url} failed ({response.status_code}): {message}",
                status_code=response.status_code,
                code=code,
            )
        return response.json()

    # --- Databases ---

    def query_database(
        self,
        database_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> List[Dict[str, Any]]:
        """
        Return every page of a database, following pagination cursors.

        Raises:
            RemoteQueryError: On any non-2xx response or transport failure
        """
        url = f"{NOTION_DATABASES_URL}/{database_id}/query"
        pages = []
        start_cursor = None

        while True:
            payload: Dict[str, Any] = {"page_size": page_size}
            if filter:
                payload["filter"] = filter
            if sorts:
                payload["sorts"] = sorts
            if start_cursor:
                payload["start_cursor"] = start_cursor

            data = self._request("POST", url, error_cls=RemoteQueryError, json=payload)
            pages.extend(data.get("results", []))

            if not data.get("has_more") or not data.get("next_cursor"):
                break
            start_cursor = data.get("next_cursor")

        return pages

    def query_first(
        self, database_id: str, filter: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Return the first page matching the filter, or None."""
        url = f"{NOTION_DATABASES_URL}/{database_id}/query"
        payload: Dict[str, Any] = {"page_size": 1}
        if filter:
            payload["filter"] = filter
        data = self._request("POST", url, error_cls=RemoteQueryError, json=payload)
        results = data.get("results", [])
        return results[0] if results else None

    # --- Pages ---

    def retrieve_page(self, page_id: str) -> Dict[str, Any]:
        return self._request("GET", f"{NOTION_PAGES_URL}/{page_id}")

    def create_page(
        self,
        database_id: str,
        properties: Dict[str, Any],
        children: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "parent": {"database_id": database_id},
            "properties": properties,
        }
        if children:
            payload["children"] = children
        return self._request("POST", NOTION_PAGES_URL, json=payload)

    def update_page(
        self,
        page_id: str,
        properties: Optional[Dict[str, Any]] = None,
        archived: Optional[bool] = None,
        cover: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Partially update one page.

        Only the supplied properties are sent; Notion leaves the rest alone.

        Raises:
            PerRecordWriteError: On any non-2xx response or transport failure
        """
        payload: Dict[str, Any] = {}
        if properties:
            payload["properties"] = properties
        if archived is not None:
            payload["archived"] = archived
        if cover is not None:
            payload["cover"] = cover

        try:
            return self._request("PATCH", f"{NOTION_PAGES_URL}/{page_id}", json=payload)
        except NotionAPIError as e:
            raise PerRecordWriteError(
                page_id, str(e), status_code=e.status_code, code=e.code
            ) from e

    def archive_page(self, page_id: str) -> Dict[str, Any]:
        return self.update_page(page_id, archived=True)

    # --- Blocks ---

    def list_block_children(self, block_id: str) -> List[Dict[str, Any]]:
        """
        Return all direct children of a block or page.

        Raises:
            RemoteQueryError: On any non-2xx response or transport failure
        """
        url = f"{NOTION_BLOCKS_URL}/{block_id}/children"
        blocks = []
        start_cursor = None

        while True:
            params: Dict[str, Any] = {"page_size": MAX_PAGE_SIZE}
            if start_cursor:
                params["start_cursor"] = start_cursor

            data = self._request("GET", url, error_cls=RemoteQueryError, params=params)
            blocks.extend(data.get("results", []))

            if not data.get("has_more") or not data.get("next_cursor"):
                break
            start_cursor = data.get("next_cursor")

        return blocks

    def append_block_children(
        self,
        block_id: str,
        children: List[Dict[str, Any]],
        after: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Append blocks to a parent, optionally directly after a sibling."""
        payload: Dict[str, Any] = {"children": children}
        if after:
            payload["after"] = after
        return self._request(
            "PATCH", f"{NOTION_BLOCKS_URL}/{block_id}/children", json=payload
        )

    def delete_block(self, block_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"{NOTION_BLOCKS_URL}/{block_id}")
