"""Notion document-store adapter.

Every SDK call goes through a :class:`ResilientCaller`. Raw payloads are
validated into :class:`ContentNode` objects here so nothing downstream sees
the API's JSON shapes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from notion_client import Client

from src.config import Settings
from src.errors import NotFoundError, RemoteError
from src.extraction.models import ContentNode
from src.notion.blocks import InaccessiblePolicy, flatten_children, skip_embedded_foreign, to_content_node
from src.notion.properties import page_title
from src.resilience import ResilientCaller

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class NotionStore:
    """Read and write pages and blocks in a Notion workspace."""

    def __init__(self, client: Client, caller: ResilientCaller | None = None) -> None:
        self._client = client
        self._caller = caller or ResilientCaller()

    @classmethod
    def from_settings(cls, settings: Settings) -> NotionStore:
        client = Client(auth=settings.notion_token, timeout_ms=settings.notion_timeout_ms)
        caller = ResilientCaller(
            min_interval=settings.rate_limit_delay_seconds,
            max_attempts=settings.max_retries,
            base_delay=settings.backoff_base_seconds,
            max_delay=settings.backoff_cap_seconds,
            jitter=settings.backoff_jitter_seconds,
        )
        return cls(client, caller)

    # -- queries -----------------------------------------------------------

    def query(
        self,
        database_id: str,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        """Return every page in ``database_id`` matching ``filter``."""
        params: dict[str, Any] = {"database_id": database_id}
        if filter:
            params["filter"] = filter
        if sorts:
            params["sorts"] = sorts

        pages: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            if cursor:
                params["start_cursor"] = cursor
            response = self._caller.call(self._client.databases.query, **params)
            pages.extend(response.get("results", []))
            cursor = response.get("next_cursor")
            if not response.get("has_more") or not cursor:
                return pages

    def task_exists(self, database_id: str, key: str) -> bool:
        """Whether a task with ``Line Key`` equal to ``key`` already exists."""
        response = self._caller.call(
            self._client.databases.query,
            database_id=database_id,
            filter={"property": "Line Key", "rich_text": {"equals": key}},
            page_size=1,
        )
        return len(response.get("results", [])) > 0

    def find_page_by_title(self, database_id: str, title: str, property_name: str = "Name") -> str:
        """Return the id of the page whose title is exactly ``title``.

        Raises:
            NotFoundError: no page has that exact (case-sensitive) title.
        """
        pages = self.query(database_id, filter={"property": property_name, "title": {"equals": title}})
        for page in pages:
            if page_title(page) == title:
                logger.debug("Found page %s titled %r", page["id"], title)
                return str(page["id"])
        raise NotFoundError(f"No page titled {title!r} in database {database_id}")

    # -- blocks ------------------------------------------------------------

    def _list_children(self, block_id: str) -> list[ContentNode]:
        nodes: list[ContentNode] = []
        params: dict[str, Any] = {"block_id": block_id, "page_size": PAGE_SIZE}
        while True:
            response = self._caller.call(self._client.blocks.children.list, **params)
            nodes.extend(to_content_node(block) for block in response.get("results", []))
            cursor = response.get("next_cursor")
            if not response.get("has_more") or not cursor:
                return nodes
            params["start_cursor"] = cursor

    def get_children(
        self,
        block_id: str,
        recursive: bool = False,
        on_inaccessible: Callable[[ContentNode, RemoteError], InaccessiblePolicy] = skip_embedded_foreign,
    ) -> list[ContentNode]:
        """Children of ``block_id``; with ``recursive`` all descendants, depth-first."""
        if not recursive:
            return self._list_children(block_id)
        return flatten_children(block_id, self._list_children, on_inaccessible)

    def append_children(
        self, parent_id: str, children: list[dict[str, Any]], after: str | None = None
    ) -> None:
        """Insert ``children`` under ``parent_id``, directly after block ``after`` if given."""
        params: dict[str, Any] = {"block_id": parent_id, "children": children}
        if after:
            params["after"] = after
        self._caller.call(self._client.blocks.children.append, **params)

    def delete_block(self, block_id: str) -> None:
        self._caller.call(self._client.blocks.delete, block_id=block_id)

    # -- pages -------------------------------------------------------------

    def get_page(self, page_id: str) -> dict[str, Any]:
        return self._caller.call(self._client.pages.retrieve, page_id=page_id)

    def create_page(self, database_id: str, properties: dict[str, Any]) -> str:
        response = self._caller.call(
            self._client.pages.create,
            parent={"type": "database_id", "database_id": database_id},
            properties=properties,
        )
        return str(response["id"])

    def update_page(self, page_id: str, properties: dict[str, Any]) -> None:
        self._caller.call(self._client.pages.update, page_id=page_id, properties=properties)

    def archive_page(self, page_id: str) -> None:
        self._caller.call(self._client.pages.update, page_id=page_id, archived=True)
