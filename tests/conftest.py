"""Shared fixtures: an in-memory Notion stand-in, page builders and a scripted classifier."""

from __future__ import annotations

import itertools
from collections.abc import Callable
from typing import Any

import pytest

from src.classification.models import CategorizedBundle, ParsedTask
from src.config import Settings
from src.errors import NotFoundError, RemoteError
from src.extraction.models import ContentNode, NodeKind
from src.notion.blocks import InaccessiblePolicy, flatten_children, skip_embedded_foreign, to_content_node
from src.notion.properties import page_title

MEETINGS_DB = "meetings-db"
TASKS_DB = "tasks-db"
PROJECTS_DB = "projects-db"

def _as_read(payload: dict[str, Any]) -> dict[str, Any]:
    """Echo ``text.content`` as ``plain_text`` on rich text, as the Notion API does on read."""
    block_type = payload.get("type")
    body = payload.get(block_type) if block_type else None
    if not isinstance(body, dict) or "rich_text" not in body:
        return payload
    rich_text = [
        {**part, "plain_text": part.get("plain_text", part.get("text", {}).get("content", ""))}
        for part in body["rich_text"]
    ]
    return {**payload, block_type: {**body, "rich_text": rich_text}}


# ---------------------------------------------------------------------------
# Node builders
# ---------------------------------------------------------------------------


def heading(node_id: str, text: str, level: int = 2) -> ContentNode:
    return ContentNode(id=node_id, kind=NodeKind.HEADING, text=text, level=level, block_type=f"heading_{level}")


def paragraph(node_id: str, text: str) -> ContentNode:
    return ContentNode(id=node_id, kind=NodeKind.PARAGRAPH, text=text, block_type="paragraph")


def bullet(node_id: str, text: str) -> ContentNode:
    return ContentNode(id=node_id, kind=NodeKind.BULLET_ITEM, text=text, block_type="bulleted_list_item")


def numbered(node_id: str, text: str) -> ContentNode:
    return ContentNode(id=node_id, kind=NodeKind.NUMBERED_ITEM, text=text, block_type="numbered_list_item")


def todo(node_id: str, text: str, checked: bool = False) -> ContentNode:
    return ContentNode(id=node_id, kind=NodeKind.CHECK_ITEM, text=text, checked=checked, block_type="to_do")


def divider(node_id: str) -> ContentNode:
    return ContentNode(id=node_id, kind=NodeKind.DIVIDER, block_type="divider")


def project_page_nodes(prefix: str = "p") -> list[ContentNode]:
    """Top-level blocks of a freshly templated project page."""
    return [
        heading(f"{prefix}-cred", "🔑 Credentials & Access"),
        paragraph(f"{prefix}-cred-note", "Keys and logins"),
        heading(f"{prefix}-contacts", "👥 Key Contacts"),
        heading(f"{prefix}-links", "🔗 Important Links"),
        heading(f"{prefix}-decisions", "💡 Project Context & Decisions"),
    ]


# ---------------------------------------------------------------------------
# Page payload builders
# ---------------------------------------------------------------------------


def _title(text: str) -> dict[str, Any]:
    return {"type": "title", "title": [{"plain_text": text}] if text else []}


def _select(name: str | None) -> dict[str, Any]:
    return {"type": "select", "select": {"name": name} if name else None}


def _date(value: str | None) -> dict[str, Any]:
    return {"type": "date", "date": {"start": value} if value else None}


def meeting_page(
    page_id: str,
    title: str,
    last_edited: str = "2025-01-10T12:00:00.000Z",
    processed: bool = False,
    last_processed: str | None = None,
    project: str | None = None,
) -> dict[str, Any]:
    return {
        "object": "page",
        "id": page_id,
        "last_edited_time": last_edited,
        "properties": {
            "Name": _title(title),
            "Processed": {"type": "checkbox", "checkbox": processed},
            "Last Processed": _date(last_processed),
            "Project": _select(project),
        },
    }


def task_page(
    page_id: str,
    title: str = "",
    status: str | None = None,
    priority: str | None = None,
    project: str | None = None,
    due: str | None = None,
) -> dict[str, Any]:
    return {
        "object": "page",
        "id": page_id,
        "last_edited_time": "2025-01-10T12:00:00.000Z",
        "properties": {
            "Title": _title(title),
            "Status": _select(status),
            "Priority": _select(priority),
            "Project": _select(project),
            "Due": _date(due),
        },
    }


def project_page(page_id: str, name: str) -> dict[str, Any]:
    return {
        "object": "page",
        "id": page_id,
        "last_edited_time": "2025-01-01T00:00:00.000Z",
        "properties": {"Name": _title(name)},
    }


def prop_text(properties: dict[str, Any], name: str) -> str:
    """Plain text of a title or rich_text property value built by the service."""
    value = properties[name]
    parts = value.get("title") or value.get("rich_text") or []
    return "".join(part["text"]["content"] for part in parts)


# ---------------------------------------------------------------------------
# Fake document store
# ---------------------------------------------------------------------------


class FakeStore:
    """In-memory stand-in for :class:`src.notion.store.NotionStore`.

    Pages live in named databases; block children live in ``children``.
    Appends are applied to ``children`` so the resulting order can be
    asserted. ``append_failures`` is consumed one exception per append call.
    """

    def __init__(self) -> None:
        self.databases: dict[str, list[str]] = {}
        self.pages: dict[str, dict[str, Any]] = {}
        self.children: dict[str, list[ContentNode]] = {}
        self.created: list[tuple[str, dict[str, Any]]] = []
        self.updated: list[tuple[str, dict[str, Any]]] = []
        self.appended: list[tuple[str, list[dict[str, Any]], str | None]] = []
        self.deleted: list[str] = []
        self.archived: list[str] = []
        self.append_failures: list[Exception] = []
        self.inaccessible: set[str] = set()
        self.children_calls: list[tuple[str, bool]] = []
        self._ids = itertools.count(1)

    # -- setup helpers -----------------------------------------------------

    def add_page(self, database_id: str, payload: dict[str, Any], children: list[ContentNode] | None = None) -> str:
        self.databases.setdefault(database_id, []).append(payload["id"])
        self.pages[payload["id"]] = payload
        self.children[payload["id"]] = list(children or [])
        return payload["id"]

    def tasks_created(self) -> list[dict[str, Any]]:
        return [props for db, props in self.created if db == TASKS_DB]

    # -- NotionStore interface ---------------------------------------------

    def query(
        self,
        database_id: str,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        return [self.pages[page_id] for page_id in self.databases.get(database_id, []) if page_id not in self.archived]

    def task_exists(self, database_id: str, key: str) -> bool:
        for db, props in self.created:
            if db == database_id and "Line Key" in props and prop_text(props, "Line Key") == key:
                return True
        return False

    def find_page_by_title(self, database_id: str, title: str, property_name: str = "Name") -> str:
        for page_id in self.databases.get(database_id, []):
            if page_title(self.pages[page_id]) == title:
                return page_id
        raise NotFoundError(f"No page titled {title!r} in database {database_id}")

    def _list_children(self, block_id: str) -> list[ContentNode]:
        if block_id in self.inaccessible:
            raise RemoteError("Could not find block", transient=False, code="object_not_found", status=404)
        return list(self.children.get(block_id, []))

    def get_children(
        self,
        block_id: str,
        recursive: bool = False,
        on_inaccessible: Callable[[ContentNode, RemoteError], InaccessiblePolicy] = skip_embedded_foreign,
    ) -> list[ContentNode]:
        self.children_calls.append((block_id, recursive))
        if not recursive:
            return self._list_children(block_id)
        return flatten_children(block_id, self._list_children, on_inaccessible)

    def append_children(self, parent_id: str, children: list[dict[str, Any]], after: str | None = None) -> None:
        if self.append_failures:
            raise self.append_failures.pop(0)
        self.appended.append((parent_id, children, after))
        nodes = [to_content_node({**_as_read(payload), "id": f"new-{next(self._ids)}"}) for payload in children]
        existing = self.children.setdefault(parent_id, [])
        index = len(existing)
        if after is not None:
            index = next(i for i, node in enumerate(existing) if node.id == after) + 1
        existing[index:index] = nodes

    def delete_block(self, block_id: str) -> None:
        for nodes in self.children.values():
            for i, node in enumerate(nodes):
                if node.id == block_id:
                    del nodes[i]
                    self.deleted.append(block_id)
                    return
        raise RemoteError("Block already deleted", transient=False, code="object_not_found", status=404)

    def get_page(self, page_id: str) -> dict[str, Any]:
        if page_id not in self.pages:
            raise RemoteError("Could not find page", transient=False, code="object_not_found", status=404)
        return self.pages[page_id]

    def create_page(self, database_id: str, properties: dict[str, Any]) -> str:
        page_id = f"created-{next(self._ids)}"
        self.created.append((database_id, properties))
        return page_id

    def update_page(self, page_id: str, properties: dict[str, Any]) -> None:
        self.updated.append((page_id, properties))

    def archive_page(self, page_id: str) -> None:
        self.archived.append(page_id)


# ---------------------------------------------------------------------------
# Scripted classifier
# ---------------------------------------------------------------------------


class FakeClassifier:
    """Classifier returning canned results and recording its inputs."""

    def __init__(
        self,
        bundle: CategorizedBundle | Callable[[list[str]], CategorizedBundle] | None = None,
        tasks: list[ParsedTask] | None = None,
    ) -> None:
        self._bundle = bundle
        self._tasks = tasks
        self.categorize_calls: list[list[str]] = []
        self.parse_calls: list[str] = []

    def categorize(self, bullets: list[str]) -> CategorizedBundle:
        self.categorize_calls.append(list(bullets))
        if self._bundle is None:
            return CategorizedBundle.uncategorized(bullets)
        if callable(self._bundle):
            return self._bundle(bullets)
        return self._bundle

    def parse_tasks(self, text: str) -> list[ParsedTask]:
        self.parse_calls.append(text)
        if self._tasks is None:
            return [ParsedTask(title=text.strip())]
        return self._tasks


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        notion_token="secret_test",
        meetings_database_id=MEETINGS_DB,
        tasks_database_id=TASKS_DB,
        projects_database_id=PROJECTS_DB,
        append_retry_step_seconds=0.0,
        rate_limit_delay_seconds=0.0,
        timezone="UTC",
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
