"""Append categorized project information to a project's knowledge page.

Each project has one page in the projects database with fixed sections.
New lines are inserted directly under the section heading, so the most recent
batch always sits on top of older ones.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from src.classification.models import CategorizedBundle
from src.config import Settings
from src.errors import NotFoundError, RemoteError
from src.extraction.sections import find_section, heading_matcher, strip_bullet_glyph
from src.notion.blocks import bulleted_item
from src.notion.store import NotionStore

logger = logging.getLogger(__name__)

# Match phrases; the page headings carry a leading emoji
CREDENTIALS_SECTION = "Credentials & Access"
CONTACTS_SECTION = "Key Contacts"
LINKS_SECTION = "Important Links"
DECISIONS_SECTION = "Project Context & Decisions"

CATEGORY_SECTIONS: tuple[tuple[str, str], ...] = (
    ("credentials", CREDENTIALS_SECTION),
    ("contacts", CONTACTS_SECTION),
    ("links", LINKS_SECTION),
)


def _to_items(content: str) -> list[str]:
    items = [strip_bullet_glyph(line) for line in content.splitlines()]
    return [item for item in items if item]


class ProjectPageRouter:
    """Route a :class:`CategorizedBundle` into a project's knowledge page."""

    def __init__(
        self,
        store: NotionStore,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._database_id = settings.projects_database_id
        self._retry_attempts = settings.append_retry_attempts
        self._retry_step = settings.append_retry_step_seconds
        self._sleep = sleep

    def find_project_page(self, project_name: str) -> str:
        """Return the page id of the project titled exactly ``project_name``.

        Raises:
            NotFoundError: no such project page.
        """
        return self._store.find_page_by_title(self._database_id, project_name)

    def _append_with_retry(self, page_id: str, heading_id: str, items: list[str]) -> None:
        children = [bulleted_item(item) for item in items]
        for retry in range(self._retry_attempts + 1):
            try:
                self._store.append_children(page_id, children, after=heading_id)
                return
            except RemoteError as exc:
                if not exc.transient or retry >= self._retry_attempts:
                    raise
                delay = self._retry_step * (retry + 1)
                logger.warning(
                    "Append to %s failed (%s), retrying in %.0fs (retry %d/%d)",
                    page_id,
                    exc,
                    delay,
                    retry + 1,
                    self._retry_attempts,
                )
                self._sleep(delay)

    def append_to_section(
        self,
        page_id: str,
        section: str,
        content: str,
        fallback: str | None = DECISIONS_SECTION,
    ) -> bool:
        """Insert each line of ``content`` as a bullet right after ``section``'s heading.

        Only the page's top-level blocks are read. If ``section`` is missing the
        ``fallback`` section is tried once; if that is missing too nothing is
        written.

        Returns:
            True if the lines were appended.
        """
        items = _to_items(content)
        if not items:
            return False

        nodes = self._store.get_children(page_id)
        target = find_section(nodes, heading_matcher(section))
        if target is None and fallback and fallback != section:
            logger.warning("Section %r not found on %s, falling back to %r", section, page_id, fallback)
            target = find_section(nodes, heading_matcher(fallback))
        if target is None:
            logger.error("No %r section (or fallback) on page %s", section, page_id)
            return False

        try:
            self._append_with_retry(page_id, nodes[target.start].id, items)
        except RemoteError as exc:
            logger.error("Failed to append %d line(s) to %r on %s: %s", len(items), section, page_id, exc)
            return False
        logger.info("Appended %d line(s) under %r on %s", len(items), section, page_id)
        return True

    def route(self, project_name: str, bundle: CategorizedBundle) -> bool:
        """Write ``bundle`` into the knowledge page of ``project_name``.

        Decisions and uncategorized lines always go together into the decisions
        section as a single append.

        Returns:
            True if at least one append succeeded.
        """
        try:
            page_id = self.find_project_page(project_name)
        except NotFoundError:
            logger.warning("Project page not found for %r, skipping routing", project_name)
            return False

        succeeded = 0
        for category, section in CATEGORY_SECTIONS:
            lines = getattr(bundle, category)
            if lines and self.append_to_section(page_id, section, "\n".join(lines)):
                succeeded += 1

        log_lines = bundle.decisions + bundle.other
        if log_lines and self.append_to_section(page_id, DECISIONS_SECTION, "\n".join(log_lines), fallback=None):
            succeeded += 1

        logger.info("Routed project info to %r: %d append(s) succeeded", project_name, succeeded)
        return succeeded > 0
