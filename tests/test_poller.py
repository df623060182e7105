"""Tests for the poll cycle and the long-running loop."""

from __future__ import annotations

import pytest

from src.automation import poller
from src.automation.context import AutomationContext
from src.automation.models import QuickEntryRecord, SourceDocument
from src.automation.poller import fetch_due_meetings, fetch_quick_entries, run_forever, run_poll_cycle
from src.automation.quick_entry import FailureTracker
from src.config import Settings
from src.errors import RemoteError
from tests.conftest import (
    MEETINGS_DB,
    TASKS_DB,
    FakeClassifier,
    FakeStore,
    heading,
    meeting_page,
    paragraph,
    task_page,
    todo,
)


@pytest.fixture
def context(store: FakeStore, settings: Settings) -> AutomationContext:
    return AutomationContext(settings=settings, store=store, classifier=FakeClassifier())


def _seed_meetings(store: FakeStore) -> None:
    store.add_page(MEETINGS_DB, meeting_page("new", "ClickUp Sync"), [todo("t1", "Email Karen")])
    store.add_page(
        MEETINGS_DB,
        meeting_page(
            "stale",
            "Podcast planning",
            last_edited="2025-01-10T12:00:00.000Z",
            processed=True,
            last_processed="2025-01-11T08:00:00.000Z",
        ),
        [todo("t2", "Book studio")],
    )
    store.add_page(
        MEETINGS_DB,
        meeting_page(
            "edited",
            "HubSpot review",
            last_edited="2025-01-12T12:00:00.000Z",
            processed=True,
            last_processed="2025-01-11T08:00:00.000Z",
        ),
        [todo("t3", "Send renewal quote")],
    )


def _date_only_meeting(page_id: str, title: str, last_edited: str) -> dict:
    # Notion allows a plain date in "Last Processed"
    return meeting_page(page_id, title, last_edited=last_edited, processed=True, last_processed="2025-01-11")


def _seed_quick_entry(store: FakeStore, page_id: str = "q1") -> None:
    store.add_page(
        TASKS_DB,
        task_page(page_id),
        [heading(f"{page_id}-t", "Task"), paragraph(f"{page_id}-p", "send the onboarding deck")],
    )


class TestFetch:
    def test_due_meetings(self, context: AutomationContext, store: FakeStore) -> None:
        _seed_meetings(store)
        checked, due = fetch_due_meetings(context)
        assert checked == 3
        assert [doc.id for doc in due] == ["new", "edited"]

    def test_malformed_page_skipped(self, context: AutomationContext, store: FakeStore) -> None:
        _seed_meetings(store)
        store.add_page(MEETINGS_DB, {"object": "page", "id": "broken", "properties": {}})
        checked, due = fetch_due_meetings(context)
        assert checked == 4
        assert "broken" not in [doc.id for doc in due]

    def test_date_only_last_processed(self, context: AutomationContext, store: FakeStore) -> None:
        store.add_page(
            MEETINGS_DB,
            _date_only_meeting("dated-edited", "ClickUp Sync", last_edited="2025-01-12T12:00:00.000Z"),
        )
        store.add_page(
            MEETINGS_DB,
            _date_only_meeting("dated-stale", "Podcast planning", last_edited="2025-01-10T12:00:00.000Z"),
        )
        checked, due = fetch_due_meetings(context)
        assert checked == 2
        assert [doc.id for doc in due] == ["dated-edited"]

    def test_unreadable_timestamps_skip_only_that_meeting(
        self, context: AutomationContext, store: FakeStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _seed_meetings(store)
        original = poller.should_process

        def should_process(doc: SourceDocument) -> bool:
            if doc.id == "new":
                raise TypeError("can't compare offset-naive and offset-aware datetimes")
            return original(doc)

        monkeypatch.setattr(poller, "should_process", should_process)
        checked, due = fetch_due_meetings(context)
        assert checked == 3
        assert [doc.id for doc in due] == ["edited"]

    def test_quick_entries_exclude_filled_in_tasks(self, context: AutomationContext, store: FakeStore) -> None:
        _seed_quick_entry(store)
        store.add_page(TASKS_DB, task_page("real", "Prepare quarterly report", priority="High", project="QER"))
        assert [r.id for r in fetch_quick_entries(context)] == ["q1"]


class TestRunPollCycle:
    def test_full_cycle(self, context: AutomationContext, store: FakeStore) -> None:
        _seed_meetings(store)
        _seed_quick_entry(store)

        summary = run_poll_cycle(context)

        assert summary.meetings_checked == 3
        assert summary.meetings_processed == 2
        assert summary.meetings_failed == 0
        assert summary.tasks_created == 2
        assert summary.quick_entries_found == 1
        assert summary.quick_entries_processed == 1
        assert summary.errors == []
        assert {page_id for page_id, _ in store.updated} == {"new", "edited", "q1"}

    def test_date_only_last_processed_in_full_cycle(self, context: AutomationContext, store: FakeStore) -> None:
        _seed_meetings(store)
        store.add_page(
            MEETINGS_DB,
            _date_only_meeting("dated", "HubSpot sync", last_edited="2025-01-12T12:00:00.000Z"),
            [todo("t4", "Export contact list")],
        )
        _seed_quick_entry(store)

        summary = run_poll_cycle(context)

        assert summary.meetings_checked == 4
        assert summary.meetings_processed == 3
        assert summary.tasks_created == 3
        assert summary.quick_entries_processed == 1
        assert summary.errors == []
        assert {page_id for page_id, _ in store.updated} == {"new", "edited", "dated", "q1"}

    def test_failing_meeting_does_not_stop_cycle(self, context: AutomationContext, store: FakeStore) -> None:
        _seed_meetings(store)
        store.inaccessible.add("new")

        summary = run_poll_cycle(context)

        assert summary.meetings_failed == 1
        assert summary.meetings_processed == 1
        assert len(summary.errors) == 1
        assert summary.errors[0].startswith("meeting new:")

    def test_meetings_query_failure_still_runs_quick_entries(
        self, context: AutomationContext, store: FakeStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _seed_quick_entry(store)
        original = store.query

        def query(database_id: str, filter: dict | None = None, sorts: list | None = None) -> list:
            if database_id == MEETINGS_DB:
                raise RemoteError("service unavailable", transient=True, status=503)
            return original(database_id, filter, sorts)

        monkeypatch.setattr(store, "query", query)
        summary = run_poll_cycle(context)

        assert summary.meetings_checked == 0
        assert summary.quick_entries_processed == 1
        assert summary.errors == ["meetings query: service unavailable"]

    def test_failing_quick_entry_is_deferred(
        self, store: FakeStore, settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        context = AutomationContext(
            settings=settings,
            store=store,
            classifier=FakeClassifier(),
            tracker=FailureTracker(max_failures=2, cooldown_cycles=1),
        )
        _seed_quick_entry(store)
        _seed_quick_entry(store, "q2")

        def process(record: QuickEntryRecord) -> None:
            if record.id == "q1":
                raise RuntimeError("boom")
            return None

        monkeypatch.setattr(context.quick_entries, "process", process)

        first = run_poll_cycle(context)
        second = run_poll_cycle(context)
        third = run_poll_cycle(context)
        fourth = run_poll_cycle(context)

        assert [s.quick_entries_deferred for s in (first, second, third, fourth)] == [0, 0, 1, 0]
        assert first.errors == ["quick entry q1: boom"]
        assert third.errors == []
        assert context.tracker.failures("q1") == 3


class TestRunForever:
    def test_sleeps_between_cycles(self, context: AutomationContext, monkeypatch: pytest.MonkeyPatch) -> None:
        cycles: list[AutomationContext] = []
        monkeypatch.setattr(poller, "run_poll_cycle", cycles.append)
        sleeps: list[float] = []

        run_forever(context, interval=5, sleep=sleeps.append, max_cycles=3)

        assert len(cycles) == 3
        assert sleeps == [5, 5]

    def test_interval_from_settings(self, context: AutomationContext, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(poller, "run_poll_cycle", lambda ctx: None)
        sleeps: list[float] = []
        run_forever(context, sleep=sleeps.append, max_cycles=2)
        assert sleeps == [context.settings.poll_interval_seconds]
