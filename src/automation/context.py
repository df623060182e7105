from __future__ import annotations

from dataclasses import dataclass, field

from src.automation.meetings import MeetingProcessor
from src.automation.quick_entry import FailureTracker, QuickEntryProcessor
from src.classification.classifier import Classifier, build_classifier
from src.config import Settings
from src.notion.store import NotionStore
from src.routing.project_pages import ProjectPageRouter


@dataclass
class AutomationContext:
    """Everything one process needs to run poll cycles.

    Built once at start-up and passed to every entry point; the failure
    tracker lives here so its counts survive from one cycle to the next.
    """

    settings: Settings
    store: NotionStore
    classifier: Classifier
    tracker: FailureTracker = field(default_factory=FailureTracker)

    def __post_init__(self) -> None:
        self.router = ProjectPageRouter(self.store, self.settings)
        self.meetings = MeetingProcessor(self.store, self.classifier, self.router, self.settings)
        self.quick_entries = QuickEntryProcessor(
            self.store, self.classifier, self.router, self.settings, self.tracker
        )


def build_context(settings: Settings) -> AutomationContext:
    """Create the Notion store, classifier and processors from ``settings``."""
    return AutomationContext(
        settings=settings,
        store=NotionStore.from_settings(settings),
        classifier=build_classifier(settings),
        tracker=FailureTracker(
            max_failures=settings.quick_entry_max_failures,
            cooldown_cycles=settings.quick_entry_cooldown_cycles,
        ),
    )
