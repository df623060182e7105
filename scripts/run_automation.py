"""Run the meeting/quick-entry automation from the command line.

Examples:
    python scripts/run_automation.py once
    python scripts/run_automation.py loop --interval 300
    python scripts/run_automation.py meeting <page_id>
    python scripts/run_automation.py quick-entry <page_id>
    python scripts/run_automation.py find-project "HubSpot"
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.automation.context import AutomationContext, build_context
from src.automation.poller import run_forever, run_poll_cycle
from src.automation.quick_entry import is_quick_entry
from src.config import settings
from src.errors import AutomationError, NotFoundError
from src.notion.properties import parse_quick_entry, parse_source_document


def run_once(context: AutomationContext) -> int:
    summary = run_poll_cycle(context)
    print(
        f"Meetings: {summary.meetings_processed}/{summary.meetings_checked} processed, "
        f"{summary.meetings_failed} failed"
    )
    print(f"Tasks: {summary.tasks_created} created, {summary.tasks_skipped} skipped")
    print(
        f"Quick entries: {summary.quick_entries_processed}/{summary.quick_entries_found} processed, "
        f"{summary.quick_entries_deferred} deferred"
    )
    for error in summary.errors:
        print(f"  ERROR {error}")
    return 1 if summary.errors else 0


def run_meeting(context: AutomationContext, page_id: str) -> int:
    doc = parse_source_document(context.store.get_page(page_id))
    result = context.meetings.process(doc)
    print(f"{doc.title}: {result.created} created, {result.skipped} skipped")
    print(f"Project: {result.project} (needs review: {result.needs_review})")
    print(f"Project info routed: {result.project_info_routed}")
    return 0


def run_quick_entry(context: AutomationContext, page_id: str) -> int:
    record = parse_quick_entry(context.store.get_page(page_id))
    if not is_quick_entry(record):
        print(f"{page_id} is not a pending quick entry (title {record.title!r})")
        return 1
    result = context.quick_entries.process(record)
    if result is None:
        print("Nothing processed (both sections empty, or both failed)")
        return 1
    print(
        f"Task created: {result.task_created}, project info routed: {result.project_info_routed}, "
        f"page archived: {result.page_deleted}, extra tasks: {result.extra_tasks_created}"
    )
    return 0


def run_find_project(context: AutomationContext, name: str) -> int:
    try:
        page_id = context.router.find_project_page(name)
    except NotFoundError as e:
        print(str(e))
        return 1
    print(f"{name}: {page_id}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("once", help="run a single poll cycle")
    loop = sub.add_parser("loop", help="poll until interrupted")
    loop.add_argument("--interval", type=float, default=None, help="seconds between cycles")
    meeting = sub.add_parser("meeting", help="process one meeting page")
    meeting.add_argument("page_id")
    quick = sub.add_parser("quick-entry", help="process one quick entry page")
    quick.add_argument("page_id")
    find = sub.add_parser("find-project", help="look up a project page by exact title")
    find.add_argument("name")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    context = build_context(settings)

    try:
        if args.command == "once":
            return run_once(context)
        if args.command == "loop":
            run_forever(context, interval=args.interval)
            return 0
        if args.command == "meeting":
            return run_meeting(context, args.page_id)
        if args.command == "quick-entry":
            return run_quick_entry(context, args.page_id)
        return run_find_project(context, args.name)
    except KeyboardInterrupt:
        print("\nStopped.")
        return 0
    except AutomationError as e:
        print(f"ERROR {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
