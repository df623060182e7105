"""Keyword tables used by the text classifiers.

Order matters: classifiers walk these tables top to bottom and the first
match wins.
"""

from __future__ import annotations

FALLBACK_PROJECT = "Support/Other"

# Title inference table; the fallback has no keywords of its own.
PROJECT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("ClickUp", ("clickup", "click up", "click-up", "cu", "cuarc")),
    ("Docebo", ("docebo", "lms", "learning management", "cogent uni", "uni")),
    ("HubSpot", ("hubspot", "crm", "hs", "hub spot")),
    ("AI Sales", ("ai sales", "retell", "retellai", "retell ai", "sai", "sales ai")),
    ("Insider Knowledge", ("insider", "insider knowledge", "ik", "merlin")),
    ("PD OTN", ("pd", "otn", "pd otn", "professional development")),
    ("Podcast", ("podcast", "episode", "recording", "riverside")),
    ("Quarterly Economic Review", ("qer", "economic review", "quarterly", "eco repo")),
    (FALLBACK_PROJECT, ()),
)

# Narrower table for free-form project info dropped into a quick entry, where
# short abbreviations produce too many false positives.
QUICK_ENTRY_PROJECT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("ClickUp", ("clickup", "click up")),
    ("HubSpot", ("hubspot", "hub spot")),
    ("Docebo", ("docebo",)),
    ("AI Sales", ("ai sales", "retell")),
    ("Insider Knowledge", ("insider", "merlin")),
    ("PD OTN", ("pd otn", "otn")),
    ("Podcast", ("podcast",)),
    ("Quarterly Economic Review", ("qer", "economic")),
)

HIGH_PRIORITY_KEYWORDS: tuple[str, ...] = (
    "urgent",
    "asap",
    "critical",
    "emergency",
    "immediately",
    "high priority",
    "top priority",
    "blocking",
    "must have",
    "important",
    "crucial",
)

LOW_PRIORITY_KEYWORDS: tuple[str, ...] = (
    "nice to have",
    "when you can",
    "low priority",
    "optional",
    "future",
    "someday",
    "backlog",
    "eventually",
    "if time",
)

# Any one of these is enough on its own for High
STRONG_HIGH_PRIORITY_KEYWORDS: tuple[str, ...] = ("high priority", "urgent")


def known_projects() -> list[str]:
    """Project names in table order, fallback last."""
    return [name for name, _ in PROJECT_KEYWORDS]
