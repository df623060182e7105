"""Validated result types returned by the classification providers."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, field_validator

from src.extraction.models import Priority

CATEGORIES = ("credentials", "contacts", "links", "decisions", "other")


def _clean_lines(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


class CategorizedBundle(BaseModel):
    """Project info lines sorted into the five knowledge categories."""

    credentials: list[str] = []
    contacts: list[str] = []
    links: list[str] = []
    decisions: list[str] = []
    other: list[str] = []

    @field_validator(*CATEGORIES, mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> list[str]:
        return _clean_lines(value)

    @classmethod
    def uncategorized(cls, lines: list[str]) -> CategorizedBundle:
        """Bundle that keeps every line under ``other``."""
        return cls(other=lines)

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in CATEGORIES)

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in CATEGORIES}


class ParsedTask(BaseModel):
    """One task parsed out of free-form task text."""

    title: str
    project: str | None = None
    priority: Priority = Priority.MEDIUM
    due: date | None = None
    context: str | None = None

    @field_validator("project", "context", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and (not value.strip() or value.strip().lower() == "null"):
            return None
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> Priority:
        if isinstance(value, str):
            for priority in Priority:
                if priority.value.lower() == value.strip().lower():
                    return priority
        return Priority.MEDIUM

    @field_validator("due", mode="before")
    @classmethod
    def _coerce_due(cls, value: Any) -> date | None:
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip()[:10])
            except ValueError:
                return None
        return None
