from __future__ import annotations

from functools import lru_cache

from src.automation.context import AutomationContext, build_context
from src.config import get_settings


@lru_cache(maxsize=1)
def get_context() -> AutomationContext:
    """Process-wide automation context, built on first use.

    Tests replace it through ``app.dependency_overrides``.
    """
    return build_context(get_settings())
