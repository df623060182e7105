"""Error taxonomy shared by the adapters and the processing engine."""

from __future__ import annotations


class AutomationError(Exception):
    """Base class for errors raised by the automation service."""


class RemoteError(AutomationError):
    """A call to the document store or classification service failed.

    ``transient`` errors (rate limits, timeouts, dropped connections) are worth
    retrying; everything else is permanent for the current request.
    """

    def __init__(
        self,
        message: str,
        *,
        transient: bool,
        code: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.transient = transient
        self.code = code
        self.status = status

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429 or self.code == "rate_limited"

    @property
    def is_timeout(self) -> bool:
        return self.code == "timeout"


class NotFoundError(AutomationError):
    """A section or record that was expected to exist is absent."""


class ClassificationFailure(AutomationError):
    """The classification provider errored or returned malformed data."""
