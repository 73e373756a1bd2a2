"""Custom exception hierarchy for fishfeeder."""

from __future__ import annotations


class FeederError(Exception):
    """Base exception for all fishfeeder errors."""


class FeederConfigError(FeederError):
    """Invalid or missing configuration."""


class FeederStoreError(FeederError):
    """Remote store failure (network, non-200, invalid JSON, dropped stream)."""

    def __init__(
        self,
        message: str,
        *,
        path: str = "",
        status_code: int | None = None,
    ) -> None:
        self.path = path
        self.status_code = status_code
        super().__init__(message)


class FeederWriteError(FeederStoreError):
    """A point write or atomic increment was not applied by the store."""


class FeederInitializationError(FeederError):
    """The initial snapshot read failed.

    The engine degrades to zero-valued live state when this happens;
    it is never fatal.
    """


class FeederDispatchBlockedError(FeederError):
    """A guard condition prevented an operator command from being sent."""

    def __init__(self, message: str, *, reason: str = "") -> None:
        self.reason = reason
        super().__init__(message)
