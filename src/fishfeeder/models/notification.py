"""Advisory banner models."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Severity(enum.StrEnum):
    """Banner severity, mapped to a colour by the presentation layer."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class NotificationRequest(BaseModel):
    """A request to show a banner."""

    model_config = ConfigDict(frozen=True)

    text: str
    severity: Severity
    persistent: bool = False


class NotificationState(BaseModel):
    """What the banner currently shows.

    ``severity`` is ``None`` once the banner has been hidden.  The text
    is kept so the last message can still be inspected.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    severity: Severity | None = None
    persistent: bool = False
    active_since: datetime | None = None

    @property
    def visible(self) -> bool:
        return self.severity is not None
