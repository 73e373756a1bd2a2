"""Typed models shared by the engine and its collaborators."""

from fishfeeder.models.commands import (
    CommandIntent,
    DispatchError,
    DispatchResult,
    FeedMode,
    Flush,
    ManualFeed,
    SetInterval,
)
from fishfeeder.models.notification import NotificationRequest, NotificationState, Severity
from fishfeeder.models.state import CanonicalState, EngineState, FeederField
from fishfeeder.models.thresholds import ThresholdConfig

__all__ = [
    "CanonicalState",
    "CommandIntent",
    "DispatchError",
    "DispatchResult",
    "EngineState",
    "FeedMode",
    "FeederField",
    "Flush",
    "ManualFeed",
    "NotificationRequest",
    "NotificationState",
    "SetInterval",
    "Severity",
    "ThresholdConfig",
]
