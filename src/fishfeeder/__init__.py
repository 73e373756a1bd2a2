"""fishfeeder - Async control engine for a remotely monitored fish feeder."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fishfeeder")
except PackageNotFoundError:
    __version__ = "0+local"
from fishfeeder._constants import format_duration
from fishfeeder.config import FeederConfig
from fishfeeder.dispatcher import CommandDispatcher
from fishfeeder.engine import FeederControlEngine
from fishfeeder.exceptions import (
    FeederConfigError,
    FeederDispatchBlockedError,
    FeederError,
    FeederInitializationError,
    FeederStoreError,
    FeederWriteError,
)
from fishfeeder.models import (
    CanonicalState,
    CommandIntent,
    DispatchError,
    DispatchResult,
    EngineState,
    FeedMode,
    Flush,
    ManualFeed,
    NotificationRequest,
    NotificationState,
    SetInterval,
    Severity,
    ThresholdConfig,
)
from fishfeeder.models.dashboard import FeederDashboard
from fishfeeder.notifications import NotificationCenter
from fishfeeder.policy import HysteresisState, StockEvaluation, evaluate
from fishfeeder.scheduler import DailyCounterResetScheduler
from fishfeeder.store import FieldChange, FieldStore, MemoryFieldStore, RealtimeDatabaseStore

__all__ = [
    "__version__",
    "CanonicalState",
    "CommandDispatcher",
    "CommandIntent",
    "DailyCounterResetScheduler",
    "DispatchError",
    "DispatchResult",
    "EngineState",
    "FeedMode",
    "FeederConfig",
    "FeederConfigError",
    "FeederControlEngine",
    "FeederDashboard",
    "FeederDispatchBlockedError",
    "FeederError",
    "FeederInitializationError",
    "FeederStoreError",
    "FeederWriteError",
    "FieldChange",
    "FieldStore",
    "Flush",
    "HysteresisState",
    "ManualFeed",
    "MemoryFieldStore",
    "NotificationCenter",
    "NotificationRequest",
    "NotificationState",
    "RealtimeDatabaseStore",
    "SetInterval",
    "Severity",
    "StockEvaluation",
    "ThresholdConfig",
    "evaluate",
    "format_duration",
]
