"""Engine configuration for fishfeeder."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fishfeeder._constants import (
    DEFAULT_ROOT_PATH,
    NOTIFICATION_TIMEOUT,
    RESET_CHECK_INTERVAL,
    RESUBSCRIBE_DELAY,
    STOCK_POLL_INTERVAL,
)
from fishfeeder.exceptions import FeederConfigError
from fishfeeder.models.thresholds import ThresholdConfig


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class FeederConfig:
    """Engine and store configuration.

    Parameters
    ----------
    database_url : str
        Base URL of the realtime database (e.g.
        ``"https://my-feeder-default-rtdb.firebaseio.com"``).  Only needed
        by the HTTP store adapter.
    auth_token : str or None
        Database secret or ID token appended as ``?auth=`` to requests.
    root_path : str
        Key path under which the feeder's ``data``, ``status`` and
        ``commands`` subtrees live.
    thresholds : ThresholdConfig
        Stock sensor calibration.
    reset_check_interval : float
        Seconds between daily-counter rollover checks.
    stock_poll_interval : float
        Seconds between stock re-evaluations when no reading arrives.
    notification_timeout : float
        Seconds a transient notification stays visible.
    resubscribe_delay : float
        Seconds to wait before re-opening a dropped subscription stream.
    increment_retries : int
        Extra attempts for the drop-counter increment after the feed
        command itself was written.  ``0`` reports the failure without
        retrying.
    request_timeout : float
        Total timeout for a single store request.
    api_trace_enabled : bool
        Log redacted store requests and responses at DEBUG level.
    """

    database_url: str = ""
    auth_token: str | None = None
    root_path: str = DEFAULT_ROOT_PATH
    thresholds: ThresholdConfig = dataclasses.field(default_factory=ThresholdConfig)
    reset_check_interval: float = RESET_CHECK_INTERVAL
    stock_poll_interval: float = STOCK_POLL_INTERVAL
    notification_timeout: float = NOTIFICATION_TIMEOUT
    resubscribe_delay: float = RESUBSCRIBE_DELAY
    increment_retries: int = 0
    request_timeout: float = 10.0
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        for name in ("reset_check_interval", "stock_poll_interval", "notification_timeout"):
            if getattr(self, name) <= 0:
                raise FeederConfigError(f"{name} must be positive")
        if self.resubscribe_delay < 0:
            raise FeederConfigError("resubscribe_delay must not be negative")
        if self.increment_retries < 0:
            raise FeederConfigError("increment_retries must not be negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> FeederConfig:
        """Create configuration from ``FEEDER_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FeederConfig
            Populated configuration.
        """
        env = os.environ

        threshold_kwargs: dict[str, float] = {}
        _ENV_THRESHOLD_MAP = {
            "FEEDER_CAPACITY_KG": "capacity_kg",
            "FEEDER_EMPTY_THRESHOLD": "empty_threshold",
            "FEEDER_FULL_THRESHOLD": "full_threshold",
            "FEEDER_LOW_THRESHOLD": "low_threshold",
            "FEEDER_MIN_FEED_STOCK": "min_feed_stock",
        }
        for env_key, field_name in _ENV_THRESHOLD_MAP.items():
            val = env.get(env_key)
            if val is not None:
                try:
                    threshold_kwargs[field_name] = float(val)
                except ValueError as exc:
                    raise FeederConfigError(f"{env_key} is not a number: {val!r}") from exc

        threshold_overrides = overrides.pop("thresholds", None)
        if isinstance(threshold_overrides, dict):
            threshold_kwargs.update(threshold_overrides)
        elif isinstance(threshold_overrides, ThresholdConfig):
            threshold_kwargs = threshold_overrides.model_dump()

        try:
            thresholds = ThresholdConfig(**threshold_kwargs)
        except ValueError as exc:
            raise FeederConfigError(f"Invalid thresholds: {exc}") from exc

        config_kwargs: dict[str, Any] = {"thresholds": thresholds}
        _ENV_STR_MAP = {
            "FEEDER_DATABASE_URL": "database_url",
            "FEEDER_AUTH_TOKEN": "auth_token",
            "FEEDER_ROOT_PATH": "root_path",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "FEEDER_RESET_CHECK_INTERVAL": "reset_check_interval",
            "FEEDER_STOCK_POLL_INTERVAL": "stock_poll_interval",
            "FEEDER_NOTIFICATION_TIMEOUT": "notification_timeout",
            "FEEDER_RESUBSCRIBE_DELAY": "resubscribe_delay",
            "FEEDER_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)

        retries_env = env.get("FEEDER_INCREMENT_RETRIES")
        if retries_env is not None and "increment_retries" not in overrides:
            config_kwargs["increment_retries"] = int(retries_env)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("FEEDER_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
