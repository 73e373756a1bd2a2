"""Internal constants shared across the library."""

from __future__ import annotations

# ------------------------------------------------------------------
# Store paths (relative to the feeder root).  The device firmware
# reads and writes these exact keys.
# ------------------------------------------------------------------

PATH_COUNTDOWN_REMAINING = "data/countdown_remaining"
PATH_DROPS_TODAY = "status/drops_today"
PATH_STOCK_REMAINING = "status/stock_remaining"
PATH_COMMAND_MODE = "commands/mode"
PATH_COMMAND_COUNTDOWN = "commands/countdown"

DEFAULT_ROOT_PATH = "fish_feeder"

# ------------------------------------------------------------------
# Default calibration.  Raw stock readings grow as the container empties.
# ------------------------------------------------------------------

DEFAULT_CAPACITY_KG = 0.5
DEFAULT_EMPTY_THRESHOLD = 9.5
DEFAULT_FULL_THRESHOLD = 3.2
DEFAULT_LOW_THRESHOLD = 5.0
DEFAULT_MIN_FEED_STOCK = 0.5

# ------------------------------------------------------------------
# Timing (seconds)
# ------------------------------------------------------------------

RESET_CHECK_INTERVAL = 60.0
STOCK_POLL_INTERVAL = 30.0
NOTIFICATION_TIMEOUT = 3.0
RESUBSCRIBE_DELAY = 5.0
DEFAULT_DROP_INTERVAL = 2 * 3600 + 30 * 60


def format_duration(seconds: int) -> str:
    """Format *seconds* as ``HH:MM:SS``.

    Hours are not wrapped at 24, so ``90000`` renders as ``25:00:00``.
    Negative values are clamped to zero.
    """
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def capacity_label(capacity_kg: float) -> str:
    """Human label for the container capacity (``0.5`` -> ``"1/2 kg"``)."""
    fractions = {0.25: "1/4", 0.5: "1/2", 0.75: "3/4"}
    label = fractions.get(round(capacity_kg, 2))
    if label is not None:
        return f"{label} kg"
    return f"{capacity_kg:g} kg"
