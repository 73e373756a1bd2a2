#!/usr/bin/env python3
"""Live feeder watcher.

Connects the control engine to the realtime database configured through
``FEEDER_*`` environment variables and prints the dashboard whenever it
changes.  Optionally sends one command once the engine is live.

Required environment:
- FEEDER_DATABASE_URL
- FEEDER_AUTH_TOKEN (if the database rules require auth)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fishfeeder import (  # noqa: E402
    FeederConfig,
    FeederControlEngine,
    FeederError,
    Flush,
    ManualFeed,
    RealtimeDatabaseStore,
    SetInterval,
)
from fishfeeder.models import CommandIntent  # noqa: E402

_LOG = logging.getLogger("watch_feeder")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Watch a remote fish feeder and optionally send one command.",
    )
    command = parser.add_mutually_exclusive_group()
    command.add_argument("--feed", action="store_true", help="Send a manual feed once live.")
    command.add_argument("--flush", action="store_true", help="Send a flush once live.")
    command.add_argument(
        "--interval",
        type=int,
        metavar="SECONDS",
        help="Set the feeding interval once live.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _intent_from_args(args: argparse.Namespace) -> CommandIntent | None:
    if args.feed:
        return ManualFeed()
    if args.flush:
        return Flush()
    if args.interval is not None:
        return SetInterval(seconds=args.interval)
    return None


def _print_dashboard(engine: FeederControlEngine) -> None:
    view = engine.dashboard()
    if view.initializing:
        print("[feeder] initializing...")
        return
    banner = f"{view.notification.severity}: {view.notification.text}" if view.notification.visible else "-"
    print(
        f"[feeder] stock={view.stock_percent:3d}% ({view.capacity_label}) "
        f"drops_today={view.drops_today} next_feed={view.countdown_text} "
        f"feed_enabled={view.feed_enabled} banner={banner}"
    )


async def _run(config: FeederConfig, intent: CommandIntent | None, duration: int) -> int:
    last_line: list[str] = [""]

    def on_change(engine: FeederControlEngine) -> None:
        line = engine.dashboard().model_dump_json(exclude={"notification": {"active_since"}})
        if line != last_line[0]:
            last_line[0] = line
            _print_dashboard(engine)

    async with RealtimeDatabaseStore(config) as store, FeederControlEngine(store, config, on_change=on_change) as engine:
        if not await engine.wait_until_live(timeout=config.request_timeout * 2):
            print("[feeder] Engine did not become live", file=sys.stderr)
            return 2

        if intent is not None:
            result = await engine.dispatch(intent)
            print(f"[feeder] {intent.kind}: {'ok' if result.ok else result.error} - {result.message}")

        try:
            if duration > 0:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        except asyncio.CancelledError:
            pass
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = FeederConfig.from_env()
        intent = _intent_from_args(args)
    except (FeederError, ValueError) as exc:
        print(f"[feeder] Invalid configuration: {exc}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(_run(config, intent, args.duration))
    except KeyboardInterrupt:
        _LOG.info("Interrupted")
        return 0
    except FeederError as exc:  # pragma: no cover - network/system interaction
        print(f"[feeder] Failed: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(_main())
