"""Command-line entry point: replay a recording or run simulated sensors."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from .config import RATE_MODES, FusionConfig, load_config
from .config.sampling import hz_to_interval_ms
from .core.session import PERMISSION_DENIED_MESSAGE, PERMISSION_DENIED_TITLE, FusionSession
from .sinks import SINK_FORMATS
from .sources import (
    LocationRequest,
    PermissionStatus,
    RecordingFeed,
    SimulatedLocationSource,
    SimulatedMotionSource,
    Subscription,
    format_event,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_PERMISSION_DENIED = 2


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sensefuse",
        description="Fuse accelerometer, gyroscope and location streams into batched table rows",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config file (default: built-in defaults)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--drain-timeout",
        type=float,
        default=2.0,
        help="Seconds to wait for in-flight batches after teardown (default: 2.0)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Replay a recorded event log through the pipeline")
    replay.add_argument("recording", type=Path, help="JSON-lines (or CSV) event log")
    replay.add_argument("--out", type=Path, required=True, help="Output directory for table files")
    replay.add_argument("--format", choices=sorted(SINK_FORMATS), default="csv", help="Table file format")
    replay.add_argument("--realtime", action="store_true", help="Reproduce recorded gaps between events")
    replay.add_argument("--speed", type=float, default=1.0, help="Playback speed factor with --realtime")

    simulate = sub.add_parser("simulate", help="Run simulated sensors for a while")
    simulate.add_argument("--seconds", type=float, default=10.0, help="How long to run (default: 10)")
    simulate.add_argument("--out", type=Path, required=True, help="Output directory for table files")
    simulate.add_argument("--format", choices=sorted(SINK_FORMATS), default="csv", help="Table file format")
    simulate.add_argument("--rate", choices=sorted(RATE_MODES), default=None, help="Motion rate preset")
    simulate.add_argument("--hz", type=float, default=None, help="Explicit motion rate; overrides --rate")
    simulate.add_argument("--first-fix-delay-ms", type=int, default=0, help="Delay before the first location fix")
    simulate.add_argument("--deny-permission", action="store_true", help="Simulate a refused location permission")
    simulate.add_argument("--record", type=Path, default=None, help="Also write raw events to this JSON-lines file")
    simulate.add_argument("--seed", type=int, default=None, help="Random seed for the synthetic signals")
    return parser


def _report_permission_denied(stream: Optional[TextIO] = None) -> None:
    stream = stream or sys.stderr
    print(PERMISSION_DENIED_TITLE, file=stream)
    print(PERMISSION_DENIED_MESSAGE, file=stream)


async def _finish(session: FusionSession, drain_timeout: float) -> None:
    session.teardown()
    # The core does not wait for the last batch; the CLI can afford a short grace period.
    if drain_timeout > 0 and not await session.dispatcher.wait_idle(drain_timeout):
        logger.warning("%d batch(es) still in flight after %.1f s; exiting anyway", session.dispatcher.in_flight, drain_timeout)
    stats = session.controller.stats
    print(
        f"[sensefuse] flushes={stats.flushes} records={stats.records_emitted} "
        f"batches={stats.batches_dispatched} stored={session.dispatcher.succeeded} "
        f"failed={session.dispatcher.failed} unmatched={stats.unmatched_samples}"
    )


async def run_replay(args: argparse.Namespace, cfg: FusionConfig) -> int:
    if not args.recording.exists():
        logger.error("Recording %s does not exist", args.recording)
        return EXIT_INPUT_ERROR

    feed = RecordingFeed()
    sink = SINK_FORMATS[args.format](args.out)
    session = FusionSession(cfg, feed.accelerometer, feed.gyroscope, feed.location, sink)
    if not await session.start():
        _report_permission_denied()
        return EXIT_PERMISSION_DENIED

    try:
        with args.recording.open("r", encoding="utf-8") as fh:
            sent = await feed.play(fh, realtime=args.realtime, speed=args.speed)
        logger.info("Replayed %d events from %s (%d lines skipped)", sent, args.recording, feed.skipped)
    finally:
        await _finish(session, args.drain_timeout)
    return EXIT_OK


async def _attach_recorder(
    fh: TextIO,
    accel: SimulatedMotionSource,
    gyro: SimulatedMotionSource,
    location: SimulatedLocationSource,
) -> List[Subscription]:
    """Subscribe a raw-event writer next to the session so a run can be replayed later."""

    def _writer(stream: str):
        def _write(sample) -> None:
            fh.write(format_event(stream, sample) + "\n")

        return _write

    handles: List[Subscription] = [
        accel.add_listener(_writer("accel")),
        gyro.add_listener(_writer("gyro")),
    ]
    handles.append(await location.watch_position(LocationRequest(), _writer("location")))
    return handles


async def run_simulation(args: argparse.Namespace, cfg: FusionConfig) -> int:
    accel = SimulatedMotionSource("accelerometer", baseline=(0.0, 0.0, 1.0), seed=args.seed)
    gyro = SimulatedMotionSource("gyroscope", seed=None if args.seed is None else args.seed + 1)
    permission = PermissionStatus.DENIED if args.deny_permission else PermissionStatus.GRANTED
    location = SimulatedLocationSource(
        permission=permission,
        first_fix_delay_ms=args.first_fix_delay_ms,
        seed=None if args.seed is None else args.seed + 2,
    )
    sink = SINK_FORMATS[args.format](args.out)
    session = FusionSession(cfg, accel, gyro, location, sink)
    if not await session.start():
        _report_permission_denied()
        return EXIT_PERMISSION_DENIED

    if args.hz is not None:
        session.set_update_interval(hz_to_interval_ms(args.hz, session.rate_mode.interval_ms))
    elif args.rate is not None:
        session.set_rate_mode(args.rate)

    with ExitStack() as stack:
        recorder_handles: List[Subscription] = []
        if args.record is not None:
            args.record.parent.mkdir(parents=True, exist_ok=True)
            fh = stack.enter_context(args.record.open("w", encoding="utf-8"))
            recorder_handles = await _attach_recorder(fh, accel, gyro, location)
        try:
            await asyncio.sleep(max(0.0, args.seconds))
        finally:
            for handle in recorder_handles:
                handle.remove()
            await _finish(session, args.drain_timeout)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = load_config(args.config)

    if args.command == "replay":
        return asyncio.run(run_replay(args, cfg))
    return asyncio.run(run_simulation(args, cfg))


if __name__ == "__main__":
    sys.exit(main())
