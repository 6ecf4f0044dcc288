"""Terminal CLI entrypoint for Webmill."""

from __future__ import annotations

import argparse
import asyncio
import logging

from webmill.ble.ftms_client import FTMSClient, Treadmill
from webmill.ble.simulator import SimulatedTreadmill
from webmill.ble.transport import BleakTransport
from webmill.core.engine import WorkoutSession
from webmill.core.errors import TransportError
from webmill.workout.library import build_workout_from_template, list_templates
from webmill.workout.model import Workout
from webmill.workout.parser import load_workout
from webmill.workout.plaintext import DEFAULT_THRESHOLD_PACE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Webmill FTMS treadmill controller")
    parser.add_argument("--scan", action="store_true", help="Scan BLE devices")
    parser.add_argument(
        "--scan-timeout",
        type=float,
        default=10.0,
        help="Seconds to scan for BLE devices",
    )
    parser.add_argument(
        "--connect",
        nargs="?",
        const="auto",
        default=None,
        help="Connect to first FTMS treadmill or the provided BLE address/name",
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use a simulated treadmill (no BLE required)",
    )
    parser.add_argument("--workout", default=None, help="Workout file (.zwo or .txt)")
    parser.add_argument("--template", default=None, help="Built-in workout template key")
    parser.add_argument(
        "--list-templates",
        action="store_true",
        help="List built-in workout templates",
    )
    parser.add_argument(
        "--threshold-pace",
        default=DEFAULT_THRESHOLD_PACE,
        help="Threshold pace (mm:ss per km) for percentage-based steps",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Print the parsed workout steps and exit",
    )
    parser.add_argument("--speed", type=float, default=None, help="Manual target speed in km/h")
    parser.add_argument("--incline", type=float, default=None, help="Manual target incline in %%")
    parser.add_argument(
        "--debug-ftms",
        action="store_true",
        help="Log raw FTMS payloads for each notification",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


def configure_logging(level: str, debug_ftms: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug_ftms else getattr(logging, level),
        format="%(message)s",
    )


async def run_scan(timeout: float) -> int:
    transport = BleakTransport(scan_timeout=timeout)
    try:
        devices = await transport.scan()
    except TransportError as exc:
        print(f"Scan failed: {exc}")
        return 1

    if not devices:
        print("No BLE devices found")
        return 0

    for device in devices:
        ftms_flag = "FTMS" if device.has_ftms else "-"
        print(f"{device.name:<24} {device.address} RSSI={device.rssi:>4} [{ftms_flag}]")
    return 0


def print_templates() -> int:
    for template in list_templates():
        print(f"{template.key:<20} {template.name:<24} [{template.category}]")
    return 0


def print_workout(workout: Workout) -> int:
    print(f"{workout.name} ({len(workout.steps)} steps, {workout.total_duration_sec}s)")
    if workout.description and workout.description != workout.name:
        print(workout.description)
    for index, step in enumerate(workout.steps, start=1):
        speed = f"{step.speed_kmh:.2f} km/h" if step.speed_kmh is not None else "-"
        incline = f"{step.incline_pct:.1f}%" if step.incline_pct is not None else "-"
        print(f"{index:>3}. {step.duration_sec:>5}s  speed={speed:<12} incline={incline}")
    return 0


def resolve_workout(args: argparse.Namespace) -> Workout | None:
    if args.workout:
        return load_workout(args.workout, threshold_pace=args.threshold_pace)
    if args.template:
        return build_workout_from_template(args.template, args.threshold_pace)
    return None


def build_treadmill(args: argparse.Namespace) -> Treadmill:
    if args.simulate:
        return SimulatedTreadmill()
    return FTMSClient(BleakTransport(args.connect, scan_timeout=args.scan_timeout))


async def run_session(
    treadmill: Treadmill,
    workout: Workout | None,
    speed: float | None,
    incline: float | None,
) -> int:
    session = WorkoutSession(treadmill)
    try:
        await session.run(workout, speed_kmh=speed, incline_pct=incline)
    except KeyboardInterrupt:
        session.request_exit()
    return 0


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    configure_logging(args.log_level, args.debug_ftms)

    if args.list_templates:
        return print_templates()
    if args.scan:
        return asyncio.run(run_scan(args.scan_timeout))

    try:
        workout = resolve_workout(args)
    except (ValueError, OSError) as exc:
        print(f"Invalid workout: {exc}")
        return 1

    if args.show:
        if workout is None:
            parser.error("--show requires --workout or --template")
        return print_workout(workout)

    if args.connect is None and not args.simulate:
        if workout is None and args.speed is None and args.incline is None:
            parser.print_help()
            return 1
        args.connect = "auto"

    return asyncio.run(
        run_session(build_treadmill(args), workout, args.speed, args.incline)
    )


if __name__ == "__main__":
    raise SystemExit(main())
