"""Zwift workout (.zwo) parser.

A ``.zwo`` document looks like::

    <workout_file>
        <name>Track Tuesday</name>
        <description>...</description>
        <sportType>run</sportType>
        <workout>
            <Warmup Duration="600" PowerLow="0.5" PowerHigh="0.75"/>
            <IntervalsT Repeat="3" OnDuration="30" OffDuration="30"
                        OnPower="1.0" OffPower="0.5"/>
            <SteadyState Duration="300" Power="0.7" Incline="1"/>
        </workout>
    </workout_file>

Power is a fraction of threshold power and pace is in m/s. Both are mapped to
treadmill speed (and incline for non-running workouts) since a treadmill has
no power target.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from webmill.core.errors import FormatError
from webmill.workout.model import Workout, WorkoutStep, build_workout

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Untitled Workout"
DEFAULT_SPORT = "bike"

# 1.0 threshold power is roughly 14 km/h when running.
RUN_SPEED_PER_POWER = 14.0
BIKE_SPEED_PER_POWER = 10.0
BIKE_INCLINE_PER_POWER = 2.0
MPS_TO_KMH = 3.6


def parse_zwo(text: str) -> Workout:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise FormatError(f"Failed to parse XML file: {exc}") from exc

    workout_file = root if root.tag == "workout_file" else root.find(".//workout_file")
    if workout_file is None:
        raise FormatError("Invalid .zwo format: <workout_file> tag not found.")

    name = (workout_file.findtext("name") or "").strip() or DEFAULT_NAME
    description = (workout_file.findtext("description") or "").strip()
    sport_type = (workout_file.findtext("sportType") or "").strip().lower() or DEFAULT_SPORT
    is_run = sport_type == "run"

    workout_node = workout_file.find("workout")
    if workout_node is None:
        raise FormatError("Invalid .zwo format: <workout> tag not found.")

    steps: list[WorkoutStep] = []
    for element in workout_node:
        if not isinstance(element.tag, str):
            continue
        if element.tag == "IntervalsT":
            steps.extend(_expand_intervals(element, is_run=is_run))
            continue
        step = _single_step(element, is_run=is_run)
        if step is None:
            logger.debug("Skipping <%s> without duration or target", element.tag)
            continue
        steps.append(step)

    return build_workout(name=name, description=description, steps=steps)


def _expand_intervals(element: ET.Element, *, is_run: bool) -> list[WorkoutStep]:
    repeat = _int_attr(element, "Repeat", default=1)
    on_step = _interval_half(
        duration_sec=_int_attr(element, "OnDuration", default=0),
        pace=_float_attr(element, "OnPace"),
        power=_float_attr(element, "OnPower"),
        is_run=is_run,
        label="Interval On",
    )
    off_step = _interval_half(
        duration_sec=_int_attr(element, "OffDuration", default=0),
        pace=_float_attr(element, "OffPace"),
        power=_float_attr(element, "OffPower"),
        is_run=is_run,
        label="Interval Off",
    )

    steps: list[WorkoutStep] = []
    for _ in range(max(repeat, 0)):
        if on_step is not None:
            steps.append(on_step)
        if off_step is not None:
            steps.append(off_step)
    return steps


def _interval_half(
    *,
    duration_sec: int,
    pace: float | None,
    power: float | None,
    is_run: bool,
    label: str,
) -> WorkoutStep | None:
    if duration_sec <= 0:
        return None

    if is_run and pace is not None and pace > 0:
        return WorkoutStep(
            duration_sec=duration_sec,
            speed_kmh=pace * MPS_TO_KMH,
            incline_pct=0.0,
            label=label,
        )
    if power is not None:
        speed, incline = _targets_from_power(power, is_run=is_run)
        return WorkoutStep(
            duration_sec=duration_sec,
            speed_kmh=speed,
            incline_pct=incline,
            power=power,
            label=label,
        )
    return None


def _single_step(element: ET.Element, *, is_run: bool) -> WorkoutStep | None:
    duration_sec = _int_attr(element, "Duration", default=0)
    if duration_sec <= 0:
        return None

    power = _float_attr(element, "Power")
    if power is None:
        low = _float_attr(element, "PowerLow")
        high = _float_attr(element, "PowerHigh")
        if low is not None and high is not None:
            power = (low + high) / 2

    speed: float | None = None
    incline: float | None = None
    resolved_power: float | None = None

    pace = _float_attr(element, "Pace")
    if is_run and pace is not None and pace > 0:
        speed = pace * MPS_TO_KMH

    if power is not None and speed is None:
        resolved_power = power
        speed, incline = _targets_from_power(power, is_run=is_run)

    explicit_speed = _float_attr(element, "Speed")
    if explicit_speed is not None:
        speed = explicit_speed
    explicit_incline = _float_attr(element, "Incline")
    if explicit_incline is not None:
        incline = explicit_incline

    if speed is None and incline is None:
        return None

    return WorkoutStep(
        duration_sec=duration_sec,
        speed_kmh=speed,
        incline_pct=incline if incline is not None else 0.0,
        power=resolved_power,
        label=element.tag,
    )


def _targets_from_power(power: float, *, is_run: bool) -> tuple[float, float]:
    if is_run:
        return power * RUN_SPEED_PER_POWER, 0.0
    return power * BIKE_SPEED_PER_POWER, power * BIKE_INCLINE_PER_POWER


def _float_attr(element: ET.Element, attr: str) -> float | None:
    raw = element.get(attr)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise FormatError(
            f"<{element.tag}>: invalid {attr} value {raw!r}"
        ) from exc


def _int_attr(element: ET.Element, attr: str, *, default: int) -> int:
    value = _float_attr(element, attr)
    if value is None:
        return default
    return int(value)
