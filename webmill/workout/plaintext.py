"""Plain-text interval workout parser.

Format (one step per line, blocks separated by blank lines)::

    Pyramid Intervals
    - 10m 70% Pace

    3x
    - 2m 4:10 Pace @ 1% Incline
    - 1m 60% Pace

    - 5m 65% Pace

``<N>x`` repeats the ``- `` lines that follow it up to the next blank line.
Percentages are relative to the threshold pace: 100% is threshold pace,
higher is faster.
"""

from __future__ import annotations

import copy
import re

from webmill.core.errors import FormatError
from webmill.workout.model import Workout, WorkoutStep, build_workout

DEFAULT_NAME = "Interval Workout"
DEFAULT_THRESHOLD_PACE = "4:00"

_REPEAT_RE = re.compile(r"^(\d+)x$", re.IGNORECASE)
_DURATION_RE = re.compile(r"^(\d+)([a-z]*)$", re.IGNORECASE)
_INCLINE_RE = re.compile(r"@\s*(-?\d+(?:\.\d+)?)\s*%\s*Incline", re.IGNORECASE)
_ABSOLUTE_PACE_RE = re.compile(r"^(\d{1,2}:\d{2})\s*Pace$", re.IGNORECASE)
_RELATIVE_PACE_RE = re.compile(r"^(-?\d+(?:\.\d+)?)\s*%\s*Pace$", re.IGNORECASE)


def parse_pace(pace: str) -> int:
    """Convert ``mm:ss`` (per km) into seconds."""
    parts = pace.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise FormatError(f'Invalid pace format. Expected "mm:ss", but got "{pace}".')
    minutes, seconds = int(parts[0]), int(parts[1])
    if seconds >= 60:
        raise FormatError(f'Invalid pace "{pace}": seconds must be below 60.')
    total = minutes * 60 + seconds
    if total <= 0:
        raise FormatError(f'Invalid pace "{pace}": must be positive.')
    return total


def pace_to_speed(pace_sec_per_km: float) -> float:
    return 3600.0 / pace_sec_per_km


def parse_interval_text(text: str, threshold_pace: str = DEFAULT_THRESHOLD_PACE) -> Workout:
    threshold_sec = parse_pace(threshold_pace)
    lines = [line.strip() for line in text.splitlines()]

    name: str | None = None
    steps: list[WorkoutStep] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if not line:
            i += 1
            continue

        repeat_match = _REPEAT_RE.match(line)
        if repeat_match:
            repeats = int(repeat_match.group(1))
            template: list[WorkoutStep] = []
            i += 1
            while i < len(lines) and lines[i]:
                if lines[i].startswith("- "):
                    template.append(_parse_step_line(lines[i], threshold_sec))
                elif name is None and not lines[i].startswith("-"):
                    name = lines[i]
                i += 1
            if not template:
                raise FormatError(f'Interval block "{line}" has no steps.')
            for _ in range(repeats):
                steps.extend(copy.deepcopy(template))
            continue

        if line.startswith("- "):
            steps.append(_parse_step_line(line, threshold_sec))
        elif name is None and not line.startswith("-"):
            name = line
        i += 1

    title = name or DEFAULT_NAME
    return build_workout(name=title, description=title, steps=steps)


def _parse_step_line(line: str, threshold_sec: int) -> WorkoutStep:
    content = line[2:].strip()
    duration_str, _, intensity_str = content.partition(" ")
    if not intensity_str.strip():
        raise FormatError(
            f'Invalid step format: "{line}". Expected format like "- 4m 80% Pace @ 1% Incline".'
        )

    speed, incline = _parse_intensity(intensity_str.strip(), threshold_sec)
    return WorkoutStep(
        duration_sec=_parse_duration(duration_str),
        speed_kmh=speed,
        incline_pct=incline,
        label=content,
    )


def _parse_duration(duration_str: str) -> int:
    match = _DURATION_RE.match(duration_str)
    if match is None:
        raise FormatError(f'Invalid duration value in "{duration_str}".')
    value, unit = int(match.group(1)), match.group(2).lower()
    if unit == "m":
        seconds = value * 60
    elif unit == "s":
        seconds = value
    else:
        raise FormatError(f"Unknown duration unit in \"{duration_str}\". Must be 'm' or 's'.")
    if seconds <= 0:
        raise FormatError(f'Duration must be positive, but got "{duration_str}".')
    return seconds


def _parse_intensity(intensity_str: str, threshold_sec: int) -> tuple[float, float]:
    pace_str = intensity_str
    incline = 0.0
    incline_match = _INCLINE_RE.search(intensity_str)
    if incline_match:
        incline = float(incline_match.group(1))
        pace_str = intensity_str[: incline_match.start()].strip()

    absolute = _ABSOLUTE_PACE_RE.match(pace_str)
    if absolute:
        return pace_to_speed(parse_pace(absolute.group(1))), incline

    relative = _RELATIVE_PACE_RE.match(pace_str)
    if relative:
        percentage = float(relative.group(1)) / 100
        if percentage <= 0:
            raise FormatError(f'Pace percentage must be positive, but got "{pace_str}".')
        return pace_to_speed(threshold_sec / percentage), incline

    raise FormatError(
        f'Unsupported intensity format: "{intensity_str}". Supported formats are '
        '"X% Pace" or "mm:ss Pace", optionally with "@ Y% Incline".'
    )
