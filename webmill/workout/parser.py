"""Workout file loader (ZWO/plain-text)."""

from __future__ import annotations

from pathlib import Path

from webmill.core.errors import FormatError
from webmill.workout.model import Workout
from webmill.workout.plaintext import DEFAULT_THRESHOLD_PACE, parse_interval_text
from webmill.workout.zwo import parse_zwo

ZWO_SUFFIXES = {".zwo", ".xml"}
TEXT_SUFFIXES = {".txt"}


def load_workout(path: str | Path, *, threshold_pace: str = DEFAULT_THRESHOLD_PACE) -> Workout:
    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix not in ZWO_SUFFIXES | TEXT_SUFFIXES:
        raise FormatError(
            f"Unsupported workout format '{file_path.suffix}'. Use .zwo or .txt"
        )

    try:
        text = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise FormatError(f"Workout file is not valid UTF-8: {exc}") from exc

    if suffix in ZWO_SUFFIXES:
        return parse_zwo(text)
    return parse_interval_text(text, threshold_pace=threshold_pace)
