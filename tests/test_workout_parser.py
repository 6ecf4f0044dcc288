from __future__ import annotations

from pathlib import Path

import pytest

from webmill.core.errors import EmptyWorkoutError, FormatError, WorkoutParseError
from webmill.workout.parser import load_workout


def test_load_workout_zwo(tmp_path: Path) -> None:
    workout_file = tmp_path / "tempo.zwo"
    workout_file.write_text(
        (
            "<workout_file><name>Tempo</name><sportType>run</sportType><workout>"
            '<SteadyState Duration="60" Power="1.0"/>'
            '<SteadyState Duration="30" Pace="3.5"/>'
            "</workout></workout_file>"
        ),
        encoding="utf-8",
    )

    workout = load_workout(workout_file)

    assert workout.name == "Tempo"
    assert len(workout.steps) == 2
    assert workout.total_duration_sec == 90
    assert workout.steps[0].speed_kmh == pytest.approx(14.0)


def test_load_workout_text_uses_threshold_pace(tmp_path: Path) -> None:
    workout_file = tmp_path / "intervals.txt"
    workout_file.write_text("Intervals\n3x\n- 30s 100% Pace\n", encoding="utf-8")

    workout = load_workout(str(workout_file), threshold_pace="5:00")

    assert workout.name == "Intervals"
    assert len(workout.steps) == 3
    assert workout.steps[0].speed_kmh == pytest.approx(12.0)


def test_load_workout_invalid_extension(tmp_path: Path) -> None:
    workout_file = tmp_path / "sample.csv"
    workout_file.write_text("duration,speed\n60,10\n", encoding="utf-8")

    with pytest.raises(FormatError):
        load_workout(workout_file)


def test_load_workout_rejects_non_utf8(tmp_path: Path) -> None:
    workout_file = tmp_path / "binary.txt"
    workout_file.write_bytes(b"\xff\xfe\x00bad")

    with pytest.raises(WorkoutParseError):
        load_workout(workout_file)


def test_load_workout_empty_file(tmp_path: Path) -> None:
    workout_file = tmp_path / "empty.txt"
    workout_file.write_text("", encoding="utf-8")

    with pytest.raises(EmptyWorkoutError):
        load_workout(workout_file)


def test_load_workout_missing_file(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        load_workout(tmp_path / "missing.zwo")
