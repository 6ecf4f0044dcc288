from __future__ import annotations

import pytest

from webmill.core.errors import EmptyWorkoutError, FormatError
from webmill.workout.plaintext import parse_interval_text, parse_pace, pace_to_speed


def test_parse_pace() -> None:
    assert parse_pace("4:00") == 240
    assert parse_pace(" 5:30 ") == 330
    assert pace_to_speed(240) == pytest.approx(15.0)

    for bad in ("4", "4:60", "0:00", "a:bc", "4:00:00"):
        with pytest.raises(FormatError):
            parse_pace(bad)


def test_repeat_block_expands_steps() -> None:
    workout = parse_interval_text("2x\n- 1m 100% Pace\n", threshold_pace="4:00")

    assert workout.name == "Interval Workout"
    assert len(workout.steps) == 2
    for step in workout.steps:
        assert step.duration_sec == 60
        assert step.speed_kmh == pytest.approx(15.0)
        assert step.incline_pct == 0.0


def test_title_absolute_pace_and_incline() -> None:
    text = """
    Track Session
    - 30s 5:00 Pace

    3x
    - 2m 80% Pace @ 2.5% Incline
    - 90s 50% Pace

    - 5m 4:00 Pace @ -1% Incline
    """
    workout = parse_interval_text(text, threshold_pace="4:00")

    assert workout.name == "Track Session"
    assert workout.description == "Track Session"
    assert len(workout.steps) == 8

    first = workout.steps[0]
    assert first.duration_sec == 30
    assert first.speed_kmh == pytest.approx(12.0)

    work = workout.steps[1]
    assert work.duration_sec == 120
    assert work.speed_kmh == pytest.approx(12.0)
    assert work.incline_pct == 2.5
    assert work.label == "2m 80% Pace @ 2.5% Incline"

    assert workout.steps[2].duration_sec == 90
    assert workout.steps[2].speed_kmh == pytest.approx(7.5)

    last = workout.steps[-1]
    assert last.speed_kmh == pytest.approx(15.0)
    assert last.incline_pct == -1.0


def test_threshold_pace_scales_relative_steps() -> None:
    workout = parse_interval_text("- 1m 100% Pace\n", threshold_pace="5:00")
    assert workout.steps[0].speed_kmh == pytest.approx(12.0)


@pytest.mark.parametrize(
    "text",
    [
        "- 5h 80% Pace\n",
        "- 0m 80% Pace\n",
        "- 5m 0% Pace\n",
        "- 5m 80% Power\n",
        "- 5m\n",
        "- 5m 4:75 Pace\n",
        "3x\n\n- 1m 80% Pace\n",
    ],
)
def test_invalid_lines_raise_format_error(text: str) -> None:
    with pytest.raises(FormatError):
        parse_interval_text(text)


def test_text_without_steps_is_empty() -> None:
    with pytest.raises(EmptyWorkoutError):
        parse_interval_text("Just a title\n\n")
