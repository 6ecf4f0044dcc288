"""Built-in running workouts, written in the plain-text interval format."""

from __future__ import annotations

from dataclasses import dataclass

from webmill.workout.model import Workout
from webmill.workout.plaintext import parse_interval_text


@dataclass(frozen=True)
class WorkoutTemplate:
    key: str
    name: str
    category: str
    text: str


TEMPLATES: tuple[WorkoutTemplate, ...] = (
    WorkoutTemplate(
        key="easy_recovery",
        name="Easy Recovery Run",
        category="Recovery",
        text=(
            "Easy Recovery Run\n"
            "- 5m 65% Pace\n"
            "- 20m 72% Pace\n"
            "- 5m 65% Pace\n"
        ),
    ),
    WorkoutTemplate(
        key="pyramid_intervals",
        name="Pyramid Intervals",
        category="Intervals",
        text=(
            "Pyramid Intervals\n"
            "- 10m 70% Pace\n"
            "\n"
            "- 1m 100% Pace\n"
            "- 1m 70% Pace\n"
            "- 2m 98% Pace\n"
            "- 1m 70% Pace\n"
            "- 3m 95% Pace\n"
            "- 2m 70% Pace\n"
            "- 2m 98% Pace\n"
            "- 1m 70% Pace\n"
            "- 1m 100% Pace\n"
            "\n"
            "- 5m 65% Pace\n"
        ),
    ),
    WorkoutTemplate(
        key="tempo_run",
        name="Tempo Run",
        category="Tempo",
        text=(
            "Tempo Run\n"
            "- 10m 70% Pace\n"
            "\n"
            "2x\n"
            "- 8m 90% Pace @ 1% Incline\n"
            "- 2m 70% Pace\n"
            "\n"
            "- 5m 65% Pace\n"
        ),
    ),
    WorkoutTemplate(
        key="hill_repeats",
        name="Hill Repeats",
        category="Strength",
        text=(
            "Hill Repeats\n"
            "- 10m 70% Pace\n"
            "\n"
            "6x\n"
            "- 90s 85% Pace @ 6% Incline\n"
            "- 2m 65% Pace @ 1% Incline\n"
            "\n"
            "- 8m 65% Pace\n"
        ),
    ),
)


def list_templates() -> tuple[WorkoutTemplate, ...]:
    return TEMPLATES


def build_workout_from_template(template_key: str, threshold_pace: str) -> Workout:
    template = next((item for item in TEMPLATES if item.key == template_key), None)
    if template is None:
        raise ValueError(f"Unknown workout template '{template_key}'")
    return parse_interval_text(template.text, threshold_pace=threshold_pace)
