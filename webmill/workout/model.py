"""Workout domain models."""

from __future__ import annotations

from dataclasses import dataclass

from webmill.core.errors import EmptyWorkoutError


@dataclass(frozen=True)
class WorkoutStep:
    duration_sec: int
    speed_kmh: float | None = None
    incline_pct: float | None = None
    power: float | None = None
    label: str | None = None

    @property
    def has_target(self) -> bool:
        return self.speed_kmh is not None or self.incline_pct is not None


@dataclass(frozen=True)
class Workout:
    name: str
    description: str
    steps: tuple[WorkoutStep, ...]

    @property
    def total_duration_sec(self) -> int:
        return sum(step.duration_sec for step in self.steps)


def build_workout(*, name: str, description: str, steps: list[WorkoutStep]) -> Workout:
    if not steps:
        raise EmptyWorkoutError("No valid workout steps found in the file.")
    return Workout(name=name, description=description, steps=tuple(steps))
