"""Tick-driven workout scheduler."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from webmill.workout.model import Workout, WorkoutStep

logger = logging.getLogger(__name__)

TICK_INTERVAL_SEC = 1.0


@dataclass(frozen=True)
class ScheduleState:
    current_step_index: int = 0
    time_in_step: int = 0
    total_time: int = 0
    is_paused: bool = True
    is_finished: bool = False


StepChangeCallback = Callable[[WorkoutStep], None]
TickCallback = Callable[[ScheduleState], None]


class WorkoutScheduler:
    """Steps through a workout one second at a time.

    The step-change callback fires on every transition and once for step 0 on
    the first ``play()``. ``tick()`` does the per-second work; when
    ``tick_interval`` is set, ``play()`` also starts a task that calls it
    periodically (which needs a running event loop). With ``tick_interval``
    set to None the owner drives ``tick()`` itself.
    """

    def __init__(
        self,
        on_step_change: Optional[StepChangeCallback] = None,
        *,
        on_tick: Optional[TickCallback] = None,
        tick_interval: Optional[float] = TICK_INTERVAL_SEC,
    ) -> None:
        self._on_step_change = on_step_change
        self._on_tick = on_tick
        self._tick_interval = tick_interval
        self._workout: Optional[Workout] = None
        self._state = ScheduleState()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def workout(self) -> Optional[Workout]:
        return self._workout

    @property
    def state(self) -> ScheduleState:
        return self._state

    @property
    def current_step_index(self) -> int:
        return self._state.current_step_index

    @property
    def time_in_step(self) -> int:
        return self._state.time_in_step

    @property
    def total_time(self) -> int:
        return self._state.total_time

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def is_finished(self) -> bool:
        return self._state.is_finished

    @property
    def is_active(self) -> bool:
        return self._workout is not None and not self.is_paused and not self.is_finished

    @property
    def current_step(self) -> Optional[WorkoutStep]:
        if self._workout is None:
            return None
        return self._workout.steps[self._state.current_step_index]

    def set_on_step_change(self, callback: Optional[StepChangeCallback]) -> None:
        self._on_step_change = callback

    def load_workout(self, workout: Optional[Workout]) -> None:
        self._stop_ticker()
        self._workout = workout
        self._state = ScheduleState()
        if workout is not None:
            logger.info(
                "Loaded workout '%s' (%d steps, %ds)",
                workout.name,
                len(workout.steps),
                workout.total_duration_sec,
            )

    def play(self) -> None:
        if self._workout is None or self._state.is_finished:
            return
        first_play = self._state.total_time == 0 and self._state.is_paused
        self._state = ScheduleState(
            current_step_index=self._state.current_step_index,
            time_in_step=self._state.time_in_step,
            total_time=self._state.total_time,
            is_paused=False,
        )
        if first_play:
            self._announce(self._workout.steps[0])
        self._start_ticker()

    def pause(self) -> None:
        self._stop_ticker()
        self._state = ScheduleState(
            current_step_index=self._state.current_step_index,
            time_in_step=self._state.time_in_step,
            total_time=self._state.total_time,
            is_paused=True,
            is_finished=self._state.is_finished,
        )

    def stop(self) -> None:
        self._stop_ticker()
        self._state = ScheduleState()

    def tick(self) -> None:
        if not self.is_active:
            return
        assert self._workout is not None

        steps = self._workout.steps
        index = self._state.current_step_index
        time_in_step = self._state.time_in_step + 1
        total_time = self._state.total_time + 1
        is_paused = False
        is_finished = False
        next_step: Optional[WorkoutStep] = None

        if time_in_step >= steps[index].duration_sec:
            if index + 1 < len(steps):
                index += 1
                time_in_step = 0
                next_step = steps[index]
            else:
                is_paused = True
                is_finished = True

        self._state = ScheduleState(
            current_step_index=index,
            time_in_step=time_in_step,
            total_time=total_time,
            is_paused=is_paused,
            is_finished=is_finished,
        )

        if next_step is not None:
            self._announce(next_step)
        if is_finished:
            logger.info("Workout finished after %ds", total_time)
            self._stop_ticker()
        if self._on_tick is not None:
            self._on_tick(self._state)

    def _announce(self, step: WorkoutStep) -> None:
        logger.info(
            "Step %d/%d: %ds speed=%s incline=%s",
            self._state.current_step_index + 1,
            len(self._workout.steps) if self._workout else 0,
            step.duration_sec,
            step.speed_kmh,
            step.incline_pct,
        )
        if self._on_step_change is not None:
            self._on_step_change(step)

    def _start_ticker(self) -> None:
        if self._tick_interval is None:
            return
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run())

    def _stop_ticker(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        # tick() may stop the ticker from inside its own task
        if task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        assert self._tick_interval is not None
        while self.is_active:
            await asyncio.sleep(self._tick_interval)
            self.tick()
