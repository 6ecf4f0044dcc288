"""Async workout session: drives a treadmill from the workout scheduler."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from webmill.ble.codec import ConnectionStatus, TelemetrySample
from webmill.ble.ftms_client import Treadmill
from webmill.core.state import EngineState
from webmill.workout.model import Workout, WorkoutStep
from webmill.workout.runner import WorkoutScheduler

logger = logging.getLogger(__name__)


class WorkoutSession:
    def __init__(
        self,
        treadmill: Treadmill,
        scheduler: WorkoutScheduler | None = None,
    ) -> None:
        self._treadmill = treadmill
        self.scheduler = scheduler or WorkoutScheduler()
        self.scheduler.set_on_step_change(self._on_step_change)
        self.state = EngineState()
        self._stop_event = asyncio.Event()
        treadmill.set_on_telemetry(self._on_telemetry)

    @property
    def treadmill(self) -> Treadmill:
        return self._treadmill

    def load(self, workout: Optional[Workout]) -> None:
        self.scheduler.load_workout(workout)
        self.state.target_speed_kmh = None
        self.state.target_incline_pct = None

    def start(self) -> bool:
        """Start the device and the workout. Returns False when not connected."""
        if not self._treadmill.is_connected:
            logger.warning("Please connect to a treadmill first.")
            return False
        self._treadmill.start_workout()
        self.scheduler.play()
        return True

    def pause(self) -> None:
        self.scheduler.pause()

    def stop(self) -> None:
        self.scheduler.stop()
        if self._treadmill.is_connected:
            self._treadmill.stop_workout()

    def request_exit(self) -> None:
        self._stop_event.set()

    async def run(
        self,
        workout: Optional[Workout] = None,
        *,
        speed_kmh: Optional[float] = None,
        incline_pct: Optional[float] = None,
    ) -> None:
        """Connect, run ``workout`` (if any) to completion and disconnect.

        Without a workout the session applies the manual targets, if given,
        and streams telemetry until :meth:`request_exit` is called.
        """
        try:
            status = await self._treadmill.connect()
            if status is not ConnectionStatus.CONNECTED:
                print(f"Connection failed ({status.value})")
                return
            self.state.connected_device = self._treadmill.device_label
            print(f"Connected to {self.state.connected_device or 'treadmill'}")

            if workout is not None:
                self.load(workout)
                self.start()
            elif speed_kmh is not None or incline_pct is not None:
                self._apply_manual_targets(speed_kmh, incline_pct)

            while not self._stop_event.is_set():
                self._print_metrics_line()
                if workout is not None and self.scheduler.is_finished:
                    print("Workout finished")
                    break
                if not self._treadmill.is_connected:
                    print("Device disconnected")
                    break
                await asyncio.sleep(1)
        finally:
            if self.scheduler.is_active or self.scheduler.is_finished:
                self.stop()
            await self._treadmill.disconnect()

    def _apply_manual_targets(
        self, speed_kmh: Optional[float], incline_pct: Optional[float]
    ) -> None:
        self._treadmill.start_workout()
        if speed_kmh is not None:
            self._treadmill.set_target_speed(speed_kmh)
            self.state.target_speed_kmh = speed_kmh
        if incline_pct is not None:
            self._treadmill.set_target_incline(incline_pct)
            self.state.target_incline_pct = incline_pct

    def _on_step_change(self, step: WorkoutStep) -> None:
        if not self._treadmill.is_connected:
            return
        if step.speed_kmh is not None:
            self._treadmill.set_target_speed(step.speed_kmh)
            self.state.target_speed_kmh = step.speed_kmh
        if step.incline_pct is not None:
            self._treadmill.set_target_incline(step.incline_pct)
            self.state.target_incline_pct = step.incline_pct

    def _on_telemetry(self, sample: TelemetrySample) -> None:
        self.state.last_sample = sample
        self.state.last_update = datetime.now(timezone.utc)

    def _print_metrics_line(self) -> None:
        sample = self.state.last_sample
        if sample is None:
            metrics = "Speed: N/A | Incline: N/A | Distance: N/A"
        else:
            metrics = (
                f"Speed: {sample.speed_kmh:.1f} km/h | "
                f"Incline: {sample.incline_pct:.1f}% | "
                f"Distance: {sample.distance_km:.2f} km"
            )
            if sample.heart_rate_bpm is not None:
                metrics += f" | HR: {sample.heart_rate_bpm} bpm"

        if self.scheduler.workout is not None:
            steps = self.scheduler.workout.steps
            metrics += (
                f" | Step {self.scheduler.current_step_index + 1}/{len(steps)}"
                f" {_format_clock(self.scheduler.time_in_step)}"
                f" | Total {_format_clock(self.scheduler.total_time)}"
            )
        print(metrics)


def _format_clock(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"
