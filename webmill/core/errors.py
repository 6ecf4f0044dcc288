"""Exception types shared by the BLE and workout layers."""

from __future__ import annotations


class TransportError(RuntimeError):
    """Raised when discovery, connection or characteristic resolution fails."""


class DiscoveryCancelledError(TransportError):
    """Raised when device discovery is cancelled before a device is chosen."""


class CommandWriteError(RuntimeError):
    """Raised when the device rejects a control point write."""


class DecodeError(ValueError):
    """Raised when a notification payload does not match its flags."""


class WorkoutParseError(ValueError):
    """Raised when a workout file is invalid."""


class FormatError(WorkoutParseError):
    """Raised when a workout document violates its grammar."""


class EmptyWorkoutError(WorkoutParseError):
    """Raised when a workout document yields no usable steps."""
