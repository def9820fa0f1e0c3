"""Accumulates the relative motion between consecutive scans."""

from __future__ import annotations

import threading

import numpy as np


class DeltaEstimator:
    """Chains frame-to-frame registrations into one accumulated transform."""

    def __init__(self, registration):
        self._lock = threading.Lock()
        self._delta = np.eye(4)
        self._registration = registration
        self._last_frame = None

    def reset(self) -> None:
        with self._lock:
            self._delta = np.eye(4)
            self._last_frame = None

    def add_frame(self, frame) -> None:
        """Register ``frame`` against the previous one and accumulate the motion."""
        with self._lock:
            if self._last_frame is None:
                self._last_frame = frame
                return
            self._registration.set_input_target(self._last_frame)
            self._registration.set_input_source(frame)

        self._registration.align()

        with self._lock:
            self._last_frame = frame
            step = np.array(self._registration.final_transformation, dtype=float)
            self._delta = self._delta @ step

    def estimated_delta(self) -> np.ndarray:
        with self._lock:
            return self._delta.copy()