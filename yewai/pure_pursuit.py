"""Pure-pursuit lateral control: path following by steering toward a look-ahead point.

Paths are given in the vehicle frame: the vehicle sits at the origin and
faces the +y axis.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

MIN_PATH_POINTS = 20
LOOKAHEAD = 0.5
STEERING_SCALE = 0.3
_RIGHT_ANGLE_TOLERANCE = 0.001
_HALF_PI = math.pi / 2.0


@dataclass
class VehicleParams:
    """Geometry and limits of the vehicle; angles in degrees, lengths in metres."""

    length: float = 0.0
    width: float = 0.0
    height: float = 0.0
    mass: float = 0.0
    f_tread: float = 0.25
    r_tread: float = 0.25
    wheelbase: float = 0.16
    steering_ratio: float = 0.0
    max_wheel_angle: float = 30.0
    max_steer_angle: float = 0.0
    wheel_diam: float = 0.0


class TurnLight(IntEnum):
    """Turn indicator request."""

    NONE = 0
    RIGHT = 1
    LEFT = 2


def lookahead_distance(speed) -> float:
    """Speed-dependent look-ahead distance in metres for a speed in m/s."""
    speed_km = float(speed) * 3.6
    if speed_km < 1.34 * 3.6:
        return 2.5
    if speed_km < 5.36 * 3.6:
        return 1.5 * speed_km / 3.6
    return 5.5


def _heading(vec) -> float:
    return float(np.arctan2(vec[1], vec[0]))


def _norm(vec) -> float:
    return float(np.linalg.norm(vec))


def _is_relevant(alpha1: float, alpha2: float, theta: float, segment: int) -> bool:
    if abs(alpha1) < _HALF_PI or abs(abs(alpha1) - _HALF_PI) < _RIGHT_ANGLE_TOLERANCE:
        half = theta / 2.0
        if (alpha2 < 0 and half > 0) or (alpha2 > 0 and half < 0):
            return abs(alpha2) < abs(half)
        if abs(alpha2) < _HALF_PI or abs(abs(alpha2) - _HALF_PI) < _RIGHT_ANGLE_TOLERANCE:
            return True
        return abs(alpha2) < 3.0 * _HALF_PI - abs(theta)
    return segment == 1


def _relevant_segment(path: np.ndarray, start: int = 1) -> int:
    """Index of the path segment the vehicle currently relates to."""
    last = len(path) - 1
    index = start
    for index in range(start, len(path)):
        seg1 = path[index] - path[index - 1]
        q1 = -path[index - 1]
        q2 = path[index]
        alpha1 = _heading(seg1) - _heading(q1)
        alpha2 = _heading(seg1) - _heading(q2)
        if index >= last:
            break
        seg2 = path[index + 1] - path[index]
        back = -seg1
        theta = float(np.arccos(back.dot(seg2) / _norm(back) * _norm(seg2)))
        if _is_relevant(alpha1, alpha2, theta, index):
            break
    return index


def _goal_point(la: float, path: np.ndarray, segment: int) -> np.ndarray:
    """Look-ahead point on the path at distance ``la`` from the vehicle."""
    seg1 = path[segment] - path[segment - 1]
    q1 = -path[segment - 1]
    alpha1 = _heading(seg1) - _heading(q1)

    map_point = path[segment - 1] + _norm(q1) * np.cos(alpha1) * seg1 / _norm(seg1)
    ld = _norm(path[segment - 1] - map_point)
    ed = _norm(q1) * float(np.sin(alpha1))

    if ld > _norm(seg1):
        ld = _norm(seg1)
        map_point = path[segment]
        ed = _norm(map_point)

    if segment == 1 and _norm(q1) >= la and abs(alpha1) > _HALF_PI:
        return path[segment - 1].copy()

    for index in range(segment, len(path)):
        seg1 = path[index] - path[index - 1]
        q1_norm = _norm(path[index - 1])
        q2_norm = _norm(path[index])
        seg_norm = _norm(seg1)
        if q1_norm <= la and q2_norm >= la:
            cosgam = (seg_norm**2 + q1_norm**2 - q2_norm**2) / (2.0 * seg_norm**2)
            plen = q1_norm * cosgam + float(
                np.sqrt(q1_norm**2 * (cosgam**2 - 1.0) + la**2)
            )
            return plen * seg1 / seg_norm + path[index - 1]
        if index == segment and q1_norm > la:
            if abs(ed) <= la:
                plen = float(np.sqrt(la**2 - ed**2))
                return plen * seg1 / seg_norm + map_point
            return ld * seg1 / seg_norm + path[index - 1]
    return path[-1].copy()


def _ackermann_steering(goal: np.ndarray, la: float, params: VehicleParams) -> float:
    """Inner-wheel steering angle in radians toward ``goal``, scaled down."""
    limit = params.max_wheel_angle * math.pi / 180.0
    tgangle = _heading(goal) - _HALF_PI

    delta = float(np.arctan2(2.0 * params.wheelbase * np.sin(tgangle), la))
    if abs(delta) > limit:
        delta = math.copysign(limit, delta)

    inner = float(
        np.arctan2(
            params.wheelbase * np.tan(delta),
            params.wheelbase - (params.f_tread / 2.0) * np.tan(abs(delta)),
        )
    )
    if abs(inner) > limit:
        inner = math.copysign(limit, inner)
    return inner * STEERING_SCALE


class PurePursuit:
    """Pure-pursuit tracker holding the current reference path and speed."""

    def __init__(self, params=None):
        self.params = VehicleParams() if params is None else params
        self.speed = 0.0
        self._path = np.empty((0, 2))

    @property
    def path(self) -> np.ndarray:
        return self._path.copy()

    def set_speed(self, speed) -> None:
        self.speed = float(speed)

    def set_ref_path(self, xs, ys) -> None:
        """Replace the reference path; extra y values beyond the x values are ignored."""
        xs = [float(x) for x in xs]
        ys = [float(y) for y in ys]
        if len(ys) < len(xs):
            raise ValueError(f"path has {len(xs)} x values but only {len(ys)} y values")
        self._path = np.array(list(zip(xs, ys)), dtype=float).reshape(-1, 2)

    def steering_angle(self) -> float:
        """Steering angle in radians; 0 while the path is too short."""
        if len(self._path) < MIN_PATH_POINTS:
            return 0.0
        with np.errstate(all="ignore"):
            segment = _relevant_segment(self._path, 1)
            goal = _goal_point(LOOKAHEAD, self._path, segment)
            return float(_ackermann_steering(goal, LOOKAHEAD, self.params))

    def turn_light(self) -> TurnLight:
        """Indicator request from the direction of the path ahead."""
        if len(self._path) < MIN_PATH_POINTS:
            return TurnLight.NONE
        first = self._path[8]
        steepest = 0.0
        for point in self._path[9:15]:
            angle = math.atan2(point[1] - first[1], point[0] - first[0])
            if abs(angle) >= abs(steepest):
                steepest = angle
        degrees = steepest * 180.0 / math.pi
        if degrees <= 75.0:
            return TurnLight.RIGHT
        if degrees >= 97.0:
            return TurnLight.LEFT
        return TurnLight.NONE