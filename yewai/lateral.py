"""Lateral controller node logic: reference path input and steering output."""

from __future__ import annotations

import struct

from yewai.pure_pursuit import PurePursuit, VehicleParams

RAW_PATH_INPUT = "raw_path"
STEERING_OUTPUT = "SteeringCmd"


def default_vehicle_params() -> VehicleParams:
    """Parameters of the small test vehicle."""
    return VehicleParams(
        length=0.65,
        width=0.45,
        height=0.67,
        mass=100.0,
        f_tread=0.45,
        r_tread=0.45,
        wheelbase=0.40,
        steering_ratio=34.2,
        max_wheel_angle=30.0,
        max_steer_angle=27.76,
        wheel_diam=0.6,
    )


def parse_raw_path(data) -> tuple[list[float], list[float]]:
    """Split a packed float32 path into x values (first half) and y values (the rest).

    Trailing bytes that do not fill a float are ignored.
    """
    data = bytes(data)
    count = len(data) // 4
    values = struct.unpack_from(f"<{count}f", data)
    half = count // 2
    return list(values[:half]), list(values[half:])


class LateralController:
    """Feeds path and speed inputs to a pure-pursuit tracker and yields steering angles."""

    def __init__(self, params=None):
        self.pursuit = PurePursuit(params)
        self.paths_received = 0

    def on_raw_path(self, data) -> None:
        xs, ys = parse_raw_path(data)
        self.pursuit.set_ref_path(xs, ys)
        self.paths_received += 1

    def on_vehicle_speed(self, speed) -> None:
        self.pursuit.set_speed(speed)

    def steering_command(self) -> float:
        """Steering angle in radians for the current path."""
        return self.pursuit.steering_angle()

    def handle_input(self, input_id, data) -> float:
        """Process one input and return the steering angle to publish."""
        if isinstance(input_id, (bytes, bytearray)):
            input_id = bytes(input_id).decode("utf-8", "replace")
        if input_id.startswith(RAW_PATH_INPUT):
            self.on_raw_path(data)
        return self.steering_command()