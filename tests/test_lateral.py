import math
import struct

import pytest

from yewai.lateral import (
    LateralController,
    default_vehicle_params,
    parse_raw_path,
)
from yewai.pure_pursuit import STEERING_SCALE, VehicleParams


def _pack_path(xs, ys):
    values = [*xs, *ys]
    return struct.pack(f"<{len(values)}f", *values)


def test_parse_raw_path_splits_halves():
    assert parse_raw_path(_pack_path([1.0, 2.0], [3.0, 4.0])) == ([1.0, 2.0], [3.0, 4.0])


def test_parse_raw_path_odd_count_gives_longer_y():
    data = struct.pack("<5f", 1.0, 2.0, 3.0, 4.0, 5.0)
    assert parse_raw_path(data) == ([1.0, 2.0], [3.0, 4.0, 5.0])


def test_parse_raw_path_ignores_trailing_bytes():
    data = struct.pack("<2f", 1.0, 2.0) + b"\x01\x02"
    assert parse_raw_path(data) == ([1.0], [2.0])


def test_parse_raw_path_empty():
    assert parse_raw_path(b"") == ([], [])


def test_single_point_path_gives_zero_steering():
    params = VehicleParams(
        length=2.5,
        width=0.8,
        height=1.85,
        mass=500.0,
        f_tread=0.540,
        r_tread=0.540,
        wheelbase=0.840,
        steering_ratio=34.2,
        max_steer_angle=27.76,
        max_wheel_angle=315.0,
        wheel_diam=0.6,
    )
    controller = LateralController(params)
    angle = controller.handle_input("raw_path", _pack_path([1.0], [2.0]))
    assert -angle == 0.0
    assert controller.pursuit.path.tolist() == [[1.0, 2.0]]


def test_straight_path_via_input():
    n = 25
    controller = LateralController(default_vehicle_params())
    angle = controller.handle_input("raw_path", _pack_path([0.0] * n, [0.5 * i for i in range(n)]))
    assert angle == pytest.approx(0.0, abs=1e-9)
    assert controller.paths_received == 1


def test_sideways_path_clamped_with_default_params():
    n = 25
    params = default_vehicle_params()
    controller = LateralController(params)
    angle = controller.handle_input(b"raw_path", _pack_path([0.5 * i for i in range(n)], [0.0] * n))
    assert angle == pytest.approx(-STEERING_SCALE * math.radians(params.max_wheel_angle))


def test_other_inputs_do_not_change_path():
    n = 25
    controller = LateralController()
    assert controller.handle_input("VehicleStat", b"\x00\x00\x80\x3f") == 0.0
    first = controller.handle_input(
        "raw_path", _pack_path([0.25 * i for i in range(n)], [0.433 * i for i in range(n)])
    )
    again = controller.handle_input("navi_msg", b"")
    assert again == first
    assert controller.paths_received == 1


def test_steering_command_matches_tracker():
    n = 25
    controller = LateralController()
    controller.on_raw_path(_pack_path([0.25 * i for i in range(n)], [0.433 * i for i in range(n)]))
    assert controller.steering_command() == controller.pursuit.steering_angle()
    assert controller.steering_command() < 0.0


def test_vehicle_speed_is_passed_on():
    controller = LateralController()
    controller.on_vehicle_speed(1.5)
    assert controller.pursuit.speed == 1.5