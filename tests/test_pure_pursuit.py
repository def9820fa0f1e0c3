import math

import pytest

from yewai.pure_pursuit import (
    MIN_PATH_POINTS,
    STEERING_SCALE,
    PurePursuit,
    TurnLight,
    VehicleParams,
    lookahead_distance,
)


def _tracker(xs, ys, params=None):
    tracker = PurePursuit(params)
    tracker.set_ref_path(xs, ys)
    return tracker


def test_short_path_gives_no_steering():
    tracker = _tracker([0.5 * i for i in range(MIN_PATH_POINTS - 1)], [0.0] * (MIN_PATH_POINTS - 1))
    assert tracker.steering_angle() == 0.0
    assert tracker.turn_light() == TurnLight.NONE


def test_straight_ahead_path_gives_zero_steering():
    n = 25
    tracker = _tracker([0.0] * n, [0.5 * i for i in range(n)])
    assert tracker.steering_angle() == pytest.approx(0.0, abs=1e-12)


def test_sideways_path_is_clamped_to_wheel_limit():
    n = 25
    params = VehicleParams()
    tracker = _tracker([0.5 * i for i in range(n)], [0.0] * n, params)
    limit = STEERING_SCALE * math.radians(params.max_wheel_angle)
    assert tracker.steering_angle() == pytest.approx(-limit)


def test_steering_is_mirror_symmetric():
    n = 25
    ys = [0.433 * i for i in range(n)]
    right = _tracker([0.25 * i for i in range(n)], ys).steering_angle()
    left = _tracker([-(0.25 * i) for i in range(n)], ys).steering_angle()
    assert right < 0.0
    assert left == pytest.approx(-right)


def test_steering_never_exceeds_limit():
    n = 25
    params = VehicleParams(max_wheel_angle=5.0)
    tracker = _tracker([0.1 * i * i for i in range(n)], [0.3 * i for i in range(n)], params)
    assert abs(tracker.steering_angle()) <= STEERING_SCALE * math.radians(5.0) + 1e-12


def test_turn_light_directions():
    n = 25
    assert _tracker([0.5 * i for i in range(n)], [0.0] * n).turn_light() == TurnLight.RIGHT
    assert _tracker([-0.5 * i for i in range(n)], [0.0] * n).turn_light() == TurnLight.LEFT
    assert _tracker([0.0] * n, [0.5 * i for i in range(n)]).turn_light() == TurnLight.NONE


def test_turn_light_values():
    n = 25
    assert int(_tracker([0.5 * i for i in range(n)], [0.0] * n).turn_light()) == 1
    assert int(_tracker([-0.5 * i for i in range(n)], [0.0] * n).turn_light()) == 2
    assert int(_tracker([0.0] * n, [0.5 * i for i in range(n)]).turn_light()) == 0


def test_set_ref_path_ignores_extra_y_values():
    tracker = _tracker([1.0, 2.0], [3.0, 4.0, 5.0])
    assert tracker.path.tolist() == [[1.0, 3.0], [2.0, 4.0]]


def test_set_ref_path_rejects_short_y():
    tracker = PurePursuit()
    with pytest.raises(ValueError):
        tracker.set_ref_path([1.0, 2.0], [3.0])


def test_set_speed_stores_value():
    tracker = PurePursuit()
    tracker.set_speed(3)
    assert tracker.speed == 3.0


def test_lookahead_distance_bands():
    assert lookahead_distance(0.0) == 2.5
    assert lookahead_distance(10.0) == 5.5
    assert 0.0 < lookahead_distance(2.0) < lookahead_distance(3.0) < 5.5