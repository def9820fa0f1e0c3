import math

import numpy as np
import pytest

from yewai.rotation import (
    get_yaw,
    matrix_to_quaternion,
    quaternion_multiply,
    quaternion_to_matrix,
    rotate_vector,
)


def _axis_angle(axis, angle):
    axis = np.asarray(axis, dtype=float)
    axis = axis / np.linalg.norm(axis)
    return np.array([math.cos(angle / 2), *(math.sin(angle / 2) * axis)])


QUATS = [
    _axis_angle([0, 0, 1], 0.3),
    _axis_angle([1, 2, 3], 1.1),
    _axis_angle([1, 0, 0], math.pi),
    _axis_angle([0, 1, 0], 3.0),
    _axis_angle([-1, 1, 0.5], 2.5),
]


def test_yaw_of_identity_is_zero():
    assert get_yaw(np.eye(3)) == 0.0


@pytest.mark.parametrize("angle", [0.4, -1.2, 2.9, -3.0])
def test_yaw_of_rotation_about_z(angle):
    rot = quaternion_to_matrix(_axis_angle([0, 0, 1], angle))
    assert get_yaw(rot) == pytest.approx(angle)


def test_yaw_at_gimbal_lock_is_zero():
    rot = quaternion_to_matrix(_axis_angle([0, 1, 0], math.pi / 2))
    rot[2, 0] = -1.0
    assert get_yaw(rot) == 0.0


@pytest.mark.parametrize("quat", QUATS)
def test_matrix_is_proper_rotation(quat):
    rot = quaternion_to_matrix(quat)
    assert np.allclose(rot @ rot.T, np.eye(3))
    assert np.linalg.det(rot) == pytest.approx(1.0)


@pytest.mark.parametrize("quat", QUATS)
def test_matrix_quaternion_round_trip(quat):
    back = matrix_to_quaternion(quaternion_to_matrix(quat))
    assert np.allclose(back, quat) or np.allclose(back, -quat)


def test_matrix_to_quaternion_uses_top_left_block():
    quat = QUATS[1]
    full = np.eye(4)
    full[:3, :3] = quaternion_to_matrix(quat)
    full[:3, 3] = [5.0, 6.0, 7.0]
    back = matrix_to_quaternion(full)
    assert np.allclose(back, quat) or np.allclose(back, -quat)


def test_multiply_with_identity():
    q = QUATS[1]
    assert np.allclose(quaternion_multiply(q, [1, 0, 0, 0]), q)
    assert np.allclose(quaternion_multiply([1, 0, 0, 0], q), q)


def test_multiply_with_conjugate_gives_identity():
    q = QUATS[4]
    conj = np.array([q[0], -q[1], -q[2], -q[3]])
    assert np.allclose(quaternion_multiply(q, conj), [1, 0, 0, 0])


def test_multiply_composes_rotations():
    a, b = QUATS[1], QUATS[3]
    assert np.allclose(
        quaternion_to_matrix(quaternion_multiply(a, b)),
        quaternion_to_matrix(a) @ quaternion_to_matrix(b),
    )


@pytest.mark.parametrize("quat", QUATS)
def test_rotate_vector_matches_matrix(quat):
    v = np.array([0.3, -1.5, 2.0])
    assert np.allclose(rotate_vector(quat, v), quaternion_to_matrix(quat) @ v)


def test_quarter_turn_about_z():
    out = rotate_vector(_axis_angle([0, 0, 1], math.pi / 2), [1.0, 0.0, 0.0])
    assert np.allclose(out, [0.0, 1.0, 0.0])