"""Process and observation models for pose tracking filters."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from yewai.rotation import (
    matrix_to_quaternion,
    quaternion_multiply,
    quaternion_to_matrix,
    rotate_vector,
)

GRAVITY = 9.80665


def _normalized(quat) -> np.ndarray:
    q = np.asarray(quat, dtype=float)
    return q / np.linalg.norm(q)


@dataclass
class PoseSystem:
    """IMU-driven pose model.

    State: position(3), velocity(3), quaternion w,x,y,z (4),
    accelerometer bias(3), gyroscope bias(3). Observation: position and
    normalised quaternion.
    """

    dt: float = 0.01

    def f(self, state, control=None) -> np.ndarray:
        state = np.asarray(state, dtype=float)
        pos = state[0:3]
        vel = state[3:6]
        quat = _normalized(state[6:10])
        acc_bias = state[10:13]
        gyro_bias = state[13:16]

        next_state = state.copy()
        next_state[0:3] = pos + vel * self.dt

        if control is None:
            next_state[3:6] = vel
            next_state[6:10] = quat
            return next_state

        control = np.asarray(control, dtype=float)
        acc = rotate_vector(quat, control[0:3] - acc_bias)
        next_state[3:6] = vel + (acc - np.array([0.0, 0.0, GRAVITY])) * self.dt

        gyro = control[3:6] - gyro_bias
        dq = _normalized([1.0, *(gyro * self.dt / 2.0)])
        next_state[6:10] = _normalized(quaternion_multiply(quat, dq))
        return next_state

    def h(self, state) -> np.ndarray:
        state = np.asarray(state, dtype=float)
        return np.concatenate([state[0:3], _normalized(state[6:10])])


def _pose_matrix(vec) -> np.ndarray:
    m = np.eye(4)
    m[:3, 3] = vec[0:3]
    m[:3, :3] = quaternion_to_matrix(_normalized(vec[3:7]))
    return m


class OdomSystem:
    """Odometry-driven pose model; state and observation are position + quaternion."""

    def f(self, state, control) -> np.ndarray:
        state = np.asarray(state, dtype=float)
        control = np.asarray(control, dtype=float)
        moved = _pose_matrix(state) @ _pose_matrix(control)
        return np.concatenate([moved[:3, 3], matrix_to_quaternion(moved[:3, :3])])

    def h(self, state) -> np.ndarray:
        return np.array(state, dtype=float)