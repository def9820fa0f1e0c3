"""Quaternion and rotation-matrix helpers; quaternions are (w, x, y, z)."""

from __future__ import annotations

import math

import numpy as np


def get_yaw(rotation) -> float:
    """Yaw angle in radians of a 3x3 rotation matrix, 0 at gimbal lock."""
    r = np.asarray(rotation, dtype=float)
    if abs(r[2, 0]) >= 1.0:
        return 0.0
    pitch = -math.asin(r[2, 0])
    cos_pitch = math.cos(pitch)
    return math.atan2(r[1, 0] / cos_pitch, r[0, 0] / cos_pitch)


def quaternion_to_matrix(quat) -> np.ndarray:
    """Rotation matrix of a unit quaternion (w, x, y, z)."""
    w, x, y, z = (float(v) for v in quat)
    tx, ty, tz = 2.0 * x, 2.0 * y, 2.0 * z
    twx, twy, twz = tx * w, ty * w, tz * w
    txx, txy, txz = tx * x, ty * x, tz * x
    tyy, tyz, tzz = ty * y, tz * y, tz * z
    return np.array(
        [
            [1.0 - (tyy + tzz), txy - twz, txz + twy],
            [txy + twz, 1.0 - (txx + tzz), tyz - twx],
            [txz - twy, tyz + twx, 1.0 - (txx + tyy)],
        ]
    )


def matrix_to_quaternion(matrix) -> np.ndarray:
    """Quaternion (w, x, y, z) of the rotation part of a 3x3 or larger matrix."""
    m = np.asarray(matrix, dtype=float)[:3, :3]
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        t = math.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        return np.array(
            [w, (m[2, 1] - m[1, 2]) * t, (m[0, 2] - m[2, 0]) * t, (m[1, 0] - m[0, 1]) * t]
        )
    i = 0
    if m[1, 1] > m[0, 0]:
        i = 1
    if m[2, 2] > m[i, i]:
        i = 2
    j = (i + 1) % 3
    k = (j + 1) % 3
    t = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
    vec = np.zeros(3)
    vec[i] = 0.5 * t
    t = 0.5 / t
    w = (m[k, j] - m[j, k]) * t
    vec[j] = (m[j, i] + m[i, j]) * t
    vec[k] = (m[k, i] + m[i, k]) * t
    return np.array([w, *vec])


def quaternion_multiply(a, b) -> np.ndarray:
    """Hamilton product a * b of two quaternions (w, x, y, z)."""
    aw, ax, ay, az = (float(v) for v in a)
    bw, bx, by, bz = (float(v) for v in b)
    return np.array(
        [
            aw * bw - ax * bx - ay * by - az * bz,
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
        ]
    )


def rotate_vector(quat, vector) -> np.ndarray:
    """Rotate a 3-vector by a unit quaternion (w, x, y, z)."""
    q = np.asarray(quat, dtype=float)
    v = np.asarray(vector, dtype=float)
    qv = q[1:]
    uv = 2.0 * np.cross(qv, v)
    return v + q[0] * uv + np.cross(qv, uv)