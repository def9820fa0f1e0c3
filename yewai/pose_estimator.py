"""Scan-matching pose estimation fused with IMU and odometry through UKFs."""

from __future__ import annotations

import math

import numpy as np

from yewai.kalman import UnscentedKalmanFilter
from yewai.rotation import matrix_to_quaternion, quaternion_to_matrix
from yewai.systems import OdomSystem, PoseSystem

_NEIGHBOUR_CHUNK = 512
_POSE_INDICES = [0, 1, 2, 6, 7, 8, 9]
_NO_INPUT_DT_LIMIT = 0.300
_IMU_DT_LIMIT = 0.200


def _as_cloud(cloud, name: str) -> np.ndarray:
    points = np.array(cloud, dtype=float)
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError(f"{name} must be an (N, 3+) array of points, got shape {points.shape}")
    return points


def _best_fit(source: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Rigid transform that maps source points onto target points in the least-squares sense."""
    src_centre = source.mean(axis=0)
    dst_centre = target.mean(axis=0)
    cross = (source - src_centre).T @ (target - dst_centre)
    u, _, vt = np.linalg.svd(cross)
    rot = vt.T @ u.T
    if np.linalg.det(rot) < 0.0:
        vt[-1] *= -1.0
        rot = vt.T @ u.T
    step = np.eye(4)
    step[:3, :3] = rot
    step[:3, 3] = dst_centre - rot @ src_centre
    return step


def _step_size(step: np.ndarray) -> float:
    cos_angle = np.clip((step[:3, :3].diagonal().sum() - 1.0) / 2.0, -1.0, 1.0)
    return math.hypot(float(np.linalg.norm(step[:3, 3])), math.acos(cos_angle))


class Registration:
    """Point-to-point ICP registration of a source cloud onto a target cloud.

    Clouds are arrays of shape (N, 3) or wider; columns beyond x, y, z
    (such as intensity) are carried through unchanged.
    """

    def __init__(
        self,
        max_iterations: int = 64,
        transformation_epsilon: float = 0.01,
        max_correspondence_distance: float | None = None,
    ):
        self.max_iterations = int(max_iterations)
        self.transformation_epsilon = float(transformation_epsilon)
        self.max_correspondence_distance = max_correspondence_distance
        self.final_transformation = np.eye(4)
        self.converged = False
        self._target: np.ndarray | None = None
        self._source: np.ndarray | None = None

    def set_input_target(self, cloud) -> None:
        self._target = _as_cloud(cloud, "target cloud")[:, :3].copy()

    def set_input_source(self, cloud) -> None:
        self._source = _as_cloud(cloud, "source cloud")

    def _nearest(self, points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        indices = np.empty(len(points), dtype=int)
        sq_dists = np.empty(len(points))
        for start in range(0, len(points), _NEIGHBOUR_CHUNK):
            block = points[start : start + _NEIGHBOUR_CHUNK]
            dist = ((block[:, None, :] - self._target[None, :, :]) ** 2).sum(axis=-1)
            best = dist.argmin(axis=1)
            indices[start : start + len(block)] = best
            sq_dists[start : start + len(block)] = dist[np.arange(len(block)), best]
        return indices, sq_dists

    def align(self, guess=None) -> np.ndarray:
        """Align the source onto the target starting from ``guess``; return the moved source."""
        if self._target is None or len(self._target) == 0:
            raise ValueError("registration target cloud is not set")
        if self._source is None:
            raise ValueError("registration source cloud is not set")
        transform = np.eye(4) if guess is None else np.array(guess, dtype=float)
        if transform.shape != (4, 4):
            raise ValueError(f"initial guess must be 4x4, got {transform.shape}")

        source_xyz = self._source[:, :3]
        self.converged = False
        if len(source_xyz) >= 3:
            for _ in range(self.max_iterations):
                moved = source_xyz @ transform[:3, :3].T + transform[:3, 3]
                indices, sq_dists = self._nearest(moved)
                mask = np.ones(len(moved), dtype=bool)
                if self.max_correspondence_distance is not None:
                    mask = sq_dists <= self.max_correspondence_distance**2
                if mask.sum() < 3:
                    break
                step = _best_fit(moved[mask], self._target[indices[mask]])
                transform = step @ transform
                if _step_size(step) < self.transformation_epsilon:
                    self.converged = True
                    break

        self.final_transformation = transform
        aligned = self._source.copy()
        aligned[:, :3] = source_xyz @ transform[:3, :3].T + transform[:3, 3]
        return aligned


def _normalized_quat(quat) -> np.ndarray:
    q = np.asarray(quat, dtype=float).reshape(4)
    norm = np.linalg.norm(q)
    if norm == 0.0:
        raise ValueError("quaternion must be non-zero")
    return q / norm


def _pose_matrix(pos, quat) -> np.ndarray:
    m = np.eye(4)
    m[:3, :3] = quaternion_to_matrix(quat)
    m[:3, 3] = pos
    return m


class PoseEstimator:
    """Scan-matching pose estimator.

    During the first ``cool_time_duration`` seconds prediction is skipped.
    Quaternions are (w, x, y, z).
    """

    def __init__(self, registration, pos=(0.0, 0.0, 0.0), quat=(1.0, 0.0, 0.0, 0.0), cool_time_duration=1.0):
        pos = np.asarray(pos, dtype=float).reshape(3)
        quat = np.asarray(quat, dtype=float).reshape(4)
        self.registration = registration
        self.cool_time_duration = float(cool_time_duration)
        self.init_stamp = 0.0
        self.prev_stamp = 0.0
        self.last_correction_stamp = 0.0

        self.last_observation = _pose_matrix(pos, quat)
        self.wo_prediction_error: np.ndarray | None = None
        self.imu_prediction_error: np.ndarray | None = None
        self.odom_prediction_error: np.ndarray | None = None

        self.process_noise = np.diag([1.0] * 6 + [0.5] * 4 + [1e-3] * 6)
        measurement_noise = np.diag([0.01] * 3 + [0.001] * 4)

        mean = np.zeros(16)
        mean[0:3] = pos
        mean[6:10] = _normalized_quat(quat)
        cov = np.eye(16) * 0.01

        self.ukf = UnscentedKalmanFilter(
            PoseSystem(), 16, 6, 7, self.process_noise, measurement_noise, mean, cov
        )
        self.odom_ukf: UnscentedKalmanFilter | None = None

    def predict(self, stamp, acc=None, gyro=None) -> None:
        """Advance the state to ``stamp``, using IMU readings when both are given."""
        if (acc is None) != (gyro is None):
            raise ValueError("acc and gyro must be given together")
        stamp = float(stamp)
        if self.init_stamp == 0:
            self.init_stamp = stamp
        if (
            stamp - self.init_stamp < self.cool_time_duration
            or self.prev_stamp == 0
            or self.prev_stamp == stamp
        ):
            self.prev_stamp = stamp
            return

        limit = _NO_INPUT_DT_LIMIT if acc is None else _IMU_DT_LIMIT
        dt = stamp - self.prev_stamp
        if dt > limit:
            dt = 0.0
        self.prev_stamp = stamp

        self.ukf.process_noise = self.process_noise * dt
        self.ukf.system.dt = dt

        if acc is None:
            self.ukf.predict()
        else:
            control = np.concatenate(
                [np.asarray(acc, dtype=float).reshape(3), np.asarray(gyro, dtype=float).reshape(3)]
            )
            self.ukf.predict(control)

    def predict_odom(self, odom_delta) -> None:
        """Update the odometry-based estimate with a relative motion (4x4)."""
        delta = np.asarray(odom_delta, dtype=float)
        if delta.shape != (4, 4):
            raise ValueError(f"odometry delta must be 4x4, got {delta.shape}")
        if self.odom_ukf is None:
            odom_mean = self.ukf.mean[_POSE_INDICES]
            self.odom_ukf = UnscentedKalmanFilter(
                OdomSystem(),
                7,
                7,
                7,
                np.eye(7),
                np.eye(7) * 1e-3,
                odom_mean,
                np.eye(7) * 1e-2,
            )

        quat = matrix_to_quaternion(delta[:3, :3])
        if float(np.dot(self.odom_quat(), quat)) < 0.0:
            quat = -quat

        control = np.concatenate([delta[:3, 3], quat])

        process_noise = np.eye(7)
        process_noise[:3, :3] = np.eye(3) * np.linalg.norm(delta[:3, 3]) + np.eye(3) * 1e-3
        process_noise[3:, 3:] = np.eye(4) * (1.0 - abs(quat[0])) + np.eye(4) * 1e-3

        self.odom_ukf.process_noise = process_noise
        self.odom_ukf.predict(control)

    def correct(self, stamp, cloud) -> np.ndarray:
        """Register ``cloud`` against the map and fuse the result; return the aligned cloud."""
        stamp = float(stamp)
        if self.init_stamp == 0:
            self.init_stamp = stamp
        self.last_correction_stamp = stamp

        no_guess = self.last_observation
        odom_guess = None
        init_guess = np.eye(4)

        if self.odom_ukf is None:
            imu_guess = self.matrix()
            init_guess = imu_guess
        else:
            imu_guess = self.matrix()
            odom_guess = self.odom_matrix()

            imu_mean = self.ukf.mean[_POSE_INDICES]
            imu_cov = self.ukf.cov[np.ix_(_POSE_INDICES, _POSE_INDICES)]
            odom_mean = self.odom_ukf.mean.copy()
            odom_cov = self.odom_ukf.cov

            if float(np.dot(imu_mean[3:], odom_mean[3:])) < 0.0:
                odom_mean[3:] *= -1.0

            inv_imu_cov = np.linalg.inv(imu_cov)
            inv_odom_cov = np.linalg.inv(odom_cov)
            fused_cov = np.linalg.inv(inv_imu_cov + inv_odom_cov)
            fused_mean = fused_cov @ inv_imu_cov @ imu_mean + fused_cov @ inv_odom_cov @ odom_mean

            init_guess = _pose_matrix(fused_mean[:3], _normalized_quat(fused_mean[3:]))

        self.registration.set_input_source(cloud)
        aligned = self.registration.align(init_guess)
        trans = np.array(self.registration.final_transformation, dtype=float)

        q = matrix_to_quaternion(trans[:3, :3])
        if float(np.dot(self.quat(), q)) < 0.0:
            q = -q
        observation = np.concatenate([trans[:3, 3], q])
        self.last_observation = trans

        self.wo_prediction_error = np.linalg.inv(no_guess) @ trans
        self.ukf.correct(observation)
        self.imu_prediction_error = np.linalg.inv(imu_guess) @ trans

        if self.odom_ukf is not None:
            if float(np.dot(observation[3:], self.odom_ukf.mean[3:])) < 0.0:
                self.odom_ukf.mean[3:] *= -1.0
            self.odom_ukf.correct(observation)
            self.odom_prediction_error = np.linalg.inv(odom_guess) @ trans

        return aligned

    def last_correction_time(self) -> float:
        return self.last_correction_stamp

    def pos(self) -> np.ndarray:
        return self.ukf.mean[0:3].copy()

    def vel(self) -> np.ndarray:
        return self.ukf.mean[3:6].copy()

    def quat(self) -> np.ndarray:
        return _normalized_quat(self.ukf.mean[6:10])

    def matrix(self) -> np.ndarray:
        return _pose_matrix(self.pos(), self.quat())

    def _require_odom(self) -> UnscentedKalmanFilter:
        if self.odom_ukf is None:
            raise RuntimeError("no odometry has been received yet")
        return self.odom_ukf

    def odom_pos(self) -> np.ndarray:
        return self._require_odom().mean[0:3].copy()

    def odom_quat(self) -> np.ndarray:
        return _normalized_quat(self._require_odom().mean[3:7])

    def odom_matrix(self) -> np.ndarray:
        return _pose_matrix(self.odom_pos(), self.odom_quat())