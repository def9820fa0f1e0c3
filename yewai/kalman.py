"""Unscented Kalman filter over a user-supplied process and observation model."""

from __future__ import annotations

import numpy as np


def _as_vector(value, size: int, name: str) -> np.ndarray:
    vec = np.array(value, dtype=float).reshape(-1)
    if vec.size != size:
        raise ValueError(f"{name} must have {size} elements, got {vec.size}")
    return vec


def _as_matrix(value, size: int, name: str) -> np.ndarray:
    mat = np.array(value, dtype=float)
    if mat.shape != (size, size):
        raise ValueError(f"{name} must be {size}x{size}, got {mat.shape}")
    return mat


def _weights(dim: int, lam: float) -> np.ndarray:
    weights = np.full(2 * dim + 1, 1.0 / (2.0 * (dim + lam)))
    weights[0] = lam / (dim + lam)
    return weights


class UnscentedKalmanFilter:
    """Unscented Kalman filter.

    The system supplies ``f(state, control)`` (``control`` may be ``None``)
    and ``h(state)``.
    """

    def __init__(
        self,
        system,
        state_dim,
        input_dim,
        measurement_dim,
        process_noise,
        measurement_noise,
        mean,
        cov,
    ):
        self.system = system
        self.state_dim = int(state_dim)
        self.input_dim = int(input_dim)
        self.measurement_dim = int(measurement_dim)
        n, k = self.state_dim, self.measurement_dim
        self.mean = _as_vector(mean, n, "mean")
        self.cov = _as_matrix(cov, n, "cov")
        self.process_noise = _as_matrix(process_noise, n, "process_noise")
        self.measurement_noise = _as_matrix(measurement_noise, k, "measurement_noise")
        self.lam = 1.0
        self.weights = _weights(n, self.lam)
        self.ext_weights = _weights(n + k, self.lam)
        self.sigma_points = np.zeros((2 * n + 1, n))
        self.kalman_gain = np.zeros((n + k, k))

    def _compute_sigma_points(self, mean: np.ndarray, cov: np.ndarray) -> np.ndarray:
        n = mean.size
        lower = np.linalg.cholesky((n + self.lam) * cov)
        points = np.empty((2 * n + 1, n))
        points[0] = mean
        points[1::2] = mean + lower.T
        points[2::2] = mean - lower.T
        return points

    def predict(self, control=None) -> None:
        """Propagate the state through the process model."""
        if control is not None:
            control = np.asarray(control, dtype=float).reshape(-1)
        points = self._compute_sigma_points(self.mean, self.cov)
        self.sigma_points = np.array(
            [np.asarray(self.system.f(point, control), dtype=float) for point in points]
        )
        mean_pred = self.weights @ self.sigma_points
        diffs = self.sigma_points - mean_pred
        cov_pred = (self.weights[:, None] * diffs).T @ diffs + self.process_noise
        self.mean = mean_pred
        self.cov = cov_pred

    def correct(self, measurement) -> None:
        """Fuse a measurement into the state estimate."""
        n, k = self.state_dim, self.measurement_dim
        z = _as_vector(measurement, k, "measurement")

        ext_mean = np.concatenate([self.mean, np.zeros(k)])
        ext_cov = np.zeros((n + k, n + k))
        ext_cov[:n, :n] = self.cov
        ext_cov[n:, n:] = self.measurement_noise

        ext_points = self._compute_sigma_points(ext_mean, ext_cov)
        expected = np.array(
            [
                np.asarray(self.system.h(point[:n]), dtype=float) + point[n:]
                for point in ext_points
            ]
        )

        z_mean = self.ext_weights @ expected
        z_diffs = expected - z_mean
        z_cov = (self.ext_weights[:, None] * z_diffs).T @ z_diffs

        x_diffs = ext_points - ext_mean
        cross_cov = (self.ext_weights[:, None] * x_diffs).T @ z_diffs

        gain = cross_cov @ np.linalg.inv(z_cov)
        self.kalman_gain = gain

        new_mean = ext_mean + gain @ (z - z_mean)
        new_cov = ext_cov - gain @ z_cov @ gain.T
        self.mean = new_mean[:n]
        self.cov = new_cov[:n, :n]