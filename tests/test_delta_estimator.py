import numpy as np

from yewai.delta_estimator import DeltaEstimator
from yewai.pose_estimator import Registration


def _grid():
    xs, ys, zs = np.meshgrid(
        np.arange(4) * 2.0, np.arange(4) * 3.0, np.arange(4) * 4.0, indexing="ij"
    )
    points = np.stack([xs.ravel(), ys.ravel(), zs.ravel()], axis=1)
    return points - points.mean(axis=0)


def _estimator():
    return DeltaEstimator(Registration(transformation_epsilon=1e-10))


def test_initial_delta_is_identity():
    assert np.array_equal(_estimator().estimated_delta(), np.eye(4))


def test_first_frame_does_not_change_delta():
    est = _estimator()
    est.add_frame(_grid())
    assert np.array_equal(est.estimated_delta(), np.eye(4))


def test_second_frame_gives_relative_motion():
    est = _estimator()
    frame = _grid()
    step = np.array([0.3, 0.0, 0.0])
    est.add_frame(frame)
    est.add_frame(frame - step)
    delta = est.estimated_delta()
    assert np.allclose(delta[:3, :3], np.eye(3), atol=1e-8)
    assert np.allclose(delta[:3, 3], step, atol=1e-8)


def test_motion_accumulates_over_frames():
    est = _estimator()
    frame = _grid()
    step = np.array([0.0, 0.25, 0.0])
    est.add_frame(frame)
    est.add_frame(frame - step)
    est.add_frame(frame - 2 * step)
    assert np.allclose(est.estimated_delta()[:3, 3], 2 * step, atol=1e-8)


def test_reset_restores_identity_and_forgets_frame():
    est = _estimator()
    frame = _grid()
    est.add_frame(frame)
    est.add_frame(frame - [0.3, 0.0, 0.0])
    est.reset()
    assert np.array_equal(est.estimated_delta(), np.eye(4))
    est.add_frame(frame - [0.6, 0.0, 0.0])
    assert np.array_equal(est.estimated_delta(), np.eye(4))


def test_estimated_delta_returns_copy():
    est = _estimator()
    delta = est.estimated_delta()
    delta[0, 3] = 5.0
    assert np.array_equal(est.estimated_delta(), np.eye(4))