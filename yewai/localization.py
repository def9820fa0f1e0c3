"""Map-based lidar localization: scan decoding, filtering and pose output."""

from __future__ import annotations

import math
import os
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import numpy as np

from yewai.delta_estimator import DeltaEstimator
from yewai.messages import ImuMessage, SlamPose
from yewai.pose_estimator import PoseEstimator, Registration
from yewai.rotation import get_yaw

IMU_WINDOW = 0.05
COOL_TIME_DURATION = 2.0

_SCAN_HEADER = struct.Struct("<I4xQ")
_SCAN_POINT_SIZE = 16
_LIDAR_TO_BASE = np.array(
    [
        [0.0, -1.0, 0.0, 0.0],
        [1.0, 0.0, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ]
)
_PCD_KINDS = {"F": "f", "I": "i", "U": "u"}


def _as_points(points) -> np.ndarray:
    pts = np.array(points, dtype=float)
    if pts.ndim != 2 or pts.shape[1] < 3:
        raise ValueError(f"points must be an (N, 3+) array, got shape {pts.shape}")
    return pts


def voxel_downsample(points, leaf_size) -> np.ndarray:
    """Replace the points in each cubic voxel by their centroid.

    Non-finite points are dropped; output is ordered by voxel index with x
    varying fastest.
    """
    leaf_size = float(leaf_size)
    if not leaf_size > 0.0:
        raise ValueError(f"leaf size must be positive, got {leaf_size}")
    pts = _as_points(points)
    pts = pts[np.isfinite(pts[:, :3]).all(axis=1)]
    if len(pts) == 0:
        return pts.copy()
    cells = np.floor(pts[:, :3] * (1.0 / leaf_size)).astype(np.int64)
    cells -= cells.min(axis=0)
    extent = cells.max(axis=0) + 1
    keys = cells[:, 0] + cells[:, 1] * extent[0] + cells[:, 2] * extent[0] * extent[1]
    unique, inverse = np.unique(keys, return_inverse=True)
    inverse = inverse.reshape(-1)
    sums = np.zeros((len(unique), pts.shape[1]))
    np.add.at(sums, inverse, pts)
    counts = np.bincount(inverse, minlength=len(unique))
    return sums / counts[:, None]


def bytes_to_cloud(data) -> tuple[int, int, np.ndarray]:
    """Decode a raw scan into ``(seq, stamp, points)``.

    The scan is a 16-byte header (uint32 sequence, uint64 stamp in
    microseconds at offset 8) followed by x, y, z, intensity float32 records.
    ``points`` has shape (N, 4).
    """
    data = bytes(data)
    count = (len(data) - _SCAN_HEADER.size) // _SCAN_POINT_SIZE
    if count <= 0:
        raise ValueError("point cloud holds no points")
    seq, stamp = _SCAN_HEADER.unpack_from(data)
    points = np.frombuffer(
        data, dtype="<f4", count=count * 4, offset=_SCAN_HEADER.size
    ).reshape(count, 4)
    return seq, stamp, points.astype(float)


def remove_nan(points) -> np.ndarray:
    """Drop points whose x, y or z is not finite."""
    pts = _as_points(points)
    return pts[np.isfinite(pts[:, :3]).all(axis=1)]


def lidar_to_base_link(points) -> np.ndarray:
    """Rotate lidar points by 90 degrees about z into the vehicle frame."""
    pts = _as_points(points)
    moved = pts.copy()
    moved[:, :3] = pts[:, :3] @ _LIDAR_TO_BASE[:3, :3].T + _LIDAR_TO_BASE[:3, 3]
    return moved


def compute_odometry(pose) -> SlamPose:
    """Planar pose from a 4x4 transform; heading in degrees within (0, 360]."""
    m = np.asarray(pose, dtype=float)
    if m.shape != (4, 4):
        raise ValueError(f"pose must be 4x4, got {m.shape}")
    theta = get_yaw(m[:3, :3]) * 180.0 / math.pi
    theta = -theta if theta < 0.0 else 360.0 - theta
    theta = 90.0 - theta if 0.0 <= theta < 90.0 else 450.0 - theta
    return SlamPose(float(m[0, 3]), float(m[1, 3]), theta)


def _lzf_decompress(data: bytes, size: int) -> bytes:
    out = bytearray()
    i = 0
    n = len(data)
    try:
        while i < n:
            ctrl = data[i]
            i += 1
            if ctrl < 32:
                length = ctrl + 1
                if i + length > n:
                    raise ValueError("truncated literal run")
                out += data[i : i + length]
                i += length
                continue
            length = ctrl >> 5
            ref = len(out) - ((ctrl & 0x1F) << 8) - 1
            if length == 7:
                length += data[i]
                i += 1
            ref -= data[i]
            i += 1
            length += 2
            if ref < 0:
                raise ValueError("back reference before start of data")
            for _ in range(length):
                out.append(out[ref])
                ref += 1
    except IndexError as exc:
        raise ValueError("corrupt compressed PCD data") from exc
    if len(out) != size:
        raise ValueError(f"compressed PCD data expands to {len(out)} bytes, expected {size}")
    return bytes(out)


def _read_pcd_header(raw: bytes) -> tuple[dict[str, list[str]], int]:
    header: dict[str, list[str]] = {}
    offset = 0
    while True:
        end = raw.find(b"\n", offset)
        if end < 0:
            raise ValueError("PCD header has no DATA line")
        line = raw[offset:end].decode("ascii", "replace").strip()
        offset = end + 1
        if not line or line.startswith("#"):
            continue
        key, *values = line.split()
        header[key.upper()] = values
        if key.upper() == "DATA":
            return header, offset


def load_pcd(path) -> np.ndarray:
    """Read a PCD file (ascii, binary or binary_compressed) into an (N, 4) x, y, z, intensity array."""
    raw = Path(path).read_bytes()
    header, offset = _read_pcd_header(raw)
    try:
        fields = header["FIELDS"]
        sizes = [int(v) for v in header["SIZE"]]
        types = [v.upper() for v in header["TYPE"]]
    except KeyError as exc:
        raise ValueError(f"PCD header lacks {exc.args[0]}") from exc
    counts = [int(v) for v in header.get("COUNT", ["1"] * len(fields))]
    if not len(fields) == len(sizes) == len(types) == len(counts):
        raise ValueError("PCD header field descriptions disagree in length")
    if "POINTS" in header:
        n = int(header["POINTS"][0])
    else:
        n = int(header["WIDTH"][0]) * int(header.get("HEIGHT", ["1"])[0])
    for kind in types:
        if kind not in _PCD_KINDS:
            raise ValueError(f"unknown PCD field type {kind!r}")
    formats = [f"<{_PCD_KINDS[t]}{s}" for t, s in zip(types, sizes)]
    mode = header["DATA"][0].lower() if header["DATA"] else ""

    columns: dict[str, np.ndarray] = {}
    if mode == "ascii":
        rows = [
            line.split()
            for line in raw[offset:].decode("ascii", "replace").splitlines()
            if line.strip()
        ][:n]
        width = sum(counts)
        if len(rows) < n or any(len(row) < width for row in rows):
            raise ValueError("PCD ascii data is shorter than its header says")
        table = np.array([[float(v) for v in row[:width]] for row in rows]).reshape(n, width)
        col = 0
        for name, count in zip(fields, counts):
            columns.setdefault(name, table[:, col])
            col += count
    elif mode == "binary":
        dtype = np.dtype([(f"f{i}", fmt, (c,)) for i, (fmt, c) in enumerate(zip(formats, counts))])
        if len(raw) - offset < dtype.itemsize * n:
            raise ValueError("PCD binary data is shorter than its header says")
        table = np.frombuffer(raw, dtype=dtype, count=n, offset=offset)
        for i, name in enumerate(fields):
            columns.setdefault(name, table[f"f{i}"][:, 0].astype(float))
    elif mode == "binary_compressed":
        if len(raw) - offset < 8:
            raise ValueError("PCD compressed data has no size header")
        packed_size, plain_size = struct.unpack_from("<II", raw, offset)
        body = raw[offset + 8 : offset + 8 + packed_size]
        if len(body) < packed_size:
            raise ValueError("PCD compressed data is truncated")
        plain = _lzf_decompress(body, plain_size)
        pos = 0
        for name, fmt, size, count in zip(fields, formats, sizes, counts):
            block = size * count * n
            if pos + block > len(plain):
                raise ValueError("PCD compressed data is shorter than its header says")
            values = np.frombuffer(plain, dtype=fmt, count=count * n, offset=pos)
            columns.setdefault(name, values.reshape(n, count)[:, 0].astype(float))
            pos += block
    else:
        raise ValueError(f"unsupported PCD data mode {mode!r}")

    for axis in ("x", "y", "z"):
        if axis not in columns:
            raise ValueError(f"PCD file has no {axis!r} field")
    intensity = columns.get("intensity", np.zeros(n))
    return np.column_stack([columns["x"], columns["y"], columns["z"], intensity]).astype(float)


def load_map(path, resolution) -> np.ndarray:
    """Load a PCD map and voxel-downsample it."""
    return voxel_downsample(load_pcd(path), resolution)


@dataclass(frozen=True)
class LocalizationConfig:
    """Settings of the localization node, read from the environment."""

    map_downsample_resolution: float = 0.1
    point_downsample_resolution: float = 0.1
    use_imu: bool = False
    map_pcd_path: str = "./data/map.pcd"
    way_points_path: str = "./data/path/trajectory.txt"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LocalizationConfig":
        env = os.environ if environ is None else environ
        defaults = cls()

        def number(name: str, default: float) -> float:
            value = env.get(name)
            return default if value is None else float(value)

        return cls(
            map_downsample_resolution=number(
                "map_downsample_resolution", defaults.map_downsample_resolution
            ),
            point_downsample_resolution=number(
                "point_downsample_resolution", defaults.point_downsample_resolution
            ),
            use_imu=env.get("use_imu") == "1",
            map_pcd_path=env.get("MAP_PCD", defaults.map_pcd_path),
            way_points_path=env.get("way_points", defaults.way_points_path),
        )


class HdlLocalization:
    """Localizes incoming scans against a map through ``registration``.

    The map must already be set as the registration target.
    """

    def __init__(self, registration, downsample_resolution=0.1):
        self.registration = registration
        self.downsample_resolution = (
            None if downsample_resolution is None else float(downsample_resolution)
        )
        self.relocalizing = False
        self.delta_estimator = DeltaEstimator(Registration())
        self.pose_estimator = PoseEstimator(
            registration, (0.0, 0.0, 0.0), (1.0, 0.0, 0.0, 0.0), COOL_TIME_DURATION
        )
        self.last_scan: np.ndarray | None = None
        self.imu_data: list[ImuMessage] = []
        self._imu_received = False

    def downsample(self, points) -> np.ndarray:
        """Voxel-filter a scan, or return it unchanged when no resolution is set."""
        if self.downsample_resolution is None:
            return points
        return voxel_downsample(points, self.downsample_resolution)

    def add_imu(self, message) -> None:
        """Queue an IMU sample, given as an ImuMessage or its wire bytes."""
        if not isinstance(message, ImuMessage):
            message = ImuMessage.from_bytes(bytes(message))
        self.imu_data.append(message)
        self._imu_received = True

    def _predict_with_imu(self, stamp: float) -> None:
        consumed = 0
        for consumed, sample in enumerate(self.imu_data, start=1):
            if sample.stamp > stamp:
                consumed -= 1
                break
            if sample.stamp + IMU_WINDOW < stamp:
                continue
            acc = tuple(sample.linear_acceleration)
            gyro = tuple(sample.angular_velocity)
            if any(math.isnan(v) for v in (*acc, *gyro)):
                continue
            self.pose_estimator.predict(sample.stamp, acc, gyro)
        del self.imu_data[:consumed]

    def process_cloud(self, data, use_imu=False) -> SlamPose:
        """Localize one raw scan and return the resulting planar pose."""
        if use_imu and not self._imu_received:
            raise RuntimeError("imu data is not ready")
        _, raw_stamp, points = bytes_to_cloud(data)
        stamp = raw_stamp * 1e-6

        filtered = self.downsample(remove_nan(points))
        scan = lidar_to_base_link(filtered)
        self.last_scan = scan

        if use_imu:
            self._predict_with_imu(stamp)
        else:
            self.pose_estimator.predict(stamp)

        self.pose_estimator.correct(stamp, scan)
        return compute_odometry(self.pose_estimator.matrix())