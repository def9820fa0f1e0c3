"""Binary message records exchanged between localization and driver nodes."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar, Iterator

_IMU_LAYOUT = struct.Struct("<d6f")
_POSE_LAYOUT = struct.Struct("<3f")
_POINT_LAYOUT = struct.Struct("<I3f3Bx")


def _unpack(layout: struct.Struct, data: bytes, name: str) -> tuple:
    if len(data) < layout.size:
        raise ValueError(f"{name} needs {layout.size} bytes, got {len(data)}")
    return layout.unpack_from(data)


def _pack(layout: struct.Struct, name: str, *values) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ValueError(f"cannot encode {name}: {exc}") from exc


@dataclass
class Vector3:
    """A three-component vector of single-precision floats."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z


@dataclass
class ImuMessage:
    """An IMU sample: timestamp in seconds, linear acceleration and angular velocity."""

    SIZE: ClassVar[int] = _IMU_LAYOUT.size

    stamp: float = 0.0
    linear_acceleration: Vector3 = field(default_factory=Vector3)
    angular_velocity: Vector3 = field(default_factory=Vector3)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ImuMessage":
        stamp, ax, ay, az, gx, gy, gz = _unpack(_IMU_LAYOUT, data, "ImuMessage")
        return cls(stamp, Vector3(ax, ay, az), Vector3(gx, gy, gz))

    def to_bytes(self) -> bytes:
        return _pack(
            _IMU_LAYOUT,
            "ImuMessage",
            self.stamp,
            *self.linear_acceleration,
            *self.angular_velocity,
        )


@dataclass
class SlamPose:
    """A planar pose: position in metres and heading in degrees."""

    SIZE: ClassVar[int] = _POSE_LAYOUT.size

    x: float = 0.0
    y: float = 0.0
    theta: float = 0.0

    @classmethod
    def from_bytes(cls, data: bytes) -> "SlamPose":
        return cls(*_unpack(_POSE_LAYOUT, data, "SlamPose"))

    def to_bytes(self) -> bytes:
        return _pack(_POSE_LAYOUT, "SlamPose", self.x, self.y, self.theta)


@dataclass
class CustomPoint:
    """A lidar point with offset time, coordinates, reflectivity, tag and line."""

    SIZE: ClassVar[int] = _POINT_LAYOUT.size

    offset_time: int = 0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    reflectivity: int = 0
    tag: int = 0
    line: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "CustomPoint":
        return cls(*_unpack(_POINT_LAYOUT, data, "CustomPoint"))

    def to_bytes(self) -> bytes:
        return _pack(
            _POINT_LAYOUT,
            "CustomPoint",
            self.offset_time,
            self.x,
            self.y,
            self.z,
            self.reflectivity,
            self.tag,
            self.line,
        )