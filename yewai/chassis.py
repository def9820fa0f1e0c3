"""Serial protocol and command logic for a differential-drive robot chassis."""

from __future__ import annotations

import logging
import math
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable

from yewai.longitudinal import TorqueBrakeCommand

logger = logging.getLogger(__name__)

FRAME_HEADER = b"\xae\xea"
FRAME_TRAILER = b"\xef\xfe"
FRAME_LENGTH = 0x0B
CMD_SPEED = 0xF3
CMD_RPM = 0xF1
CMD_CLEAR_ODOMETRY = 0xE1
CMD_ODOMETRY = 0xA7

SPEED_OFFSET = 10.0
SPEED_SCALE = 100.0
RPM_OFFSET = 10000
MAX_SERIAL_CHUNK = 500

STEER_LENGTH = 0.45
KMH_PER_MS = 3.6

WHEEL_PI = 3.141693
LINEAR_DEADZONE = 0.01
ANGULAR_DEADZONE = 0.001
MAX_DT = 1.0


class ChassisType(IntEnum):
    """Drive layout of the chassis."""

    DIFFERENTIAL = 0
    MECANUM = 1
    ACKERMANN = 2
    FOUR_WS_FOUR_WD = 3


def _frame(cmd: int, payload: bytes) -> bytes:
    body = bytes([FRAME_LENGTH, cmd]) + payload
    check = sum(body) & 0xFF
    return FRAME_HEADER + body + bytes([check]) + FRAME_TRAILER


def _word(value: int, name: str) -> bytes:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{name} is out of the encodable range")
    return bytes([(value // 256) & 0xFF, value & 0xFF])


def encode_speed_frame(x, y, w) -> bytes:
    """Velocity command frame: x, y in m/s and w in rad/s, each offset by 10 and scaled by 100."""
    payload = b""
    for name, value in (("x", x), ("y", y), ("w", w)):
        scaled = (float(value) + SPEED_OFFSET) * SPEED_SCALE
        if not 0.0 <= scaled < 65536.0:
            raise ValueError(f"{name} speed {value} is out of the encodable range")
        payload += _word(int(scaled), name)
    return _frame(CMD_SPEED, payload + b"\x00\x00")


def encode_rpm_frame(w1, w2, w3, w4) -> bytes:
    """Wheel speed frame: four motor speeds in RPM, each offset by 10000."""
    payload = b"".join(
        _word(int(value) + RPM_OFFSET, f"w{i}")
        for i, value in enumerate((w1, w2, w3, w4), start=1)
    )
    return _frame(CMD_RPM, payload)


def encode_clear_odometry_frame() -> bytes:
    """Frame asking the chassis to reset its odometry."""
    return _frame(CMD_CLEAR_ODOMETRY, b"\x01" + bytes(7))


@dataclass(frozen=True)
class ChassisOdometry:
    """Velocities reported by the chassis: m/s and rad/s."""

    vx: float = 0.0
    vy: float = 0.0
    wz: float = 0.0


def parse_frames(data) -> list[ChassisOdometry]:
    """Extract odometry readings from a chunk of serial data.

    Frames run from header to trailer; bytes outside frames are skipped,
    as is an unfinished frame at the end. Frames of other kinds are logged
    and ignored.
    """
    data = bytes(data)
    if not 1 <= len(data) <= MAX_SERIAL_CHUNK:
        raise ValueError(f"serial chunk length {len(data)} is outside 1..{MAX_SERIAL_CHUNK}")

    collected = bytearray()
    complete = 0
    last = current = 0
    in_frame = False
    for byte in data:
        last, current = current, byte
        if not in_frame and last == FRAME_HEADER[0] and current == FRAME_HEADER[1]:
            in_frame = True
            collected += bytes((last, current))
        elif in_frame:
            collected.append(byte)
            if last == FRAME_TRAILER[0] and current == FRAME_TRAILER[1]:
                complete += 1
                in_frame = False

    readings = []
    step = 0
    for _ in range(complete):
        try:
            length = collected[step + 2] + 4
            intact = (
                collected[step : step + 2] == FRAME_HEADER
                and collected[step + length - 2] == FRAME_TRAILER[0]
                and collected[step + length - 1] == FRAME_TRAILER[1]
            )
        except IndexError:
            intact = False
        if not intact:
            raise ValueError("chassis frame header or trailer is wrong")
        cmd = collected[step + 3]
        if cmd == CMD_ODOMETRY:
            try:
                vx, vy, wz = struct.unpack_from(">3h", collected, step + 4)
            except struct.error as exc:
                raise ValueError("odometry frame is too short") from exc
            readings.append(ChassisOdometry(vx / 1000.0, vy / 1000.0, wz / 1000.0))
        else:
            logger.warning("unrecognised chassis frame 0x%x", cmd)
        step += length
    return readings


@dataclass
class DeadReckoning:
    """Integrates chassis velocities into a planar position and heading."""

    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0

    def update(self, vx, wz, dt) -> dict:
        """Advance by ``dt`` seconds and return the odometry message."""
        vx = float(vx)
        wz = float(wz)
        dt = float(dt)
        if abs(vx) < LINEAR_DEADZONE:
            vx = 0.0
        if abs(wz) < ANGULAR_DEADZONE:
            wz = 0.0
        if dt > MAX_DT:
            dt = 0.0

        self.x += math.cos(self.heading) * vx * dt
        self.y += math.sin(self.heading) * vx * dt
        self.heading += wz * dt

        full_turn = 2.0 * WHEEL_PI
        if self.heading > full_turn:
            self.heading -= full_turn
        elif self.heading < -full_turn:
            self.heading += full_turn

        return {
            "pose": {
                "position": {"x": self.x, "y": self.y, "z": 0.0},
                "orientation": {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0},
            },
            "twist": {
                "linear": {"x": vx, "y": 0.0, "z": 0.0},
                "angular": {"x": 0.0, "y": 0.0, "z": wz},
            },
        }


class MickChassis:
    """Turns steering, torque/brake and road speed inputs into chassis velocity frames.

    ``write`` receives each encoded frame.
    """

    def __init__(self, write: Callable[[bytes], object]):
        self.write = write
        self.chassis_type = ChassisType.DIFFERENTIAL
        self.speed = 0.0
        self.linear_x = 0.0
        self.linear_y = 0.0
        self.linear_z = 0.0
        self.angular_z = 0.0

    def on_steering(self, angle) -> bytes | None:
        """Convert a steering angle in radians into a yaw rate and send it."""
        self.angular_z = self.speed / STEER_LENGTH * float(angle)
        return self.send_velocity(self.linear_x, self.linear_y, self.angular_z)

    def on_torque_brake(self, command: TorqueBrakeCommand) -> bytes | None:
        """Take the forward speed from a torque command (km/h); any other command stops."""
        if command.trq_enable == 1:
            self.linear_x = float(command.trq_value) / KMH_PER_MS
        else:
            self.linear_x = 0.0
            self.linear_z = 0.0
        return self.send_velocity(self.linear_x, self.linear_y, self.angular_z)

    def on_road_speed(self, velocity) -> None:
        self.speed = float(velocity)

    def send_velocity(self, x, y, w) -> bytes | None:
        """Send a velocity command; a zero forward speed also zeroes the yaw rate."""
        if float(x) == 0.0:
            w = 0.0
        if self.chassis_type != ChassisType.DIFFERENTIAL:
            logger.warning("unknown chassis type %s", self.chassis_type)
            return None
        frame = encode_speed_frame(x, y, w)
        self.write(frame)
        return frame