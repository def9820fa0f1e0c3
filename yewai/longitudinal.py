"""Longitudinal control: torque and brake commands from driving requests."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

REQUEST_INPUT = "Request"
TORQUE_BRAKE_OUTPUT = "TrqBreCmd"
PUBLISH_RATE_HZ = 200

STOP_BRAKE_VALUE = 100.0
AEB_BRAKE_VALUE = 300.0


class LonStatus(IntEnum):
    """Kind of longitudinal request."""

    FORWARD_ENABLE = 0x0
    BACK_ENABLE = 0x1
    STOP_ENABLE = 0x2
    AEB_ENABLE = 0x3


@dataclass(frozen=True)
class TorqueBrakeCommand:
    """Torque and brake command sent to the chassis."""

    bre_enable: int = 0
    bre_value: float = 0.0
    trq_enable: int = 0
    trq_value: float = 0.0


@dataclass
class Request:
    """Driving request: its type, the speed to run at and distances ahead."""

    request_type: int = LonStatus.FORWARD_ENABLE
    run_speed: float = 0.0
    stop_distance: float = 0.0
    aeb_distance: float = 0.0

    def __post_init__(self) -> None:
        request_type = int(self.request_type)
        if not 0 <= request_type <= 0xFF:
            raise ValueError(f"request type must fit in one byte, got {request_type}")
        self.request_type = request_type
        self.run_speed = float(self.run_speed)
        self.stop_distance = float(self.stop_distance)
        self.aeb_distance = float(self.aeb_distance)


@dataclass
class VehicleStat:
    """Vehicle body status."""

    vehicle_speed: float = 0.0
    steering_angle: float = 0.0
    engine_speed: float = 0.0
    throttle_position: float = 0.0
    acc_pedal: float = 0.0
    brake_pedal_status: int = 0
    gear_shift_position: int = 0


@dataclass
class RtkImuStat:
    """Attitude and speed from the RTK/IMU unit."""

    pitch: float = 0.0
    roll: float = 0.0
    heading: float = 0.0
    speed2d: float = 0.0


def stop_solve() -> TorqueBrakeCommand:
    """Command for a normal stop: no torque, moderate braking."""
    return TorqueBrakeCommand(bre_enable=1, bre_value=STOP_BRAKE_VALUE, trq_enable=0, trq_value=0.0)


def aeb_solve() -> TorqueBrakeCommand:
    """Command for emergency braking: no torque, full braking."""
    return TorqueBrakeCommand(bre_enable=1, bre_value=AEB_BRAKE_VALUE, trq_enable=0, trq_value=0.0)


def run_solve(speed) -> TorqueBrakeCommand:
    """Command for driving forward at ``speed``."""
    return TorqueBrakeCommand(bre_enable=0, bre_value=0.0, trq_enable=1, trq_value=float(speed))


def back_solve(speed) -> TorqueBrakeCommand:
    """Command for reversing at ``speed``."""
    return TorqueBrakeCommand(bre_enable=0, bre_value=0.0, trq_enable=1, trq_value=-float(speed))


class LongitudinalController:
    """Turns the latest request into torque/brake commands.

    No command is produced until a first request has arrived.
    """

    def __init__(self):
        self.request = Request()
        self.vehicle_stat = VehicleStat()
        self.rtk_imu_stat = RtkImuStat()
        self.requests_received = 0

    def set_request(self, request) -> None:
        if not isinstance(request, Request):
            raise TypeError(f"expected a Request, got {type(request).__name__}")
        self.request = request
        self.requests_received += 1

    def set_vehicle_stat(self, stat) -> None:
        self.vehicle_stat = stat

    def set_rtk_imu_stat(self, stat) -> None:
        self.rtk_imu_stat = stat

    def command(self) -> TorqueBrakeCommand | None:
        """Command for the current request, or None before any request."""
        if self.requests_received == 0:
            return None
        request_type = self.request.request_type
        if request_type == LonStatus.AEB_ENABLE:
            return aeb_solve()
        if request_type == LonStatus.STOP_ENABLE:
            return stop_solve()
        if request_type == LonStatus.FORWARD_ENABLE:
            return run_solve(self.request.run_speed)
        if request_type == LonStatus.BACK_ENABLE:
            return back_solve(self.request.run_speed)
        return TorqueBrakeCommand()

    def handle_input(self, input_id, request) -> TorqueBrakeCommand | None:
        """Process one input and return the command to publish."""
        if isinstance(input_id, (bytes, bytearray)):
            input_id = bytes(input_id).decode("utf-8", "replace")
        if input_id.startswith(REQUEST_INPUT):
            self.set_request(request)
        return self.command()