# yewai

Building blocks for a small robot vehicle: localizing lidar scans against a
point-cloud map, steering along a reference path, turning drive requests
into torque and brake commands, and framing velocity commands for a serial
chassis controller.

Everything is plain Python on top of NumPy. You feed the classes the raw
message bytes or values your middleware delivers and send on what they
return.

## Modules

| Module | Contents |
| --- | --- |
| `yewai.messages` | Little-endian binary records: `ImuMessage` (32 bytes), `SlamPose` (12 bytes), `CustomPoint` (20 bytes), and `Vector3`; each record has `from_bytes` and `to_bytes` |
| `yewai.rotation` | `get_yaw`, `quaternion_to_matrix`, `matrix_to_quaternion`, `quaternion_multiply`, `rotate_vector`; quaternions are `(w, x, y, z)` |
| `yewai.kalman` | `UnscentedKalmanFilter` over any system with `f(state, control)` and `h(state)` |
| `yewai.systems` | `PoseSystem` (16-element IMU-driven state) and `OdomSystem` (position + quaternion) |
| `yewai.pose_estimator` | `Registration` (point-to-point ICP) and `PoseEstimator`, which fuses filter prediction with scan registration |
| `yewai.delta_estimator` | `DeltaEstimator`, chaining frame-to-frame registrations into one transform |
| `yewai.localization` | Scan decoding, NaN removal, voxel downsampling, PCD loading, `compute_odometry`, `LocalizationConfig`, `HdlLocalization` |
| `yewai.pure_pursuit` | `PurePursuit`, `VehicleParams`, `TurnLight`, `lookahead_distance` |
| `yewai.lateral` | `LateralController`, `parse_raw_path`, `default_vehicle_params` |
| `yewai.longitudinal` | `LongitudinalController`, `Request`, `TorqueBrakeCommand`, `LonStatus`, `VehicleStat`, `RtkImuStat` and the `stop_solve` / `aeb_solve` / `run_solve` / `back_solve` helpers |
| `yewai.chassis` | Frame encoders, `parse_frames`, `ChassisOdometry`, `DeadReckoning`, `MickChassis` |

## Localization

`HdlLocalization` wraps a `PoseEstimator` whose unscented Kalman filter
tracks position, velocity, orientation and IMU biases. `process_cloud`
takes one raw scan — a 16-byte header (uint32 sequence, uint64 stamp in
microseconds at offset 8) followed by `x, y, z, intensity` float32
records — drops non-finite points, voxel-downsamples it, rotates it 90°
about z into the vehicle frame, predicts, registers it against the map and
returns a `SlamPose` whose `theta` is a heading in degrees.

The map must be set as the registration target first. `load_map` reads a
PCD file (ascii, binary or binary_compressed) and voxel-downsamples it.

```python
from yewai.localization import HdlLocalization, LocalizationConfig, load_map
from yewai.pose_estimator import Registration

config = LocalizationConfig.from_env()
registration = Registration()
registration.set_input_target(load_map(config.map_pcd_path, config.map_downsample_resolution))

localizer = HdlLocalization(registration, config.point_downsample_resolution)
pose = localizer.process_cloud(scan_bytes, use_imu=config.use_imu)
print(pose.x, pose.y, pose.theta)
```

`LocalizationConfig.from_env` reads `map_downsample_resolution` and
`point_downsample_resolution` (default 0.1), `use_imu` (enabled only by
`"1"`), `MAP_PCD` (default `./data/map.pcd`) and `way_points` (default
`./data/path/trajectory.txt`).

With IMU use enabled, samples queued through `add_imu` (an `ImuMessage` or
its bytes) drive the prediction; samples older than 0.05 s before the scan
are skipped and consumed ones are removed from the queue. Calling
`process_cloud` with `use_imu=True` before any IMU sample arrived raises
`RuntimeError`.

```python
import math
import numpy as np
from yewai.rotation import get_yaw

rotation = np.array([
    [math.cos(0.5), -math.sin(0.5), 0.0],
    [math.sin(0.5),  math.cos(0.5), 0.0],
    [0.0,            0.0,           1.0],
])
print(get_yaw(rotation))  # 0.5
```

## Lateral control

`PurePursuit` takes a reference path in the vehicle frame (vehicle at the
origin, facing +y), picks a goal point 0.5 m ahead on it and returns an
Ackermann inner-wheel steering angle in radians, clamped to the maximum
wheel angle and scaled by 0.3. Paths of fewer than twenty points give 0.
`turn_light` returns a `TurnLight` from the direction of points 9–14
relative to point 8.

`LateralController.on_raw_path` accepts packed float32 values: the first
half are x coordinates, the rest y coordinates. `handle_input` processes an
input named `raw_path` and returns the steering angle to publish.

```python
import struct
from yewai.lateral import LateralController, default_vehicle_params

controller = LateralController(default_vehicle_params())
xs = [0.0] * 30
ys = [0.1 * i for i in range(30)]
controller.on_raw_path(struct.pack(f"<{len(xs) + len(ys)}f", *xs, *ys))
print(controller.steering_command())
```

## Longitudinal control

A `Request` selects a `LonStatus` mode and a run speed.
`LongitudinalController.command` returns `None` until a first request has
been set, then a `TorqueBrakeCommand`: forward and back enable torque at
plus or minus the run speed, stop brakes at 100 and emergency braking at 300.

```python
from yewai.longitudinal import LongitudinalController, LonStatus, Request

controller = LongitudinalController()
print(controller.handle_input("Request", Request(LonStatus.FORWARD_ENABLE, run_speed=3.0)))
```

## Chassis

Frames have the form `AE EA`, length byte, command, payload, additive
checksum, `EF FE`. `encode_speed_frame` (command `F3`) offsets each of x, y,
w by 10 and scales by 100; `encode_rpm_frame` (`F1`) offsets wheel RPMs by
10000; `encode_clear_odometry_frame` (`E1`) resets odometry. Out-of-range
values raise `ValueError`. `parse_frames` extracts `ChassisOdometry`
readings from odometry frames (`A7`) in a chunk of 1–500 bytes.

`MickChassis` takes a callable that writes bytes. It turns a steering angle
into a yaw rate (road speed / 0.45 × angle), a torque command in km/h into a
forward speed, and writes a speed frame; a zero forward speed also zeroes
the yaw rate. `DeadReckoning.update` integrates velocities into a planar
pose and returns an odometry dictionary.

```python
from yewai.chassis import MickChassis, parse_frames, encode_speed_frame

sent = []
chassis = MickChassis(sent.append)
chassis.on_road_speed(1.0)
chassis.send_velocity(0.5, 0.0, 0.1)
print(sent[0].hex(" "))
```

## What the package does not do

- It does not connect to any dataflow runtime or message bus, and has no
  command-line entry point or node loop; you call the handlers yourself.
- It does not open serial ports; `MickChassis` only calls the `write`
  function you give it.
- Registration is a plain point-to-point ICP with brute-force nearest
  neighbours, which is slow on large maps.
- It does not write the trajectory file named by `way_points`; the path is
  only carried in `LocalizationConfig`.

## Tests

The tests use pytest and live in `tests/`; install the `test` extra to get it.