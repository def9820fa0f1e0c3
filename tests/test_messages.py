import pytest

from yewai.messages import CustomPoint, ImuMessage, SlamPose, Vector3


def test_record_sizes_follow_struct_layout():
    imu = ImuMessage(0.0, Vector3(0.0, 0.0, 0.0), Vector3(0.0, 0.0, 0.0))
    assert len(imu.to_bytes()) == ImuMessage.SIZE == 32
    assert len(SlamPose(0.0, 0.0, 0.0).to_bytes()) == SlamPose.SIZE == 12
    assert len(CustomPoint().to_bytes()) == CustomPoint.SIZE == 20


def test_imu_round_trip():
    msg = ImuMessage(1234.5, Vector3(0.5, -1.25, 9.75), Vector3(0.125, 0.0, -0.5))
    data = msg.to_bytes()
    assert len(data) == ImuMessage.SIZE
    assert ImuMessage.from_bytes(data) == msg


def test_imu_accepts_trailing_bytes():
    msg = ImuMessage(2.0, Vector3(1.0, 2.0, 3.0), Vector3(4.0, 5.0, 6.0))
    assert ImuMessage.from_bytes(msg.to_bytes() + b"\x00" * 8) == msg


def test_imu_short_data_rejected():
    with pytest.raises(ValueError):
        ImuMessage.from_bytes(b"\x00" * (ImuMessage.SIZE - 1))


def test_slam_pose_round_trip():
    pose = SlamPose(1.5, -2.25, 90.0)
    data = pose.to_bytes()
    assert len(data) == SlamPose.SIZE
    assert SlamPose.from_bytes(data) == pose


def test_slam_pose_short_data_rejected():
    with pytest.raises(ValueError):
        SlamPose.from_bytes(b"\x01\x02")


def test_custom_point_round_trip():
    point = CustomPoint(offset_time=42, x=1.0, y=-0.5, z=2.25, reflectivity=200, tag=3, line=1)
    data = point.to_bytes()
    assert len(data) == CustomPoint.SIZE
    assert CustomPoint.from_bytes(data) == point


def test_custom_point_out_of_range_rejected():
    with pytest.raises(ValueError):
        CustomPoint(reflectivity=256).to_bytes()


def test_vector_iterates_components():
    assert list(Vector3(1.0, 2.0, 3.0)) == [1.0, 2.0, 3.0]