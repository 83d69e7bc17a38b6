import cv2
import numpy as np
import pytest

from vacantcourt.detection.frame_converter import PixelFormat
from vacantcourt.video_processing import VideoFrameSource


@pytest.fixture
def video_path(tmp_path):
    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (64, 48))
    if not writer.isOpened():
        pytest.skip("MJPG video writer unavailable")
    for value in (0, 120, 240):
        writer.write(np.full((48, 64, 3), value, dtype=np.uint8))
    writer.release()
    return path


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        VideoFrameSource(tmp_path / "missing.mp4")


def test_file_frames_are_timestamped_by_position(video_path):
    with VideoFrameSource(video_path, rotation_degrees=90) as source:
        assert not source.is_camera
        assert source.info.width == 64
        frames = list(source)

    assert len(frames) == 3
    assert [f.timestamp_ms for f in frames] == pytest.approx([0.0, 100.0, 200.0])
    assert frames[0].pixel_format == PixelFormat.BGR_888
    assert frames[0].rotation_degrees == 90
    assert frames[0].upright_size == (48, 64)
