"""
Video Handler Module

Reads frames from a camera or a video file and wraps them as
pipeline Frames with timestamps.
"""

import time
import cv2
import numpy as np
from pathlib import Path
from typing import Callable, Generator, Optional, Union
from dataclasses import dataclass
import logging

from ..detection.frame_converter import Frame

logger = logging.getLogger(__name__)


@dataclass
class VideoInfo:
    """Container for video metadata."""
    width: int
    height: int
    fps: float
    total_frames: int
    duration: float
    codec: str

    def __str__(self) -> str:
        return (
            f"VideoInfo(resolution={self.width}x{self.height}, "
            f"fps={self.fps:.2f}, frames={self.total_frames}, "
            f"duration={self.duration:.2f}s)"
        )


class VideoFrameSource:
    """
    Frame source over a camera index or a video file.

    File frames are timestamped from their position in the video, so a
    recording replays with the same throttling as a live feed. Camera
    frames are timestamped with a monotonic clock.

    Example:
        with VideoFrameSource("match.mp4") as source:
            for frame in source:
                session.submit_frame(frame)
    """

    def __init__(
        self,
        source: Union[int, str, Path],
        rotation_degrees: int = 0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the frame source.

        Args:
            source: Camera index, or path to a video file
            rotation_degrees: Clockwise rotation making frames upright
            clock: Seconds clock used for camera timestamps
        """
        if isinstance(source, str) and source.isdigit():
            source = int(source)

        self.source = source
        self.is_camera = isinstance(source, int)
        self.rotation_degrees = rotation_degrees
        self.clock = clock

        if self.is_camera:
            self.cap = cv2.VideoCapture(source)
        else:
            path = Path(source)
            if not path.exists():
                raise FileNotFoundError(f"Video file not found: {source}")
            self.cap = cv2.VideoCapture(str(path))

        if not self.cap.isOpened():
            raise IOError(f"Failed to open video source: {source}")

        self._info = self._extract_info()
        self._current_frame = 0

        logger.info(f"Opened video source {source}: {self._info}")

    def _extract_info(self) -> VideoInfo:
        """Extract video metadata."""
        width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = self.cap.get(cv2.CAP_PROP_FPS)
        total_frames = 0 if self.is_camera else int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        fourcc = int(self.cap.get(cv2.CAP_PROP_FOURCC))
        codec = "".join([chr((fourcc >> 8 * i) & 0xFF) for i in range(4)])
        duration = total_frames / fps if fps > 0 else 0

        return VideoInfo(
            width=width,
            height=height,
            fps=fps,
            total_frames=total_frames,
            duration=duration,
            codec=codec
        )

    @property
    def info(self) -> VideoInfo:
        """Get video information."""
        return self._info

    @property
    def total_frames(self) -> Optional[int]:
        """Frame count for files, None for live cameras."""
        return None if self.is_camera else self._info.total_frames

    def _timestamp_ms(self, frame_idx: int) -> float:
        if self.is_camera:
            return self.clock() * 1000.0
        if self._info.fps > 0:
            return frame_idx * 1000.0 / self._info.fps
        return float(self.cap.get(cv2.CAP_PROP_POS_MSEC))

    def read(self) -> Optional[Frame]:
        """
        Read the next frame.

        Returns:
            Frame, or None at end of stream
        """
        ret, image = self.cap.read()
        if not ret:
            return None

        frame_idx = self._current_frame
        self._current_frame += 1
        return self._wrap(image, frame_idx)

    def _wrap(self, image: np.ndarray, frame_idx: int) -> Frame:
        return Frame.from_bgr(
            image,
            rotation_degrees=self.rotation_degrees,
            timestamp_ms=self._timestamp_ms(frame_idx)
        )

    def __iter__(self) -> Generator[Frame, None, None]:
        """Iterate over frames until the stream ends."""
        while True:
            frame = self.read()
            if frame is None:
                break
            yield frame

    def release(self) -> None:
        """Release video capture resources."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            logger.info(f"Released video source: {self.source}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
