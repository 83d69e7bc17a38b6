"""
Frame Converter Module

Converts raw camera frames (plane buffers with row/pixel strides) into
upright RGB images and prepares detector input tensors.
"""

import cv2
import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union
import logging

from ..errors import FrameConversionError

logger = logging.getLogger(__name__)

Buffer = Union[bytes, bytearray, memoryview, np.ndarray]

_ROTATIONS = {
    0: None,
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class PixelFormat(Enum):
    """Supported frame pixel layouts."""
    RGBA_8888 = "RGBA_8888"
    RGB_888 = "RGB_888"
    BGR_888 = "BGR_888"
    YUV_420_888 = "YUV_420_888"


@dataclass(frozen=True)
class FramePlane:
    """One image plane: raw bytes plus the strides needed to walk them."""
    buffer: Buffer
    row_stride: int
    pixel_stride: int


@dataclass
class Frame:
    """
    Raw camera frame as delivered by a capture source.

    Width and height describe the sensor orientation; rotation_degrees is
    the clockwise rotation that makes the image upright.
    """
    planes: Tuple[FramePlane, ...]
    width: int
    height: int
    pixel_format: PixelFormat
    rotation_degrees: int = 0
    timestamp_ms: float = 0.0

    @property
    def upright_size(self) -> Tuple[int, int]:
        """Return (width, height) after rotation is applied."""
        if self.rotation_degrees % 180 == 90:
            return self.height, self.width
        return self.width, self.height

    @classmethod
    def from_bgr(
        cls,
        image: np.ndarray,
        rotation_degrees: int = 0,
        timestamp_ms: float = 0.0
    ) -> "Frame":
        """Wrap an OpenCV BGR image without copying."""
        image = np.ascontiguousarray(image, dtype=np.uint8)
        height, width = image.shape[:2]
        plane = FramePlane(buffer=image.reshape(-1), row_stride=width * 3, pixel_stride=3)
        return cls(
            planes=(plane,),
            width=width,
            height=height,
            pixel_format=PixelFormat.BGR_888,
            rotation_degrees=rotation_degrees,
            timestamp_ms=timestamp_ms
        )


def _plane_view(plane: FramePlane, rows: int, cols: int, channels: int) -> np.ndarray:
    """
    Read a (rows, cols, channels) image out of a strided plane.

    Row padding beyond cols * pixel_stride is skipped, and the final row
    may be shorter than row_stride.
    """
    try:
        data = np.frombuffer(plane.buffer, dtype=np.uint8)
    except (ValueError, TypeError, BufferError) as e:
        raise FrameConversionError(f"Unreadable plane buffer: {e}") from e
    if plane.pixel_stride < channels or plane.row_stride < cols * plane.pixel_stride:
        raise FrameConversionError(
            f"Invalid strides: row_stride={plane.row_stride}, "
            f"pixel_stride={plane.pixel_stride} for {cols}x{rows}x{channels}"
        )

    required = (rows - 1) * plane.row_stride + (cols - 1) * plane.pixel_stride + channels
    if data.size < required:
        raise FrameConversionError(
            f"Plane buffer too small: got {data.size} bytes, need {required}"
        )

    try:
        view = np.lib.stride_tricks.as_strided(
            data,
            shape=(rows, cols, channels),
            strides=(plane.row_stride, plane.pixel_stride, 1),
            writeable=False
        )
    except (ValueError, TypeError) as e:
        raise FrameConversionError(f"Invalid plane layout: {e}") from e
    return view.copy()


def _yuv420_to_rgb(frame: Frame) -> np.ndarray:
    """Convert a three-plane YUV_420_888 frame to RGB via planar I420."""
    if len(frame.planes) != 3:
        raise FrameConversionError(f"YUV_420_888 needs 3 planes, got {len(frame.planes)}")
    if frame.width % 2 or frame.height % 2:
        raise FrameConversionError(
            f"YUV_420_888 frames must have even dimensions, got {frame.width}x{frame.height}"
        )

    y_plane, u_plane, v_plane = frame.planes
    chroma_w, chroma_h = frame.width // 2, frame.height // 2

    y = _plane_view(y_plane, frame.height, frame.width, 1)
    u = _plane_view(u_plane, chroma_h, chroma_w, 1)
    v = _plane_view(v_plane, chroma_h, chroma_w, 1)

    i420 = np.concatenate([y.reshape(-1), u.reshape(-1), v.reshape(-1)])
    i420 = i420.reshape(frame.height * 3 // 2, frame.width)
    return cv2.cvtColor(i420, cv2.COLOR_YUV2RGB_I420)


def to_rgb(frame: Frame) -> np.ndarray:
    """
    Convert a frame to an RGB image in sensor orientation.

    Args:
        frame: Raw frame

    Returns:
        RGB image of shape (height, width, 3), dtype uint8

    Raises:
        FrameConversionError: Unsupported format or inconsistent buffers
    """
    if frame.width <= 0 or frame.height <= 0:
        raise FrameConversionError(f"Invalid frame size: {frame.width}x{frame.height}")
    if not frame.planes:
        raise FrameConversionError("Frame has no planes")

    try:
        return _convert(frame)
    except cv2.error as e:
        raise FrameConversionError(f"Color conversion failed: {e}") from e


def _convert(frame: Frame) -> np.ndarray:
    fmt = frame.pixel_format
    if fmt == PixelFormat.YUV_420_888:
        return _yuv420_to_rgb(frame)

    plane = frame.planes[0]
    if fmt == PixelFormat.RGBA_8888:
        rgba = _plane_view(plane, frame.height, frame.width, 4)
        return cv2.cvtColor(rgba, cv2.COLOR_RGBA2RGB)
    if fmt == PixelFormat.RGB_888:
        return _plane_view(plane, frame.height, frame.width, 3)
    if fmt == PixelFormat.BGR_888:
        bgr = _plane_view(plane, frame.height, frame.width, 3)
        return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

    raise FrameConversionError(f"Unsupported image format: {fmt}")


def to_upright_rgb(frame: Frame) -> np.ndarray:
    """
    Convert a frame to an upright RGB image.

    Args:
        frame: Raw frame

    Returns:
        RGB image rotated clockwise by frame.rotation_degrees
    """
    rotation = frame.rotation_degrees % 360
    if rotation not in _ROTATIONS:
        raise FrameConversionError(f"Unsupported rotation: {frame.rotation_degrees}")

    rgb = to_rgb(frame)
    code = _ROTATIONS[rotation]
    if code is not None:
        try:
            rgb = cv2.rotate(rgb, code)
        except cv2.error as e:
            raise FrameConversionError(f"Rotation failed: {e}") from e
    return rgb


def to_input_tensor(
    image: np.ndarray,
    input_width: int,
    input_height: int
) -> np.ndarray:
    """
    Resize an RGB image and normalize it into a detector input tensor.

    Args:
        image: Upright RGB image (uint8)
        input_width: Model input width
        input_height: Model input height

    Returns:
        float32 tensor of shape (1, input_height, input_width, 3) in [0, 1]
    """
    try:
        resized = cv2.resize(image, (input_width, input_height), interpolation=cv2.INTER_LINEAR)
    except cv2.error as e:
        raise FrameConversionError(f"Resize failed: {e}") from e
    tensor = resized.astype(np.float32) / 255.0
    return tensor[np.newaxis, ...]
