# Video Processing Module

from .video_handler import VideoFrameSource, VideoInfo

__all__ = [
    'VideoFrameSource',
    'VideoInfo',
]
