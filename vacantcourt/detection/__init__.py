# Detection Module

from .frame_converter import Frame, FramePlane, PixelFormat, to_rgb, to_upright_rgb, to_input_tensor
from .postprocessor import Detection, DetectionPostprocessor, non_max_suppression
from .detector import TFLiteDetector, ModelSpec, DetectorState, load_labels

__all__ = [
    'Frame',
    'FramePlane',
    'PixelFormat',
    'to_rgb',
    'to_upright_rgb',
    'to_input_tensor',
    'Detection',
    'DetectionPostprocessor',
    'non_max_suppression',
    'TFLiteDetector',
    'ModelSpec',
    'DetectorState',
    'load_labels',
]
