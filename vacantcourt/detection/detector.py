"""
Object Detector Module

Runs a fixed-shape YOLOv5 TFLite network over upright RGB frames.

The detector owns a single inference slot: loading, inference and
release all happen under one lock, and the detector moves through
explicit UNLOADED -> LOADED -> CLOSED states.
"""

import threading
import numpy as np
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
from dataclasses import dataclass
import logging

from ..errors import InferenceError, ModelLoadError
from .frame_converter import Frame, to_input_tensor, to_upright_rgb
from .postprocessor import Detection, DetectionPostprocessor

logger = logging.getLogger(__name__)

MODEL_NAME = "yolov5.tflite"
LABELS_NAME = "coco_labels.txt"

# YOLOv5 rows are [cx, cy, w, h, objectness, class scores...]
BOX_FIELDS = 5


class DetectorState(Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    CLOSED = "closed"


@dataclass(frozen=True)
class ModelSpec:
    """Input/output geometry of a loaded detector."""
    input_width: int
    input_height: int
    num_classes: int
    num_predictions: int

    @classmethod
    def from_shapes(cls, input_shape: Sequence[int], output_shape: Sequence[int]) -> "ModelSpec":
        """
        Derive input size and class count from tensor shapes.

        Args:
            input_shape: Input tensor shape [1, H, W, 3]
            output_shape: Output tensor shape [1, N, 5 + C]

        Returns:
            ModelSpec instance
        """
        input_shape = [int(v) for v in input_shape]
        output_shape = [int(v) for v in output_shape]

        if len(input_shape) != 4 or input_shape[3] != 3:
            raise ModelLoadError(f"Unsupported input tensor shape: {input_shape}")
        if len(output_shape) != 3 or output_shape[2] <= BOX_FIELDS:
            raise ModelLoadError(f"Unsupported output tensor shape: {output_shape}")

        return cls(
            input_width=input_shape[2],
            input_height=input_shape[1],
            num_classes=output_shape[2] - BOX_FIELDS,
            num_predictions=output_shape[1]
        )


def load_labels(labels_path: Union[str, Path]) -> List[str]:
    """
    Read one label per line, skipping blank lines.

    Raises:
        ModelLoadError: File missing, unreadable or empty
    """
    path = Path(labels_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            labels = [line.strip() for line in f if line.strip()]
    except OSError as e:
        raise ModelLoadError(f"Failed to read labels {path}: {e}") from e

    if not labels:
        raise ModelLoadError(f"Labels file is empty: {path}")
    return labels


InterpreterFactory = Callable[[str, int], Any]


def _tflite_interpreter(model_path: str, num_threads: int) -> Any:
    import tensorflow as tf

    return tf.lite.Interpreter(model_path=model_path, num_threads=num_threads)


class TFLiteDetector:
    """
    YOLOv5 TFLite detector with a lock-guarded inference slot.

    Example:
        detector = TFLiteDetector(config=config)
        detector.load()
        detections, width, height = detector.detect(frame)
        detector.close()
    """

    def __init__(
        self,
        model_path: Optional[Union[str, Path]] = None,
        labels_path: Optional[Union[str, Path]] = None,
        config: Optional[Dict[str, Any]] = None,
        interpreter_factory: Optional[InterpreterFactory] = None
    ):
        """
        Initialize the detector. Nothing is loaded until load().

        Args:
            model_path: Path to the .tflite model
            labels_path: Path to the label list
            config: Configuration dictionary
            interpreter_factory: Callable (model_path, num_threads) -> interpreter;
                defaults to tf.lite.Interpreter
        """
        self.config = config or {}
        detection_config = self.config.get('detection', {})

        self.model_path = Path(model_path or detection_config.get('model_path', MODEL_NAME))
        self.labels_path = Path(labels_path or detection_config.get('labels_path', LABELS_NAME))
        self.num_threads = detection_config.get('num_threads', 4)

        self._interpreter_factory = interpreter_factory or _tflite_interpreter
        self._lock = threading.Lock()
        self._state = DetectorState.UNLOADED
        self._interpreter = None
        self._input_details: Dict[str, Any] = {}
        self._output_details: Dict[str, Any] = {}

        self.labels: List[str] = []
        self.spec: Optional[ModelSpec] = None
        self.postprocessor: Optional[DetectionPostprocessor] = None

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._state == DetectorState.LOADED

    def load(self) -> ModelSpec:
        """
        Load labels and model, and derive the ModelSpec.

        Returns:
            ModelSpec of the loaded network

        Raises:
            ModelLoadError: Missing or unparseable resources
        """
        with self._lock:
            if self._state == DetectorState.LOADED:
                logger.debug("Detector already loaded")
                return self.spec
            if self._state == DetectorState.CLOSED:
                raise ModelLoadError("Detector has been closed")

            if not self.model_path.exists():
                raise ModelLoadError(f"Model file not found: {self.model_path}")

            labels = load_labels(self.labels_path)

            logger.info(f"Loading TFLite model: {self.model_path}")
            try:
                interpreter = self._interpreter_factory(str(self.model_path), self.num_threads)
                interpreter.allocate_tensors()
                input_details = interpreter.get_input_details()[0]
                output_details = interpreter.get_output_details()[0]
            except ImportError as e:
                logger.error("Please install tensorflow: pip install tensorflow")
                raise ModelLoadError(f"TFLite runtime unavailable: {e}") from e
            except (ValueError, RuntimeError, OSError, IndexError) as e:
                raise ModelLoadError(f"Failed to load model {self.model_path}: {e}") from e

            spec = ModelSpec.from_shapes(input_details['shape'], output_details['shape'])

            if len(labels) != spec.num_classes:
                logger.warning(
                    f"Label count ({len(labels)}) does not match model classes ({spec.num_classes})"
                )

            self._interpreter = interpreter
            self._input_details = input_details
            self._output_details = output_details
            self.labels = labels
            self.spec = spec
            self.postprocessor = DetectionPostprocessor(labels, self.config)
            self._state = DetectorState.LOADED

            logger.info(
                f"Detector loaded: input={spec.input_width}x{spec.input_height}, "
                f"classes={spec.num_classes}, predictions={spec.num_predictions}"
            )
            return spec

    def run(self, input_tensor: np.ndarray) -> np.ndarray:
        """
        Run inference on a prepared input tensor.

        Args:
            input_tensor: float tensor (1, H, W, 3) normalized to [0, 1]

        Returns:
            Raw predictions of shape (num_predictions, 5 + num_classes)

        Raises:
            InferenceError: Detector not loaded or tensor shape mismatch
        """
        with self._lock:
            if self._state != DetectorState.LOADED:
                raise InferenceError(f"Detector is not loaded (state={self._state.value})")

            spec = self.spec
            expected = (1, spec.input_height, spec.input_width, 3)
            if tuple(input_tensor.shape) != expected:
                raise InferenceError(
                    f"Input shape {tuple(input_tensor.shape)} does not match model input {expected}"
                )

            try:
                self._interpreter.set_tensor(
                    self._input_details['index'],
                    self._quantize_input(input_tensor)
                )
                self._interpreter.invoke()
                raw = self._interpreter.get_tensor(self._output_details['index'])
            except Exception as e:
                raise InferenceError(f"Inference failed: {e}") from e

        output = self._dequantize_output(np.asarray(raw))
        try:
            return output.reshape(spec.num_predictions, spec.num_classes + BOX_FIELDS)
        except ValueError as e:
            raise InferenceError(f"Unexpected output shape {output.shape}: {e}") from e

    def _quantize_input(self, tensor: np.ndarray) -> np.ndarray:
        dtype = np.dtype(self._input_details.get('dtype', np.float32))
        if not np.issubdtype(dtype, np.integer):
            return tensor.astype(dtype)

        scale, zero_point = self._input_details.get('quantization', (0.0, 0))
        if scale:
            tensor = tensor / scale + zero_point
        else:
            tensor = tensor * 255.0
        info = np.iinfo(dtype)
        return np.clip(np.round(tensor), info.min, info.max).astype(dtype)

    def _dequantize_output(self, raw: np.ndarray) -> np.ndarray:
        if not np.issubdtype(raw.dtype, np.integer):
            return raw.astype(np.float32)

        scale, zero_point = self._output_details.get('quantization', (0.0, 0))
        if not scale:
            return raw.astype(np.float32)
        return (raw.astype(np.float32) - zero_point) * scale

    def detect(self, frame: Frame) -> Tuple[List[Detection], int, int]:
        """
        Convert, infer and postprocess one frame.

        Args:
            frame: Raw camera frame

        Returns:
            Tuple of (detections, upright_width, upright_height); boxes are
            in pixels of the upright frame
        """
        spec = self.spec
        if spec is None or not self.is_loaded:
            raise InferenceError("Detector is not loaded")

        image = to_upright_rgb(frame)
        height, width = image.shape[:2]
        tensor = to_input_tensor(image, spec.input_width, spec.input_height)
        output = self.run(tensor)
        return self.postprocessor.process(output, width, height), width, height

    def close(self) -> None:
        """Release the interpreter. Safe to call more than once."""
        with self._lock:
            if self._state == DetectorState.CLOSED:
                return
            self._interpreter = None
            self._input_details = {}
            self._output_details = {}
            self._state = DetectorState.CLOSED
            logger.info("Detector released")
