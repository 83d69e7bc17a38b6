"""
Court Occupancy Pipeline

Integrates frame conversion, detection, occupancy tracking and status
persistence into a live monitoring session.

Threading model:
1. The caller's thread submits frames and drains the dispatcher
2. One analysis worker runs the detector on the latest frame only
3. Store writes run on the status updater's thread pool
All cached status and pending-update state is touched only by
dispatcher callbacks, i.e. on the caller's thread.
"""

import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging
from tqdm import tqdm

from .courts import CourtRegion, CourtStatus
from .detection.detector import TFLiteDetector
from .detection.frame_converter import Frame
from .detection.postprocessor import Detection
from .errors import ConfigLoadError, FrameError
from .occupancy.status_updater import StatusUpdater
from .occupancy.tracker import INFERENCE_INTERVAL_MS, InferenceThrottle, OccupancyTracker
from .store.base import CourtStore
from .utils.concurrency import CancellationToken, Dispatcher

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Outcome of one inference cycle."""

    detections: List[Detection]

    # Upright frame size the boxes refer to
    image_width: int
    image_height: int

    timestamp_ms: float = 0.0

    # Filled in on delivery
    occupancy: Dict[str, bool] = field(default_factory=dict)
    people: int = 0


class LatestFrameSlot:
    """Capacity-1 hand-off that keeps only the newest frame."""

    def __init__(self):
        self._queue: "queue.Queue[Frame]" = queue.Queue(maxsize=1)
        self.dropped = 0

    def offer(self, frame: Frame) -> None:
        """Store frame, replacing any frame not yet taken."""
        while True:
            try:
                self._queue.put_nowait(frame)
                return
            except queue.Full:
                pass

            try:
                self._queue.get_nowait()
                self._queue.task_done()
                self.dropped += 1
            except queue.Empty:
                pass

    def take(self, timeout: float) -> Optional[Frame]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self) -> None:
        """Mark a taken frame as fully analyzed."""
        self._queue.task_done()

    @property
    def idle(self) -> bool:
        """True when no frame is waiting or being analyzed."""
        with self._queue.mutex:
            return self._queue.unfinished_tasks == 0


class AnalysisWorker:
    """
    Single background thread running inference on the latest frame.

    Frames inside the inference interval are dropped before conversion.
    Per-frame conversion and inference errors are logged and the frame
    is skipped; they never stop the worker.
    """

    def __init__(
        self,
        detector: TFLiteDetector,
        slot: LatestFrameSlot,
        dispatcher: Dispatcher,
        token: CancellationToken,
        deliver: Callable[[AnalysisResult], None],
        throttle: InferenceThrottle,
        wait_timeout: float = 0.5
    ):
        self.detector = detector
        self.slot = slot
        self.dispatcher = dispatcher
        self.token = token
        self.deliver = deliver
        self.throttle = throttle
        self.wait_timeout = wait_timeout

        self.processed = 0
        self.throttled = 0
        self.failed = 0

        self._thread = threading.Thread(target=self._run, name="court-analysis", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        logger.debug("Analysis worker started")
        while not self.token.is_cancelled:
            frame = self.slot.take(self.wait_timeout)
            if frame is None:
                continue
            try:
                self.analyze(frame)
            finally:
                self.slot.task_done()
        logger.debug("Analysis worker stopped")

    def analyze(self, frame: Frame) -> Optional[AnalysisResult]:
        """
        Run one inference cycle and post the result to the dispatcher.

        Returns:
            The posted result, or None if the frame was dropped
        """
        if not self.throttle.admit(frame.timestamp_ms):
            self.throttled += 1
            return None

        if self.token.is_cancelled:
            return None

        try:
            detections, width, height = self.detector.detect(frame)
        except FrameError as e:
            self.failed += 1
            logger.warning(f"Dropping frame at {frame.timestamp_ms:.0f}ms: {e}")
            return None
        except Exception:
            self.failed += 1
            logger.exception(f"Unexpected error analyzing frame at {frame.timestamp_ms:.0f}ms")
            return None

        if self.token.is_cancelled:
            return None

        self.processed += 1
        result = AnalysisResult(
            detections=detections,
            image_width=width,
            image_height=height,
            timestamp_ms=frame.timestamp_ms
        )
        self.dispatcher.post(self.deliver, result)
        return result


class CourtOccupancySession:
    """
    Live occupancy monitoring for one tennis complex.

    Example:
        with CourtOccupancySession("riverside", store, detector, config) as session:
            for frame in source:
                session.submit_frame(frame)
                session.process_events()
    """

    def __init__(
        self,
        complex_id: str,
        store: CourtStore,
        detector: TFLiteDetector,
        config: Optional[Dict[str, Any]] = None,
        on_result: Optional[Callable[[AnalysisResult], None]] = None,
        executor=None
    ):
        """
        Initialize the session. Nothing runs until start().

        Args:
            complex_id: Complex to monitor
            store: Court store
            detector: Detector (loaded by start())
            config: Configuration dictionary
            on_result: Called on the dispatcher thread for every delivered result
            executor: Executor for store writes (defaults to a thread pool)
        """
        self.complex_id = complex_id
        self.store = store
        self.detector = detector
        self.config = config or {}
        self.on_result = on_result
        self._executor = executor

        session_config = self.config.get('session', {})
        self.frame_wait_timeout = session_config.get('frame_wait_timeout', 0.5)
        self.shutdown_timeout = session_config.get('shutdown_timeout', 2.0)
        self.interval_ms = self.config.get('occupancy', {}).get(
            'inference_interval_ms', INFERENCE_INTERVAL_MS
        )

        self.token = CancellationToken()
        self.dispatcher = Dispatcher()
        self.slot = LatestFrameSlot()

        self.complex_name = ""
        self.regions: List[CourtRegion] = []
        self.updater: Optional[StatusUpdater] = None
        self.tracker: Optional[OccupancyTracker] = None
        self.worker: Optional[AnalysisWorker] = None
        self.last_result: Optional[AnalysisResult] = None
        self._started = False
        self._closed = False

    @property
    def statuses(self) -> Dict[str, CourtStatus]:
        return self.updater.statuses if self.updater else {}

    def start(self) -> None:
        """
        Load court configuration and the model, then start analysis.

        Raises:
            ConfigLoadError: Complex missing, malformed, or without configured courts
            ModelLoadError: Detector resources missing or unparseable
        """
        if self._started:
            return

        record = self.store.load_complex(self.complex_id)
        regions = record.configured_regions()
        if not regions:
            raise ConfigLoadError(f"No configured courts in complex {self.complex_id}")

        self.complex_name = record.name
        self.regions = regions
        logger.info(f"Loaded {len(regions)} configured courts for {record.name or self.complex_id}")

        self.detector.load()

        self.updater = StatusUpdater(
            self.complex_id,
            self.store,
            self.dispatcher,
            self.token,
            statuses=record.statuses(),
            executor=self._executor,
            config=self.config
        )
        self.tracker = OccupancyTracker(regions, self.updater, self.config)
        self.worker = AnalysisWorker(
            self.detector,
            self.slot,
            self.dispatcher,
            self.token,
            self._deliver,
            InferenceThrottle(self.interval_ms),
            wait_timeout=self.frame_wait_timeout
        )
        self.worker.start()
        self._started = True

    def submit_frame(self, frame: Frame) -> None:
        """Hand a frame to the worker; older untaken frames are dropped."""
        if self._started and not self.token.is_cancelled:
            self.slot.offer(frame)

    def process_events(self, timeout: float = 0.0) -> int:
        """Run pending dispatcher callbacks on the calling thread."""
        return self.dispatcher.process_pending(timeout)

    @property
    def is_idle(self) -> bool:
        """True once no frame, undelivered result or store write is outstanding."""
        return (
            self.slot.idle
            and self.dispatcher.pending_count == 0
            and not (self.updater is not None and len(self.updater.pending))
        )

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Drain events until the last submitted frame and its writes are done.

        Args:
            timeout: Seconds to wait (defaults to the shutdown timeout)

        Returns:
            True if the session went idle before the timeout
        """
        timeout = self.shutdown_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        while True:
            self.process_events(min(self.frame_wait_timeout, 0.05))
            if self.is_idle:
                return True
            if time.monotonic() >= deadline or self.token.is_cancelled:
                return False

    def _deliver(self, result: AnalysisResult) -> None:
        if self.token.is_cancelled:
            return

        result.occupancy = self.tracker.process(
            result.detections, result.image_width, result.image_height
        )
        result.people = sum(1 for d in result.detections if self.tracker.is_person(d))
        self.last_result = result
        logger.debug(
            f"{len(result.detections)} detections, occupied: "
            f"{[name for name, occupied in result.occupancy.items() if occupied]}"
        )

        if self.on_result is not None:
            self.on_result(result)

    def close(self) -> None:
        """Cancel the session and release the worker and detector."""
        if self._closed:
            return
        self._closed = True

        self.token.cancel()
        if self.worker is not None:
            self.worker.join(timeout=self.shutdown_timeout)
        self.detector.close()
        if self.updater is not None:
            self.updater.shutdown()
        logger.info(f"Session for {self.complex_id} closed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def run_on_source(
    session: CourtOccupancySession,
    source: Iterable[Frame],
    total_frames: Optional[int] = None,
    show_progress: bool = True
) -> Optional[AnalysisResult]:
    """
    Feed every frame of a source through a started session.

    Args:
        session: Started session
        source: Iterable of frames
        total_frames: Frame count for the progress bar, if known
        show_progress: Show a tqdm progress bar

    Returns:
        The last delivered result
    """
    poll_timeout = session.config.get('session', {}).get('event_poll_timeout', 0.01)

    frames = source
    if show_progress:
        frames = tqdm(source, total=total_frames, desc="Monitoring", unit="frame")

    for frame in frames:
        session.submit_frame(frame)
        session.process_events(poll_timeout)

    if not session.wait_until_idle():
        logger.warning(
            f"Session still busy after {session.shutdown_timeout}s; last frame may be unprocessed"
        )
    return session.last_result
