import time

import numpy as np
import pytest

from vacantcourt.courts import CourtStatus
from vacantcourt.detection.detector import DetectorState, TFLiteDetector
from vacantcourt.detection.frame_converter import Frame, FramePlane, PixelFormat
from vacantcourt.errors import ConfigLoadError, FrameConversionError, ModelLoadError
from vacantcourt.occupancy import InferenceThrottle
from vacantcourt.pipeline import AnalysisWorker, CourtOccupancySession, LatestFrameSlot, run_on_source
from vacantcourt.store import InMemoryCourtStore
from vacantcourt.utils.concurrency import CancellationToken, Dispatcher

from conftest import FakeInterpreter, ImmediateExecutor, complex_document, yolo_row

CONFIG = {'session': {'frame_wait_timeout': 0.05, 'shutdown_timeout': 2.0}}


def person_output(cx=0.25):
    output = np.zeros((1, 4, 8), dtype=np.float32)
    output[0, 0] = yolo_row(cx, 0.5, 0.2, 0.5, 0.9, [0.9, 0.0, 0.0])
    return output


def make_frame(timestamp_ms):
    return Frame.from_bgr(np.zeros((32, 64, 3), dtype=np.uint8), timestamp_ms=timestamp_ms)


def drain_until(session, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        session.process_events(0.02)
        if predicate():
            return True
    return False


@pytest.fixture
def interpreter():
    return FakeInterpreter(output=person_output())


@pytest.fixture
def detector(model_file, labels_file, interpreter):
    return TFLiteDetector(
        model_file,
        labels_file,
        interpreter_factory=lambda path, threads: interpreter
    )


def test_latest_frame_slot_keeps_newest():
    slot = LatestFrameSlot()
    slot.offer(make_frame(1))
    slot.offer(make_frame(2))
    slot.offer(make_frame(3))

    assert slot.take(0.01).timestamp_ms == 3
    assert slot.dropped == 2
    assert slot.take(0.01) is None


def test_latest_frame_slot_idle_until_task_done():
    slot = LatestFrameSlot()
    assert slot.idle

    slot.offer(make_frame(1))
    slot.offer(make_frame(2))
    assert not slot.idle

    slot.take(0.01)
    assert not slot.idle
    slot.task_done()
    assert slot.idle


class FailingDetector:
    def detect(self, frame):
        raise FrameConversionError("unsupported")


def test_worker_drops_failed_frames():
    dispatcher = Dispatcher()
    worker = AnalysisWorker(
        FailingDetector(),
        LatestFrameSlot(),
        dispatcher,
        CancellationToken(),
        deliver=lambda result: None,
        throttle=InferenceThrottle(3000)
    )

    assert worker.analyze(make_frame(0)) is None
    assert worker.failed == 1
    assert dispatcher.pending_count == 0


class CrashingDetector:
    def detect(self, frame):
        raise RuntimeError("interpreter crashed")


def test_worker_drops_frames_on_unexpected_errors():
    dispatcher = Dispatcher()
    worker = AnalysisWorker(
        CrashingDetector(),
        LatestFrameSlot(),
        dispatcher,
        CancellationToken(),
        deliver=lambda result: None,
        throttle=InferenceThrottle(3000)
    )

    assert worker.analyze(make_frame(0)) is None
    assert worker.failed == 1
    assert dispatcher.pending_count == 0


def test_worker_throttles_before_inference(detector):
    detector.load()
    dispatcher = Dispatcher()
    worker = AnalysisWorker(
        detector,
        LatestFrameSlot(),
        dispatcher,
        CancellationToken(),
        deliver=lambda result: None,
        throttle=InferenceThrottle(3000)
    )

    assert worker.analyze(make_frame(0)) is not None
    assert worker.analyze(make_frame(100)) is None
    assert worker.throttled == 1
    assert worker.processed == 1
    assert dispatcher.pending_count == 1


def test_worker_skips_cancelled_session(detector):
    detector.load()
    token = CancellationToken()
    token.cancel()
    worker = AnalysisWorker(
        detector, LatestFrameSlot(), Dispatcher(), token,
        deliver=lambda result: None, throttle=InferenceThrottle(3000)
    )
    assert worker.analyze(make_frame(0)) is None


def test_session_end_to_end(detector, interpreter):
    store = InMemoryCourtStore({'riverside': complex_document()})
    results = []
    session = CourtOccupancySession(
        'riverside', store, detector, CONFIG, on_result=results.append, executor=ImmediateExecutor()
    )

    with session:
        assert session.statuses == {'Court 1': CourtStatus.AVAILABLE, 'Court 2': CourtStatus.AVAILABLE}

        # Person in the left half
        session.submit_frame(make_frame(0))
        assert drain_until(session, lambda: session.statuses['Court 1'] is CourtStatus.IN_USE)
        assert results[0].occupancy == {'Court 1': True, 'Court 2': False}
        assert results[0].people == 1
        assert store.document('riverside')['courts'][0]['status'] == 'in-use'

        # Inside the inference interval: dropped
        interpreter.output = person_output(cx=0.75)
        session.submit_frame(make_frame(1000))
        assert drain_until(session, lambda: session.worker.throttled == 1)
        assert len(results) == 1

        # Person moved to the right half
        session.submit_frame(make_frame(3000))
        assert drain_until(session, lambda: session.statuses['Court 2'] is CourtStatus.IN_USE)
        assert session.statuses['Court 1'] is CourtStatus.AVAILABLE

    assert detector.state == DetectorState.CLOSED
    assert not session.worker.is_alive
    courts = store.document('riverside')['courts']
    assert [c['status'] for c in courts[:2]] == ['available', 'in-use']


def test_run_on_source(detector):
    store = InMemoryCourtStore({'riverside': complex_document()})
    with CourtOccupancySession('riverside', store, detector, CONFIG, executor=ImmediateExecutor()) as session:
        run_on_source(session, [make_frame(0)], total_frames=1, show_progress=False)
        assert drain_until(session, lambda: session.statuses['Court 1'] is CourtStatus.IN_USE)


def test_missing_complex_fails_start(detector):
    session = CourtOccupancySession('nowhere', InMemoryCourtStore({}), detector, CONFIG)
    with pytest.raises(ConfigLoadError):
        session.start()
    assert detector.state == DetectorState.UNLOADED


def test_complex_without_configured_courts_fails_start(detector):
    document = complex_document()
    for court in document['courts']:
        court['isConfigured'] = False
    session = CourtOccupancySession('riverside', InMemoryCourtStore({'riverside': document}), detector, CONFIG)
    with pytest.raises(ConfigLoadError):
        session.start()


def test_missing_model_fails_start(tmp_path, labels_file):
    detector = TFLiteDetector(tmp_path / "missing.tflite", labels_file)
    store = InMemoryCourtStore({'riverside': complex_document()})
    session = CourtOccupancySession('riverside', store, detector, CONFIG)
    with pytest.raises(ModelLoadError):
        session.start()
    session.close()
    assert session.worker is None


def malformed_frame(timestamp_ms):
    pixels = np.zeros((32, 128, 3), dtype=np.uint8)
    plane = FramePlane(pixels[:, ::2], row_stride=64 * 3, pixel_stride=3)
    return Frame((plane,), 64, 32, PixelFormat.BGR_888, timestamp_ms=timestamp_ms)


def test_worker_survives_malformed_frame(detector):
    store = InMemoryCourtStore({'riverside': complex_document()})
    results = []
    session = CourtOccupancySession(
        'riverside', store, detector, CONFIG, on_result=results.append, executor=ImmediateExecutor()
    )

    with session:
        session.submit_frame(malformed_frame(0))
        assert drain_until(session, lambda: session.worker.failed == 1)
        assert session.worker.is_alive

        session.submit_frame(make_frame(3000))
        assert drain_until(session, lambda: session.statuses['Court 1'] is CourtStatus.IN_USE)
        assert len(results) == 1
        assert results[0].timestamp_ms == 3000


def test_worker_survives_unexpected_detector_error(detector, monkeypatch):
    detect = detector.detect
    calls = []

    def crash_once(frame):
        calls.append(frame.timestamp_ms)
        if len(calls) == 1:
            raise RuntimeError("delegate crashed")
        return detect(frame)

    monkeypatch.setattr(detector, 'detect', crash_once)
    store = InMemoryCourtStore({'riverside': complex_document()})
    with CourtOccupancySession('riverside', store, detector, CONFIG, executor=ImmediateExecutor()) as session:
        session.submit_frame(make_frame(0))
        assert drain_until(session, lambda: session.worker.failed == 1)

        session.submit_frame(make_frame(3000))
        assert drain_until(session, lambda: session.statuses['Court 1'] is CourtStatus.IN_USE)
        assert session.worker.is_alive


def test_custom_person_label(model_file, labels_file):
    output = np.zeros((1, 4, 8), dtype=np.float32)
    output[0, 0] = yolo_row(0.25, 0.5, 0.2, 0.5, 0.9, [0.0, 0.9, 0.0])
    detector = TFLiteDetector(
        model_file,
        labels_file,
        interpreter_factory=lambda path, threads: FakeInterpreter(output=output)
    )
    config = dict(CONFIG, occupancy={'person_label': 'Bicycle'})
    store = InMemoryCourtStore({'riverside': complex_document()})
    results = []

    with CourtOccupancySession(
        'riverside', store, detector, config, on_result=results.append, executor=ImmediateExecutor()
    ) as session:
        session.submit_frame(make_frame(0))
        assert drain_until(session, lambda: len(results) == 1)

    assert results[0].people == 1
    assert results[0].occupancy['Court 1'] is True


class SlowInterpreter(FakeInterpreter):
    def invoke(self):
        time.sleep(0.3)
        super().invoke()


def test_run_on_source_waits_for_last_frame(model_file, labels_file):
    detector = TFLiteDetector(
        model_file,
        labels_file,
        interpreter_factory=lambda path, threads: SlowInterpreter(output=person_output())
    )
    store = InMemoryCourtStore({'riverside': complex_document()})
    with CourtOccupancySession('riverside', store, detector, CONFIG, executor=ImmediateExecutor()) as session:
        result = run_on_source(session, [make_frame(0)], show_progress=False)

        assert result is not None
        assert result.people == 1
        assert session.statuses['Court 1'] is CourtStatus.IN_USE
        assert session.is_idle
    assert store.document('riverside')['courts'][0]['status'] == 'in-use'
