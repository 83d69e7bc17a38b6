"""Shared fixtures and fakes for the test suite."""

from concurrent.futures import Future

import numpy as np
import pytest

from vacantcourt.store.memory_store import InMemoryCourtStore
from vacantcourt.utils.concurrency import CancellationToken, Dispatcher

LABELS = ["person", "bicycle", "car"]


class FakeInterpreter:
    """Stand-in for tf.lite.Interpreter returning a fixed output."""

    def __init__(self, input_shape=(1, 32, 32, 3), num_predictions=4, num_classes=3, output=None):
        self.input_shape = np.array(input_shape)
        self.output_shape = np.array([1, num_predictions, 5 + num_classes])
        self.output = output if output is not None else np.zeros(tuple(self.output_shape), dtype=np.float32)
        self.allocated = False
        self.inputs = []
        self.invocations = 0

    def allocate_tensors(self):
        self.allocated = True

    def get_input_details(self):
        return [{'index': 0, 'shape': self.input_shape, 'dtype': np.float32, 'quantization': (0.0, 0)}]

    def get_output_details(self):
        return [{'index': 1, 'shape': self.output_shape, 'dtype': np.float32, 'quantization': (0.0, 0)}]

    def set_tensor(self, index, value):
        self.inputs.append(value)

    def invoke(self):
        self.invocations += 1

    def get_tensor(self, index):
        return self.output


def yolo_row(cx, cy, w, h, objectness, class_scores):
    return [cx, cy, w, h, objectness] + list(class_scores)


class ManualExecutor:
    """Executor that runs submitted calls only when told to."""

    def __init__(self):
        self.calls = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.calls.append((future, fn, args, kwargs))
        return future

    def run_next(self):
        future, fn, args, kwargs = self.calls.pop(0)
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)

    def run_all(self):
        while self.calls:
            self.run_next()

    def shutdown(self, wait=True):
        pass


class ImmediateExecutor(ManualExecutor):
    """Executor that runs submitted calls synchronously."""

    def submit(self, fn, *args, **kwargs):
        future = super().submit(fn, *args, **kwargs)
        self.run_next()
        return future


def complex_document():
    return {
        'name': 'Riverside Tennis Center',
        'courts': [
            {
                'name': 'Court 1',
                'status': 'available',
                'isConfigured': True,
                'surface': 'hard',
                'regionPoints': [
                    {'x': 0.0, 'y': 0.0},
                    {'x': 0.5, 'y': 0.0},
                    {'x': 0.5, 'y': 1.0},
                    {'x': 0.0, 'y': 1.0},
                ],
                'lastUpdatedStatus': 1000,
            },
            {
                'name': 'Court 2',
                'status': 'available',
                'isConfigured': True,
                'surface': 'clay',
                'regionPoints': [
                    {'x': 0.5, 'y': 0.0},
                    {'x': 1.0, 'y': 0.0},
                    {'x': 1.0, 'y': 1.0},
                    {'x': 0.5, 'y': 1.0},
                ],
                'lastUpdatedStatus': 1000,
            },
            {
                'name': 'Court 3',
                'status': 'available',
                'isConfigured': False,
                'surface': 'grass',
                'regionPoints': None,
            },
        ],
    }


@pytest.fixture
def store():
    return InMemoryCourtStore({'riverside': complex_document()})


@pytest.fixture
def dispatcher():
    return Dispatcher()


@pytest.fixture
def token():
    return CancellationToken()


@pytest.fixture
def labels_file(tmp_path):
    path = tmp_path / "labels.txt"
    path.write_text("\n".join(LABELS) + "\n")
    return path


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "model.tflite"
    path.write_bytes(b"tflite")
    return path
