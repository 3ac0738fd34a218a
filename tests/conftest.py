import json
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest

from ball_vision.cameras import CameraBackend
from ball_vision.frame_source import FrameSource
from ball_vision.pipelines import RegionExtractor
from ball_vision.telemetry import TelemetrySink
from ball_vision.vision_types import DetectionResult, Frame


class RecordingTelemetry(TelemetrySink):
    """Telemetry sink that keeps every published value per path."""

    def __init__(self):
        self.published: list[tuple[str, float]] = []
        self.listeners: dict[str, object] = {}
        self._lock = threading.Lock()

    def publish(self, path, value):
        with self._lock:
            self.published.append((path, value))

    def add_listener(self, path, callback):
        self.listeners[path] = callback

    def values(self, path):
        return [v for p, v in self.published if p == path]


class FixedExtractor(RegionExtractor):
    def __init__(self, regions):
        self.regions = list(regions)
        self.calls = 0

    def extract(self, image):
        self.calls += 1
        return DetectionResult(list(self.regions))


class ListSource(FrameSource):
    """Serves a fixed number of blank frames, then signals exhaustion."""

    def __init__(self, count, width=640, height=480):
        self.count = count
        self.width = width
        self.height = height
        self.served = 0
        self.started = False
        self.stopped = False
        self.exhausted = threading.Event()

    def start(self):
        self.started = True

    def read(self):
        if self.served >= self.count:
            self.exhausted.set()
            time.sleep(0.001)
            return None
        self.served += 1
        img = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        return Frame(self.served, time.time(), img)

    def stop(self):
        self.stopped = True


class FakeBackend(CameraBackend):
    """Camera backend built on MagicMocks; paths listed in ``fail_paths`` raise."""

    def __init__(self, fail_paths=()):
        self.fail_paths = set(fail_paths)
        self.opened = []
        self.sources = []
        self.switched = {}

    def open_camera(self, name, path):
        if path in self.fail_paths:
            raise OSError(f"no such device: {path}")
        camera = MagicMock(name=f"camera:{name}")
        camera.setConfigJson.return_value = True
        camera.getName.return_value = name
        self.opened.append(camera)
        return camera

    def start_stream(self, camera):
        server = MagicMock(name="server")
        server.setConfigJson.return_value = True
        return server

    def keep_open(self, camera):
        camera.keep_open = True

    def frame_source(self, camera, label):
        source = ListSource(0)
        source.camera = camera
        source.label = label
        self.sources.append(source)
        return source

    def add_switched_camera(self, name):
        server = MagicMock(name=f"switched:{name}")
        self.switched[name] = server
        return server


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
def make_backend():
    """Build a camera backend; ``fail_paths`` lists devices that fail to open."""
    return FakeBackend


@pytest.fixture
def make_source():
    """Build a frame source serving ``count`` blank frames."""
    return ListSource


@pytest.fixture
def make_extractor():
    """Build an extractor that always returns the given regions."""
    return FixedExtractor


@pytest.fixture
def write_config(tmp_path: Path):
    def _write(data, name="frc.json"):
        path = tmp_path / name
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write
