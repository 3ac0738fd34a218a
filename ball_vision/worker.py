from __future__ import annotations

import logging
import threading
from typing import Optional

from .frame_source import FrameSource
from .logging_utils import setup_pipeline_logger
from .pipelines import RegionExtractor
from .state import SharedOffset
from .telemetry import TelemetrySink
from .vision_types import BoundingBox, Frame

# Offsets assume a 640 px wide image regardless of the camera's actual mode.
FRAME_WIDTH = 640

ERROR_LOG_EVERY = 50


def compute_center_offset(box: BoundingBox, frame_width: int = FRAME_WIDTH) -> float:
    """Pixels from image center to the box center, positive when left of center."""
    return float(frame_width // 2 - (box.x + box.width // 2))


class DetectionPipeline:
    """Runs one color extractor over a frame source and publishes the offset.

    A frame with detections writes the offset of the first region to the
    shared state and to ``key``; a frame without detections publishes 0 and
    leaves the shared state alone.
    """

    def __init__(
        self,
        name: str,
        source: FrameSource,
        extractor: RegionExtractor,
        state: SharedOffset,
        telemetry: TelemetrySink,
        key: str,
        frame_width: int = FRAME_WIDTH,
        logger: Optional[logging.Logger] = None,
    ):
        self.name = name
        self.source = source
        self.extractor = extractor
        self.state = state
        self.telemetry = telemetry
        self.key = key
        self.frame_width = frame_width
        self.logger = logger or setup_pipeline_logger(name, key)
        self.frames = 0
        self.errors = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def stop(self) -> None:
        self._stop_event.set()

    def process_frame(self, frame: Frame) -> float:
        result = self.extractor.extract(frame.image)
        if result:
            center_x = compute_center_offset(result.first(), self.frame_width)
            self.state.update(center_x)
        else:
            center_x = 0.0
        self.telemetry.publish(self.key, center_x)
        return center_x

    def run(self) -> None:
        self.source.start()
        self.logger.info("pipeline started: key=%s", self.key)

        try:
            while not self._stop_event.is_set():
                f = self.source.read()
                if f is None:
                    self.errors += 1
                    if self.errors % ERROR_LOG_EVERY == 1:
                        self.logger.warning(
                            "frame grab failed (%d so far): %s",
                            self.errors,
                            getattr(self.source, "last_error", None),
                        )
                    continue

                self.process_frame(f)
                self.frames += 1
        finally:
            self.source.stop()
            self.logger.info("summary frames=%d errors=%d", self.frames, self.errors)

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(
            target=self.run, name=f"{self.name}-vision", daemon=True
        )
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
