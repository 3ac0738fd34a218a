"""Frame source abstraction for the vision pipelines.

Every pipeline owns its own reader, so two pipelines on the same camera keep
independent cursors and may each skip frames when they fall behind.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import numpy as np

from .vision_types import Frame


class FrameSource(ABC):
    """Abstract base class for frame sources."""

    @abstractmethod
    def start(self) -> None:
        """Start the frame source. Called before any read() calls."""
        ...

    @abstractmethod
    def read(self) -> Frame | None:
        """Block until the next frame is available.

        Returns:
            Frame or None if the grab failed or timed out.
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop the frame source and release resources."""
        ...


class CvSinkSource(FrameSource):
    """Reads BGR frames from a cscore ``CvSink`` attached to a camera.

    ``grabFrame`` waits for the next frame from the camera and returns a frame
    time of 0 on timeout or error; the sink's error string is kept in
    ``last_error``.
    """

    def __init__(self, sink: Any, width: int, height: int):
        self.sink = sink
        self.width = width
        self.height = height
        self.frame_id = 0
        self.last_error: Optional[str] = None
        self._buffer: Optional[np.ndarray] = None

    def start(self) -> None:
        self.sink.setEnabled(True)
        self._buffer = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        self.frame_id = 0

    def read(self) -> Frame | None:
        if self._buffer is None:
            return None

        frame_time, image = self.sink.grabFrame(self._buffer)
        if frame_time == 0:
            self.last_error = self.sink.getError()
            return None

        self._buffer = image
        self.frame_id += 1
        return Frame(self.frame_id, frame_time, image)

    def stop(self) -> None:
        self.sink.setEnabled(False)
        self._buffer = None
