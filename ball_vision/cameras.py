"""Camera startup from ``CameraDescriptor`` entries.

Startup is best effort: a camera that fails to open is logged and skipped so
the rest of the robot's cameras still come up.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from .config import CameraDescriptor, SwitchedCameraDescriptor
from .frame_source import CvSinkSource, FrameSource
from .logging_utils import setup_logger
from .telemetry import TelemetrySink

# Used for the frame buffer when the camera has not reported a video mode yet.
DEFAULT_WIDTH = 640
DEFAULT_HEIGHT = 480


class CameraOpenError(RuntimeError):
    def __init__(self, name: str, path: str, reason: str):
        super().__init__(f"could not start camera '{name}' on {path}: {reason}")
        self.name = name
        self.path = path


@dataclass
class CameraHandle:
    name: str
    path: str
    camera: Any
    server: Any


class CameraBackend(ABC):
    @abstractmethod
    def open_camera(self, name: str, path: str) -> Any: ...

    @abstractmethod
    def start_stream(self, camera: Any) -> Any: ...

    @abstractmethod
    def keep_open(self, camera: Any) -> None: ...

    @abstractmethod
    def frame_source(self, camera: Any, label: str) -> FrameSource: ...

    @abstractmethod
    def add_switched_camera(self, name: str) -> Any: ...


def _import_cscore():
    try:
        import cscore  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "Camera server requested but robotpy-cscore is not installed. "
            "Install with: pip install 'ball-vision[robot]'"
        ) from exc
    return cscore


class CscoreBackend(CameraBackend):
    """USB cameras served as MJPEG streams through cscore's CameraServer."""

    def __init__(self):
        self.cs = _import_cscore()

    def open_camera(self, name: str, path: str) -> Any:
        return self.cs.UsbCamera(name, path)

    def start_stream(self, camera: Any) -> Any:
        return self.cs.CameraServer.startAutomaticCapture(camera=camera)

    def keep_open(self, camera: Any) -> None:
        camera.setConnectionStrategy(
            self.cs.VideoSource.ConnectionStrategy.kConnectionKeepOpen
        )

    def frame_source(self, camera: Any, label: str) -> FrameSource:
        # A fresh sink per reader; CameraServer.getVideo would hand back a shared one.
        sink = self.cs.CvSink(f"{label} {camera.getName()}")
        sink.setSource(camera)
        mode = camera.getVideoMode()
        width = mode.width or DEFAULT_WIDTH
        height = mode.height or DEFAULT_HEIGHT
        return CvSinkSource(sink, width, height)

    def add_switched_camera(self, name: str) -> Any:
        return self.cs.CameraServer.addSwitchedCamera(name)


class CameraRegistry:
    def __init__(self, backend: CameraBackend, logger: Optional[logging.Logger] = None):
        self.backend = backend
        self.logger = logger or setup_logger("cameras")
        self.handles: list[CameraHandle] = []

    def start_camera(self, descriptor: CameraDescriptor) -> CameraHandle:
        self.logger.info("Starting camera '%s' on %s", descriptor.name, descriptor.path)
        try:
            camera = self.backend.open_camera(descriptor.name, descriptor.path)
            server = self.backend.start_stream(camera)

            if not camera.setConfigJson(descriptor.raw_config):
                self.logger.warning("camera '%s' rejected its config", descriptor.name)
            self.backend.keep_open(camera)

            if descriptor.stream_config is not None:
                if not server.setConfigJson(descriptor.stream_config):
                    self.logger.warning(
                        "stream for camera '%s' rejected its config", descriptor.name
                    )
        except Exception as exc:
            raise CameraOpenError(descriptor.name, descriptor.path, str(exc)) from exc

        return CameraHandle(descriptor.name, descriptor.path, camera, server)

    def start_all(self, descriptors: list[CameraDescriptor]) -> list[CameraHandle]:
        for descriptor in descriptors:
            try:
                self.handles.append(self.start_camera(descriptor))
            except CameraOpenError as exc:
                self.logger.error("%s", exc)
        self.logger.info("%d of %d camera(s) started", len(self.handles), len(descriptors))
        return list(self.handles)

    def frame_source(self, index: int = 0, label: str = "vision") -> FrameSource:
        return self.backend.frame_source(self.handles[index].camera, label)

    def _select_source(self, server: Any, value: Any) -> None:
        if isinstance(value, bool):
            return
        if isinstance(value, (int, float)):
            i = int(value)
            if 0 <= i < len(self.handles):
                server.setSource(self.handles[i].camera)
        elif isinstance(value, str):
            for handle in self.handles:
                if handle.name == value:
                    server.setSource(handle.camera)
                    break

    def start_switched_camera(
        self, descriptor: SwitchedCameraDescriptor, telemetry: TelemetrySink
    ) -> Any:
        """Start a virtual camera whose source is chosen by a telemetry value.

        A number selects by index into the started cameras, a string by name.
        """
        self.logger.info(
            "Starting switched camera '%s' on %s", descriptor.name, descriptor.key
        )
        server = self.backend.add_switched_camera(descriptor.name)
        telemetry.add_listener(
            descriptor.key, lambda value: self._select_source(server, value)
        )
        return server
