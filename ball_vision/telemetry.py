from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from .logging_utils import setup_logger

VISION_TABLE = "Vision"
BLUE_KEY = f"{VISION_TABLE}/BLUE"
RED_KEY = f"{VISION_TABLE}/RED"


def _import_ntcore():
    try:
        import ntcore  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "NetworkTables requested but pyntcore is not installed. "
            "Install with: pip install 'ball-vision[robot]'"
        ) from exc
    return ntcore


class TelemetrySink(ABC):
    @abstractmethod
    def publish(self, path: str, value: float) -> None: ...

    @abstractmethod
    def add_listener(self, path: str, callback: Callable[[Any], None]) -> None: ...


class NetworkTablesTelemetry(TelemetrySink):
    """Publishes numbers to NetworkTables.

    ``path`` is ``"<table>/<key>"``; the table part may itself contain slashes.
    Publishers are created on first use and cached, and ``publish`` is safe to
    call from several pipeline threads at once.
    """

    def __init__(self, instance: Any = None, logger: Optional[logging.Logger] = None):
        if instance is None:
            instance = _import_ntcore().NetworkTableInstance.getDefault()
        self.instance = instance
        self.logger = logger or setup_logger("telemetry")
        self._publishers: dict[str, Any] = {}
        self._lock = threading.Lock()

    def start(self, server: bool, team: int, identity: str = "ball-vision") -> None:
        if server:
            self.logger.info("Setting up NetworkTables server")
            self.instance.startServer()
        else:
            self.logger.info("Setting up NetworkTables client for team %d", team)
            self.instance.startClient4(identity)
            self.instance.setServerTeam(team)
            self.instance.startDSClient()

    def _publisher(self, path: str) -> Any:
        with self._lock:
            pub = self._publishers.get(path)
            if pub is None:
                table, _, key = path.rpartition("/")
                pub = self.instance.getTable(table).getDoubleTopic(key).publish()
                self._publishers[path] = pub
            return pub

    def publish(self, path: str, value: float) -> None:
        self._publisher(path).set(float(value))

    def add_listener(self, path: str, callback: Callable[[Any], None]) -> None:
        ntcore = _import_ntcore()
        entry = self.instance.getEntry(path)

        def _on_event(event):
            data = event.data
            if data is not None:
                callback(data.value.value())

        self.instance.addListener(
            entry,
            ntcore.EventFlags.kImmediate | ntcore.EventFlags.kValueAll,
            _on_event,
        )
