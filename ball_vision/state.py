import threading


class SharedOffset:
    """Offset of the most recently detected ball of either color.

    Both pipelines write here; whichever wrote last wins. The lock only makes
    each read and write atomic, it does not order the pipelines.
    """

    def __init__(self, center_x: float = 0.0):
        self._lock = threading.Lock()
        self._center_x = float(center_x)

    @property
    def center_x(self) -> float:
        with self._lock:
            return self._center_x

    def update(self, center_x: float) -> None:
        with self._lock:
            self._center_x = float(center_x)
