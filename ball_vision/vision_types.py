from dataclasses import dataclass, field
from typing import Any


@dataclass
class Frame:
    idx: int
    timestamp: float
    image: Any  # numpy array, BGR


@dataclass(frozen=True)
class BoundingBox:
    x: int
    y: int
    width: int
    height: int


@dataclass
class DetectionResult:
    """Regions of interest found in one frame, in extractor order."""

    regions: list[BoundingBox] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.regions)

    def __len__(self) -> int:
        return len(self.regions)

    def first(self) -> BoundingBox:
        return self.regions[0]
