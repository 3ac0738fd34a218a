"""Color ball extractors.

Each pipeline runs: box blur -> HSV threshold -> external contours -> contour
filter. Intermediate outputs stay on the instance for debugging.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import cv2
import numpy as np

from .vision_types import BoundingBox, DetectionResult


class RegionExtractor(ABC):
    @abstractmethod
    def extract(self, image: np.ndarray) -> DetectionResult: ...


@dataclass
class BallPipelineSettings:
    hue: tuple[float, float]
    saturation: tuple[float, float]
    value: tuple[float, float]
    blur_radius: float = 3.0
    min_area: float = 100.0
    min_perimeter: float = 0.0
    min_width: float = 0.0
    max_width: float = 1000.0
    min_height: float = 0.0
    max_height: float = 1000.0
    solidity: tuple[float, float] = (0.0, 100.0)
    max_vertices: float = 1_000_000.0
    min_vertices: float = 0.0
    min_ratio: float = 0.0
    max_ratio: float = 1000.0


BLUE_BALL = BallPipelineSettings(
    hue=(95.0, 130.0),
    saturation=(120.0, 255.0),
    value=(80.0, 255.0),
)

# OpenCV hue wraps at 180; a single low band covers the balls we use.
RED_BALL = BallPipelineSettings(
    hue=(0.0, 12.0),
    saturation=(120.0, 255.0),
    value=(80.0, 255.0),
)


class BallPipeline(RegionExtractor):
    def __init__(self, settings: BallPipelineSettings):
        self.settings = settings
        self.blur_output: Any = None
        self.hsv_threshold_output: Any = None
        self.find_contours_output: list = []
        self.filter_contours_output: list = []

    def process(self, image: np.ndarray) -> None:
        s = self.settings
        self.blur_output = self._blur(image, s.blur_radius)
        self.hsv_threshold_output = self._hsv_threshold(
            self.blur_output, s.hue, s.saturation, s.value
        )
        self.find_contours_output = self._find_contours(self.hsv_threshold_output)
        self.filter_contours_output = self._filter_contours(self.find_contours_output)

    def extract(self, image: np.ndarray) -> DetectionResult:
        self.process(image)
        regions = [
            BoundingBox(*(int(v) for v in cv2.boundingRect(c)))
            for c in self.filter_contours_output
        ]
        return DetectionResult(regions)

    @staticmethod
    def _blur(src: np.ndarray, radius: float) -> np.ndarray:
        ksize = int(2 * round(radius) + 1)
        return cv2.blur(src, (ksize, ksize))

    @staticmethod
    def _hsv_threshold(src, hue, sat, val) -> np.ndarray:
        hsv = cv2.cvtColor(src, cv2.COLOR_BGR2HSV)
        return cv2.inRange(hsv, (hue[0], sat[0], val[0]), (hue[1], sat[1], val[1]))

    @staticmethod
    def _find_contours(mask: np.ndarray) -> list:
        contours, _hierarchy = cv2.findContours(
            mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
        )
        return list(contours)

    def _filter_contours(self, contours: list) -> list:
        s = self.settings
        kept = []
        for contour in contours:
            _x, _y, w, h = cv2.boundingRect(contour)
            if not s.min_width <= w <= s.max_width:
                continue
            if not s.min_height <= h <= s.max_height:
                continue
            area = cv2.contourArea(contour)
            if area < s.min_area:
                continue
            if cv2.arcLength(contour, True) < s.min_perimeter:
                continue
            hull_area = cv2.contourArea(cv2.convexHull(contour))
            solidity = 100.0 * area / hull_area if hull_area > 0 else 0.0
            if not s.solidity[0] <= solidity <= s.solidity[1]:
                continue
            if not s.min_vertices <= len(contour) <= s.max_vertices:
                continue
            ratio = w / h if h > 0 else math.inf
            if not s.min_ratio <= ratio <= s.max_ratio:
                continue
            kept.append(contour)
        return kept


def BlueBallPipeline() -> BallPipeline:
    return BallPipeline(BLUE_BALL)


def RedBallPipeline() -> BallPipeline:
    return BallPipeline(RED_BALL)
