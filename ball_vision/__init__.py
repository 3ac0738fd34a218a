"""Robot camera server with blue/red ball tracking over NetworkTables."""

from .config import CameraDescriptor, ConfigError, VisionConfig, load_config
from .state import SharedOffset
from .worker import DetectionPipeline

__all__ = [
    "CameraDescriptor",
    "ConfigError",
    "DetectionPipeline",
    "SharedOffset",
    "VisionConfig",
    "load_config",
]
