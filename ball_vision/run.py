import argparse
import logging
import sys
import time
from typing import Optional

from .cameras import CameraRegistry, CscoreBackend
from .config import DEFAULT_CONFIG_PATH, ConfigError, VisionConfig, load_config
from .logging_utils import setup_logger
from .pipelines import BlueBallPipeline, RedBallPipeline
from .state import SharedOffset
from .telemetry import BLUE_KEY, RED_KEY, NetworkTablesTelemetry
from .worker import DetectionPipeline

IDLE_INTERVAL_SEC = 10.0

VISION_PIPELINES = (
    ("blue", BlueBallPipeline, BLUE_KEY),
    ("red", RedBallPipeline, RED_KEY),
)


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Robot camera server with ball tracking")
    ap.add_argument(
        "config",
        nargs="?",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to JSON/YAML camera config (default: {DEFAULT_CONFIG_PATH})",
    )
    return ap


def build_telemetry(cfg: VisionConfig) -> NetworkTablesTelemetry:
    telemetry = NetworkTablesTelemetry()
    telemetry.start(server=cfg.server, team=cfg.team)
    return telemetry


def build_registry() -> CameraRegistry:
    return CameraRegistry(CscoreBackend())


def start_vision(
    registry: CameraRegistry,
    telemetry,
    state: SharedOffset,
    logger: logging.Logger,
) -> list[DetectionPipeline]:
    """Start the ball pipelines on the first camera, if any camera is up."""
    if not registry.handles:
        logger.warning("no cameras started; vision processing disabled")
        return []

    pipelines = []
    for name, extractor_factory, key in VISION_PIPELINES:
        pipeline = DetectionPipeline(
            name,
            registry.frame_source(0, label=name),
            extractor_factory(),
            state,
            telemetry,
            key,
        )
        pipeline.start()
        pipelines.append(pipeline)
    logger.info("vision started on camera '%s'", registry.handles[0].name)
    return pipelines


def idle(interval: float = IDLE_INTERVAL_SEC) -> None:
    while True:
        time.sleep(interval)


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logger = setup_logger("main")

    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 0
    logger.info("config: %s", cfg.as_dict())

    telemetry = build_telemetry(cfg)

    registry = build_registry()
    registry.start_all(cfg.cameras)
    for switched in cfg.switched_cameras:
        registry.start_switched_camera(switched, telemetry)

    state = SharedOffset()
    start_vision(registry, telemetry, state, logger)

    # Pipelines are daemon threads; leaving main ends them with the process.
    try:
        idle()
    except KeyboardInterrupt:
        logger.info("interrupted, exiting")
    return 0


if __name__ == "__main__":
    sys.exit(main())
