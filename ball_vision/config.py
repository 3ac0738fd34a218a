"""Robot camera configuration (the ``frc.json`` file written by the Pi image).

JSON format::

    {
        "team": <team number>,
        "ntmode": <"client" or "server", "client" if unspecified>,
        "cameras": [
            {
                "name": <camera name>,
                "path": <path, e.g. "/dev/video0">,
                "stream": {...},            // optional
                ...                          // forwarded to the camera untouched
            }
        ],
        "switched cameras": [               // optional
            {"name": <virtual camera name>, "key": <telemetry key for selection>}
        ]
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .logging_utils import setup_logger

DEFAULT_CONFIG_PATH = "/boot/frc.json"


class ConfigError(ValueError):
    """The configuration file is unusable; nothing should be started."""

    def __init__(self, path: str | Path, reason: str):
        super().__init__(f"config error in '{path}': {reason}")
        self.path = str(path)
        self.reason = reason


@dataclass(frozen=True)
class CameraDescriptor:
    name: str
    path: str
    # Serialized JSON, only ever parsed by the camera layer.
    raw_config: str
    stream_config: Optional[str] = None


@dataclass(frozen=True)
class SwitchedCameraDescriptor:
    name: str
    key: str


@dataclass
class VisionConfig:
    team: int
    server: bool = False
    cameras: list[CameraDescriptor] = field(default_factory=list)
    switched_cameras: list[SwitchedCameraDescriptor] = field(default_factory=list)

    @property
    def ntmode(self) -> str:
        return "server" if self.server else "client"

    def as_dict(self) -> dict[str, Any]:
        return {
            "team": self.team,
            "ntmode": self.ntmode,
            "cameras": [c.name for c in self.cameras],
            "switched cameras": [c.name for c in self.switched_cameras],
        }


def _read_camera(path: Path, raw: Any) -> CameraDescriptor:
    if not isinstance(raw, dict):
        raise ConfigError(path, "could not read camera configuration")

    if raw.get("name") is None:
        raise ConfigError(path, "could not read camera name")
    name = str(raw["name"])

    if raw.get("path") is None:
        raise ConfigError(path, f"camera '{name}': could not read path")

    stream = raw.get("stream")
    try:
        raw_config = json.dumps(raw)
        stream_config = json.dumps(stream) if stream is not None else None
    except (TypeError, ValueError) as exc:
        raise ConfigError(path, f"camera '{name}': config is not JSON serializable") from exc

    return CameraDescriptor(
        name=name,
        path=str(raw["path"]),
        raw_config=raw_config,
        stream_config=stream_config,
    )


def _read_switched_camera(path: Path, raw: Any) -> SwitchedCameraDescriptor:
    if not isinstance(raw, dict) or raw.get("name") is None:
        raise ConfigError(path, "could not read switched camera name")
    name = str(raw["name"])
    if raw.get("key") is None:
        raise ConfigError(path, f"switched camera '{name}': could not read key")
    return SwitchedCameraDescriptor(name=name, key=str(raw["key"]))


def _parse_ntmode(value: Any) -> Optional[bool]:
    """Return True for server, False for client, None if unrecognized."""
    if not isinstance(value, str):
        return None
    mode = value.lower()
    if mode == "client":
        return False
    if mode == "server":
        return True
    return None


def _read_file(p: Path) -> Any:
    try:
        with p.open("r", encoding="utf-8") as fp:
            if p.suffix.lower() in {".yaml", ".yml"}:
                return yaml.safe_load(fp)
            return json.load(fp)
    except OSError as exc:
        raise ConfigError(p, f"could not open file: {exc}") from exc
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(p, f"could not parse file: {exc}") from exc


def load_config(
    path: str | Path = DEFAULT_CONFIG_PATH,
    logger: Optional[logging.Logger] = None,
) -> VisionConfig:
    logger = logger or setup_logger("config")
    p = Path(path)

    raw = _read_file(p)
    if not isinstance(raw, dict):
        raise ConfigError(p, "must be JSON object")

    if "team" not in raw:
        raise ConfigError(p, "could not read team number")
    try:
        team = int(raw["team"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(p, "could not read team number") from exc

    cfg = VisionConfig(team=team)

    if "ntmode" in raw:
        server = _parse_ntmode(raw["ntmode"])
        if server is None:
            logger.warning(
                "config error in '%s': could not understand ntmode value '%s'",
                p,
                raw["ntmode"],
            )
        else:
            cfg.server = server

    cameras_raw = raw.get("cameras")
    if cameras_raw is None:
        raise ConfigError(p, "could not read cameras")
    if not isinstance(cameras_raw, list):
        raise ConfigError(p, "cameras must be an array")
    cfg.cameras = [_read_camera(p, cam) for cam in cameras_raw]

    switched_raw = raw.get("switched cameras")
    if switched_raw is not None:
        if not isinstance(switched_raw, list):
            raise ConfigError(p, "switched cameras must be an array")
        cfg.switched_cameras = [_read_switched_camera(p, cam) for cam in switched_raw]

    return cfg
