"""Loggers for the service's components.

Every logger lives under ``ball_vision`` and stamps its records with a
``component`` field. Pipeline loggers also carry the telemetry key they
publish to and the worker thread, so blue and red output can be told apart
when both threads log at once.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(component)s] %(message)s"
PIPELINE_LOG_FORMAT = (
    "%(asctime)s %(levelname)s [%(component)s -> %(telemetry_key)s @%(threadName)s] %(message)s"
)


class ContextFilter(logging.Filter):
    def __init__(self, **fields: str):
        super().__init__()
        self.fields = fields

    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in self.fields.items():
            setattr(record, name, value)
        return True


def setup_logger(
    name: str,
    level: int = logging.INFO,
    fmt: str = LOG_FORMAT,
    **fields: str,
) -> logging.Logger:
    logger = logging.getLogger(f"ball_vision.{name}")
    logger.setLevel(level)

    if not logger.handlers:
        fields.setdefault("component", name)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(ContextFilter(**fields))
        logger.addHandler(handler)

    return logger


def setup_pipeline_logger(color: str, key: str, level: int = logging.INFO) -> logging.Logger:
    return setup_logger(
        f"pipeline.{color}",
        level,
        PIPELINE_LOG_FORMAT,
        component=color,
        telemetry_key=key,
    )
