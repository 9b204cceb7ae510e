"""Logging configuration and utilities."""

import logging
import logging.handlers
import time
from contextlib import contextmanager
from pathlib import Path
from stratalens.config import settings

# Streamlit reruns call setup_logging() again; handlers are attached once.
_logging_configured = False


def setup_logging():
    """Configure logging for the application (idempotent)."""
    global _logging_configured
    if _logging_configured:
        return logging.getLogger()

    log_dir = Path(settings.log_file).parent
    log_dir.mkdir(exist_ok=True, parents=True)

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.handlers.clear()

    file_handler = logging.handlers.RotatingFileHandler(
        settings.log_file,
        maxBytes=10485760,  # 10MB
        backupCount=5,
    )
    file_handler.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    _logging_configured = True
    return logger


class StepTimer:
    """Collects wall-clock durations for the named phases of one operation.

    ``owner`` prefixes every line, so a stratified draw logs as
    ``[StratifiedSample] per-stratum draws: 0.004s``.
    """

    def __init__(self, owner: str, logger: logging.Logger | None = None):
        self.owner = owner
        self._logger = logger or logging.getLogger(owner)
        self.durations: dict[str, float] = {}

    @contextmanager
    def step(self, name: str):
        started = time.perf_counter()
        try:
            yield self
        finally:
            elapsed = time.perf_counter() - started
            self.durations[name] = self.durations.get(name, 0.0) + elapsed
            self._logger.debug(f"[{self.owner}] {name}: {elapsed:.3f}s")

    def summary(self) -> dict[str, float]:
        rounded = {name: round(seconds, 3) for name, seconds in self.durations.items()}
        total = sum(self.durations.values())
        self._logger.info(f"[{self.owner}] finished in {total:.3f}s {rounded}")
        return rounded


def audit(msg: str, **kwargs) -> None:
    """Record a dataset edit or sample draw on the ``stratalens.audit`` logger."""
    details = ", ".join(f"{k}={v}" for k, v in kwargs.items())
    logging.getLogger("stratalens.audit").info(f"{msg} ({details})" if details else msg)
