"""
Logging Setup

Console and file logging for the `lst_trends` logger tree, plus a helper
that writes one summary line per pipeline stage.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Tuple

ROOT_LOGGER = "lst_trends"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

# Libraries that are chatty at DEBUG level
NOISY_LOGGERS = ("rasterio", "fiona", "urllib3")


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[str] = "./logs",
    log_file: Optional[str] = None,
    fmt: str = LOG_FORMAT
) -> logging.Logger:
    """
    Route the package loggers to stdout and, when `log_dir` is given, to a
    run log file that always records DEBUG.

    Calling this again replaces the handlers of a previous call.

    Returns:
        The package root logger
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    formatter = logging.Formatter(fmt)
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG if log_dir else numeric_level)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(numeric_level)
    console.setFormatter(formatter)
    root.addHandler(console)

    path = None
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / (log_file or f"lst_trends_{datetime.now():%Y%m%d_%H%M%S}.log")
        file_handler = logging.FileHandler(path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    root.info(f"Logging at {level.upper()}" + (f", run log: {path}" if path else ""))
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger under the package namespace ('quality' -> 'lst_trends.quality')."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


class StageLogger:
    """
    One-line summaries of pipeline stages.

    Example:
        >>> stage_log = StageLogger()
        >>> stage_log.log_stage("quality_filter", images_in=120, images_out=97)
        >>> stage_log.log_series("annual_mean_lst", [(2000, 31.2), (2001, None)])
    """

    def __init__(self, name: str = "stages"):
        self.logger = get_logger(name)

    def log_stage(
        self,
        stage: str,
        images_in: Optional[int] = None,
        images_out: Optional[int] = None,
        **metrics
    ) -> None:
        parts = [f"[{stage}]"]
        if images_in is not None:
            parts.append(f"in={images_in}")
        if images_out is not None:
            parts.append(f"out={images_out}")
        parts.extend(
            f"{key}={value:.4f}" if isinstance(value, float) else f"{key}={value}"
            for key, value in metrics.items()
        )
        self.logger.info(" ".join(parts))

    def log_series(self, name: str, series: Iterable[Tuple[object, Optional[float]]]) -> None:
        """Log a (key, value) series at DEBUG, one entry per line; None shows as missing."""
        entries = list(series)
        self.logger.debug(f"{name}: {len(entries)} entries")
        for key, value in entries:
            shown = "missing" if value is None else (
                f"{value:.4f}" if isinstance(value, float) else value
            )
            self.logger.debug(f"  {key}: {shown}")
