"""
Centralized Logging Configuration for the examwatch service

Besides the usual console / rotating / error-only handlers, ``[PROCTOR]``
lines from ``examwatch.utils.proctor_logging`` are also written to their own
audit file so violation and review history can be kept longer than the
general service log.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PROCTOR_LOGGER = "examwatch.utils.proctor_logging"
PROCTOR_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

# kafka-python logs every broker reconnect attempt at INFO
QUIET_LOGGERS = ("kafka",)


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter,
                      max_bytes: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8"
    )
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def setup_logging(
    service_name: str = "examwatch",
    level: str = "INFO",
    log_to_file: bool = True,
    log_to_console: bool = True,
    log_dir: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """
    Configure root logging for the service.

    Files (when ``log_to_file``) go to ``log_dir`` (default ``./logs``):
        <service>_<date>.log     everything
        <service>_errors.log     ERROR and above
        proctor_events.log       session / violation / review audit trail
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(console_handler)

    proctor_logger = logging.getLogger(PROCTOR_LOGGER)
    proctor_logger.handlers = []

    log_file = None
    if log_to_file:
        directory = Path(log_dir) if log_dir else Path.cwd() / "logs"
        directory.mkdir(parents=True, exist_ok=True)

        log_file = directory / f"{service_name}_{datetime.now().strftime('%Y-%m-%d')}.log"
        root_logger.addHandler(_rotating_handler(log_file, logging.DEBUG, formatter, 10*1024*1024, 5))
        root_logger.addHandler(_rotating_handler(
            directory / f"{service_name}_errors.log", logging.ERROR, formatter, 5*1024*1024, 3
        ))

        # Still propagates to root, so proctor lines also land in the main log
        proctor_logger.addHandler(_rotating_handler(
            directory / "proctor_events.log",
            logging.INFO,
            logging.Formatter(PROCTOR_LOG_FORMAT, DATE_FORMAT),
            20*1024*1024,
            10
        ))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info(f"=== {service_name.upper()} STARTED ===")
    if log_file:
        logger.info(f"Log file: {log_file}")

    return logger
