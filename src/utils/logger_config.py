import logging
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

# Package loggers configured by setup_logger
PACKAGE_LOGGERS = ("analysis", "capture", "server", "trafficlens_cli")


def setup_logger(level: Union[int, str] = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """Attach console (and optional file) handlers to the package loggers once."""
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")

    loggers = [logging.getLogger(name) for name in PACKAGE_LOGGERS]
    unconfigured = [logger for logger in loggers if not logger.handlers]
    if unconfigured:
        formatter = logging.Formatter(LOG_FORMAT)
        handlers = [logging.StreamHandler()]
        if log_file:
            handlers.append(logging.FileHandler(log_file))
        for handler in handlers:
            handler.setFormatter(formatter)
            for logger in unconfigured:
                logger.addHandler(handler)

    for logger in loggers:
        logger.setLevel(level)
        logger.propagate = False

    return logging.getLogger("trafficlens_cli")
