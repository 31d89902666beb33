import json
import logging
import sys
from pathlib import Path
from typing import Any, cast

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """A custom logging handler to intercept standard logging messages.

    This handler redirects standard logging messages (e.g. from httpx) to
    Loguru.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Emits a log record to the Loguru logger.

        Args:
            record: The log record to emit.
        """
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = cast(Any, frame.f_back)
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _json_formatter(record: dict[str, Any]) -> str:
    """Formats a record as one line of JSON.

    Loguru treats the returned value as a format template, so the serialized
    object is stashed in `extra` and referenced from the template.
    """
    log_object = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "source": {
            "name": record["name"],
            "file": f"{record['file'].name}:{record['line']}",
            "function": record["function"],
        },
    }
    record["extra"]["serialized"] = json.dumps(log_object)
    return "{extra[serialized]}\n"


def setup_logging(
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_dir: Path | None = None,
) -> None:
    """Configures the application-wide Loguru logger.

    This function removes any default handlers, sets up a new console sink
    with a readable format, and an optional daily-rotated file sink with
    structured JSON output. It also intercepts standard library logging.

    Args:
        console_level: The minimum log level for console output.
        file_level: The minimum log level for file output.
        log_dir: Directory to store log files. If None, file logging is disabled.
    """
    # 1. Replace the default handler with our console sink
    logger.remove()
    logger.add(
        sys.stderr,
        level=console_level.upper(),
        format=CONSOLE_FORMAT,
        colorize=True,
    )

    # 2. Configure file sink if a directory is provided
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "klinefetch_{time:YYYY-MM-DD}.log",
            level=file_level.upper(),
            format=_json_formatter,
            rotation="00:00",  # New file at midnight
            retention="7 days",
            compression="zip",
            encoding="utf-8",
            enqueue=True,  # Make logging calls non-blocking
            backtrace=False,  # Keep log files clean
            diagnose=False,
        )

    # 3. Intercept standard logging messages
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    # httpx logs every request at INFO; keep that out of the console by default.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.debug("Logging configured successfully.")
