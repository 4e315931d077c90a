"""Run the Vinyl Radio Server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import threading
import traceback
from contextlib import suppress
from logging.handlers import RotatingFileHandler
from typing import Any, Final

from aiorun import run
from colorlog import ColoredFormatter

from vinyl_radio.constants import (
    CONF_BIND_PORT,
    CONF_CATALOG,
    CONF_OUTPUT_TARGET,
    LOG_FILENAME,
    ROOT_LOGGER_NAME,
    VERBOSE_LOG_LEVEL,
)
from vinyl_radio.server import RadioServer

FORMAT_DATE: Final = "%Y-%m-%d"
FORMAT_TIME: Final = "%H:%M:%S"
FORMAT_DATETIME: Final = f"{FORMAT_DATE} {FORMAT_TIME}"
MAX_LOG_FILESIZE = 1000000 * 10  # 10 MB

LOGGER = logging.getLogger(ROOT_LOGGER_NAME)


def get_arguments():
    """Arguments handling."""
    parser = argparse.ArgumentParser(description="Vinyl Radio")

    default_data_dir = os.getenv("APPDATA") if os.name == "nt" else os.path.expanduser("~")
    default_data_dir = os.path.join(default_data_dir, ".vinylradio")

    parser.add_argument(
        "-c",
        "--config",
        metavar="path_to_config_dir",
        default=default_data_dir,
        help="Directory that contains the Vinyl Radio configuration",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("LOG_LEVEL", "info"),
        help="Provide logging level. Example --log-level debug, "
        "default=info, possible=(critical, error, warning, info, debug, verbose)",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="TCP port to serve the api on (stored in the configuration)",
    )
    parser.add_argument(
        "--catalog",
        type=str,
        help="Path or url of the catalog of radio-eligible tracks",
    )
    parser.add_argument(
        "--output",
        type=str,
        help="Output target of the live stream, for example rtmp://host/live/key",
    )
    return parser.parse_args()


def setup_logger(data_path: str, level: str = "DEBUG"):
    """Initialize logger."""
    # define log formatter
    log_fmt = "%(asctime)s.%(msecs)03d %(levelname)s (%(threadName)s) [%(name)s] %(message)s"

    # base logging config for the root logger
    logging.basicConfig(level=logging.INFO)

    colorfmt = f"%(log_color)s{log_fmt}%(reset)s"
    logging.getLogger().handlers[0].setFormatter(
        ColoredFormatter(
            colorfmt,
            datefmt=FORMAT_DATETIME,
            reset=True,
            log_colors={
                "VERBOSE": "light_black",
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red",
            },
        )
    )

    # Capture warnings.warn(...) and friends messages in logs.
    logging.captureWarnings(True)

    # setup file handler
    log_filename = os.path.join(data_path, LOG_FILENAME)
    file_handler = RotatingFileHandler(log_filename, maxBytes=MAX_LOG_FILESIZE, backupCount=1)
    # rotate log at each start
    with suppress(OSError):
        file_handler.doRollover()
    file_handler.setFormatter(logging.Formatter(log_fmt, datefmt=FORMAT_DATETIME))

    logger = logging.getLogger()
    logger.addHandler(file_handler)
    logging.addLevelName(VERBOSE_LOG_LEVEL, "VERBOSE")

    # apply the configured global log level to the (root) vinyl radio logger
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)

    # silence some noisy loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("charset_normalizer").setLevel(logging.WARNING)

    sys.excepthook = lambda *args: logging.getLogger(None).exception(
        "Uncaught exception",
        exc_info=args,  # type: ignore[arg-type]
    )
    threading.excepthook = lambda args: logging.getLogger(None).exception(
        "Uncaught thread exception",
        exc_info=(  # type: ignore[arg-type]
            args.exc_type,
            args.exc_value,
            args.exc_traceback,
        ),
    )

    return logger


def _global_loop_exception_handler(_: Any, context: dict[str, Any]) -> None:
    """Handle all exception inside the core loop."""
    kwargs = {}
    if exception := context.get("exception"):
        kwargs["exc_info"] = (type(exception), exception, exception.__traceback__)

    logger = logging.getLogger(__package__)
    if source_traceback := context.get("source_traceback"):
        stack_summary = "".join(traceback.format_list(source_traceback))
        logger.error(
            "Error doing job: %s: %s",
            context["message"],
            stack_summary,
            **kwargs,  # type: ignore[arg-type]
        )
        return

    logger.error(
        "Error doing task: %s",
        context["message"],
        **kwargs,  # type: ignore[arg-type]
    )


def main() -> None:
    """Start Vinyl Radio."""
    # parse arguments
    args = get_arguments()
    data_dir = args.config
    if not os.path.isdir(data_dir):
        os.makedirs(data_dir)

    log_level = args.log_level.upper()
    dev_mode = os.environ.get("PYTHONDEVMODE", "0") == "1"

    # command line options are stored in the persistent configuration
    config_overrides: dict[str, Any] = {}
    if args.port:
        config_overrides[CONF_BIND_PORT] = args.port
    if args.catalog:
        config_overrides[CONF_CATALOG] = args.catalog
    if args.output:
        config_overrides[CONF_OUTPUT_TARGET] = args.output

    # setup logger
    logger = setup_logger(data_dir, log_level)
    radio = RadioServer(data_dir, config_overrides=config_overrides)

    def on_shutdown(loop) -> None:
        logger.info("shutdown requested!")
        loop.run_until_complete(radio.stop())

    async def start_radio() -> None:
        loop = asyncio.get_running_loop()
        if dev_mode or log_level == "DEBUG":
            loop.set_debug(True)
        loop.set_exception_handler(_global_loop_exception_handler)
        await radio.start()

    run(
        start_radio(),
        shutdown_callback=on_shutdown,
        executor_workers=8,
    )


if __name__ == "__main__":
    main()
