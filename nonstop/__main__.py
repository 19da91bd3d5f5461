"""Run NonStop from the command line."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler

from nonstop.constants import LOGGER_NAME, VERBOSE_LOG_LEVEL
from nonstop.engine import PlaybackEngine

LOGGER = logging.getLogger(LOGGER_NAME)

DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~"), ".nonstop")
FORMAT_DATE = "%Y-%m-%d"
FORMAT_TIME = "%H:%M:%S"
FORMAT_DATETIME = f"{FORMAT_DATE} {FORMAT_TIME}"
LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s (%(threadName)s) [%(name)s] %(message)s"
MAX_LOG_FILESIZE = 1000000 * 10  # 10 MB


def get_arguments() -> argparse.Namespace:
    """Arguments handling."""
    parser = argparse.ArgumentParser(description="NonStop continuous playback engine")
    parser.add_argument(
        "--data-dir",
        "-c",
        metavar="path_to_data_dir",
        default=DEFAULT_DATA_DIR,
        help="Directory that contains the NonStop settings and log file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("LOG_LEVEL", "info"),
        help="Provide logging level. Example --log-level debug, "
        "default=info, possible=(verbose, debug, info, warning, error, critical)",
    )
    parser.add_argument(
        "--provider",
        type=str,
        default=None,
        help="Set the active music provider (e.g. spotify, youtube)",
    )
    parser.add_argument(
        "--mood",
        type=str,
        default=None,
        help="Start the AI queue with the given mood/genre",
    )
    return parser.parse_args()


def setup_logger(data_path: str, level: str = "DEBUG") -> logging.Logger:
    """Initialize logger."""
    level_name = level.upper()
    log_level = VERBOSE_LOG_LEVEL if level_name == "VERBOSE" else logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=FORMAT_DATETIME)

    # stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    # rotating log file
    log_filename = os.path.join(data_path, "nonstop.log")
    file_handler = RotatingFileHandler(
        log_filename, maxBytes=MAX_LOG_FILESIZE, backupCount=1, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=[console_handler, file_handler], force=True)
    # silence some noisy loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    return logging.getLogger(LOGGER_NAME)


async def run(args: argparse.Namespace) -> None:
    """Run the engine until interrupted."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # signal handlers are not available on all platforms
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    async with PlaybackEngine(args.data_dir) as engine:
        if args.provider:
            engine.providers.set_active(args.provider)
        provider = engine.providers.active()
        if not await engine.providers.is_authenticated(provider.domain):
            LOGGER.warning("Provider %s is not authenticated", provider.name)
        if args.mood:
            await engine.ai_queue.start(args.mood)
            if error := engine.ai_queue.status().error:
                LOGGER.error("Unable to start AI queue: %s", error)
        await stop_event.wait()


def main() -> None:
    """Start NonStop."""
    args = get_arguments()
    data_dir = os.path.abspath(args.data_dir)
    os.makedirs(data_dir, exist_ok=True)
    setup_logger(data_dir, args.log_level)
    args.data_dir = data_dir
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run(args))


if __name__ == "__main__":
    main()
