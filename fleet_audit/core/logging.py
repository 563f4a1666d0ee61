"""
Logging Setup
=============

Routes ``fleet_audit`` log records to stderr through Rich, and optionally to
a plain-text file.

Report output (tables, JSON, CSV) goes to stdout, so log records must never
share that stream.

Example
-------
>>> from fleet_audit.core.logging import setup_logging
>>>
>>> setup_logging(level="INFO", log_file="fleet-audit.log")
>>> logging.getLogger("fleet_audit.scanners").info("Starting scan")
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# SDK loggers that stay at WARNING whatever the requested level
SDK_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3", "kubernetes")


def _rich_handler(console: Optional[Console]) -> logging.Handler:
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(path: str) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    console: Optional[Console] = None,
    quiet: Iterable[str] = SDK_LOGGERS,
) -> None:
    """
    Configure the root logger for a CLI run.

    Parameters
    ----------
    level : str or int, default="INFO"
        Level name (case-insensitive) or number. Unknown names fall back
        to INFO.
    log_file : str, optional
        Also append records to this file. Scans run in worker threads, so
        file records carry the thread name.
    console : Console, optional
        Console for the Rich handler; a stderr console by default.
    quiet : iterable of str
        Logger names capped at WARNING.

    Notes
    -----
    Existing root handlers are removed, so calling this twice does not
    duplicate output.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    handlers = [_rich_handler(console)]
    if log_file:
        handlers.append(_file_handler(log_file))
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root.debug(f"Logging at {logging.getLevelName(level)} (file={log_file})")
