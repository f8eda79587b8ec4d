#
# speedtrap_tools: vehicle speed estimation from a fixed camera
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#

import logging
from typing import Optional


def logger_get():
    """
    Get the package logger.

    Returns:
        Returns the package logger.
    """
    return logging.getLogger(__name__)


def logger_add_handler(
    handler: Optional[logging.Handler] = None,
    format: str = "",
    level: int = logging.DEBUG,
) -> logging.Handler:
    """
    Add a handler to the package logger.

    Args:
        handler: Handler to add to the logger. If None, a new StreamHandler to console is added.
        format: Format string for handler formatter. Defaults to "%(asctime)s [%(levelname)s][%(threadName)s] %(message)s".
        level: Logging level as defined in logging python package. Defaults to logging.DEBUG.

    Returns:
        Returns an instance of added handler.
    """
    logger = logger_get()

    if handler is None:
        handler = logging.StreamHandler()

    if not format:
        format = "%(asctime)s [%(levelname)s][%(threadName)s] %(message)s"
    handler.setFormatter(logging.Formatter(format))
    logger.addHandler(handler)
    logger.setLevel(level)
    return handler


# flake8: noqa

import argparse

from ._version import __version__, __version_info__
from .config import *
from .environment import *
from .frame_analyzer_base import *
from .geometry import *
from .identity_tracker import *
from .lifecycle import *
from .math_support import *
from .motion_detector import *
from .object_storage_support import *
from .output_sink import *
from .refinement import *
from .speed_monitor import *
from .trajectory import *
from .video_support import *


def _command_entrypoint(arg_str=None):
    from .speed_monitor import _monitor_args

    parser = argparse.ArgumentParser(description="SpeedTrap tools")

    subparsers = parser.add_subparsers(
        help="use -h flag to see help on subcommands", required=True
    )

    # monitor subcommand
    subparser = subparsers.add_parser(
        "monitor",
        description="Run vehicle speed monitor on a video stream",
        help="run vehicle speed monitor on a video stream",
    )
    _monitor_args(subparser)

    # parse args
    args = parser.parse_args(arg_str.split() if arg_str else None)

    # execute subcommand
    args.func(args)
