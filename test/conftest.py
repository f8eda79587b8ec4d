#
# conftest.py - SpeedTrap Tools: pytest configuration file
# Copyright SpeedTrap Project 2025
#
# Contains common pytest configuration and common test fixtures
#
import sys, os, tempfile, pytest, pathlib

# add current directory to sys.path to debug tests locally without package installation
sys.path.insert(0, os.getcwd())

import speedtrap_tools
import logging


def pytest_addoption(parser):
    """Add custom command line options for pytest"""

    parser.addoption(
        "--loglevel",
        action="store",
        default=None,
        help="Set log level (e.g. DEBUG, INFO, WARNING)",
    )


def pytest_configure(config):
    """Configure pytest with custom options"""

    loglevel = config.getoption("--loglevel")
    if loglevel:
        speedtrap_tools.logger_add_handler(
            level=getattr(logging, loglevel.upper(), logging.ERROR)
        )


@pytest.fixture(autouse=True)
def enable_test_mode(monkeypatch):
    """Enable test mode: no GUI windows and no .env reloading"""
    monkeypatch.setenv("TEST_MODE", "1")


@pytest.fixture
def temp_dir():
    """Temporary directory fixture with cleanup"""
    with tempfile.TemporaryDirectory() as directory:
        yield pathlib.Path(directory)
        # cleanup happens automatically when the block exits


@pytest.fixture
def geometry():
    """Camera geometry of the reference road setup"""
    return speedtrap_tools.CameraGeometry(
        field_of_view_degrees=112, distance_to_plane=49.5, frame_width_pixels=640
    )


@pytest.fixture
def blank_frame():
    """Black 640x480 BGR frame"""
    import numpy as np

    return np.zeros((480, 640, 3), dtype=np.uint8)
