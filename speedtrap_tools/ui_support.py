#
# ui_support.py: UI support classes and functions
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements classes and functions to show monitor frames in GUI windows
#

import cv2, os, platform
import numpy as np
from .environment import get_test_mode


class Display:
    """Display of monitor frames in an OpenCV window.

    When no graphical display is available or test mode is enabled, frames are silently skipped.
    Pressing `x` or `q` in the window raises KeyboardInterrupt, which is suppressed on context exit.
    """

    def __init__(self, capt: str = "<image>"):
        """Constructor.

        Args:
            capt (str): Window title.

        Raises:
            Exception: If window title is empty.
        """
        if not capt:
            raise Exception("Window title must be non-empty")

        self._capt = capt
        self._window_created = False
        self._no_gui = not Display._check_gui() or get_test_mode()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._window_created:
            try:
                cv2.destroyWindow(self._capt)
            except cv2.error:
                pass
        return exc_type is KeyboardInterrupt  # ignore KeyboardInterrupt errors

    @property
    def window_name(self) -> str:
        return self._capt

    @staticmethod
    def _check_gui() -> bool:
        """Check if graphical display is supported"""
        if platform.system() == "Linux":
            return os.environ.get("DISPLAY") is not None
        return True

    def show(self, img: np.ndarray, waitkey_delay: int = 1):
        """Show image.

        Args:
            img (np.ndarray): OpenCV image to display.
            waitkey_delay (int): Delay in ms for waitKey() call.
        """
        if self._no_gui:
            return

        if not self._window_created:
            cv2.namedWindow(self._capt, cv2.WINDOW_NORMAL)
            cv2.resizeWindow(self._capt, img.shape[1], img.shape[0])
            self._window_created = True

        cv2.imshow(self._capt, img)
        key = cv2.waitKey(waitkey_delay) & 0xFF
        if key == ord("x") or key == ord("q"):
            raise KeyboardInterrupt
