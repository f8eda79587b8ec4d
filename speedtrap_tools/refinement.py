#
# refinement.py: single-object refinement trackers
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements the per-object visual tracker capability used between detections
#

import cv2, numpy as np
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence
from .math_support import xywh2xyxy, xyxy2xywh


class RefinementTracker(ABC):
    """
    Base class for per-object visual trackers.

    A refinement tracker is seeded once with a frame and the object box, then asked
    for the updated box on every following frame. It reports a tracking failure by
    returning None; it is never re-initialized automatically after a failure.
    """

    @abstractmethod
    def initialize(self, frame: np.ndarray, box: Sequence[float]):
        """Seed the tracker.

        Args:
            frame (np.ndarray): Frame where the object was detected.
            box: Object box ``(x1, y1, x2, y2)``.
        """

    @abstractmethod
    def update(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Track the object in the next frame.

        Args:
            frame (np.ndarray): Current frame.

        Returns:
            Updated box ``(x1, y1, x2, y2)`` or None on tracking failure.
        """

    def release(self):
        """Release tracker resources"""


class NullRefinementTracker(RefinementTracker):
    """Tracker which always fails: positions come from detection matches only"""

    def initialize(self, frame: np.ndarray, box: Sequence[float]):
        pass

    def update(self, frame: np.ndarray) -> Optional[np.ndarray]:
        return None


# OpenCV factory lookup paths per algorithm; contrib builds expose more trackers
_opencv_factories: Dict[str, List[str]] = {
    "MIL": ["TrackerMIL_create"],
    "KCF": ["TrackerKCF_create", "legacy.TrackerKCF_create"],
    "CSRT": ["TrackerCSRT_create", "legacy.TrackerCSRT_create"],
    "MOSSE": ["legacy.TrackerMOSSE_create"],
}


def _find_opencv_factory(algorithm: str) -> Callable:
    paths = _opencv_factories.get(algorithm)
    if paths is None:
        raise ValueError(
            f"Unknown refinement tracker '{algorithm}'; supported: {', '.join(_opencv_factories)}"
        )
    for path in paths:
        obj = cv2
        for attr in path.split("."):
            obj = getattr(obj, attr, None)
            if obj is None:
                break
        if obj is not None:
            return obj
    raise ValueError(
        f"Refinement tracker '{algorithm}' is not available in installed OpenCV build; "
        + "install `opencv-contrib-python` to use contrib trackers"
    )


class OpenCVRefinementTracker(RefinementTracker):
    """Refinement tracker backed by an OpenCV single-object tracker"""

    def __init__(self, algorithm: str = "MIL"):
        """Constructor.

        Args:
            algorithm (str, optional): One of "MIL", "KCF", "CSRT", "MOSSE".

        Raises:
            ValueError: If algorithm is unknown or not available in installed OpenCV.
        """
        self._factory = _find_opencv_factory(algorithm.upper())
        self._tracker = None

    def initialize(self, frame: np.ndarray, box: Sequence[float]):
        self._tracker = self._factory()
        x, y, w, h = (int(round(v)) for v in xyxy2xywh(np.asarray(box, dtype=float)))
        self._tracker.init(frame, (x, y, max(w, 1), max(h, 1)))

    def update(self, frame: np.ndarray) -> Optional[np.ndarray]:
        if self._tracker is None:
            return None
        ok, rect = self._tracker.update(frame)
        if not ok:
            return None
        return xywh2xyxy(np.asarray(rect, dtype=float))

    def release(self):
        self._tracker = None


def create_refinement_tracker(name: str) -> RefinementTracker:
    """Create refinement tracker by name.

    Args:
        name (str): "none" for `NullRefinementTracker`, otherwise OpenCV algorithm name.

    Returns:
        New refinement tracker instance.
    """
    if name.lower() == "none":
        return NullRefinementTracker()
    return OpenCVRefinementTracker(name)
