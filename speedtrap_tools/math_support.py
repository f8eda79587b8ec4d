#
# math_support.py: mathematical utilities for boxes and points
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements geometric helper functions shared by trackers and detectors
#

"""
Math Support Module Overview
===========================

Small geometric helpers used across the package. All boxes are axis-aligned and
expressed as ``(x1, y1, x2, y2)`` in pixel coordinates of a single frame.

Key Functions:
    - `box_center()`: Center point of a box (or array of boxes)
    - `box_area()`: Area of a box (or array of boxes)
    - `xywh2xyxy()` / `xyxy2xywh()`: Coordinate format conversions
    - `point_distance()`: Euclidean distance between two points
    - `pairwise_distances()`: Distance matrix between two point sets
    - `pad_box()`: Grow a box by a margin and clamp it to frame bounds
"""

import numpy as np
from scipy.spatial.distance import cdist
from typing import Sequence, Tuple, Union


def box_center(box: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """Compute bounding box centers.

    Args:
        box: Single box ``(x1, y1, x2, y2)`` or an array of such boxes with shape ``(N, 4)``.

    Returns:
        Center ``(x, y)`` of each input box.
    """
    b = np.asarray(box, dtype=float)
    return np.stack(
        [(b[..., 0] + b[..., 2]) / 2, (b[..., 1] + b[..., 3]) / 2], axis=-1
    )


def box_area(box: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """Compute bounding box areas."""
    b = np.asarray(box, dtype=float)
    return (b[..., 2] - b[..., 0]) * (b[..., 3] - b[..., 1])


def xyxy2xywh(x: np.ndarray) -> np.ndarray:
    """Convert ``(x1, y1, x2, y2)`` boxes to ``(x, y, w, h)`` format with top-left corner."""
    y = np.array(x, dtype=float)
    y[..., 2] = x[..., 2] - x[..., 0]  # width
    y[..., 3] = x[..., 3] - x[..., 1]  # height
    return y


def xywh2xyxy(x: np.ndarray) -> np.ndarray:
    """Convert ``(x, y, w, h)`` boxes with top-left corner to ``(x1, y1, x2, y2)`` format."""
    y = np.array(x, dtype=float)
    y[..., 2] = x[..., 0] + x[..., 2]
    y[..., 3] = x[..., 1] + x[..., 3]
    return y


def point_distance(p1: Sequence[float], p2: Sequence[float]) -> float:
    """Euclidean distance between two 2D points."""
    return float(np.hypot(p1[0] - p2[0], p1[1] - p2[1]))


def pairwise_distances(points_a: np.ndarray, points_b: np.ndarray) -> np.ndarray:
    """Compute Euclidean distances between two sets of points.

    Args:
        points_a (np.ndarray): First set of points ``(N, 2)``.
        points_b (np.ndarray): Second set of points ``(M, 2)``.

    Returns:
        Distance matrix of shape ``(N, M)``.
    """
    a = np.asarray(points_a, dtype=float).reshape(-1, 2)
    b = np.asarray(points_b, dtype=float).reshape(-1, 2)
    if len(a) == 0 or len(b) == 0:
        return np.zeros((len(a), len(b)))
    return cdist(a, b)


def pad_box(
    box: Sequence[float], pad: int, frame_size: Tuple[int, int]
) -> Tuple[int, int, int, int]:
    """Grow a box by `pad` pixels on each side and clamp it to the frame.

    Args:
        box: Box ``(x1, y1, x2, y2)``.
        pad: Margin in pixels.
        frame_size: Frame ``(width, height)``.

    Returns:
        Padded integer box.
    """
    w, h = frame_size
    x1, y1, x2, y2 = (int(v) for v in box)
    return (
        max(x1 - pad, 0),
        max(y1 - pad, 0),
        min(x2 + pad, w - 1),
        min(y2 + pad, h - 1),
    )
