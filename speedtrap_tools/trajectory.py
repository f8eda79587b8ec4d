#
# trajectory.py: per-object trajectory storage
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements track points and trajectories with bounded snapshot retention
#

import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from .math_support import point_distance


@dataclass(frozen=True)
class TrackPoint:
    """
    Estimated object center in one frame
    """

    position: Tuple[float, float]  # (x, y) in pixels
    created_at: float  # timestamp in seconds


class Trajectory:
    """Ordered sequence of track points of a single object.

    Points are kept in insertion order, which must be temporal order: timestamps
    never decrease. Some points also keep a frame snapshot. The number of retained
    snapshots never exceeds `max_snapshots`: when the limit is reached, every other
    snapshot is released and only each `stride`-th point keeps its snapshot from then on,
    so retained snapshots stay evenly spread along the whole trajectory.
    """

    def __init__(self, max_snapshots: int = 16):
        """Constructor.

        Args:
            max_snapshots (int, optional): Maximum number of retained snapshots; 0 disables snapshots.
        """
        if max_snapshots < 0:
            raise ValueError(f"max_snapshots must be non-negative, got {max_snapshots}")

        self._points: List[TrackPoint] = []
        self._snapshots: Dict[int, np.ndarray] = {}
        self._max_snapshots = max_snapshots
        self._stride = 1

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self._points)

    def __getitem__(self, idx: int) -> TrackPoint:
        return self._points[idx]

    @property
    def points(self) -> List[TrackPoint]:
        return list(self._points)

    @property
    def snapshot_count(self) -> int:
        return len(self._snapshots)

    def append(self, point: TrackPoint, snapshot: Optional[np.ndarray] = None):
        """Append new point to the trajectory.

        Args:
            point (TrackPoint): Point to append.
            snapshot (np.ndarray, optional): Frame region to associate with the point.
                It is copied, so the caller may reuse its buffer.

        Raises:
            ValueError: If point timestamp is earlier than the last point timestamp.
        """
        if self._points and point.created_at < self._points[-1].created_at:
            raise ValueError(
                f"Track point timestamp {point.created_at} is earlier than last timestamp {self._points[-1].created_at}"
            )

        idx = len(self._points)
        self._points.append(point)

        if snapshot is None or self._max_snapshots == 0 or idx % self._stride != 0:
            return

        self._snapshots[idx] = np.array(snapshot, copy=True)
        while len(self._snapshots) > self._max_snapshots:
            self._stride *= 2
            self._snapshots = {
                k: v for k, v in self._snapshots.items() if k % self._stride == 0
            }

    def path_length(self) -> float:
        """Sum of distances between all consecutive points, in pixels"""
        return sum(
            point_distance(a.position, b.position)
            for a, b in zip(self._points, self._points[1:])
        )

    def duration(self) -> float:
        """Time between first and last point, in seconds"""
        if len(self._points) < 2:
            return 0.0
        return self._points[-1].created_at - self._points[0].created_at

    def middle_snapshot(self) -> Optional[np.ndarray]:
        """Return retained snapshot closest to the temporal midpoint of the trajectory, if any"""
        if not self._snapshots:
            return None
        mid = len(self._points) // 2
        key = min(self._snapshots, key=lambda k: (abs(k - mid), k))
        return self._snapshots[key]

    def release(self):
        """Release all retained snapshots"""
        self._snapshots.clear()
