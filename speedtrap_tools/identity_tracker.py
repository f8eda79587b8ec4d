#
# identity_tracker.py: centroid-based identity tracker
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements frame-to-frame identity assignment for unordered detection boxes
#

"""
Identity Tracker Module Overview
================================

Keeps identities of moving objects across frames when the detector supplies only
unordered bounding boxes. Each frame, boxes are matched to existing identities by the
distance between box centers using greedy nearest-neighbor assignment.

Key Features:
    - **Persistent Identity**: Each identity receives a unique ID which is never reused
    - **Greedy Assignment**: All eligible (identity, detection) pairs are sorted once per frame
      by distance and accepted in that order; ties are broken by identity registration order,
      then by detection index, so results are reproducible for a fixed input ordering
    - **Match Gate**: Pairs at or beyond `max_match_distance` are never matched
    - **Disappearance Counting**: An identity which has no match accrues one disappearance per frame
      and is deregistered on the frame its count exceeds `max_disappeared_frames`
    - **Grace Period**: Optionally, misses during the first `grace_frames` frames of an identity life
      are not counted, so detection flicker of a just-appeared object does not age it

Typical Usage:
    ```python
    tracker = IdentityTracker(max_disappeared_frames=20, max_match_distance=40)
    for boxes in detections_per_frame:
        upd = tracker.update(boxes)
        for oid in upd.new_ids: ...
        for oid in upd.disappeared_ids: ...
    ```

Identity is frame-to-frame continuity only: an object which reappears after being
deregistered receives a new ID.
"""

import uuid
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, List, Optional, Sequence
from . import logger_get
from .math_support import box_center, pairwise_distances


@dataclass
class Identity:
    """
    Tracked identity state
    """

    center: np.ndarray  # last known box center (x, y)
    box: np.ndarray  # last known box (x1, y1, x2, y2)
    disappeared_count: int = 0  # consecutive frames without match
    age: int = 0  # frames since registration


@dataclass
class IdentityUpdate:
    """
    Result of one identity tracker update
    """

    objects: Dict[Hashable, Identity]  # all live identities after the update
    new_ids: List[Hashable] = field(default_factory=list)  # registered this frame
    disappeared_ids: List[Hashable] = field(
        default_factory=list
    )  # deregistered this frame
    matched_ids: List[Hashable] = field(
        default_factory=list
    )  # existing identities matched this frame


class IdentityTracker:
    """Assigns persistent identities to per-frame detection boxes.

    The tracker owns only the mapping from object ID to last known box and
    disappearance count. Trajectories and any other per-object data are owned by the caller.
    """

    def __init__(
        self,
        max_disappeared_frames: int = 20,
        max_match_distance: float = 40,
        grace_frames: int = 0,
        id_factory: Optional[Callable[[], Hashable]] = None,
    ):
        """Constructor.

        Args:
            max_disappeared_frames (int, optional): Identity is deregistered when its number of
                consecutive missed frames exceeds this value.
            max_match_distance (float, optional): Pixel distance between centers at or above which
                an identity and a detection are never matched.
            grace_frames (int, optional): Number of initial frames of identity life during which
                missed frames are not counted. 0 disables the grace period.
            id_factory (Callable, optional): Function producing new unique IDs. Defaults to `uuid.uuid4`.
        """
        if max_disappeared_frames < 0:
            raise ValueError(
                f"max_disappeared_frames must be non-negative, got {max_disappeared_frames}"
            )
        if max_match_distance <= 0:
            raise ValueError(
                f"max_match_distance must be positive, got {max_match_distance}"
            )
        if grace_frames < 0:
            raise ValueError(f"grace_frames must be non-negative, got {grace_frames}")

        self._max_disappeared = max_disappeared_frames
        self._max_match_distance = max_match_distance
        self._grace_frames = grace_frames
        self._id_factory = id_factory if id_factory is not None else uuid.uuid4
        self._objects: Dict[Hashable, Identity] = {}  # in registration order

    @property
    def objects(self) -> Dict[Hashable, Identity]:
        """Live identities in registration order"""
        return dict(self._objects)

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id) -> bool:
        return object_id in self._objects

    def _register(self, box: np.ndarray, center: np.ndarray) -> Hashable:
        object_id = self._id_factory()
        if object_id in self._objects:
            raise ValueError(f"ID factory produced duplicate ID {object_id}")
        self._objects[object_id] = Identity(center=center, box=box)
        logger_get().debug(f"Identity {object_id} registered at {center.tolist()}")
        return object_id

    def deregister(self, object_id: Hashable) -> bool:
        """Remove identity; an object matching its last position later gets a new ID.

        Returns:
            True if the identity was live.
        """
        if self._objects.pop(object_id, None) is None:
            return False
        logger_get().debug(f"Identity {object_id} deregistered")
        return True

    def update(self, boxes: Sequence[Sequence[float]]) -> IdentityUpdate:
        """Assign current frame detections to identities.

        Args:
            boxes: Detection boxes of the current frame, each ``(x1, y1, x2, y2)``.
                May be empty: then every identity accrues one disappearance.

        Returns:
            IdentityUpdate: Updated identities and lists of new, disappeared, and matched IDs.
        """

        bboxes = np.asarray(boxes, dtype=float).reshape(-1, 4)
        centers = box_center(bboxes) if len(bboxes) > 0 else np.zeros((0, 2))
        ret = IdentityUpdate(objects={})

        # no identities yet: register every detection
        if not self._objects:
            for box, center in zip(bboxes, centers):
                ret.new_ids.append(self._register(box, center))
            ret.objects = self.objects
            return ret

        ids = list(self._objects.keys())
        for identity in self._objects.values():
            identity.age += 1

        # build candidate list of eligible pairs ordered by distance,
        # then by identity registration order, then by detection index
        dist = pairwise_distances(
            np.array([self._objects[oid].center for oid in ids]), centers
        )
        rows, cols = np.nonzero(dist < self._max_match_distance)
        candidates = sorted(
            (float(dist[r, c]), int(r), int(c)) for r, c in zip(rows, cols)
        )

        used_rows: set = set()
        used_cols: set = set()
        for _, r, c in candidates:
            if r in used_rows or c in used_cols:
                continue
            used_rows.add(r)
            used_cols.add(c)
            identity = self._objects[ids[r]]
            identity.center = centers[c]
            identity.box = bboxes[c]
            identity.disappeared_count = 0
            ret.matched_ids.append(ids[r])
            if len(used_rows) == len(ids) or len(used_cols) == len(bboxes):
                break

        # unmatched identities accrue disappearance
        for r, oid in enumerate(ids):
            if r in used_rows:
                continue
            identity = self._objects[oid]
            if identity.age <= self._grace_frames:
                continue
            identity.disappeared_count += 1
            if identity.disappeared_count > self._max_disappeared:
                self.deregister(oid)
                ret.disappeared_ids.append(oid)

        # unmatched detections become new identities
        for c in range(len(bboxes)):
            if c not in used_cols:
                ret.new_ids.append(self._register(bboxes[c], centers[c]))

        ret.objects = self.objects
        return ret

    def reset(self):
        """Forget all identities"""
        self._objects.clear()
