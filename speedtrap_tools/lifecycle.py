#
# lifecycle.py: tracked object lifecycle manager
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements ownership of tracked objects, per-frame trajectory updates,
# and finalization of objects into speed records
#

"""
Object Lifecycle Module Overview
================================

Bridges identity churn reported by `IdentityTracker` to the set of owned tracked objects,
runs per-object refinement trackers on every frame, and decides when an object is finalized.

Key Features:
    - **Ownership**: The manager is the only owner of `TrackedObject` instances, keyed by object ID
    - **Trajectory Extension**: Each live object gets one track point per frame when its position is known
    - **Refinement Fallback**: When the refinement tracker fails on a frame where the identity tracker
      matched a detection, the detection center is used instead; refinement failures never count
      as disappearance
    - **Finalization**: Objects are finalized when their identity disappears or the whole scene
      clears; speed is computed from the full trajectory
    - **Discarding**: Objects with fewer than two points, zero duration, or too short a travel
      distance are discarded without a record
    - **Bounded Memory**: Snapshots of the region of interest are retained for a bounded
      subset of track points

Object state machine:

    CREATED -> ACTIVE -> FINALIZED_EMITTED | FINALIZED_DISCARDED

Both final states are terminal; a finalized object is never revived.

Typical Usage:
    ```python
    manager = ObjectLifecycleManager(CameraGeometry(112, 49.5, 640), IdentityTracker(20, 40))
    for frame, timestamp in frames:
        records = manager.process_frame(frame, detector.detect(frame), timestamp)
    manager.discard_all()
    ```
"""

import cv2, datetime, time, numpy as np
from enum import Enum
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence
from . import logger_get
from .frame_analyzer_base import FrameAnalyzerBase, FrameResult
from .geometry import CameraGeometry
from .identity_tracker import IdentityTracker
from .math_support import box_center
from .refinement import NullRefinementTracker, RefinementTracker
from .trajectory import TrackPoint, Trajectory


class ObjectState(Enum):
    CREATED = 0
    ACTIVE = 1
    FINALIZED_EMITTED = 2
    FINALIZED_DISCARDED = 3


@dataclass
class FinalizedRecord:
    """
    Summary of a finalized object
    """

    id: Hashable  # object ID
    snapshot: Optional[np.ndarray]  # representative frame region
    speed: float  # estimated speed in configured units
    distance: float  # travelled distance in physical units
    timestamp: float  # finalization time in seconds since epoch
    image_uri: Optional[str] = None  # location of uploaded snapshot, if any

    def image_bytes(self, ext: str = ".jpg") -> bytes:
        """Encode snapshot into image file bytes.

        Args:
            ext (str, optional): Image file extension defining the encoding.

        Returns:
            Encoded image or empty bytes when there is no snapshot.

        Raises:
            RuntimeError: If encoding fails.
        """
        if self.snapshot is None:
            return b""
        ok, buf = cv2.imencode(ext, self.snapshot)
        if not ok:
            raise RuntimeError(f"Failed to encode snapshot of {self.id} as '{ext}'")
        return buf.tobytes()

    def to_dict(self) -> dict:
        """Convert record into JSON-serializable message dictionary"""
        return {
            "id": str(self.id),
            "image_uri": self.image_uri,
            "speed": self.speed,
            "distance": self.distance,
            "timestamp": datetime.datetime.fromtimestamp(
                self.timestamp, tz=datetime.timezone.utc
            ).isoformat(),
        }


class TrackedObject:
    """
    Object owned by the lifecycle manager
    """

    def __init__(
        self,
        object_id: Hashable,
        box: np.ndarray,
        trajectory: Trajectory,
        refinement: RefinementTracker,
    ):
        self.id = object_id
        self.current_box = np.asarray(box, dtype=float)
        self.trajectory = trajectory
        self.refinement = refinement
        self.state = ObjectState.CREATED

    def __repr__(self):
        return f"TrackedObject({self.id}, {self.state.name}, {len(self.trajectory)} points)"


class ObjectLifecycleManager(FrameAnalyzerBase):
    """Owns live tracked objects and turns finished tracks into speed records.

    Frames must be processed strictly in order from a single thread. Records are
    returned from `process_frame()` and, when a sink is given, also sent to it.
    Use `AsyncSinkDispatcher` as a sink so slow downstream delivery does not stall
    frame processing.
    """

    def __init__(
        self,
        geometry: CameraGeometry,
        identity_tracker: Optional[IdentityTracker] = None,
        *,
        minimum_travel_distance: float = 60.0,
        refinement_factory: Optional[Callable[[], RefinementTracker]] = None,
        roi: Optional[Sequence[int]] = None,
        max_snapshots: int = 16,
        sink: Optional[Any] = None,
        show_overlay: bool = True,
        annotation_color: tuple = (255, 0, 0),
    ):
        """Constructor.

        Args:
            geometry (CameraGeometry): Camera geometry used to compute distance and speed.
            identity_tracker (IdentityTracker, optional): Identity tracker; default one is created if None.
            minimum_travel_distance (float, optional): Minimum physical distance of a track to emit a record.
            refinement_factory (Callable, optional): Creates a refinement tracker per object.
                Defaults to `NullRefinementTracker`.
            roi (Sequence[int], optional): Region ``(x1, y1, x2, y2)`` of the frame kept in snapshots.
                Whole frame if None.
            max_snapshots (int, optional): Maximum number of snapshots retained per trajectory.
            sink (OutputSink, optional): Receiver of finalized records.
            show_overlay (bool, optional): If True, annotate the image; if False, return the original image.
            annotation_color (tuple, optional): RGB color of boxes and trails.
        """
        if minimum_travel_distance < 0:
            raise ValueError(
                f"minimum_travel_distance must be non-negative, got {minimum_travel_distance}"
            )
        if roi is not None and len(roi) != 4:
            raise ValueError(f"ROI must have 4 coordinates, got {roi}")

        self._geometry = geometry
        self._identity_tracker = (
            identity_tracker if identity_tracker is not None else IdentityTracker()
        )
        self._minimum_travel_distance = minimum_travel_distance
        self._refinement_factory = (
            refinement_factory
            if refinement_factory is not None
            else NullRefinementTracker
        )
        self._roi = tuple(int(v) for v in roi) if roi is not None else None
        self._max_snapshots = max_snapshots
        self._sink = sink
        self._show_overlay = show_overlay
        self._annotation_color = annotation_color
        self._objects: Dict[Hashable, TrackedObject] = {}
        self._last_timestamp: Optional[float] = None
        self.stats: Dict[str, int] = {
            "emitted": 0,
            "discarded_insufficient": 0,
            "discarded_short": 0,
            "discarded_on_stop": 0,
            "refinement_failures": 0,
        }

    @property
    def objects(self) -> Dict[Hashable, TrackedObject]:
        """Live tracked objects"""
        return dict(self._objects)

    @property
    def identity_tracker(self) -> IdentityTracker:
        return self._identity_tracker

    def _snapshot(self, frame: np.ndarray) -> np.ndarray:
        if self._roi is None:
            return frame
        x1, y1, x2, y2 = self._roi
        return frame[max(y1, 0) : y2, max(x1, 0) : x2]

    def process_frame(
        self,
        frame: np.ndarray,
        boxes: Sequence[Sequence[float]],
        timestamp: Optional[float] = None,
    ) -> List[FinalizedRecord]:
        """Process one frame.

        Args:
            frame (np.ndarray): Current frame image. Its buffer may be reused by the caller
                after this call: snapshots are copied.
            boxes: Detection boxes ``(x1, y1, x2, y2)`` of the current frame.
            timestamp (float, optional): Frame timestamp in seconds; current time if None.
                A timestamp earlier than the previous frame one is replaced by the previous one.

        Returns:
            List of records emitted on this frame.
        """
        if timestamp is None:
            timestamp = time.time()
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            logger_get().warning(
                f"Frame timestamp {timestamp} is earlier than previous {self._last_timestamp}; previous one is used"
            )
            timestamp = self._last_timestamp
        self._last_timestamp = timestamp

        upd = self._identity_tracker.update(boxes)

        # create objects for new identities
        for oid in upd.new_ids:
            box = upd.objects[oid].box
            refinement = self._refinement_factory()
            refinement.initialize(frame, box)
            self._objects[oid] = TrackedObject(
                oid, box, Trajectory(self._max_snapshots), refinement
            )

        # extend trajectories of live identities
        confirmed = set(upd.matched_ids) | set(upd.new_ids)
        snapshot = self._snapshot(frame)
        for oid, identity in upd.objects.items():
            obj = self._objects.get(oid)
            if obj is None:
                continue

            box = obj.refinement.update(frame)
            if box is not None:
                center = box_center(box)
                if not (center[0] > 0 and center[1] > 0):
                    box = None
            if box is None:
                self.stats["refinement_failures"] += 1
                if oid not in confirmed:
                    continue  # no position known on this frame
                box = identity.box
                center = box_center(box)

            obj.trajectory.append(
                TrackPoint((float(center[0]), float(center[1])), timestamp), snapshot
            )
            obj.current_box = np.asarray(box, dtype=float)
            obj.state = ObjectState.ACTIVE

        # finalize disappeared objects
        records: List[FinalizedRecord] = []
        for oid in upd.disappeared_ids:
            record = self.finalize_object(oid, timestamp)
            if record is not None:
                records.append(record)

        # objects left without identity: full-scene clear or identity tracker reset
        for oid in [oid for oid in self._objects if oid not in upd.objects]:
            record = self.finalize_object(oid, timestamp)
            if record is not None:
                records.append(record)

        return records

    def finalize_object(
        self, object_id: Hashable, timestamp: Optional[float] = None
    ) -> Optional[FinalizedRecord]:
        """Finalize object and remove it from the live set.

        Args:
            object_id: ID of the object to finalize.
            timestamp (float, optional): Finalization time in seconds; current time if None.

        Returns:
            Emitted record, or None when the object was discarded or is not live.
        """
        obj = self._objects.pop(object_id, None)
        if obj is None:
            return None
        self._identity_tracker.deregister(object_id)
        if timestamp is None:
            timestamp = time.time()

        logger = logger_get()
        trajectory = obj.trajectory
        duration = trajectory.duration()
        record: Optional[FinalizedRecord] = None

        if len(trajectory) < 2 or duration <= 0:
            self.stats["discarded_insufficient"] += 1
            logger.debug(f"Object {object_id} discarded: insufficient trajectory")
        else:
            pixel_distance = trajectory.path_length()
            distance = self._geometry.physical_distance(pixel_distance)
            speed = self._geometry.speed(pixel_distance, duration)
            if distance < self._minimum_travel_distance or speed is None:
                self.stats["discarded_short"] += 1
                logger.debug(
                    f"Object {object_id} discarded: travelled {distance:.2f} < {self._minimum_travel_distance}"
                )
            else:
                record = FinalizedRecord(
                    id=object_id,
                    snapshot=trajectory.middle_snapshot(),
                    speed=speed,
                    distance=distance,
                    timestamp=timestamp,
                )
                self.stats["emitted"] += 1
                logger.info(
                    f"{object_id} Avg Speed: {speed:3.2f} across {distance:3.2f}"
                )

        trajectory.release()
        obj.refinement.release()
        obj.state = (
            ObjectState.FINALIZED_EMITTED
            if record is not None
            else ObjectState.FINALIZED_DISCARDED
        )

        if record is not None and self._sink is not None:
            try:
                self._sink.send(record)
            except Exception as e:
                logger.error(f"Failed to send record of {object_id}: {e}")

        return record

    def discard_all(self):
        """Discard all live objects without emitting records"""
        for obj in self._objects.values():
            obj.trajectory.release()
            obj.refinement.release()
            obj.state = ObjectState.FINALIZED_DISCARDED
            self.stats["discarded_on_stop"] += 1
        if self._objects:
            logger_get().info(f"Discarded {len(self._objects)} live objects on stop")
        self._objects.clear()
        self._identity_tracker.reset()

    def analyze(self, result: FrameResult):
        """Process frame result and augment it with tracking data.

        Sets `result.tracked_boxes`, `result.trails`, and `result.finalized`.

        Args:
            result (FrameResult): Frame result with detections.
        """
        result.finalized = self.process_frame(
            result.frame, result.detections, result.timestamp
        )
        result.tracked_boxes = {
            oid: obj.current_box.tolist() for oid, obj in self._objects.items()
        }
        result.trails = {
            oid: [list(p.position) for p in obj.trajectory]
            for oid, obj in self._objects.items()
        }

    def annotate(self, result: FrameResult, image: np.ndarray) -> np.ndarray:
        """Draw tracked boxes and trails on an image.

        Args:
            result (FrameResult): The frame result that was previously analyzed.
            image (np.ndarray): The image (in BGR format) on which to draw the annotations.

        Returns:
            np.ndarray: The image with tracking annotations drawn.
        """
        if not self._show_overlay:
            return image

        color = tuple(reversed(self._annotation_color))  # RGB to BGR
        for oid, box in result.tracked_boxes.items():
            x1, y1, x2, y2 = (int(v) for v in box)
            cv2.rectangle(image, (x1, y1), (x2, y2), color, 1)
            cv2.putText(
                image,
                str(oid)[:8],
                (x1, max(y1 - 4, 0)),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.4,
                color,
                1,
            )

        trails = [
            np.array(trail).astype(np.int32)
            for trail in result.trails.values()
            if len(trail) > 1
        ]
        if trails:
            cv2.polylines(image, trails, False, color, 1)
        return image

    def finalize(self):
        """Discard live objects when the analyzer is no longer used"""
        self.discard_all()
