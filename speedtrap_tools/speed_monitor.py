#
# speed_monitor.py: vehicle speed monitor frame loop
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements the frame loop connecting video source, motion detector,
# object lifecycle manager, and output sink, together with its CLI subcommand
#

"""
Speed Monitor Module Overview
=============================

Wires the processing stages together for a single fixed camera:

    video source -> MotionDetector -> ObjectLifecycleManager -> AsyncSinkDispatcher -> sink

`SpeedMonitor` processes one frame at a time. `run_speed_monitor()` drives it over a video
stream until the stream ends or the stop event is set; on termination all live objects are
discarded without records and the output sink is flushed and closed.

Typical Usage:
    ```python
    config = SpeedMonitorConfig.load("speedtrap.yaml")
    stop = threading.Event()
    stats = run_speed_monitor(config, "traffic.mp4", stop_event=stop, sink=ConsoleSink())
    ```
"""

import threading
import numpy as np
from typing import Iterable, Optional, Tuple
from . import logger_get
from .config import SpeedMonitorConfig
from .frame_analyzer_base import FrameResult
from .lifecycle import ObjectLifecycleManager
from .math_support import pad_box
from .motion_detector import MotionDetector
from .output_sink import (
    AsyncSinkDispatcher,
    ConsoleSink,
    ObjectStorageSink,
    OutputSink,
)
from .object_storage_support import ObjectStorage, ObjectStorageConfig
from .refinement import create_refinement_tracker
from .ui_support import Display
from .video_support import open_video_stream, video_source as stream_frames


class SpeedMonitor:
    """Single camera speed monitor processing frames one by one"""

    def __init__(
        self,
        config: SpeedMonitorConfig,
        sink: Optional[OutputSink] = None,
        *,
        box_padding: int = 0,
        show_overlay: bool = True,
    ):
        """Constructor.

        Args:
            config (SpeedMonitorConfig): Monitor configuration.
            sink (OutputSink, optional): Receiver of finalized records, called from the frame loop thread;
                wrap slow sinks into `AsyncSinkDispatcher`.
            box_padding (int, optional): Margin in pixels added to detected boxes.
            show_overlay (bool, optional): Draw tracked boxes and trails on annotated frames.
        """
        # validate refinement tracker availability early
        create_refinement_tracker(config.refinement_tracker).release()

        self.config = config
        self.detector = MotionDetector(
            config.minimum_contour_area, config.background_mask
        )
        self.manager = ObjectLifecycleManager(
            config.geometry(),
            config.identity_tracker(),
            minimum_travel_distance=config.minimum_travel_distance,
            refinement_factory=lambda: create_refinement_tracker(
                config.refinement_tracker
            ),
            roi=config.roi,
            max_snapshots=config.max_snapshots,
            sink=sink,
            show_overlay=show_overlay,
        )
        self._box_padding = box_padding
        self.foreground: Optional[np.ndarray] = None  # last foreground mask

    def process(self, frame: np.ndarray, timestamp: float) -> FrameResult:
        """Detect objects in the frame and advance tracking.

        Args:
            frame (np.ndarray): Frame image (BGR).
            timestamp (float): Frame timestamp in seconds.

        Returns:
            Analyzed frame result; `finalized` holds records emitted on this frame.
        """
        self.foreground = self.detector.foreground(frame)
        boxes = self.detector.boxes_from_foreground(self.foreground)
        if self._box_padding:
            size = (frame.shape[1], frame.shape[0])
            boxes = [list(pad_box(b, self._box_padding, size)) for b in boxes]

        result = FrameResult(frame=frame, timestamp=timestamp, detections=boxes)
        self.manager.analyze(result)
        return result

    def annotate(self, result: FrameResult) -> np.ndarray:
        """Return annotated copy of the result frame"""
        return self.manager.annotate(result, result.frame.copy())

    def stop(self):
        """Discard all live objects"""
        self.manager.finalize()


def run_speed_monitor(
    config: SpeedMonitorConfig,
    video_source=None,
    *,
    stop_event: Optional[threading.Event] = None,
    sink: Optional[OutputSink] = None,
    show_windows: bool = False,
    frames: Optional[Iterable[Tuple[np.ndarray, float]]] = None,
) -> dict:
    """Run speed monitor until the video ends or stop is requested.

    Args:
        config (SpeedMonitorConfig): Monitor configuration.
        video_source (optional): Video source for `open_video_stream()`; ignored when `frames` is given.
        stop_event (threading.Event, optional): When set, the loop exits before the next frame.
        sink (OutputSink, optional): Final receiver of records; `ConsoleSink` if None.
            The sink is driven through `AsyncSinkDispatcher` and closed on exit.
        show_windows (bool, optional): Show annotated frames and foreground mask in GUI windows.
        frames (Iterable, optional): Iterable of ``(frame, timestamp)`` to use instead of a video stream.

    Returns:
        Dictionary of processing statistics.
    """
    logger = logger_get()
    dispatcher = AsyncSinkDispatcher(
        sink if sink is not None else ConsoleSink(),
        maxsize=config.sink_queue_size,
        drop_policy=config.sink_drop_policy,
    )
    monitor = SpeedMonitor(config, dispatcher, show_overlay=show_windows)
    frame_cnt = 0

    def loop(source: Iterable[Tuple[np.ndarray, float]]):
        nonlocal frame_cnt
        with Display("Speed Monitor") as display, Display("Foreground") as fg_display:
            for frame, timestamp in source:
                if stop_event is not None and stop_event.is_set():
                    logger.info("Stop requested")
                    break
                result = monitor.process(frame, timestamp)
                frame_cnt += 1
                if show_windows:
                    display.show(monitor.annotate(result))
                    if monitor.foreground is not None:
                        fg_display.show(monitor.foreground)

    try:
        if frames is not None:
            loop(frames)
        else:
            with open_video_stream(video_source) as stream:
                loop(stream_frames(stream))
    finally:
        monitor.stop()
        dispatcher.close()

    stats = dict(monitor.manager.stats)
    stats.update(
        frames=frame_cnt,
        sent=dispatcher.sent_cnt,
        send_failed=dispatcher.failed_cnt,
        dropped=dispatcher.dropped_cnt,
    )
    logger.info(f"Speed monitor finished: {stats}")
    return stats


def _monitor_args(parser):
    """
    Define monitor subcommand arguments

    Args:
        parser: argparse parser object to be stuffed with args
    """
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="path to YAML configuration file; defaults are used if omitted",
    )
    parser.add_argument(
        "--source",
        type=str,
        default=None,
        help="video file path, camera index, or stream URL; STREAM_URL env. variable if omitted",
    )
    parser.add_argument(
        "--show-windows",
        action="store_true",
        help="show annotated frames in GUI windows",
    )
    parser.add_argument(
        "--storage",
        action="store_true",
        help="upload snapshots to object storage configured by S3_* env. variables",
    )
    parser.add_argument(
        "--loglevel",
        type=str,
        default="INFO",
        help="log level (e.g. DEBUG, INFO, WARNING)",
    )
    parser.set_defaults(func=_monitor_run)


def _monitor_run(args):
    """
    Run monitor subcommand

    Args:
        args: parsed command line arguments
    """
    import logging
    from . import logger_add_handler

    logger_add_handler(level=getattr(logging, args.loglevel.upper(), logging.INFO))

    config = SpeedMonitorConfig.load(args.config)
    sink: OutputSink = ConsoleSink()
    if args.storage:
        sink = ObjectStorageSink(ObjectStorage(ObjectStorageConfig.from_env()), sink)

    # live objects are discarded and the sink is flushed inside run_speed_monitor()
    try:
        run_speed_monitor(
            config, args.source, sink=sink, show_windows=args.show_windows
        )
    except KeyboardInterrupt:
        logger_get().info("Speed monitor interrupted")
