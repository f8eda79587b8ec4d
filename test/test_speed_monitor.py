#
# test_speed_monitor.py: unit tests for speed monitor frame loop
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements end-to-end tests of the frame loop on synthetic video
#

import json, threading
import cv2
import numpy as np
import pytest

width, height = 640, 240


def synthetic_frames(moving_frames=40, step=10, fps=10):
    """Generate frames of a bright square moving right over a static background,
    preceded and followed by background-only frames"""

    background = np.full((height, width, 3), 40, dtype=np.uint8)
    t = 0.0
    for _ in range(40):
        yield background.copy(), t
        t += 1 / fps
    for i in range(moving_frames):
        frame = background.copy()
        x = 100 + step * i
        frame[60:130, x : x + 70] = 250
        yield frame, t
        t += 1 / fps
    for _ in range(30):
        yield background.copy(), t
        t += 1 / fps


def test_single_vehicle():
    """
    Test that one record is produced for a square moving 10 px/frame at 10 FPS
    """

    from speedtrap_tools import CallbackSink, SpeedMonitorConfig, run_speed_monitor

    received = []
    cfg = SpeedMonitorConfig.load({"refinement_tracker": "none"})
    stats = run_speed_monitor(
        cfg, sink=CallbackSink(received.append), frames=synthetic_frames()
    )

    assert stats["frames"] == 110
    assert stats["emitted"] == 1
    assert stats["sent"] == 1
    assert len(received) == 1

    rec = received[0]
    # 100 px/s: about 22.9 ft/s or 15.6 mph
    assert rec.speed == pytest.approx(15.6, abs=1.5)
    assert rec.distance >= cfg.minimum_travel_distance
    assert rec.snapshot.shape == (190, 640, 3)


def test_stop_event():
    """
    Test that stop request ends the loop and discards live objects without records
    """

    from speedtrap_tools import CallbackSink, SpeedMonitorConfig, run_speed_monitor

    stop = threading.Event()
    received = []

    def frames():
        for i, item in enumerate(synthetic_frames()):
            if i == 60:
                stop.set()
            yield item

    stats = run_speed_monitor(
        SpeedMonitorConfig.load({"refinement_tracker": "none"}),
        stop_event=stop,
        sink=CallbackSink(received.append),
        frames=frames(),
    )

    assert stats["frames"] == 60
    assert stats["emitted"] == 0
    assert stats["discarded_on_stop"] >= 1
    assert received == []


def test_speed_monitor_step():
    """
    Test single frame processing with box padding
    """

    from speedtrap_tools import SpeedMonitor, SpeedMonitorConfig

    monitor = SpeedMonitor(
        SpeedMonitorConfig.load({"refinement_tracker": "none"}), box_padding=5
    )
    results = [monitor.process(f, t) for f, t in synthetic_frames(moving_frames=2)]
    moving = results[40]
    assert moving.detections
    x1, y1, x2, y2 = moving.detections[0]
    assert x1 <= 95 and y1 <= 55 and x2 >= 175 and y2 >= 135
    assert monitor.foreground is not None
    assert monitor.annotate(moving).shape == (height, width, 3)
    monitor.stop()
    assert monitor.manager.objects == {}


def test_command_line(temp_dir, capsys):
    """
    Test monitor subcommand on a video file
    """

    import speedtrap_tools

    video_path = str(temp_dir / "traffic.avi")
    writer = cv2.VideoWriter(
        video_path, cv2.VideoWriter_fourcc(*"MJPG"), 10, (width, height)
    )
    for frame, _ in synthetic_frames():
        writer.write(frame)
    writer.release()

    cfg_path = temp_dir / "speedtrap.yaml"
    cfg_path.write_text("refinement_tracker: none\n")

    speedtrap_tools._command_entrypoint(
        f"monitor --config {cfg_path} --source {video_path} --loglevel WARNING"
    )

    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("{")]
    assert len(lines) >= 1
    msg = json.loads(lines[0])
    assert msg["speed"] > 0
    assert msg["image_uri"] is None


def test_command_line_interrupt(monkeypatch, caplog):
    """
    Test that monitor subcommand exits cleanly on Ctrl-C
    """

    import logging
    import speedtrap_tools
    import speedtrap_tools.speed_monitor as speed_monitor

    calls = []

    def interrupted(config, source, **kwargs):
        calls.append(source)
        raise KeyboardInterrupt

    monkeypatch.setattr(speed_monitor, "run_speed_monitor", interrupted)
    with caplog.at_level(logging.INFO, logger="speedtrap_tools"):
        speedtrap_tools._command_entrypoint("monitor --source 0 --loglevel INFO")

    assert calls == ["0"]
    assert "Speed monitor interrupted" in caplog.text
