#
# test_trajectory.py: unit tests for trajectory storage
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements unit tests for track points, path length, duration, and snapshot retention
#

import numpy as np
import pytest


def test_path_length_and_duration():
    """
    Test path length over all segments and trajectory duration
    """

    from speedtrap_tools import Trajectory, TrackPoint

    t = Trajectory()
    assert len(t) == 0
    assert t.path_length() == 0
    assert t.duration() == 0

    t.append(TrackPoint((0, 0), 10.0))
    assert t.path_length() == 0
    assert t.duration() == 0

    t.append(TrackPoint((3, 4), 10.5))
    t.append(TrackPoint((3, 10), 11.0))
    # last segment is included
    assert t.path_length() == pytest.approx(11)
    assert t.duration() == pytest.approx(1.0)
    assert [p.position for p in t] == [(0, 0), (3, 4), (3, 10)]
    assert t[-1].created_at == 11.0


def test_temporal_order():
    """
    Test that decreasing timestamps are rejected and equal ones accepted
    """

    from speedtrap_tools import Trajectory, TrackPoint

    t = Trajectory()
    t.append(TrackPoint((0, 0), 1.0))
    t.append(TrackPoint((1, 0), 1.0))
    with pytest.raises(ValueError):
        t.append(TrackPoint((2, 0), 0.5))
    assert len(t) == 2


def test_snapshot_copy():
    """
    Test that snapshots are copied and not aliased to the caller buffer
    """

    from speedtrap_tools import Trajectory, TrackPoint

    t = Trajectory()
    frame = np.zeros((4, 4), dtype=np.uint8)
    t.append(TrackPoint((1, 1), 0.0), frame)
    frame[:] = 255
    t.append(TrackPoint((2, 2), 1.0), frame)

    # midpoint of two points is index 1
    assert np.all(t.middle_snapshot() == 255)
    frame[:] = 7
    assert np.all(t.middle_snapshot() == 255)


def test_bounded_snapshots():
    """
    Test that the number of retained snapshots never exceeds the limit
    and the middle snapshot stays close to the trajectory middle
    """

    from speedtrap_tools import Trajectory, TrackPoint

    for max_snapshots in [1, 2, 5, 16]:
        t = Trajectory(max_snapshots)
        for i in range(200):
            t.append(TrackPoint((i, 0), float(i)), np.full((2, 2), i, dtype=np.int32))
            assert t.snapshot_count <= max_snapshots
            assert t.snapshot_count >= 1

        mid = t.middle_snapshot()
        assert mid is not None
        if max_snapshots >= 5:
            # retained snapshots are evenly spread: stride is at most 64 for 200 points
            assert abs(int(mid[0, 0]) - 100) <= 32

    t = Trajectory(0)
    t.append(TrackPoint((0, 0), 0.0), np.zeros((2, 2)))
    assert t.snapshot_count == 0
    assert t.middle_snapshot() is None

    with pytest.raises(ValueError):
        Trajectory(-1)


def test_middle_snapshot_selection():
    """
    Test that the snapshot of the point at half of the trajectory length is selected
    """

    from speedtrap_tools import Trajectory, TrackPoint

    test_cases = [
        {"n": 1, "res": 0},
        {"n": 2, "res": 1},
        {"n": 3, "res": 1},
        {"n": 10, "res": 5},
        {"n": 11, "res": 5},
    ]

    for case in test_cases:
        t = Trajectory(100)
        for i in range(case["n"]):
            t.append(TrackPoint((i, i), float(i)), np.full((1, 1), i))
        assert int(t.middle_snapshot()[0, 0]) == case["res"], case


def test_release():
    """
    Test that release drops snapshots but keeps points
    """

    from speedtrap_tools import Trajectory, TrackPoint

    t = Trajectory()
    for i in range(3):
        t.append(TrackPoint((i, 0), float(i)), np.zeros((2, 2)))
    t.release()
    assert t.snapshot_count == 0
    assert t.middle_snapshot() is None
    assert len(t) == 3
