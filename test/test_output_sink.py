#
# test_output_sink.py: unit tests for output sinks
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements unit tests for asynchronous record dispatching, snapshot upload, and console output
#

import json, threading
import numpy as np
import pytest


def make_record(oid, snapshot=None):
    from speedtrap_tools import FinalizedRecord

    return FinalizedRecord(
        id=oid, snapshot=snapshot, speed=25.0, distance=70.0, timestamp=1700000000.0
    )


class BlockingSink:
    """Sink which blocks on the first record until released"""

    def __init__(self):
        self.received = []
        self.started = threading.Event()
        self.release = threading.Event()
        self.closed = False

    def send(self, record):
        if not self.started.is_set():
            self.started.set()
            assert self.release.wait(10)
        self.received.append(record.id)

    def close(self):
        self.closed = True


def test_dispatcher_drop_policy():
    """
    Test that full queue drops oldest or newest record according to the policy
    """

    from speedtrap_tools import AsyncSinkDispatcher

    test_cases = [
        {"policy": "oldest", "res": [0, 2, 3]},
        {"policy": "newest", "res": [0, 1, 2]},
    ]

    for case in test_cases:
        sink = BlockingSink()
        dispatcher = AsyncSinkDispatcher(sink, maxsize=2, drop_policy=case["policy"])

        dispatcher.send(make_record(0))
        assert sink.started.wait(10)
        for i in range(1, 4):
            dispatcher.send(make_record(i))  # never blocks
        assert dispatcher.dropped_cnt == 1

        sink.release.set()
        dispatcher.close()
        assert sink.received == case["res"], case["policy"]
        assert sink.closed
        assert dispatcher.sent_cnt == 3


def test_dispatcher_failure_isolation():
    """
    Test that sink errors are counted and do not stop delivery of later records
    """

    from speedtrap_tools import AsyncSinkDispatcher, CallbackSink

    received = []

    def callback(record):
        if record.id == 1:
            raise RuntimeError("boom")
        received.append(record.id)

    with AsyncSinkDispatcher(CallbackSink(callback), maxsize=8) as dispatcher:
        for i in range(3):
            dispatcher.send(make_record(i))

    assert received == [0, 2]
    assert dispatcher.sent_cnt == 2
    assert dispatcher.failed_cnt == 1

    with pytest.raises(RuntimeError):
        dispatcher.send(make_record(5))
    dispatcher.close()  # second close is no-op


def test_dispatcher_parameters():
    from speedtrap_tools import AsyncSinkDispatcher, ConsoleSink

    with pytest.raises(ValueError):
        AsyncSinkDispatcher(ConsoleSink(), maxsize=0)
    with pytest.raises(ValueError):
        AsyncSinkDispatcher(ConsoleSink(), drop_policy="random")


def test_console_sink(capsys):
    """
    Test JSON line output of console sink
    """

    from speedtrap_tools import ConsoleSink

    ConsoleSink().send(make_record("abc"))
    msg = json.loads(capsys.readouterr().out)
    assert msg == {
        "id": "abc",
        "image_uri": None,
        "speed": 25.0,
        "distance": 70.0,
        "timestamp": "2023-11-14T22:13:20+00:00",
    }


def test_object_storage_sink(temp_dir):
    """
    Test snapshot upload to local folder storage and forwarding to downstream sink
    """

    from speedtrap_tools import (
        CallbackSink,
        ObjectStorage,
        ObjectStorageConfig,
        ObjectStorageSink,
    )

    cfg = ObjectStorageConfig(
        endpoint=str(temp_dir), access_key="", secret_key="", bucket="speeds"
    )
    storage = ObjectStorage(cfg)
    forwarded = []

    sink = ObjectStorageSink(storage, CallbackSink(forwarded.append))
    assert (temp_dir / "speeds").is_dir()

    snapshot = np.full((16, 16, 3), 128, dtype=np.uint8)
    sink.send(make_record("car1", snapshot))
    assert forwarded[-1].image_uri == "car1.jpg"
    assert (temp_dir / "speeds" / "car1.jpg").is_file()
    assert (temp_dir / "speeds" / "car1.jpg").read_bytes()[:2] == b"\xff\xd8"

    # record without snapshot is forwarded without upload
    sink.send(make_record("car2"))
    assert forwarded[-1].image_uri is None
    assert not (temp_dir / "speeds" / "car2.jpg").exists()

    sink = ObjectStorageSink(storage, sub_dir="2025")
    sink.send(make_record("car3", snapshot))
    assert (temp_dir / "speeds" / "2025" / "car3.jpg").is_file()


def test_storage_config_from_env(monkeypatch):
    from speedtrap_tools import ObjectStorageConfig

    monkeypatch.setenv("S3_HOST", "s3.example.com")
    monkeypatch.setenv("S3_KEY", "key")
    monkeypatch.setenv("S3_SECRET", "secret")
    monkeypatch.setenv("S3_BUCKET", "bucket")

    cfg = ObjectStorageConfig.from_env()
    assert cfg.endpoint == "s3.example.com"
    assert cfg.access_key == "key"
    assert cfg.secret_key == "secret"
    assert cfg.bucket == "bucket"


def test_notification_sink_config():
    """
    Test that invalid notification configuration is rejected
    """

    pytest.importorskip("apprise")
    from speedtrap_tools import NotificationSink

    with pytest.raises(ValueError):
        NotificationSink("not a valid url")
