#
# output_sink.py: finalized record delivery
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements output sinks for finalized records and asynchronous dispatching to them
#

"""
Output Sink Module Overview
===========================

Delivers finalized speed records to downstream consumers without stalling frame processing.

Key Features:
    - **Sink Interface**: `OutputSink.send()` receives one `FinalizedRecord`
    - **Asynchronous Handoff**: `AsyncSinkDispatcher` queues records into a bounded queue served by
      a background thread; `send()` never blocks
    - **Backpressure Policy**: When the queue is full, either the oldest queued record or the
      incoming record is dropped; drops are counted and logged
    - **Failure Isolation**: Exceptions raised by a sink are logged and counted, never propagated
      back to the frame loop
    - **Snapshot Upload**: `ObjectStorageSink` uploads the record snapshot to object storage and
      forwards the record with the snapshot location to a downstream sink
    - **Notifications**: `NotificationSink` sends record messages via Apprise service

Delivery is at-most-once: a dropped or failed record is not retried.

Typical Usage:
    ```python
    sink = AsyncSinkDispatcher(ObjectStorageSink(ObjectStorage(cfg), ConsoleSink()), maxsize=16)
    manager = ObjectLifecycleManager(geometry, tracker, sink=sink)
    ...
    sink.close()
    ```
"""

import json, os, queue, sys, threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional
from . import logger_get
from .environment import import_optional_package
from .object_storage_support import ObjectStorage

# drop policies
drop_oldest = "oldest"
drop_newest = "newest"


class OutputSink(ABC):
    """
    Base class for receivers of finalized records
    """

    @abstractmethod
    def send(self, record):
        """Deliver one record.

        Args:
            record (FinalizedRecord): Record to deliver.
        """

    def close(self):
        """Release sink resources"""


class ConsoleSink(OutputSink):
    """Sink printing records as JSON lines to stdout"""

    def send(self, record):
        print(json.dumps(record.to_dict()))
        sys.stdout.flush()


class CallbackSink(OutputSink):
    """Sink passing records to a user callback"""

    def __init__(self, callback: Callable[[Any], None]):
        self._callback = callback

    def send(self, record):
        self._callback(record)


class ObjectStorageSink(OutputSink):
    """Sink uploading record snapshots to object storage.

    Snapshot is stored as `<sub_dir>/<id>.jpg`; the record `image_uri` is set to the object name,
    and then the record is passed to the downstream sink, if any.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        downstream: Optional[OutputSink] = None,
        *,
        sub_dir: str = "",
    ):
        """Constructor.

        Args:
            storage (ObjectStorage): Object storage to upload snapshots to.
            downstream (OutputSink, optional): Sink to forward records to after upload.
            sub_dir (str, optional): Subdirectory inside the bucket.
        """
        self._storage = storage
        self._downstream = downstream
        self._sub_dir = sub_dir
        self._storage.ensure_bucket_exists()

    def send(self, record):
        object_name = f"{record.id}.jpg"
        if self._sub_dir:
            object_name = f"{self._sub_dir}/{object_name}"

        data = record.image_bytes()
        if data:
            self._storage.upload_bytes_to_object_storage(
                data, object_name, content_type="image/jpeg"
            )
            record.image_uri = object_name

        if self._downstream is not None:
            self._downstream.send(record)

    def close(self):
        if self._downstream is not None:
            self._downstream.close()


class NotificationSink(OutputSink):
    """Sink sending record messages via Apprise notification service"""

    def __init__(self, notification_cfg: str, title: str = "Vehicle speed"):
        """Constructor.

        Args:
            notification_cfg (str): Path to Apprise configuration file or Apprise URL.
            title (str, optional): Notification title.

        Raises:
            ValueError: If configuration is invalid.
        """
        apprise = import_optional_package("apprise", extra="notifications")

        self._title = title
        self._notifier = apprise.Apprise()
        if os.path.isfile(notification_cfg):
            conf = apprise.AppriseConfig()
            if not conf.add(notification_cfg):
                raise ValueError(f"Invalid configuration file: {notification_cfg}")
            self._notifier.add(conf)
        elif not self._notifier.add(notification_cfg):
            raise ValueError(f"Invalid configuration URL: {notification_cfg}")

    def send(self, record):
        message = json.dumps(record.to_dict())
        if not self._notifier.notify(body=message, title=self._title):
            raise Exception(f"Notification failed: {self._title} - {message}")


class _RecordQueue(queue.Queue):
    """Bounded queue which drops records instead of blocking on put"""

    _poison = None

    def __init__(self, maxsize: int, policy: str):
        if maxsize < 1:
            raise ValueError(f"Incorrect queue size: {maxsize}. Should be at least 1")
        if policy not in (drop_oldest, drop_newest):
            raise ValueError(
                f"Invalid drop policy '{policy}', must be '{drop_oldest}' or '{drop_newest}'"
            )
        super().__init__(maxsize)
        self.policy = policy
        self.dropped_cnt = 0  # number of dropped items

    def put_or_drop(self, item: Any) -> bool:
        """Put an item without blocking.

        If there is no space left, either the oldest queued item is popped to free space
        or the new item is discarded, depending on the policy.

        Returns:
            True if an item was dropped.
        """
        dropped = False
        while True:
            try:
                super().put(item, False)
                return dropped
            except queue.Full:
                self.dropped_cnt += 1
                dropped = True
                if self.policy == drop_newest:
                    return dropped
                try:
                    self.get_nowait()
                except queue.Empty:
                    pass  # consumer freed space meanwhile

    def __iter__(self):
        return iter(self.get, self._poison)


class AsyncSinkDispatcher(OutputSink):
    """Sink which hands records over to another sink in a background thread.

    `send()` never blocks the caller: when the queue is full, a record is dropped
    according to the drop policy.
    """

    def __init__(
        self, sink: OutputSink, maxsize: int = 16, drop_policy: str = drop_oldest
    ):
        """Constructor.

        Args:
            sink (OutputSink): Sink to deliver records to.
            maxsize (int, optional): Maximum number of queued records.
            drop_policy (str, optional): "oldest" to drop the oldest queued record when full,
                "newest" to drop the incoming record.
        """
        self._sink = sink
        self._queue = _RecordQueue(maxsize, drop_policy)
        self.sent_cnt = 0
        self.failed_cnt = 0
        self._closed = False
        self._thread: Optional[threading.Thread] = threading.Thread(
            target=self._run, name="SinkDispatcher", daemon=True
        )
        self._thread.start()

    @property
    def dropped_cnt(self) -> int:
        """Number of records dropped because of backpressure"""
        return self._queue.dropped_cnt

    def _run(self):
        logger = logger_get()
        for record in self._queue:
            try:
                self._sink.send(record)
                self.sent_cnt += 1
            except Exception as e:
                self.failed_cnt += 1
                logger.error(f"Output sink error for record {record.id}: {e}")

    def send(self, record):
        """Queue record for delivery"""
        if self._closed:
            raise RuntimeError("Sink dispatcher is closed")
        if self._queue.put_or_drop(record):
            logger_get().warning(
                f"Output queue is full: record dropped ({self.dropped_cnt} total)"
            )

    def close(self):
        """Deliver queued records, stop background thread, and close the sink"""
        if self._thread is None:
            return
        self._closed = True
        self._queue.put(_RecordQueue._poison)
        self._thread.join()
        self._thread = None
        self._sink.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
