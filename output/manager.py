# -- coding: utf-8 --
"""OutputManager: keep the latest decode snapshot and fan updates out to channels."""

import os
import queue
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Protocol

from core.contracts import LabeledInterval, NoiseInterval, SessionUpdate, UnknownSymbol


class OutputChannel(Protocol):
    def start(self): ...
    def stop(self): ...
    def publish(self, update: SessionUpdate): ...
    def publish_heartbeat(self, ts: float | None = None): ...
    def raise_if_failed(self): ...


class DecodeStore:
    """Consumer-side snapshot of one decode session; safe to read from any thread."""

    _STOP_SENTINEL = None

    def __init__(self, base_dir: str, max_records: int = 128, write_csv: bool = False):
        self.base_dir = base_dir
        self.csv_root_dir = os.path.join(base_dir, "intervals")
        self._max_records = max_records
        self._records: deque[LabeledInterval] = deque(maxlen=max_records)
        self._lock = threading.Lock()
        # Updates from sessions older than this were discarded by a reset.
        self._min_session_id = 0
        self._clear_locked()
        self._write_queue: queue.Queue[tuple[int, LabeledInterval] | None] | None = (
            queue.Queue() if write_csv else None
        )
        self._writer_thread = (
            threading.Thread(target=self._writer_loop, name="csv-writer", daemon=True)
            if write_csv
            else None
        )
        if write_csv:
            os.makedirs(self.csv_root_dir, exist_ok=True)
        if self._writer_thread:
            self._writer_thread.start()

    def _clear_locked(self):
        self._records.clear()
        self._latest: SessionUpdate | None = None
        self._text = ""
        self._code = ""
        self._diagnostics: dict[str, Any] = {}
        self._diagnostics_table = ""
        self.update_count = 0
        self.char_count = 0
        self.word_count = 0
        self.noise_count = 0
        self.unknown_count = 0
        self.dropped_count = 0
        self.finished = False

    def stop(self):
        thread = self._writer_thread
        q = self._write_queue
        if thread is None or q is None:
            return
        q.put(self._STOP_SENTINEL)
        thread.join()
        self._writer_thread = None
        self._write_queue = None

    def submit(self, update: SessionUpdate) -> bool:
        """Apply one update; returns False when it belongs to a discarded session."""
        with self._lock:
            if update.session_id < self._min_session_id:
                self.dropped_count += 1
                return False
            self._latest = update
            self._text = update.text
            self._code = update.code
            self.update_count += 1
            for item in update.decoded:
                if item.isspace():
                    self.word_count += 1
                else:
                    self.char_count += 1
            for report in update.reports:
                if isinstance(report, NoiseInterval):
                    self.noise_count += 1
                elif isinstance(report, UnknownSymbol):
                    self.unknown_count += 1
            for labeled in update.labeled:
                self._records.appendleft(labeled)
            if update.diagnostics:
                self._diagnostics = update.diagnostics
                self._diagnostics_table = update.diagnostics_table
            if update.end_of_stream:
                self.finished = True
        if self._write_queue is not None:
            for labeled in update.labeled:
                self._write_queue.put((update.session_id, labeled))
        return True

    def reset(self, min_session_id: int = 0):
        """Clear the snapshot; updates from sessions below `min_session_id` are ignored from now on."""
        with self._lock:
            self._min_session_id = max(self._min_session_id, int(min_session_id))
            self._clear_locked()

    # ---- read API ----
    @property
    def text(self) -> str:
        with self._lock:
            return self._text

    @property
    def latest_records(self) -> list[LabeledInterval]:
        with self._lock:
            return list(self._records)

    @property
    def max_records(self) -> int:
        return self._max_records

    def diagnostics_table(self) -> str:
        with self._lock:
            return self._diagnostics_table

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            latest = self._latest
            return {
                "text": self._text,
                "code": self._code,
                "session_id": latest.session_id if latest else None,
                "seq": latest.seq if latest else None,
                "timestamp_ms": latest.timestamp_ms if latest else None,
                "intensity": latest.intensity if latest else None,
                "threshold": latest.threshold if latest else None,
                "threshold_rgb": list(latest.threshold_rgb)
                if latest and latest.threshold_rgb
                else None,
                "state": latest.state if latest else "",
                "sample_rate_hz": latest.sample_rate_hz if latest else None,
                "diagnostics": dict(self._diagnostics),
                "finished": self.finished,
            }

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "updates": self.update_count,
                "chars": self.char_count,
                "words": self.word_count,
                "noise": self.noise_count,
                "unknown": self.unknown_count,
                "dropped": self.dropped_count,
            }

    # ---- CSV writer ----
    def _writer_loop(self):
        queue_ref = self._write_queue
        if queue_ref is None:
            raise RuntimeError("writer queue missing")
        while True:
            item = queue_ref.get()
            try:
                if item is None:
                    break
                self._append_csv(*item)
            finally:
                queue_ref.task_done()

    def _append_csv(self, session_id: int, labeled: LabeledInterval):
        csv_path = self._csv_path_for_today()
        write_header = not os.path.exists(csv_path)
        iv = labeled.interval
        saved_at = _fmt_time(datetime.now(timezone.utc))
        with open(csv_path, "a", encoding="utf-8") as f:
            if write_header:
                f.write("session_id,state,label,start_ms,duration_ms,save_time\n")
            f.write(
                f"{session_id},{iv.state.value},{labeled.label.value},"
                f"{iv.start_ms:.3f},{iv.duration_ms:.3f},{saved_at}\n"
            )

    def _csv_path_for_today(self) -> str:
        day_dir = os.path.join(
            self.csv_root_dir, datetime.now(timezone.utc).date().isoformat()
        )
        os.makedirs(day_dir, exist_ok=True)
        return os.path.join(day_dir, "intervals.csv")


def _fmt_time(dt: datetime) -> str:
    ref = dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return ref.astimezone(timezone.utc).strftime("%H:%M:%S.%f")[:-3] + "Z"


class OutputManager:
    def __init__(self, store: DecodeStore):
        self._store = store
        self._channels: list[OutputChannel] = []
        self._heartbeat_seq: int = 0

    def publish(self, update: SessionUpdate):
        if not self._store.submit(update):
            return
        for ch in self._channels:
            ch.publish(update)

    def add_channel(self, channel: OutputChannel):
        self._channels.append(channel)

    def start(self):
        for ch in self._channels:
            ch.start()

    def stop(self):
        for ch in self._channels:
            ch.stop()
        self._store.stop()

    def reset(self, min_session_id: int = 0):
        self._store.reset(min_session_id)

    def tick(self):
        ts = time.time()
        self._heartbeat_seq += 1
        for ch in self._channels:
            ch.publish_heartbeat(ts)

    def raise_if_failed(self):
        for ch in self._channels:
            ch.raise_if_failed()

    # ---- Read API for HMI (proxy to internal store) ----
    @property
    def text(self) -> str:
        return self._store.text

    @property
    def latest_records(self):
        return self._store.latest_records

    @property
    def max_records(self) -> int:
        return self._store.max_records

    def snapshot(self):
        return self._store.snapshot()

    def diagnostics_table(self) -> str:
        return self._store.diagnostics_table()

    def stats(self):
        return self._store.stats()

    def heartbeat_seq(self) -> int | None:
        return self._heartbeat_seq or None


__all__ = ["DecodeStore", "OutputManager", "OutputChannel"]
