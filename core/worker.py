import logging
import queue
import threading
from typing import Callable

from core.contracts import SessionUpdate
from decode.session import DecodeSession, StepResult
from decode.settings import ThresholdConfig

L = logging.getLogger("morse_runtime.workers")


class BaseWorker:
    def __init__(self, name: str = ""):
        self.name = name or self.__class__.__name__
        self._stop_evt = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_error: Exception | None = None

    def start(self):
        if self._thread is not None:
            raise RuntimeError(
                f"{self.name} is single-use; start() may only be called once"
            )
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0):
        self._stop_evt.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                L.warning("%s worker thread did not exit cleanly", self.name)

    def _run(self):
        try:
            self.run()
        except Exception as e:
            self._last_error = e
            L.exception("%s worker error", self.name)

    @property
    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    @property
    def has_started(self) -> bool:
        return self._thread is not None

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    def run(self):
        raise NotImplementedError


class SensorWorker(BaseWorker):
    """
    Producer side of the update queue: polls the sensor, pushes each sample
    through the worker-owned DecodeSession and enqueues SessionUpdate snapshots.

    Updates carrying decoded output, intervals or reports are always enqueued;
    status-only updates are throttled to `status_interval_ms` of sample time.
    """

    def __init__(
        self,
        sensor,
        update_queue: queue.Queue,
        threshold_cfg: ThresholdConfig,
        *,
        session_factory: Callable[[ThresholdConfig], DecodeSession] = DecodeSession,
        status_interval_ms: float = 50.0,
    ):
        super().__init__("SensorWorker")
        self.sensor = sensor
        self.update_queue = update_queue
        self.threshold_cfg = threshold_cfg
        self.session_factory = session_factory
        self.status_interval_ms = float(status_interval_ms)
        self._session_lock = threading.Lock()
        self._reset_pending = False
        self._seq = 0
        self._session_id = 0
        self._session: DecodeSession | None = None
        self._last_status_ms: float | None = None
        self._finished = threading.Event()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def session_id(self) -> int:
        with self._session_lock:
            return self._session_id

    def request_reset(self) -> int:
        """
        Ask the worker thread to start a fresh session before the next sample.

        Returns the id the fresh session will carry; every update with a lower
        session_id belongs to a discarded session.
        """
        with self._session_lock:
            self._reset_pending = True
            return self._session_id + 1

    def _take_session_id(self, *, on_reset: bool) -> int | None:
        with self._session_lock:
            if on_reset and not self._reset_pending:
                return None
            if on_reset:
                self._reset_pending = False
            self._session_id += 1
            return self._session_id

    def _new_session(self, session_id: int) -> DecodeSession:
        self._last_status_ms = None
        session = self.session_factory(self.threshold_cfg)
        L.info("decode session %d started", session_id)
        return session

    def run(self):
        self._session = self._new_session(self._take_session_id(on_reset=False))
        prev_ts: float | None = None
        while not self._stop_evt.is_set():
            session_id = self._take_session_id(on_reset=True)
            if session_id is not None:
                self._session = self._new_session(session_id)
                prev_ts = None
            try:
                sample = self.sensor.read_sample()
            except Exception as e:
                raise RuntimeError(
                    _worker_stage_context(
                        worker=self.name,
                        stage="read_sample",
                        session_id=self._session_id,
                        seq=self._seq,
                    )
                ) from e
            if sample is None:
                self._finish()
                return

            try:
                step = self._session.push(sample)
            except Exception as e:
                raise RuntimeError(
                    _worker_stage_context(
                        worker=self.name,
                        stage="decode",
                        session_id=self._session_id,
                        seq=self._seq,
                    )
                ) from e
            self._emit(step, sample.timestamp_ms)

            if self.sensor.cfg.realtime and prev_ts is not None:
                delay_s = max(0.0, (sample.timestamp_ms - prev_ts) / 1000.0)
            else:
                delay_s = max(0.0, float(self.sensor.cfg.poll_ms) / 1000.0)
            prev_ts = sample.timestamp_ms
            if delay_s > 0 and self._stop_evt.wait(delay_s):
                break

    def _finish(self):
        session = self._session
        step = session.flush()
        ts = session.classifier.last_transition_ms or 0.0
        self._emit(step, ts, end_of_stream=True)
        self._finished.set()
        L.info(
            "sensor exhausted after %d samples; decoded=%r",
            session.sample_count,
            session.text,
        )

    def _emit(self, step: StepResult, timestamp_ms: float, end_of_stream: bool = False):
        session = self._session
        content = bool(step.decoded or step.labeled or step.reports or end_of_stream)
        if not content and self._last_status_ms is not None:
            if (timestamp_ms - self._last_status_ms) < self.status_interval_ms:
                return
        self._last_status_ms = timestamp_ms
        self._seq += 1
        state = session.classifier.state
        update = SessionUpdate(
            seq=self._seq,
            session_id=self._session_id,
            timestamp_ms=float(timestamp_ms),
            intensity=float(step.intensity),
            threshold=float(step.threshold),
            threshold_rgb=session.threshold_color(),
            state=state.value if state is not None else "",
            decoded=tuple(step.decoded),
            labeled=(step.labeled,) if step.labeled is not None else (),
            reports=tuple(step.reports),
            text=session.text,
            code=session.code,
            sample_rate_hz=session.sample_rate_hz,
            diagnostics=session.diagnostics.summary() if step.labeled else {},
            diagnostics_table=session.diagnostics.render() if step.labeled else "",
            end_of_stream=end_of_stream,
        )
        # Unbounded queue: the producer never blocks on a slow consumer.
        self.update_queue.put_nowait(update)


def _worker_stage_context(*, worker: str, stage: str, session_id: int, seq: int) -> str:
    return f"{worker} stage={stage} session_id={session_id} seq={seq}"


__all__ = ["BaseWorker", "SensorWorker"]
