"""Core runtime: SystemRuntime orchestration and runtime assembly."""

from __future__ import annotations

import logging
import queue
import threading
import time
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Callable, Protocol, TYPE_CHECKING

from core.contracts import LabeledInterval
from core.lifecycle import LoopRunner
from core.queue_utils import drain_queue_nowait
from decode.settings import ThresholdConfig

if TYPE_CHECKING:  # pragma: no cover
    from .worker import SensorWorker
    from output.manager import OutputManager

L = logging.getLogger("morse_runtime.runtime")


@dataclass
class RuntimeBuildConfig:
    save_dir: str = "data"
    history_size: int = 128
    status_interval_ms: float = 50.0
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    enable_http: bool = False
    write_csv: bool = False


def build_runtime_config_from_loaded_config(cfg) -> RuntimeBuildConfig:
    return RuntimeBuildConfig(
        save_dir=cfg.runtime.save_dir,
        history_size=int(cfg.output.hmi.history_size),
        status_interval_ms=float(cfg.runtime.status_interval_ms),
        http_host=cfg.comm.http.host,
        http_port=int(cfg.comm.http.port),
        enable_http=bool(cfg.output.hmi.enabled),
        write_csv=bool(cfg.output.write_csv),
    )


class ResultReadApi(Protocol):
    @property
    def text(self) -> str: ...

    @property
    def latest_records(self) -> list[LabeledInterval]: ...

    @property
    def max_records(self) -> int: ...

    def snapshot(self) -> dict[str, Any]: ...

    def diagnostics_table(self) -> str: ...

    def stats(self) -> dict[str, Any]: ...

    def heartbeat_seq(self) -> int | None: ...


@dataclass
class AppContext:
    results: ResultReadApi
    reset_session: Callable[[], None]


class SystemRuntime:
    """Coordinates the sensor worker, the update queue consumer, and outputs."""

    def __init__(
        self,
        app_context: AppContext,
        sensor_worker: SensorWorker,
        update_queue: queue.Queue,
        output_mgr: OutputManager,
        loop_runner: LoopRunner,
    ):
        self.app_context = app_context
        self.sensor_worker = sensor_worker
        self.update_queue = update_queue
        self.output_mgr = output_mgr
        self.loop_runner = loop_runner

        self._stop_evt = threading.Event()
        self._sensor_session_stack: ExitStack | None = None
        self._started = False
        self._stopped = False
        self._reached_end = False

    @property
    def reached_end(self) -> bool:
        return self._reached_end

    def start(self):
        if self._started:
            raise RuntimeError(
                "SystemRuntime is single-use; start() may only be called once"
            )
        if self._stopped:
            raise RuntimeError("SystemRuntime is stopped and cannot be started again")
        self._started = True
        try:
            self._enter_sensor_session()
            self.output_mgr.start()
            self.sensor_worker.start()
        except Exception:
            L.exception("Runtime start failed; rolling back partial startup")
            try:
                self.stop()
            except Exception:
                L.exception("Runtime rollback stop failed")
            raise

    def request_stop(self):
        self._stop_evt.set()

    def pump(self) -> int:
        """Consume queued updates into the output manager; returns how many."""
        updates = drain_queue_nowait(self.update_queue)
        for update in updates:
            self.output_mgr.publish(update)
            if update.end_of_stream:
                self._reached_end = True
        return len(updates)

    def run(self, runtime_limit_s: float | None = None, *, stop_at_end: bool = True):
        if not self._started:
            raise RuntimeError("SystemRuntime.run() requires start() first")
        start_ts = time.perf_counter()
        next_heartbeat_ts = start_ts + 1.0
        try:
            while not self._stop_evt.wait(0.05):
                self.pump()
                now_ts = time.perf_counter()
                if now_ts >= next_heartbeat_ts:
                    self.output_mgr.tick()
                    next_heartbeat_ts = now_ts + 1.0
                if stop_at_end and self._reached_end:
                    L.info("Sensor stream ended; shutting down service")
                    self.request_stop()
                    continue
                self._raise_if_worker_stopped()
                self.output_mgr.raise_if_failed()
                if (
                    runtime_limit_s is not None
                    and (now_ts - start_ts) >= runtime_limit_s
                ):
                    L.info(
                        "Runtime limit reached (%ss); shutting down service",
                        runtime_limit_s,
                    )
                    self.request_stop()
        finally:
            self.stop()

    def _raise_if_worker_stopped(self):
        worker = self.sensor_worker
        if not worker.has_started or worker.is_alive or worker.finished:
            return
        err = worker.last_error
        if err is not None:
            raise RuntimeError(
                f"SensorWorker stopped unexpectedly ({type(err).__name__})"
            ) from err
        if self._stop_evt.is_set():
            return
        raise RuntimeError("SensorWorker stopped unexpectedly")

    def stop(self):
        if self._stopped:
            return
        self._stopped = True
        stop_t0 = time.perf_counter()
        stage_t0 = stop_t0

        def _log_stage(name: str):
            nonlocal stage_t0
            now = time.perf_counter()
            L.debug("Shutdown stage=%s elapsed=%.1fms", name, (now - stage_t0) * 1000)
            stage_t0 = now

        def _run_stage(name: str, fn: Callable[[], Any]):
            try:
                fn()
            except Exception:
                L.exception("Shutdown stage failed: %s", name)
            finally:
                _log_stage(name)

        def _stop_worker():
            if self.sensor_worker.has_started:
                self.sensor_worker.stop()

        _run_stage("sensor_worker", _stop_worker)
        # Updates produced before the worker stopped still reach the outputs.
        _run_stage("pending_updates", self.pump)
        _run_stage("output_manager", self.output_mgr.stop)
        _run_stage("async_loop", self.loop_runner.shutdown_loop)
        _run_stage("sensor_session", self._exit_sensor_session)
        L.debug(
            "Shutdown stage=total elapsed=%.1fms",
            (time.perf_counter() - stop_t0) * 1000,
        )

    def reset_session(self):
        """Discard in-progress decoding and start a fresh session on the next sample.

        May run on the HMI loop thread, so the update queue is left to `pump()`;
        queued updates from the discarded session are dropped by the store.
        """
        next_session_id = self.sensor_worker.request_reset()
        self.output_mgr.reset(min_session_id=next_session_id)
        L.info("Decode session reset requested (next session %d)", next_session_id)

    def _enter_sensor_session(self):
        if self._sensor_session_stack is not None:
            return
        stack = ExitStack()
        stack.enter_context(self.sensor_worker.sensor.session())
        self._sensor_session_stack = stack

    def _exit_sensor_session(self):
        stack = self._sensor_session_stack
        if stack is None:
            return
        self._sensor_session_stack = None
        stack.close()


def _build_output_manager(cfg: RuntimeBuildConfig):
    from output.manager import DecodeStore, OutputManager

    store = DecodeStore(
        base_dir=cfg.save_dir,
        max_records=cfg.history_size,
        write_csv=cfg.write_csv,
    )
    return OutputManager(store)


def _wire_output_channels(
    cfg: RuntimeBuildConfig,
    *,
    app_context: AppContext,
    output_mgr,
    loop_runner: LoopRunner,
):
    if cfg.enable_http:
        from output.hmi import HmiOutput

        output_mgr.add_channel(
            HmiOutput(
                cfg.http_host,
                cfg.http_port,
                app_context,
                loop_runner=loop_runner,
            )
        )


def build_runtime(
    sensor,
    *,
    config: RuntimeBuildConfig,
    threshold_cfg: ThresholdConfig,
    loop_runner: LoopRunner | None = None,
) -> SystemRuntime:
    from .worker import SensorWorker

    loop_runner = loop_runner or LoopRunner()
    cfg = config
    threshold_cfg = threshold_cfg.validate()
    # Single producer (SensorWorker) / single consumer (SystemRuntime.pump).
    update_queue: queue.Queue = queue.Queue()
    output_mgr = _build_output_manager(cfg)
    sensor_worker = SensorWorker(
        sensor,
        update_queue,
        threshold_cfg,
        status_interval_ms=cfg.status_interval_ms,
    )
    runtime_ref: dict[str, SystemRuntime] = {}

    def _reset():
        runtime_ref["runtime"].reset_session()

    app_context = AppContext(results=output_mgr, reset_session=_reset)
    _wire_output_channels(
        cfg, app_context=app_context, output_mgr=output_mgr, loop_runner=loop_runner
    )
    runtime = SystemRuntime(
        app_context,
        sensor_worker,
        update_queue,
        output_mgr,
        loop_runner=loop_runner,
    )
    runtime_ref["runtime"] = runtime
    return runtime


def build_runtime_from_loaded_config(
    sensor,
    cfg,
    *,
    threshold_cfg: ThresholdConfig,
    loop_runner: LoopRunner | None = None,
) -> SystemRuntime:
    return build_runtime(
        sensor,
        config=build_runtime_config_from_loaded_config(cfg),
        threshold_cfg=threshold_cfg,
        loop_runner=loop_runner,
    )


__all__ = [
    "AppContext",
    "ResultReadApi",
    "RuntimeBuildConfig",
    "SystemRuntime",
    "build_runtime",
    "build_runtime_config_from_loaded_config",
    "build_runtime_from_loaded_config",
]
