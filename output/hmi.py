# -- coding: utf-8 --
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Protocol

from aiohttp import web

from core.contracts import LabeledInterval, SessionUpdate
from core.lifecycle import LoopRunner, run_async_cleanup

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from core.runtime import ResultReadApi


class AppContextLike(Protocol):
    @property
    def results(self) -> "ResultReadApi": ...

    @property
    def reset_session(self) -> Callable[[], Any]: ...


L = logging.getLogger("morse_runtime.output.hmi")


def _serialize_record(labeled: LabeledInterval) -> dict[str, Any]:
    iv = labeled.interval
    return {
        "state": iv.state.value,
        "label": labeled.label.value,
        "start_ms": float(iv.start_ms),
        "duration_ms": float(iv.duration_ms),
    }


def build_app(context: AppContextLike) -> web.Application:
    """Read-only status API; the only write path is a session reset."""
    app = web.Application()
    store = context.results

    async def status(_request):
        payload = store.snapshot()
        payload["stats"] = store.stats()
        payload["heartbeat_seq"] = store.heartbeat_seq()
        payload["max_records"] = store.max_records
        payload["records"] = [_serialize_record(r) for r in store.latest_records]
        return web.json_response(payload)

    async def text(_request):
        return web.Response(text=store.text)

    async def diagnostics(_request):
        return web.Response(text=store.diagnostics_table())

    async def reset(_request):
        context.reset_session()
        return web.json_response({"reset": True})

    app.router.add_get("/status", status)
    app.router.add_get("/text", text)
    app.router.add_get("/diagnostics", diagnostics)
    app.router.add_post("/reset", reset)
    return app


class _ApiServer:
    def __init__(
        self,
        host: str,
        port: int,
        context: AppContextLike,
        *,
        loop_runner: LoopRunner,
    ):
        self.host = host
        self.port = port
        self.app = build_app(context)
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._started = False
        self._loop_runner = loop_runner

    def start(self):
        if self._started:
            return
        try:
            self._loop_runner.run_async(self._serve(), timeout=1.0)
        except Exception:
            self.stop()
            raise
        self._started = True

    async def _serve(self):
        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        L.info("HMI status API running @ http://%s:%d", self.host, self.port)

    def stop(self):
        async def _cleanup():
            if self._runner:
                await self._runner.cleanup()
            self._runner = None
            self._site = None

        run_async_cleanup(_cleanup(), timeout=0.5, loop_runner=self._loop_runner)
        if self._started:
            L.info("HMI status API stopped")
        self._started = False

    def raise_if_failed(self):
        if not self._started:
            return
        if self._runner is None or self._site is None:
            raise RuntimeError("HMI status API stopped unexpectedly")


class HmiOutput:
    def __init__(
        self,
        host: str,
        port: int,
        context: AppContextLike,
        *,
        loop_runner: LoopRunner,
    ):
        self.server = _ApiServer(host, port, context, loop_runner=loop_runner)

    def start(self):
        self.server.start()

    def stop(self):
        self.server.stop()

    def publish(self, update: SessionUpdate):
        # HMI pulls snapshots via HTTP; no push needed.
        _ = update
        return None

    def publish_heartbeat(self, ts: float | None = None):
        # Heartbeat is served via /status; no push needed.
        _ = ts
        return None

    def raise_if_failed(self):
        self.server.raise_if_failed()


__all__ = ["HmiOutput", "build_app"]
