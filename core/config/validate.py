"""Runtime config value validation."""

from __future__ import annotations

from typing import Any

from .schema import ConfigError, LoadedConfig

_SENSOR_ORDERS = {"name_asc", "name_desc", "name_natural", "mtime_asc", "mtime_desc"}
_SENSOR_END_MODES = {"stop", "loop", "hold"}


def validate_config(cfg: LoadedConfig) -> None:
    # runtime
    _require_float("runtime.max_runtime_s", cfg.runtime.max_runtime_s, min_v=0.0)
    _require_float(
        "runtime.status_interval_ms", cfg.runtime.status_interval_ms, min_v=0.0
    )

    # sensor
    _require_str("sensor.type", cfg.sensor.type)
    _require_float("sensor.poll_ms", cfg.sensor.poll_ms, min_v=0.0)
    _require_int("sensor.pixel_x", cfg.sensor.pixel_x, min_v=0)
    _require_int("sensor.pixel_y", cfg.sensor.pixel_y, min_v=0)
    _require_positive("sensor.frame_interval_ms", cfg.sensor.frame_interval_ms)
    _require_positive("sensor.sample_period_ms", cfg.sensor.sample_period_ms)
    _require_float("sensor.noise_std", cfg.sensor.noise_std, min_v=0.0)
    _require_float("sensor.lead_in_ms", cfg.sensor.lead_in_ms, min_v=0.0)
    _require_int("sensor.repeat", cfg.sensor.repeat, min_v=1)
    _require_choice("sensor.order", cfg.sensor.order, _SENSOR_ORDERS)
    _require_choice("sensor.end_mode", cfg.sensor.end_mode, _SENSOR_END_MODES)

    # output / comm
    _require_int("output.hmi.history_size", cfg.output.hmi.history_size, min_v=1)
    _require_port("comm.http.port", cfg.comm.http.port)

    # decoder: reuse the session snapshot rules so the runtime never starts on
    # a config the decoder would reject.
    from decode.settings import build_threshold_config

    build_threshold_config(cfg.decoder)


def _require_int(
    name: str, value: Any, *, min_v: int | None = None, max_v: int | None = None
) -> int:
    try:
        iv = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer") from e
    if min_v is not None and iv < min_v:
        op = ">=" if min_v != 1 else ">"
        threshold = min_v if min_v != 1 else 0
        raise ConfigError(f"{name} must be {op} {threshold}")
    if max_v is not None and iv > max_v:
        raise ConfigError(f"{name} must be <= {max_v}")
    return iv


def _require_float(
    name: str, value: Any, *, min_v: float | None = None, max_v: float | None = None
) -> float:
    try:
        fv = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number") from e
    if min_v is not None and fv < min_v:
        raise ConfigError(f"{name} must be >= {min_v:g}")
    if max_v is not None and fv > max_v:
        raise ConfigError(f"{name} must be <= {max_v:g}")
    return fv


def _require_positive(name: str, value: Any) -> float:
    fv = _require_float(name, value)
    if fv <= 0.0:
        raise ConfigError(f"{name} must be > 0")
    return fv


def _require_port(name: str, value: Any) -> int:
    return _require_int(name, value, min_v=1, max_v=65535)


def _require_str(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{name} must be a non-empty string")
    return value


def _require_choice(name: str, value: Any, choices: set[str]) -> str:
    text = str(value or "").strip().lower()
    if text not in choices:
        raise ConfigError(f"{name} must be one of {sorted(choices)}, got {value!r}")
    return text


__all__ = ["validate_config"]
