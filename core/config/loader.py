"""YAML loader and section builders for runtime configuration."""

from __future__ import annotations

import glob
import os
from typing import Any

import yaml

from .schema import (
    CommConfigBlock,
    CommHttpConfigBlock,
    ConfigError,
    DecoderConfigBlock,
    LoadedConfig,
    OutputConfigBlock,
    OutputHmiConfigBlock,
    RuntimeConfig,
    SensorConfigBlock,
)


def load_config(config_dir: str = "config") -> LoadedConfig:
    main_path = _find_main_config(config_dir)
    main_data = _read_yaml(main_path)
    _validate_allowed_keys(
        main_data, {"runtime", "sensor", "decoder", "comm", "output"}, "", main_path
    )

    runtime = _build_dataclass(
        RuntimeConfig, _section(main_data, "runtime", main_path), main_path, "runtime"
    )
    sensor = _build_sensor_config(main_data.get("sensor"), main_path)
    decoder = _build_dataclass(
        DecoderConfigBlock,
        _section(main_data, "decoder", main_path),
        main_path,
        "decoder",
    )
    comm = _build_comm_config(main_data.get("comm"), main_path)
    output = _build_output_config(main_data.get("output"), main_path)

    return LoadedConfig(
        runtime=runtime,
        sensor=sensor,
        decoder=decoder,
        comm=comm,
        output=output,
        paths={"main": main_path},
        raw=main_data,
    )


def _find_main_config(config_dir: str) -> str:
    patterns = [
        os.path.join(config_dir, "main_*.yaml"),
        os.path.join(config_dir, "main_*.yml"),
    ]
    candidates: list[str] = []
    for pattern in patterns:
        candidates.extend(glob.glob(pattern))
    if len(candidates) == 0:
        raise ConfigError(f"No main_*.yaml found under {config_dir}")
    if len(candidates) > 1:
        raise ConfigError(
            f"Expected exactly one main_*.yaml, found: {', '.join(sorted(candidates))}"
        )
    return candidates[0]


def _read_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return data


def _section(data: dict[str, Any], name: str, main_path: str) -> dict[str, Any]:
    block = data.get(name)
    if block is None:
        return {}
    if not isinstance(block, dict):
        raise ConfigError(f"'{name}' must be a mapping in {main_path}")
    return block


def _build_dataclass(cls, data: dict[str, Any], main_path: str, section: str):
    obj = cls()
    fields = cls.__dataclass_fields__
    for k, v in (data or {}).items():
        if k in fields:
            setattr(obj, k, v)
        else:
            raise ConfigError(f"Unknown field {section}.{k} in {main_path}")
    return obj


def _validate_allowed_keys(
    data: dict[str, Any], allowed_keys: set[str], section: str, main_path: str
) -> None:
    prefix = f"{section}." if section else ""
    for key in data.keys():
        if key not in allowed_keys:
            raise ConfigError(f"Unknown field {prefix}{key} in {main_path}")


def _build_sensor_config(data: dict[str, Any] | None, main_path: str) -> SensorConfigBlock:
    if data is None:
        return SensorConfigBlock()
    if not isinstance(data, dict):
        raise ConfigError(f"'sensor' must be a mapping in {main_path}")

    cfg = SensorConfigBlock()
    if "type" in data:
        cfg.type = str(data.get("type") or cfg.type)
    selected_type = str(cfg.type or "").strip()
    sensor_fields = SensorConfigBlock.__dataclass_fields__

    def _apply_sensor_fields(block: dict[str, Any], section: str):
        for k, v in block.items():
            if k in sensor_fields and k != "type":
                setattr(cfg, k, v)
            else:
                raise ConfigError(f"Unknown field {section}.{k} in {main_path}")

    for key, value in data.items():
        if key in {"type", "common"}:
            continue
        if isinstance(value, dict):
            continue
        raise ConfigError(
            f"sensor.{key} must be nested under sensor.common or sensor.{selected_type} in {main_path}"
        )

    common_data = data.get("common")
    if common_data is not None:
        if not isinstance(common_data, dict):
            raise ConfigError(f"'sensor.common' must be a mapping in {main_path}")
        _apply_sensor_fields(common_data, "sensor.common")

    # Only the selected type's block applies; other blocks are kept for switching.
    selected_block = data.get(selected_type)
    if selected_block is not None:
        if not isinstance(selected_block, dict):
            raise ConfigError(
                f"'sensor.{selected_type}' must be a mapping in {main_path}"
            )
        _apply_sensor_fields(selected_block, f"sensor.{selected_type}")
    return cfg


def _build_comm_config(data: dict[str, Any] | None, main_path: str) -> CommConfigBlock:
    if data is None:
        return CommConfigBlock()
    if not isinstance(data, dict):
        raise ConfigError(f"'comm' must be a mapping in {main_path}")
    cfg = CommConfigBlock()
    _validate_allowed_keys(data, {"http"}, "comm", main_path)
    http = data.get("http")
    if http is not None:
        if not isinstance(http, dict):
            raise ConfigError(f"'comm.http' must be a mapping in {main_path}")
        cfg.http = _build_dataclass(
            CommHttpConfigBlock, http, main_path, section="comm.http"
        )
    return cfg


def _build_output_config(
    data: dict[str, Any] | None, main_path: str
) -> OutputConfigBlock:
    if data is None:
        return OutputConfigBlock()
    if not isinstance(data, dict):
        raise ConfigError(f"'output' must be a mapping in {main_path}")
    cfg = OutputConfigBlock()
    _validate_allowed_keys(data, {"hmi", "write_csv"}, "output", main_path)
    hmi = data.get("hmi")
    if hmi is not None:
        if not isinstance(hmi, dict):
            raise ConfigError(f"'output.hmi' must be a mapping in {main_path}")
        cfg.hmi = _build_dataclass(
            OutputHmiConfigBlock, hmi, main_path, section="output.hmi"
        )
    if "write_csv" in data:
        cfg.write_csv = bool(data.get("write_csv"))
    return cfg


__all__ = ["load_config"]
