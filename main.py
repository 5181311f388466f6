# -- coding: utf-8 --

import argparse
import logging
import time

from core.config import ConfigError, load_config, validate_config
from core.runtime import build_runtime_from_loaded_config
from decode.settings import build_threshold_config
from sensor import create_sensor_from_loaded_config


def parse_args():
    p = argparse.ArgumentParser(
        description="MorseRuntime light-signal decoder (config-driven)",
    )
    p.add_argument(
        "--config-dir", default="config", help="Directory containing main_*.yaml"
    )
    p.add_argument("--verbose", action="store_true", help="Debug log")
    p.add_argument(
        "--log-level", default="", help="Override log level (debug/info/warning/error)"
    )
    p.add_argument(
        "--text", default=None, help="Override sensor.text for the synthetic sensor"
    )
    return p.parse_args()


def setup_logging(verbose: bool, log_level: str = ""):
    if verbose:
        level = logging.DEBUG
    else:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "warn": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        level = level_map.get(str(log_level or "").strip().lower(), logging.INFO)
    # Use UTC for all %(asctime)s timestamps in logs.
    logging.Formatter.converter = time.gmtime
    logging.basicConfig(
        level=level, format="%(asctime)sZ [%(levelname)s] %(message)s", force=True
    )
    if not verbose:
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def main():
    args = parse_args()
    setup_logging(args.verbose, args.log_level)
    try:
        cfg = load_config(args.config_dir)
    except ConfigError as e:
        logging.error("Config load failed: %s", e)
        raise SystemExit(1)
    # Config-driven log level (unless overridden by CLI).
    if not args.verbose and not args.log_level:
        setup_logging(args.verbose, cfg.runtime.log_level)
    if args.text is not None:
        cfg.sensor.text = args.text

    try:
        validate_config(cfg)
        threshold_cfg = build_threshold_config(cfg.decoder)
        sensor = create_sensor_from_loaded_config(cfg, decoder=threshold_cfg)
    except (ConfigError, ValueError) as e:
        logging.error("Config invalid: %s", e)
        raise SystemExit(1) from e

    logging.info(
        "Starting: sensor=%s threshold=%s http=%s runtime=%s",
        cfg.sensor.type,
        "adaptive" if threshold_cfg.adaptive else f"static({threshold_cfg.threshold:g})",
        f"{cfg.comm.http.host}:{cfg.comm.http.port}"
        if cfg.output.hmi.enabled
        else "off",
        f"{cfg.runtime.max_runtime_s}s" if cfg.runtime.max_runtime_s else "unlimited",
    )
    logging.info(
        "Timing: dit=%gms dah=%gms letter=%gms word=%gms tolerance=%g",
        threshold_cfg.dit_ms,
        threshold_cfg.dah_ms,
        threshold_cfg.letter_gap_ms,
        threshold_cfg.word_gap_ms,
        threshold_cfg.tolerance,
    )
    logging.info("Config files: main=%s", cfg.paths.get("main"))

    runtime = build_runtime_from_loaded_config(
        sensor, cfg, threshold_cfg=threshold_cfg
    )
    try:
        runtime.start()
        runtime.run(
            runtime_limit_s=cfg.runtime.max_runtime_s
            if cfg.runtime.max_runtime_s > 0
            else None,
            # With the HMI up, keep serving results after the stream ends.
            stop_at_end=not cfg.output.hmi.enabled,
        )
    except KeyboardInterrupt:
        logging.info("Service STOPPED by user (Ctrl+C)")
    except Exception:
        logging.exception("Error")
        raise
    finally:
        runtime.stop()

    results = runtime.output_mgr
    logging.info("Decoded: %r (%s)", results.text, results.stats())
    table = results.diagnostics_table()
    if table:
        logging.info("Diagnostics:\n%s", table)
    print(results.text)
    logging.info("Done")


if __name__ == "__main__":
    main()
