# -- coding: utf-8 --

import logging
import os
import re
from contextlib import contextmanager

import cv2
import numpy as np

from core.contracts import ColorSample
from sensor.base import BaseSensor, SensorConfig, register_sensor

L = logging.getLogger("morse_runtime.sensor.images")

_SUPPORTED_EXTS = {".jpg", ".jpeg", ".png", ".bmp"}


def _natural_key(name: str):
    parts = re.split(r"(\d+)", name)
    key = []
    for part in parts:
        if part.isdigit():
            key.append(int(part))
        else:
            key.append(part.lower())
    return key


def _resolve_image_dir(path: str) -> str:
    base = str(path or "").strip()
    if not base:
        raise RuntimeError("images sensor image_dir is required")
    if not os.path.isabs(base):
        base = os.path.abspath(os.path.join(os.getcwd(), base))
    if not os.path.isdir(base):
        raise RuntimeError(f"images sensor image_dir not found: {base}")
    return base


def _list_images(root_dir: str) -> list[str]:
    files = []
    for name in os.listdir(root_dir):
        full = os.path.join(root_dir, name)
        if not os.path.isfile(full):
            continue
        if os.path.splitext(name)[1].lower() in _SUPPORTED_EXTS:
            files.append(full)
    return files


def _sort_images(paths: list[str], order: str) -> list[str]:
    if order == "name_asc":
        return sorted(paths, key=lambda p: os.path.basename(p).lower())
    if order == "name_desc":
        return sorted(paths, key=lambda p: os.path.basename(p).lower(), reverse=True)
    if order == "name_natural":
        return sorted(paths, key=lambda p: _natural_key(os.path.basename(p)))
    if order == "mtime_asc":
        return sorted(paths, key=os.path.getmtime)
    if order == "mtime_desc":
        return sorted(paths, key=os.path.getmtime, reverse=True)
    raise RuntimeError(f"unsupported image order {order!r}")


def _imread_any(path: str) -> np.ndarray | None:
    arr = cv2.imread(path, cv2.IMREAD_COLOR)
    if arr is not None:
        return arr
    # cv2.imread cannot open non-ASCII paths on some platforms.
    data = np.fromfile(path, dtype=np.uint8)
    if data.size == 0:
        return None
    return cv2.imdecode(data, cv2.IMREAD_COLOR)


def sample_pixel(img: np.ndarray, x: int, y: int) -> tuple[int, int, int]:
    """RGB at (x, y); OpenCV frames are BGR or single-channel."""
    h, w = img.shape[:2]
    if not (0 <= x < w and 0 <= y < h):
        raise RuntimeError(f"sensor pixel ({x}, {y}) outside frame {w}x{h}")
    px = img[y, x]
    if img.ndim == 2:
        v = int(px)
        return (v, v, v)
    return (int(px[2]), int(px[1]), int(px[0]))


@register_sensor("images")
class ImageSequenceSensor(BaseSensor):
    """Replays a directory of frames, one sample per frame at a fixed interval."""

    name = "images"

    def __init__(self, cfg: SensorConfig):
        super().__init__(cfg)
        self._paths: list[str] = []
        self._pos = 0
        self._frame_idx = 0
        self._root_dir = ""

    def _next_path(self) -> str | None:
        if not self._paths:
            return None
        if self._pos < len(self._paths):
            path = self._paths[self._pos]
            self._pos += 1
            return path
        if self.cfg.end_mode == "loop":
            self._pos = 1
            return self._paths[0]
        if self.cfg.end_mode == "hold":
            return self._paths[-1]
        return None

    def read_sample(self) -> ColorSample | None:
        with self.lock:
            path = self._next_path()
            if path is None:
                return None
            img = _imread_any(path)
            if img is None:
                raise RuntimeError(f"opencv_imread_failed: {path}")
            rgb = sample_pixel(img, self.cfg.pixel_x, self.cfg.pixel_y)
            ts = self._frame_idx * self.cfg.frame_interval_ms
            self._frame_idx += 1
        L.debug("frame %s @ %.1fms rgb=%s", os.path.basename(path), ts, rgb)
        return ColorSample(timestamp_ms=ts, rgb=rgb)

    @contextmanager
    def session(self):
        self._root_dir = _resolve_image_dir(self.cfg.image_dir)
        self._paths = _sort_images(_list_images(self._root_dir), self.cfg.order)
        if not self._paths:
            raise RuntimeError(f"no images found in {self._root_dir}")
        self._pos = 0
        self._frame_idx = 0
        L.info("images sensor: %d frames from %s", len(self._paths), self._root_dir)
        yield self


__all__ = ["ImageSequenceSensor", "sample_pixel"]
