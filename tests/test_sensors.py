import os
import tempfile
import unittest

import cv2
import numpy as np

from core.contracts import ColorSample
from decode.settings import ThresholdConfig
from sensor import SensorConfig, create_sensor
from sensor.replay import load_samples, write_samples


def _read_all(sensor, limit: int = 10000):
    samples = []
    with sensor.session():
        while len(samples) < limit:
            sample = sensor.read_sample()
            if sample is None:
                break
            samples.append(sample)
    return samples


class TestSyntheticSensor(unittest.TestCase):
    def test_single_dit_is_rendered(self):
        cfg = SensorConfig(text="E", sample_period_ms=10.0, decoder=ThresholdConfig())
        samples = _read_all(create_sensor("synthetic", cfg))
        # 100ms mark followed by a 300ms closing gap.
        self.assertEqual(len(samples), 40)
        self.assertTrue(all(s.rgb == (255, 255, 255) for s in samples[:10]))
        self.assertTrue(all(s.rgb == (0, 0, 0) for s in samples[10:]))
        self.assertEqual(samples[-1].timestamp_ms, 390.0)

    def test_noise_is_seeded(self):
        cfg = SensorConfig(text="T", noise_std=10.0, seed=42, decoder=ThresholdConfig())
        first = _read_all(create_sensor("synthetic", cfg))
        second = _read_all(create_sensor("synthetic", cfg))
        self.assertEqual(first, second)
        self.assertTrue(any(s.rgb not in ((255, 255, 255), (0, 0, 0)) for s in first))

    def test_lead_in_starts_dark(self):
        cfg = SensorConfig(text="E", lead_in_ms=50.0, decoder=ThresholdConfig())
        samples = _read_all(create_sensor("synthetic", cfg))
        self.assertEqual(samples[0].rgb, (0, 0, 0))
        self.assertEqual(samples[5].rgb, (255, 255, 255))

    def test_unknown_sensor_type(self):
        with self.assertRaises(ValueError) as cm:
            create_sensor("webcam", SensorConfig())
        self.assertIn("webcam", str(cm.exception))


class TestReplaySensor(unittest.TestCase):
    def test_recorded_samples_replay_in_order(self):
        recorded = [
            ColorSample(0.0, (0, 0, 0)),
            ColorSample(12.5, (250, 240, 230)),
            ColorSample(25.0, (5, 5, 5)),
        ]
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "samples.csv")
            self.assertEqual(write_samples(path, recorded), 3)
            with open(path, "r", encoding="utf-8") as f:
                self.assertEqual(f.readline().strip(), "timestamp_ms,r,g,b")
            replayed = _read_all(create_sensor("replay", SensorConfig(path=path)))
        self.assertEqual(replayed, recorded)

    def test_headerless_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "raw.csv")
            with open(path, "w", encoding="utf-8") as f:
                f.write("0,1,2,3\n10,4,5,6\n")
            rows = load_samples(path)
        np.testing.assert_array_equal(rows, [[0, 1, 2, 3], [10, 4, 5, 6]])

    def test_missing_file(self):
        sensor = create_sensor("replay", SensorConfig(path="/nonexistent/samples.csv"))
        with self.assertRaises(RuntimeError):
            with sensor.session():
                pass


class TestImageSequenceSensor(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.image_dir = self._tmp.name
        # BGR colours; natural order is f1, f2, f10.
        for name, bgr in (("f1.png", (10, 20, 30)), ("f2.png", (0, 0, 0)), ("f10.png", (200, 100, 50))):
            img = np.zeros((4, 6, 3), dtype=np.uint8)
            img[2, 3] = bgr
            cv2.imwrite(os.path.join(self.image_dir, name), img)

    def tearDown(self):
        self._tmp.cleanup()

    def _cfg(self, **kw):
        base = dict(
            image_dir=self.image_dir,
            pixel_x=3,
            pixel_y=2,
            frame_interval_ms=20.0,
            order="name_natural",
        )
        base.update(kw)
        return SensorConfig(**base)

    def test_pixel_sampled_as_rgb_in_natural_order(self):
        samples = _read_all(create_sensor("images", self._cfg()))
        self.assertEqual(
            samples,
            [
                ColorSample(0.0, (30, 20, 10)),
                ColorSample(20.0, (0, 0, 0)),
                ColorSample(40.0, (50, 100, 200)),
            ],
        )

    def test_hold_repeats_last_frame(self):
        samples = _read_all(create_sensor("images", self._cfg(end_mode="hold")), limit=5)
        self.assertEqual(len(samples), 5)
        self.assertEqual(samples[-1], ColorSample(80.0, (50, 100, 200)))

    def test_loop_restarts(self):
        samples = _read_all(create_sensor("images", self._cfg(end_mode="loop")), limit=4)
        self.assertEqual(samples[3], ColorSample(60.0, (30, 20, 10)))

    def test_pixel_outside_frame(self):
        sensor = create_sensor("images", self._cfg(pixel_x=99))
        with sensor.session():
            with self.assertRaises(RuntimeError):
                sensor.read_sample()


if __name__ == "__main__":
    unittest.main()
