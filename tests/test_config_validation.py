import os
import tempfile
import textwrap
import unittest

from core.config import ConfigError, load_config, validate_config
from decode.settings import ThresholdConfig, build_threshold_config

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
TEST_CONFIG_DIR = os.path.join(REPO_ROOT, "config", "tests")


def _write_main(tmpdir: str, body: str, name: str = "main_tmp.yaml") -> str:
    path = os.path.join(tmpdir, name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(textwrap.dedent(body))
    return path


class TestLoadConfig(unittest.TestCase):
    def test_test_config_loads(self):
        cfg = load_config(TEST_CONFIG_DIR)
        self.assertEqual(cfg.sensor.type, "synthetic")
        self.assertEqual(cfg.sensor.text, "SOS")
        self.assertEqual(cfg.sensor.poll_ms, 0)
        self.assertEqual(cfg.decoder.on_color, "#ffcc00")
        self.assertFalse(cfg.output.hmi.enabled)
        self.assertTrue(cfg.paths["main"].endswith("main_test.yaml"))
        validate_config(cfg)

    def test_hex_colours_become_rgb(self):
        cfg = load_config(TEST_CONFIG_DIR)
        threshold_cfg = build_threshold_config(cfg.decoder)
        self.assertEqual(threshold_cfg.on_color, (255, 204, 0))
        self.assertEqual(threshold_cfg.off_color, (32, 32, 32))

    def test_missing_main_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ConfigError):
                load_config(tmpdir)

    def test_more_than_one_main_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _write_main(tmpdir, "runtime: {}\n", "main_a.yaml")
            _write_main(tmpdir, "runtime: {}\n", "main_b.yaml")
            with self.assertRaises(ConfigError) as cm:
                load_config(tmpdir)
            self.assertIn("exactly one", str(cm.exception))

    def test_unknown_fields_rejected(self):
        cases = [
            ("bogus", "bogus: 1\n"),
            ("decoder.dot_ms", "decoder:\n  dot_ms: 100\n"),
            ("comm.tcp", "comm:\n  tcp: {}\n"),
            ("sensor.synthetic.colour", "sensor:\n  type: synthetic\n  synthetic:\n    colour: 1\n"),
        ]
        for expected, body in cases:
            with self.subTest(field=expected):
                with tempfile.TemporaryDirectory() as tmpdir:
                    _write_main(tmpdir, body)
                    with self.assertRaises(ConfigError) as cm:
                        load_config(tmpdir)
                    self.assertIn(expected, str(cm.exception))

    def test_sensor_options_must_be_nested(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _write_main(tmpdir, "sensor:\n  type: synthetic\n  text: SOS\n")
            with self.assertRaises(ConfigError) as cm:
                load_config(tmpdir)
            self.assertIn("sensor.common", str(cm.exception))

    def test_only_selected_sensor_block_applies(self):
        body = """
        sensor:
          type: replay
          common:
            poll_ms: 2
          replay:
            path: samples.csv
          synthetic:
            text: IGNORED
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            _write_main(tmpdir, body)
            cfg = load_config(tmpdir)
        self.assertEqual(cfg.sensor.path, "samples.csv")
        self.assertEqual(cfg.sensor.poll_ms, 2)
        self.assertEqual(cfg.sensor.text, "SOS")

    def test_invalid_yaml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _write_main(tmpdir, "runtime: [unclosed\n")
            with self.assertRaises(ConfigError):
                load_config(tmpdir)


class TestValidateConfig(unittest.TestCase):
    def test_invalid_values_raise_config_error(self):
        cases = [
            ("runtime.max_runtime_s", "runtime", {"max_runtime_s": -1}),
            ("sensor.sample_period_ms", "sensor", {"sample_period_ms": 0}),
            ("sensor.repeat", "sensor", {"repeat": 0}),
            ("sensor.end_mode", "sensor", {"end_mode": "rewind"}),
            ("sensor.order", "sensor", {"order": "random"}),
            ("comm.http.port", "comm.http", {"port": 70000}),
            ("output.hmi.history_size", "output.hmi", {"history_size": 0}),
            ("decoder.dit_ms", "decoder", {"dit_ms": 0}),
            ("decoder.dah_ms", "decoder", {"dah_ms": 100}),
            ("decoder.word_gap_ms", "decoder", {"word_gap_ms": 300}),
            ("decoder.letter_gap_ms", "decoder", {"letter_gap_ms": 50}),
            ("decoder.tolerance", "decoder", {"tolerance": 1.0}),
            ("decoder.threshold", "decoder", {"threshold": 1.5}),
            ("decoder.on_color", "decoder", {"on_color": "#202020"}),
            ("decoder.off_color", "decoder", {"off_color": [0, 0, 256]}),
            ("decoder.unknown_placeholder", "decoder", {"unknown_placeholder": "??"}),
            ("decoder.adaptive_min_contrast", "decoder", {"adaptive_min_contrast": 0}),
        ]
        for expected_name, target, patch in cases:
            with self.subTest(field=expected_name):
                cfg = load_config(TEST_CONFIG_DIR)
                obj = cfg
                for part in target.split("."):
                    obj = getattr(obj, part)
                for k, v in patch.items():
                    setattr(obj, k, v)
                with self.assertRaises(ConfigError) as cm:
                    validate_config(cfg)
                self.assertIn(expected_name, str(cm.exception))

    def test_letter_gap_may_equal_dit(self):
        cfg = ThresholdConfig(dit_ms=100, dah_ms=300, letter_gap_ms=100, word_gap_ms=700)
        self.assertIs(cfg.validate(), cfg)


if __name__ == "__main__":
    unittest.main()
