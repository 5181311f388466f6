import unittest

from core.config import ConfigError
from core.contracts import (
    ColorSample,
    Interval,
    Label,
    LabeledInterval,
    NoiseInterval,
    SignalState,
    UnknownSymbol,
)
from decode.diagnostics import DiagnosticsTable
from decode.morse import MORSE_TABLE, DecoderState, MorseDecoder, encode_text
from decode.session import DecodeSession, decode_intervals
from decode.settings import ThresholdConfig
from sensor.synthetic import build_intervals, render_samples

MARK = SignalState.MARK
GAP = SignalState.GAP


def _intervals(*steps):
    out = []
    t = 0.0
    for state, duration in steps:
        out.append(Interval(state, t, float(duration)))
        t += duration
    return out


def _labeled(label, state=None, duration=100.0, start=0.0):
    if state is None:
        state = MARK if label.is_mark else GAP
    return LabeledInterval(Interval(state, start, duration), label)


class TestMorseDecoder(unittest.TestCase):
    def test_letter_gap_flushes_buffer(self):
        dec = MorseDecoder()
        self.assertEqual(dec.push(_labeled(Label.DIT)), [])
        self.assertEqual(dec.push(_labeled(Label.INTRA_GAP)), [])
        self.assertEqual(dec.state, DecoderState.AWAITING_FLUSH)
        self.assertEqual(dec.push(_labeled(Label.DAH)), [])
        self.assertEqual(dec.buffer, ".-")
        self.assertEqual(dec.push(_labeled(Label.LETTER_GAP)), ["A"])
        self.assertEqual(dec.buffer, "")
        self.assertEqual(dec.state, DecoderState.IDLE)

    def test_word_gap_appends_break(self):
        dec = MorseDecoder()
        dec.push(_labeled(Label.DAH))
        self.assertEqual(dec.push(_labeled(Label.WORD_GAP)), ["T", " "])
        self.assertEqual(dec.output.items, ("T", " "))
        self.assertEqual(dec.code, "- /")

    def test_gaps_on_empty_buffer_are_noops(self):
        dec = MorseDecoder()
        for label in (Label.INTRA_GAP, Label.LETTER_GAP, Label.WORD_GAP, Label.LETTER_GAP):
            self.assertEqual(dec.push(_labeled(label)), [])
        self.assertEqual(len(dec.output), 0)

    def test_unknown_sequence_yields_placeholder_and_report(self):
        reports = []
        dec = MorseDecoder(placeholder="#", report_sink=reports.append)
        for _ in range(6):
            dec.push(_labeled(Label.DAH))
            dec.push(_labeled(Label.INTRA_GAP))
        with self.assertLogs("morse_runtime.decode.morse", level="INFO"):
            emitted = dec.push(_labeled(Label.LETTER_GAP, start=1500.0))
        self.assertEqual(emitted, ["#"])
        self.assertEqual(reports, [UnknownSymbol(symbols="------", at_ms=1500.0, placeholder="#")])
        self.assertEqual(dec.unknown_count, 1)

    def test_flush_commits_pending_letter(self):
        dec = MorseDecoder()
        dec.push(_labeled(Label.DIT))
        self.assertEqual(dec.flush(), ["E"])
        self.assertEqual(dec.flush(), [])

    def test_table_is_read_only(self):
        with self.assertRaises(TypeError):
            MORSE_TABLE["......"] = "?"  # type: ignore[index]


class TestDecodeSession(unittest.TestCase):
    def test_dit_dit_dah_then_word_break(self):
        cfg = ThresholdConfig(dit_ms=100, dah_ms=300, letter_gap_ms=100, word_gap_ms=700)
        session = decode_intervals(
            _intervals((MARK, 100), (GAP, 100), (MARK, 100), (GAP, 100), (MARK, 300), (GAP, 700)),
            cfg,
        )
        self.assertEqual(session.output.items, ("U", " "))
        self.assertEqual(session.code, "..- /")

    def test_long_gap_is_noise_and_never_flushes(self):
        session = DecodeSession(ThresholdConfig())
        result = session.push_interval(Interval(GAP, 0.0, 5000.0))
        self.assertIs(result.labeled.label, Label.NOISE)
        self.assertEqual(result.decoded, [])
        self.assertEqual(len(result.reports), 1)
        self.assertIsInstance(result.reports[0], NoiseInterval)

        session.push_interval(Interval(MARK, 5000.0, 100.0))
        result = session.push_interval(Interval(GAP, 5100.0, 5000.0))
        self.assertEqual(result.decoded, [])
        self.assertEqual(session.decoder.buffer, ".")
        result = session.push_interval(Interval(GAP, 10100.0, 300.0))
        self.assertEqual(result.decoded, ["E"])
        self.assertEqual(session.diagnostics.noise_count, 2)

    def test_unknown_sequence_reported_once(self):
        steps = []
        for i in range(6):
            if i:
                steps.append((GAP, 100))
            steps.append((MARK, 300))
        steps.append((GAP, 300))
        session = DecodeSession(ThresholdConfig())
        reports = []
        for interval in _intervals(*steps):
            reports.extend(session.push_interval(interval).reports)
        self.assertEqual(session.text, "#")
        self.assertEqual(len(reports), 1)
        self.assertEqual(reports[0].symbols, "------")
        self.assertEqual(session.diagnostics.summary()["unknown_symbols"], ["------"])

    def test_round_trip_text(self):
        cfg = ThresholdConfig()
        for text in ("SOS", "HELLO WORLD", "CQ DE 73"):
            with self.subTest(text=text):
                session = decode_intervals(encode_text(text, cfg), cfg)
                self.assertEqual(session.text, text)

    def test_encode_rejects_unknown_character(self):
        with self.assertRaises(ValueError):
            encode_text("~", ThresholdConfig())

    def test_samples_through_full_pipeline(self):
        cfg = ThresholdConfig(on_color=(250, 200, 10), off_color=(20, 20, 20))
        session = DecodeSession(cfg)
        samples = render_samples(build_intervals("SOS", cfg), cfg, period_ms=10.0)
        for sample in samples:
            session.push(sample)
        # The last letter waits for a closing gap that never ends.
        self.assertEqual(session.text, "SO")
        self.assertEqual(session.flush().decoded, ["S"])
        self.assertEqual(session.text, "SOS")
        self.assertEqual(session.code, "... --- ...")
        self.assertAlmostEqual(session.sample_rate_hz, 100.0)

    def test_adaptive_session_decodes_dim_signal(self):
        # The light never reaches the configured on colour.
        cfg = ThresholdConfig(adaptive=True, adaptive_alpha=0.01)
        dim = ThresholdConfig(on_color=(90, 90, 90), off_color=(10, 10, 10))
        session = DecodeSession(cfg)
        intervals = build_intervals("TEST", dim, lead_in_ms=500.0)
        for sample in render_samples(intervals, dim, period_ms=5.0):
            session.push(sample)
        session.flush()
        self.assertEqual(session.text, "TEST")

    def test_coarse_sampling_warns(self):
        session = DecodeSession(ThresholdConfig())
        with self.assertLogs("morse_runtime.decode.session", level="WARNING") as cm:
            for k in range(40):
                session.push(ColorSample(timestamp_ms=k * 50.0, rgb=(0, 0, 0)))
        self.assertEqual(len(cm.records), 1)

    def test_invalid_config_rejected(self):
        with self.assertRaises(ConfigError):
            DecodeSession(ThresholdConfig(dit_ms=300, dah_ms=100))


class TestDiagnosticsTable(unittest.TestCase):
    def _table(self):
        table = DiagnosticsTable(max_rows=8)
        table.record(_labeled(Label.DIT, duration=100.0))
        table.record(_labeled(Label.DAH, duration=310.0))
        table.record(_labeled(Label.DIT, duration=96.0))
        table.record(_labeled(Label.INTRA_GAP, duration=104.0))
        return table

    def test_summary_groups_by_label(self):
        summary = self._table().summary()
        self.assertEqual(summary["rows"], 4)
        self.assertEqual(summary["labels"]["dit"]["count"], 2)
        self.assertEqual(summary["labels"]["dit"]["min_ms"], 96.0)
        self.assertEqual(summary["labels"]["dit"]["mean_ms"], 98.0)
        self.assertNotIn("word_gap", summary["labels"])

    def test_render_two_columns_longest_first(self):
        self.assertEqual(
            self._table().render(),
            "\n".join(
                [
                    "Durations (ms)",
                    "Marks Gaps",
                    "----- -----",
                    "00310 00104",
                    "00100",
                    "00096",
                ]
            ),
        )

    def test_rows_are_bounded(self):
        table = DiagnosticsTable(max_rows=3)
        for d in range(10):
            table.record(_labeled(Label.DIT, duration=float(d)))
        self.assertEqual([r.duration_ms for r in table.rows], [7.0, 8.0, 9.0])
        table.clear()
        self.assertEqual(table.rows, [])


if __name__ == "__main__":
    unittest.main()
