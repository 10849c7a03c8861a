import unittest

from midifx.effects import (
    ChanceFx,
    EchoFx,
    HarmonizerFx,
    HumanizeFx,
    QuantizeFx,
    SwingFx,
    TransposeFx,
)
from midifx.events import NoteEvent
from midifx.registry import EFFECT_TYPES, create_effect
from midifx.rng import Lcg64

SR = 48000.0
BPM = 120.0


def on(pitch, vel=100, off=0, ch=0):
    return NoteEvent(pitch=pitch, velocity=vel, channel=ch, sample_offset=off, is_note_on=True)


def off_ev(pitch, off=0, ch=0):
    return NoteEvent(pitch=pitch, velocity=0, channel=ch, sample_offset=off, is_note_on=False)


def mixed_block():
    return [on(60, 100, 0), on(64, 90, 6000), off_ev(60, 11000), on(67, 80, 13000), off_ev(64, 30000)]


class TestBypass(unittest.TestCase):
    def test_every_effect_passes_through_when_bypassed(self):
        events = mixed_block()
        for kind in EFFECT_TYPES:
            fx = create_effect(kind)
            fx.set_bypass(True)
            self.assertTrue(fx.is_bypassed())
            self.assertEqual(fx.process(events, SR, BPM), events, kind)

    def test_bypass_does_not_advance_generator(self):
        fx = ChanceFx()
        fx.set_parameter("probability", 50)
        fx.set_bypass(True)
        fx.process(mixed_block(), SR, BPM)
        self.assertEqual(fx.rng.state, fx.rng.seed)

    def test_process_never_mutates_input(self):
        events = mixed_block()
        snapshot = list(events)
        for kind in EFFECT_TYPES:
            create_effect(kind).process(events, SR, BPM)
        self.assertEqual(events, snapshot)


class TestParameters(unittest.TestCase):
    def test_set_parameter_clamps_to_range(self):
        fx = TransposeFx()
        self.assertTrue(fx.set_parameter("semitones", 100))
        self.assertEqual(fx.value("semitones"), 48.0)
        fx.set_parameter("semitones", -100)
        self.assertEqual(fx.value("semitones"), -48.0)

    def test_unknown_parameter_is_ignored(self):
        fx = EchoFx()
        before = fx.list_parameters()
        self.assertFalse(fx.set_parameter("nope", 3))
        self.assertEqual(fx.list_parameters(), before)

    def test_list_parameters_shape(self):
        self.assertEqual(
            HarmonizerFx().list_parameters(),
            [("interval1", 4.0, -12.0, 12.0), ("interval2", 7.0, -12.0, 12.0), ("voices", 2.0, 0.0, 2.0)],
        )


class TestTranspose(unittest.TestCase):
    def test_octave_up(self):
        fx = TransposeFx()
        fx.set_parameter("semitones", 12)
        self.assertEqual(fx.process([on(60, 100, 0)], SR, BPM), [on(72, 100, 0)])

    def test_round_trip_in_range(self):
        up, down = TransposeFx(), TransposeFx()
        up.set_parameter("semitones", 5)
        down.set_parameter("semitones", -5)
        events = [on(p, 100, p * 10) for p in range(5, 123)]
        self.assertEqual(down.process(up.process(events, SR, BPM), SR, BPM), events)

    def test_clamps_and_is_idempotent_at_boundary(self):
        fx = TransposeFx()
        fx.set_parameter("semitones", 12)
        once = fx.process([on(120), on(127)], SR, BPM)
        self.assertEqual([e.pitch for e in once], [127, 127])
        self.assertEqual(fx.process(once, SR, BPM), once)
        fx.set_parameter("semitones", -12)
        self.assertEqual([e.pitch for e in fx.process([on(5)], SR, BPM)], [0])

    def test_applies_to_note_offs_too(self):
        fx = TransposeFx()
        fx.set_parameter("semitones", 3)
        out = fx.process([off_ev(60, 500)], SR, BPM)
        self.assertEqual(out, [off_ev(63, 500)])


class TestQuantize(unittest.TestCase):
    def test_strength_zero_is_identity(self):
        fx = QuantizeFx()
        fx.set_parameter("strength", 0)
        events = [on(60, 100, o) for o in (100, 13000, 30000, 47999)]
        self.assertEqual(fx.process(events, SR, BPM), events)

    def test_full_strength_snaps_to_grid(self):
        fx = QuantizeFx()  # grid 4 -> 24000 samples at 48k/120
        events = [on(60, 100, 100), on(62, 100, 13000), on(64, 100, 30000)]
        out = fx.process(events, SR, BPM)
        self.assertEqual([e.sample_offset for e in out], [0, 24000, 24000])
        self.assertTrue(all(e.sample_offset % 24000 == 0 for e in out))
        # ties keep incoming order
        self.assertEqual([e.pitch for e in out], [60, 62, 64])

    def test_half_strength_rounds_half_away_from_zero(self):
        fx = QuantizeFx()
        fx.set_parameter("strength", 50)
        out = fx.process([on(60, 100, 101), on(61, 100, 13000), on(62, 100, 30000)], SR, BPM)
        # 101 -> -50.5 -> -51; 13000 -> +5500; 30000 -> -3000
        self.assertEqual([e.sample_offset for e in out], [50, 18500, 27000])

    def test_pitch_velocity_and_count_unchanged(self):
        fx = QuantizeFx()
        fx.set_parameter("grid", 16)
        events = mixed_block()
        out = fx.process(events, SR, BPM)
        self.assertEqual(len(out), len(events))
        self.assertEqual(sorted((e.pitch, e.velocity) for e in out), sorted((e.pitch, e.velocity) for e in events))

    def test_output_sorted(self):
        fx = QuantizeFx()
        out = fx.process([on(60, 100, 30000), on(62, 100, 100)], SR, BPM)
        self.assertEqual([e.sample_offset for e in out], [0, 24000])


class TestSwing(unittest.TestCase):
    def _expected_shift(self, amount):
        ratio = 0.5 + (amount / 100.0 - 0.5) * 0.33
        return int((ratio - 0.5) * 12000)

    def test_odd_cells_pushed_later(self):
        fx = SwingFx()  # grid 8 -> 12000 samples
        fx.set_parameter("amount", 100)
        shift = self._expected_shift(100)
        self.assertGreater(shift, 0)
        events = [on(60, 100, o) for o in (0, 12000, 13000, 24000, 36500)]
        out = fx.process(events, SR, BPM)
        self.assertEqual(
            [e.sample_offset for e in out],
            [0, 12000 + shift, 13000 + shift, 24000, 36500 + shift],
        )

    def test_amount_fifty_is_straight(self):
        fx = SwingFx()
        events = [on(60, 100, o) for o in (0, 12000, 13000, 24000)]
        self.assertEqual(fx.process(events, SR, BPM), events)

    def test_low_amount_pulls_earlier_truncating(self):
        fx = SwingFx()
        fx.set_parameter("amount", 0)
        shift = self._expected_shift(0)
        self.assertLess(shift, 0)
        out = fx.process([on(60, 100, 12000)], SR, BPM)
        self.assertEqual(out[0].sample_offset, 12000 + shift)

    def test_grid_parameter_limited(self):
        fx = SwingFx()
        fx.set_parameter("grid", 2)
        self.assertEqual(fx.value("grid"), 4.0)
        fx.set_parameter("grid", 64)
        self.assertEqual(fx.value("grid"), 16.0)


class TestHumanize(unittest.TestCase):
    def test_deterministic_across_fresh_instances(self):
        events = [on(60 + i, 100, 1000 * i) for i in range(16)]
        a = HumanizeFx().process(events, SR, BPM)
        b = HumanizeFx().process(events, SR, BPM)
        self.assertEqual(a, b)

    def test_jitter_within_ranges(self):
        fx = HumanizeFx()
        fx.set_parameter("timing", 10)  # 480 samples at 48k
        fx.set_parameter("velocity", 10)
        events = [on(60, 64, 10000 + 100 * i) for i in range(64)]
        out = fx.process(events, SR, BPM)
        self.assertEqual(len(out), len(events))
        for src, dst in zip(events, out):
            self.assertLessEqual(abs(dst.sample_offset - src.sample_offset), 480)
            self.assertLessEqual(abs(dst.velocity - src.velocity), 10)
            self.assertEqual(dst.pitch, src.pitch)
        self.assertTrue(any(d.sample_offset != s.sample_offset for s, d in zip(events, out)))

    def test_clamps_velocity_and_floors_offset(self):
        fx = HumanizeFx()
        fx.set_parameter("timing", 50)
        fx.set_parameter("velocity", 30)
        events = [on(60, 1, 0), on(60, 127, 0)] * 20
        for e in fx.process(events, SR, BPM):
            self.assertTrue(1 <= e.velocity <= 127)
            self.assertGreaterEqual(e.sample_offset, 0)

    def test_two_draws_per_event(self):
        fx = HumanizeFx()
        fx.process([on(60), on(62), on(64)], SR, BPM)
        ref = Lcg64(HumanizeFx.DEFAULT_SEED)
        for _ in range(6):
            ref.next_raw()
        self.assertEqual(fx.rng.state, ref.state)

    def test_zero_ranges_keep_values(self):
        fx = HumanizeFx()
        fx.set_parameter("timing", 0)
        fx.set_parameter("velocity", 0)
        events = [on(60, 100, 0), on(64, 1, 700), on(67, 127, 9000)]
        self.assertEqual(fx.process(events, SR, BPM), events)


class TestChance(unittest.TestCase):
    def test_probability_100_keeps_everything(self):
        events = mixed_block()
        self.assertEqual(ChanceFx().process(events, SR, BPM), events)

    def test_probability_0_drops_everything(self):
        fx = ChanceFx()
        fx.set_parameter("probability", 0)
        self.assertEqual(fx.process(mixed_block(), SR, BPM), [])

    def test_partial_keeps_order_and_is_reproducible(self):
        events = [on(36 + (i % 60), 100, i * 10) for i in range(200)]
        a, b = ChanceFx(), ChanceFx()
        a.set_parameter("probability", 50)
        b.set_parameter("probability", 50)
        out_a = a.process(events, SR, BPM)
        self.assertEqual(out_a, b.process(events, SR, BPM))
        self.assertTrue(0 < len(out_a) < len(events))
        offsets = [e.sample_offset for e in out_a]
        self.assertEqual(offsets, sorted(offsets))

    def test_one_draw_per_event_even_when_all_kept(self):
        fx = ChanceFx()
        fx.process([on(60), on(61), on(62)], SR, BPM)
        ref = Lcg64(ChanceFx.DEFAULT_SEED)
        for _ in range(3):
            ref.next_raw()
        self.assertEqual(fx.rng.state, ref.state)


class TestEcho(unittest.TestCase):
    def _echo(self, delay=4, repeats=2, decay=0.5):
        fx = EchoFx()
        fx.set_parameter("delay", delay)
        fx.set_parameter("repeats", repeats)
        fx.set_parameter("decay", decay)
        return fx

    def test_two_repeats_halving(self):
        out = self._echo().process([on(60, 100, 0)], SR, BPM)
        self.assertEqual([e.sample_offset for e in out], [0, 24000, 48000])
        self.assertEqual([e.velocity for e in out], [100, 50, 25])
        self.assertTrue(all(e.is_note_on and e.pitch == 60 for e in out))

    def test_velocity_truncates_and_stops_below_one(self):
        out = self._echo(repeats=4).process([on(60, 3, 0)], SR, BPM)
        # 3 -> 1.5 (kept as 1) -> 0.75 stops
        self.assertEqual([e.velocity for e in out], [3, 1])

    def test_zero_decay_adds_nothing(self):
        events = [on(60, 100, 0)]
        self.assertEqual(self._echo(decay=0.0).process(events, SR, BPM), events)

    def test_note_offs_pass_once_and_output_sorted(self):
        events = [on(60, 100, 0), off_ev(60, 10000), on(64, 100, 30000)]
        out = self._echo().process(events, SR, BPM)
        offsets = [e.sample_offset for e in out]
        self.assertEqual(offsets, sorted(offsets))
        self.assertEqual(offsets, [0, 10000, 24000, 30000, 48000, 54000, 78000])
        self.assertEqual(sum(1 for e in out if not e.is_note_on), 1)
        self.assertGreaterEqual(len(out), len(events))


class TestHarmonizer(unittest.TestCase):
    def test_zero_voices_is_identity(self):
        fx = HarmonizerFx()
        fx.set_parameter("voices", 0)
        events = mixed_block()
        self.assertEqual(fx.process(events, SR, BPM), events)

    def test_two_voices_follow_originals(self):
        fx = HarmonizerFx()
        out = fx.process([on(60, 90, 500, ch=3), off_ev(60, 900, ch=3)], SR, BPM)
        self.assertEqual(out, [on(60, 90, 500, ch=3), off_ev(60, 900, ch=3), on(64, 90, 500, ch=3), on(67, 90, 500, ch=3)])

    def test_voice_count_bound(self):
        fx = HarmonizerFx()
        events = mixed_block()
        n_on = sum(1 for e in events if e.is_note_on)
        out = fx.process(events, SR, BPM)
        self.assertEqual(len(out), len(events) + 2 * n_on)
        self.assertLessEqual(sum(1 for e in out if e.is_note_on), 3 * n_on)

    def test_single_voice_and_clamp(self):
        fx = HarmonizerFx()
        fx.set_parameter("voices", 1)
        fx.set_parameter("interval1", -12)
        self.assertEqual([e.pitch for e in fx.process([on(5)], SR, BPM)], [5, 0])
        fx.set_parameter("interval1", 7)
        self.assertEqual([e.pitch for e in fx.process([on(125)], SR, BPM)], [125, 127])


if __name__ == "__main__":
    unittest.main()
