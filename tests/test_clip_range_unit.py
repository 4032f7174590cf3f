# User value: This test validates clip-window parsing so callers are charged and trimmed for the window they asked for.
import math
import unittest

from services.clip_range import parse_clip_range, timestamp_to_seconds
from services.quota import estimate_precheck_tokens


class ClipRangeUnitTests(unittest.TestCase):
    def test_timestamp_to_seconds(self):
        self.assertEqual(timestamp_to_seconds("0:00"), 0)
        self.assertEqual(timestamp_to_seconds("1:05"), 65)
        self.assertEqual(timestamp_to_seconds("12:30"), 750)
        self.assertEqual(timestamp_to_seconds(" 0 : 40 "), 40)

    # User value: malformed values never fail parsing; they only disable trimming later.
    def test_malformed_timestamps_become_nan(self):
        for raw in ("ab:cd", "90", "1:2:3", "", "1:"):
            self.assertTrue(math.isnan(timestamp_to_seconds(raw)), raw)

    def test_absent_values_default_to_zero(self):
        clip = parse_clip_range(None, None)
        self.assertEqual(clip.start, 0)
        self.assertEqual(clip.end, 0)
        clip = parse_clip_range("", "")
        self.assertEqual(clip.end, 0)

    def test_duration_and_precheck_estimate(self):
        clip = parse_clip_range("0:10", "0:40")
        self.assertEqual(clip.duration, 30)
        self.assertEqual(estimate_precheck_tokens(clip.duration), 300)
        self.assertTrue(clip.slice_requested)

    # User value: even an empty or reversed window costs at least one second.
    def test_duration_floor_is_one_second(self):
        self.assertEqual(parse_clip_range("0:40", "0:10").duration, 1)
        self.assertEqual(parse_clip_range("0:10", "0:10").duration, 1)
        self.assertEqual(parse_clip_range("ab:cd", "0:10").duration, 1)
        self.assertEqual(estimate_precheck_tokens(1), 10)

    def test_slice_only_for_valid_forward_window(self):
        self.assertFalse(parse_clip_range("0:40", "0:10").slice_requested)
        self.assertFalse(parse_clip_range("0:10", "0:10").slice_requested)
        self.assertFalse(parse_clip_range("x:10", "0:40").slice_requested)
        self.assertFalse(parse_clip_range("0:10", None).slice_requested)

    def test_clip_range_is_immutable(self):
        clip = parse_clip_range("0:10", "0:40")
        with self.assertRaises(Exception):
            clip.start = 5


if __name__ == "__main__":
    unittest.main()
