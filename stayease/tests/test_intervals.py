import unittest
from datetime import datetime, timezone

from stayease.intervals import Interval, is_bookable, merge_intervals


def jan(day: int) -> datetime:
    return datetime(2025, 1, day, tzinfo=timezone.utc)


def stay(start: int, end: int) -> Interval:
    return Interval(jan(start), jan(end))


class IsBookableTests(unittest.TestCase):
    def test_no_existing_bookings(self):
        self.assertTrue(is_bookable([], stay(10, 12)))

    def test_candidate_nested_inside_existing(self):
        self.assertFalse(is_bookable([stay(10, 15)], stay(12, 14)))

    def test_back_to_back_is_allowed(self):
        self.assertTrue(is_bookable([stay(10, 15)], stay(15, 20)))
        self.assertTrue(is_bookable([stay(10, 15)], stay(5, 10)))

    def test_candidate_spanning_gap_and_interval(self):
        self.assertFalse(is_bookable([stay(5, 10), stay(20, 25)], stay(8, 22)))

    def test_start_overlap(self):
        self.assertFalse(is_bookable([stay(10, 15)], stay(14, 18)))

    def test_end_overlap(self):
        self.assertFalse(is_bookable([stay(10, 15)], stay(8, 11)))

    def test_candidate_covers_existing(self):
        self.assertFalse(is_bookable([stay(10, 15)], stay(9, 16)))
        self.assertFalse(is_bookable([stay(10, 15)], stay(10, 15)))

    def test_fits_in_gap(self):
        self.assertTrue(is_bookable([stay(1, 5), stay(12, 15)], stay(5, 12)))
        self.assertTrue(is_bookable([stay(1, 5), stay(12, 15)], stay(6, 8)))

    def test_after_all_bookings(self):
        self.assertTrue(is_bookable([stay(1, 5), stay(12, 15)], stay(20, 25)))

    def test_does_not_mutate_input(self):
        existing = [stay(1, 5), stay(4, 10)]
        snapshot = list(existing)
        is_bookable(existing, stay(20, 22))
        self.assertEqual(existing, snapshot)

    def test_numeric_intervals(self):
        self.assertFalse(is_bookable([Interval(0, 10)], Interval(9, 12)))
        self.assertTrue(is_bookable([Interval(0, 10)], Interval(10, 12)))


class MergeIntervalsTests(unittest.TestCase):
    def test_overlapping_are_merged(self):
        merged = merge_intervals([stay(1, 5), stay(4, 10), stay(12, 15)])
        self.assertEqual(merged, [stay(1, 10), stay(12, 15)])

    def test_touching_are_merged(self):
        self.assertEqual(merge_intervals([stay(1, 5), stay(5, 8)]), [stay(1, 8)])

    def test_nested_keeps_larger_end(self):
        self.assertEqual(merge_intervals([stay(1, 20), stay(3, 5)]), [stay(1, 20)])

    def test_disjoint_untouched(self):
        intervals = [stay(1, 2), stay(3, 4), stay(5, 6)]
        self.assertEqual(merge_intervals(intervals), intervals)

    def test_empty(self):
        self.assertEqual(merge_intervals([]), [])


if __name__ == "__main__":
    unittest.main()
