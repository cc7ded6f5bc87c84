from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from aggregate_counter.clock import (
    aligned_start,
    bucket_key,
    buckets_between,
    previous_start,
    resolve_timezone,
    sequence,
)
from aggregate_counter.errors import InvalidWindow
from aggregate_counter.resolution import Resolution

UTC = timezone.utc


class AlignedStartTests(unittest.TestCase):
    def setUp(self) -> None:
        self.instant = datetime(2024, 2, 29, 13, 47, 12, 500_000, tzinfo=UTC)

    def test_each_resolution_truncates_to_left_boundary(self) -> None:
        expected = {
            Resolution.MINUTE: datetime(2024, 2, 29, 13, 47, tzinfo=UTC),
            Resolution.HOUR: datetime(2024, 2, 29, 13, tzinfo=UTC),
            Resolution.DAY: datetime(2024, 2, 29, tzinfo=UTC),
            Resolution.MONTH: datetime(2024, 2, 1, tzinfo=UTC),
            Resolution.YEAR: datetime(2024, 1, 1, tzinfo=UTC),
        }
        for res, start in expected.items():
            self.assertEqual(aligned_start(self.instant, res), start, res)

    def test_alignment_is_idempotent(self) -> None:
        for res in Resolution:
            once = aligned_start(self.instant, res)
            self.assertEqual(aligned_start(once, res), once)

    def test_resolution_accepts_string(self) -> None:
        self.assertEqual(aligned_start(self.instant, "hour"), datetime(2024, 2, 29, 13, tzinfo=UTC))
        with self.assertRaises(ValueError):
            aligned_start(self.instant, "week")

    def test_day_boundary_follows_time_zone(self) -> None:
        tokyo = ZoneInfo("Asia/Tokyo")
        # 20:00 UTC 已是东京次日 05:00
        start = aligned_start(datetime(2024, 1, 1, 20, tzinfo=UTC), Resolution.DAY, tokyo)
        self.assertEqual(start, datetime(2024, 1, 2, tzinfo=tokyo))
        self.assertEqual(start.astimezone(UTC), datetime(2024, 1, 1, 15, tzinfo=UTC))

    def test_naive_instant_is_local_to_time_zone(self) -> None:
        tokyo = ZoneInfo("Asia/Tokyo")
        start = aligned_start(datetime(2024, 5, 17, 3, 30), Resolution.DAY, tokyo)
        self.assertEqual(start, datetime(2024, 5, 17, tzinfo=tokyo))


class SequenceTests(unittest.TestCase):
    def test_month_window_crosses_year(self) -> None:
        starts = sequence(datetime(2024, 2, 15, 8, tzinfo=UTC), Resolution.MONTH, 4)
        self.assertEqual(
            starts,
            [
                datetime(2023, 11, 1, tzinfo=UTC),
                datetime(2023, 12, 1, tzinfo=UTC),
                datetime(2024, 1, 1, tzinfo=UTC),
                datetime(2024, 2, 1, tzinfo=UTC),
            ],
        )

    def test_day_window_handles_short_february(self) -> None:
        starts = sequence(datetime(2023, 3, 1, 12, tzinfo=UTC), Resolution.DAY, 3)
        self.assertEqual(
            starts,
            [datetime(2023, 2, 27, tzinfo=UTC), datetime(2023, 2, 28, tzinfo=UTC), datetime(2023, 3, 1, tzinfo=UTC)],
        )

    def test_year_window_is_oldest_first(self) -> None:
        starts = sequence(datetime(1980, 1, 1, tzinfo=UTC), Resolution.YEAR, 5)
        self.assertEqual([s.year for s in starts], [1976, 1977, 1978, 1979, 1980])

    def test_minute_window(self) -> None:
        end = datetime(2024, 1, 1, 0, 1, 30, tzinfo=UTC)
        starts = sequence(end, Resolution.MINUTE, 3)
        self.assertEqual(
            starts,
            [datetime(2023, 12, 31, 23, 59, tzinfo=UTC), datetime(2024, 1, 1, 0, 0, tzinfo=UTC), datetime(2024, 1, 1, 0, 1, tzinfo=UTC)],
        )

    def test_hour_window_over_dst_fall_back_has_no_gaps_or_duplicates(self) -> None:
        ny = ZoneInfo("America/New_York")
        # 2024-11-03 02:00 EDT 回拨到 01:00 EST，01:00 出现两次
        end = datetime(2024, 11, 3, 7, 30, tzinfo=UTC)
        starts = sequence(end, Resolution.HOUR, 4, ny)
        self.assertEqual(
            [s.astimezone(UTC) for s in starts],
            [datetime(2024, 11, 3, h, tzinfo=UTC) for h in (4, 5, 6, 7)],
        )
        self.assertEqual(len({bucket_key(s) for s in starts}), 4)

    def test_hour_window_over_dst_spring_forward(self) -> None:
        ny = ZoneInfo("America/New_York")
        # 2024-03-10 02:00 EST 跳到 03:00 EDT
        end = datetime(2024, 3, 10, 7, 10, tzinfo=UTC)
        starts = sequence(end, Resolution.HOUR, 3, ny)
        self.assertEqual(
            [s.astimezone(UTC) for s in starts],
            [datetime(2024, 3, 10, h, tzinfo=UTC) for h in (5, 6, 7)],
        )

    def test_non_positive_count_is_rejected(self) -> None:
        end = datetime(2024, 1, 1, tzinfo=UTC)
        for count in (0, -3, 2.5, True, "5"):
            with self.assertRaises(InvalidWindow):
                sequence(end, Resolution.HOUR, count)

    def test_window_before_year_one_is_rejected(self) -> None:
        with self.assertRaises(InvalidWindow):
            sequence(datetime(2, 6, 1, tzinfo=UTC), Resolution.YEAR, 5)

    def test_previous_start_of_january_is_december(self) -> None:
        self.assertEqual(
            previous_start(datetime(2024, 1, 1, tzinfo=UTC), Resolution.MONTH),
            datetime(2023, 12, 1, tzinfo=UTC),
        )

    def test_previous_start_steps_calendar_resolutions_by_date(self) -> None:
        self.assertEqual([r for r in Resolution if r.is_calendar], [Resolution.MONTH, Resolution.YEAR])
        paris = ZoneInfo("Europe/Paris")
        start = datetime(2024, 3, 1, tzinfo=paris)
        self.assertEqual(previous_start(start, Resolution.DAY, paris), datetime(2024, 2, 29, tzinfo=paris))
        self.assertEqual(previous_start(start, Resolution.MONTH, paris), datetime(2024, 2, 1, tzinfo=paris))
        self.assertEqual(previous_start(start, Resolution.YEAR, paris), datetime(2023, 1, 1, tzinfo=paris))

    def test_window_not_expressible_in_utc_is_rejected(self) -> None:
        tokyo = ZoneInfo("Asia/Tokyo")
        with self.assertRaises(InvalidWindow):
            sequence(datetime(1, 1, 1, 5, tzinfo=tokyo), Resolution.HOUR, 10, tokyo)


class BucketsBetweenTests(unittest.TestCase):
    def test_inclusive_of_both_ends(self) -> None:
        starts = buckets_between(
            datetime(2024, 1, 1, 10, 15, tzinfo=UTC),
            datetime(2024, 1, 1, 12, 5, tzinfo=UTC),
            Resolution.HOUR,
        )
        self.assertEqual([s.hour for s in starts], [10, 11, 12])

    def test_same_bucket_yields_single_start(self) -> None:
        instant = datetime(2024, 7, 4, tzinfo=UTC)
        self.assertEqual(buckets_between(instant, instant + timedelta(days=3), Resolution.MONTH), [datetime(2024, 7, 1, tzinfo=UTC)])

    def test_reversed_interval_is_rejected(self) -> None:
        with self.assertRaises(InvalidWindow):
            buckets_between(datetime(2024, 2, 1, tzinfo=UTC), datetime(2024, 1, 1, tzinfo=UTC), Resolution.DAY)

    def test_interval_not_expressible_in_utc_is_rejected(self) -> None:
        tokyo = ZoneInfo("Asia/Tokyo")
        with self.assertRaises(InvalidWindow):
            buckets_between(datetime(1, 1, 1, tzinfo=tokyo), datetime(1, 1, 2, tzinfo=tokyo), Resolution.DAY, tokyo)


class BucketKeyTests(unittest.TestCase):
    def test_encoding_is_compact_utc(self) -> None:
        self.assertEqual(bucket_key(datetime(1978, 10, 14, tzinfo=UTC)), "197810140000")
        tokyo = ZoneInfo("Asia/Tokyo")
        self.assertEqual(bucket_key(datetime(2024, 1, 2, tzinfo=tokyo)), "202401011500")

    def test_encoding_sorts_chronologically(self) -> None:
        starts = sequence(datetime(2024, 3, 1, tzinfo=UTC), Resolution.DAY, 40)
        keys = [bucket_key(s) for s in starts]
        self.assertEqual(keys, sorted(keys))


class ResolveTimezoneTests(unittest.TestCase):
    def test_known_names(self) -> None:
        self.assertIs(resolve_timezone(None), UTC)
        self.assertIs(resolve_timezone("utc"), UTC)
        self.assertEqual(resolve_timezone("Europe/Paris"), ZoneInfo("Europe/Paris"))

    def test_unknown_name(self) -> None:
        with self.assertRaises(ValueError):
            resolve_timezone("Mars/Olympus_Mons")


if __name__ == "__main__":
    unittest.main()
