import unittest
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from contributions import WEEKDAYS, build_index, current_streak, date_key, layout_months

KST = ZoneInfo("Asia/Seoul")
NOW = datetime(2025, 3, 15, 3, 0, tzinfo=timezone.utc)
TODAY = date(2025, 3, 15)


class IndexTests(unittest.TestCase):
    def test_keys_are_local_dates(self):
        # 2025-03-14 16:00 UTC is already March 15 in Seoul.
        self.assertEqual(date_key(datetime(2025, 3, 14, 16, 0, tzinfo=timezone.utc), KST), "2025-03-15")
        self.assertEqual(date_key(datetime(2025, 3, 14, 14, 59, tzinfo=timezone.utc), KST), "2025-03-14")

    def test_window_and_dedup(self):
        stamps = [
            NOW,
            NOW - timedelta(hours=1),
            NOW - timedelta(days=3),
            NOW - timedelta(days=400),
            NOW + timedelta(days=1),
        ]
        self.assertEqual(build_index(stamps, 365, NOW, KST), {"2025-03-15", "2025-03-12"})

    def test_is_pure(self):
        stamps = [NOW - timedelta(days=d) for d in range(5)]
        first = build_index(stamps, 365, NOW, KST)
        self.assertEqual(first, build_index(list(stamps), 365, NOW, KST))
        self.assertEqual(len(stamps), 5)

    def test_empty(self):
        self.assertEqual(build_index([], 365, NOW, KST), set())


class LayoutTests(unittest.TestCase):
    def setUp(self):
        self.blocks = layout_months(TODAY, 6)

    def test_trailing_months_oldest_first(self):
        self.assertEqual(
            [(b.year, b.month) for b in self.blocks],
            [(2024, 10), (2024, 11), (2024, 12), (2025, 1), (2025, 2), (2025, 3)],
        )
        self.assertEqual(self.blocks[-1].label, "Mar 2025")

    def test_weeks_start_on_sunday(self):
        self.assertEqual(WEEKDAYS[0], "Sun")
        march = self.blocks[-1]
        # March 1, 2025 is a Saturday.
        self.assertEqual(march.weeks[0][:6], [None] * 6)
        self.assertEqual(march.weeks[0][6], date(2025, 3, 1))
        self.assertEqual(len(march.weeks), 6)
        self.assertTrue(all(len(week) == 7 for week in march.weeks))

    def test_future_days_are_blank(self):
        march = [d for week in self.blocks[-1].weeks for d in week if d is not None]
        self.assertEqual(march[-1], TODAY)
        self.assertEqual(len(march), 15)

    def test_leading_pad(self):
        october = self.blocks[0]
        # October 1, 2024 is a Tuesday.
        self.assertEqual(october.weeks[0][:3], [None, None, date(2024, 10, 1)])

    def test_year_boundary(self):
        blocks = layout_months(date(2025, 1, 10), 3)
        self.assertEqual([(b.year, b.month) for b in blocks], [(2024, 11), (2024, 12), (2025, 1)])


class StreakTests(unittest.TestCase):
    def keys(self, *offsets):
        return {(TODAY - timedelta(days=o)).isoformat() for o in offsets}

    def test_counts_back_from_today(self):
        self.assertEqual(current_streak(self.keys(0, 1, 2, 4), TODAY), 3)

    def test_blank_today_counts_from_yesterday(self):
        self.assertEqual(current_streak(self.keys(1, 2), TODAY), 2)

    def test_broken(self):
        self.assertEqual(current_streak(self.keys(2, 3), TODAY), 0)
        self.assertEqual(current_streak(set(), TODAY), 0)


if __name__ == "__main__":
    unittest.main()
