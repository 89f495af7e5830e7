"""
Tests for daypart timeline construction.
"""

from datetime import datetime, timedelta, timezone

from conftest import make_record
from moodmap.emotion import Emotion
from moodmap.models import DayLabel, Segment, TimelineEntry
from moodmap.timeline import FALLBACK_TIMELINE, bucketize

NOW = datetime(2026, 3, 10, 13, 0, tzinfo=timezone.utc)
TODAY = NOW.replace(hour=0, minute=0)
YESTERDAY = TODAY - timedelta(days=1)


def at(day: datetime, hour: int, minute: int = 0) -> datetime:
    return day.replace(hour=hour, minute=minute)


def labels(entries: list[TimelineEntry]) -> list[tuple[str, str]]:
    return [(e.day_label.value, e.segment.value) for e in entries]


class TestBucketize:
    """Test suite for bucketize()."""

    def test_fallback_when_no_daypart_matches(self):
        """Test that samples outside every window yield the fixed fallback."""
        record = make_record(
            "Austin",
            0.9,
            [
                (at(TODAY, 11, 30), 0.9),
                (at(TODAY, 16), 0.1),
                (at(YESTERDAY, 20), 0.5),
                (at(YESTERDAY - timedelta(days=1), 18, 30), 0.5),
            ],
        )

        entries = bucketize(record, NOW)

        assert entries == list(FALLBACK_TIMELINE)
        assert labels(entries) == [
            ("Yesterday", "Evening"),
            ("Yesterday", "Night"),
            ("Today", "Morning"),
            ("Today", "Afternoon"),
            ("Today", "Evening"),
            ("Today", "Night"),
            ("Tomorrow", "Morning"),
        ]
        assert [e.emotion for e in entries] == [
            Emotion.NEUTRAL,
            Emotion.ANGRY,
            Emotion.SAD,
            Emotion.NEUTRAL,
            Emotion.NEUTRAL,
            Emotion.HAPPY,
            Emotion.NEUTRAL,
        ]
        assert [e.is_now for e in entries] == [False, False, False, True, False, False, False]

    def test_fallback_for_empty_timeline(self):
        assert bucketize(make_record("Austin"), NOW) == list(FALLBACK_TIMELINE)

    def test_single_sample_yesterday_evening(self):
        """Test one match produces its entry plus a tomorrow prediction."""
        record = make_record("Austin", 0.3, [(at(YESTERDAY, 18, 30), 0.9)])

        entries = bucketize(record, NOW)

        assert entries == [
            TimelineEntry(
                day_label=DayLabel.YESTERDAY,
                segment=Segment.EVENING,
                emotion=Emotion.HAPPY,
                is_now=False,
            ),
            TimelineEntry(
                day_label=DayLabel.TOMORROW,
                segment=Segment.MORNING,
                emotion=Emotion.SAD,
                is_now=False,
            ),
        ]

    def test_full_day_is_chronological_regardless_of_input_order(self):
        record = make_record(
            "Austin",
            0.5,
            [
                (at(TODAY, 21, 15), 0.9),
                (at(YESTERDAY, 22, 45), 0.1),
                (at(TODAY, 8), 0.3),
                (at(TODAY, 19, 59), 0.65),
                (at(YESTERDAY, 19), 0.5),
                (at(TODAY, 15, 30), 0.45),
            ],
        )

        entries = bucketize(record, NOW)

        assert labels(entries) == [
            ("Yesterday", "Evening"),
            ("Yesterday", "Night"),
            ("Today", "Morning"),
            ("Today", "Afternoon"),
            ("Today", "Evening"),
            ("Today", "Night"),
            ("Tomorrow", "Morning"),
        ]
        assert [e.emotion for e in entries] == [
            Emotion.NEUTRAL,
            Emotion.ANGRY,
            Emotion.SAD,
            Emotion.NEUTRAL,
            Emotion.SURPRISED,
            Emotion.HAPPY,
            Emotion.NEUTRAL,
        ]

    def test_omitted_slots_keep_relative_order(self):
        record = make_record(
            "Austin", 0.5, [(at(TODAY, 18), 0.5), (at(YESTERDAY, 21), 0.5)]
        )
        assert labels(bucketize(record, NOW)) == [
            ("Yesterday", "Night"),
            ("Today", "Evening"),
            ("Tomorrow", "Morning"),
        ]

    def test_latest_sample_in_window_wins(self):
        record = make_record(
            "Austin",
            0.5,
            [(at(TODAY, 9, 45), 0.9), (at(TODAY, 8, 5), 0.1), (at(TODAY, 9, 10), 0.3)],
        )
        entries = bucketize(record, NOW)
        assert entries[0].segment == Segment.MORNING
        assert entries[0].emotion == Emotion.HAPPY

    def test_is_now_windows(self):
        record = make_record(
            "Austin",
            0.5,
            [
                (at(TODAY, 8), 0.5),
                (at(TODAY, 14), 0.5),
                (at(TODAY, 18), 0.5),
                (at(TODAY, 21), 0.5),
                (at(YESTERDAY, 18), 0.5),
            ],
        )

        def now_segment(hour: int) -> list[str]:
            entries = bucketize(record, at(TODAY, hour, 30))
            return [f"{e.day_label.value} {e.segment.value}" for e in entries if e.is_now]

        assert now_segment(7) == []
        assert now_segment(8) == ["Today Morning"]
        assert now_segment(11) == ["Today Morning"]
        assert now_segment(12) == ["Today Afternoon"]
        assert now_segment(17) == ["Today Afternoon"]
        assert now_segment(18) == ["Today Evening"]
        assert now_segment(20) == ["Today Evening"]
        assert now_segment(21) == ["Today Night"]
        assert now_segment(23) == ["Today Night"]

    def test_calendar_days_follow_now_timezone(self):
        """Test a UTC sample is placed by the wall clock of now's timezone."""
        eastern = timezone(timedelta(hours=-5))
        now = datetime(2026, 3, 10, 22, 0, tzinfo=eastern)
        # 23:30 UTC on the 10th is 18:30 on the 10th in UTC-5
        sample = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)

        entries = bucketize(make_record("Austin", 0.9, [(sample, 0.1)]), now)

        assert labels(entries) == [("Today", "Evening"), ("Tomorrow", "Morning")]
        assert entries[0].emotion == Emotion.ANGRY
        assert entries[-1].emotion == Emotion.HAPPY

    def test_naive_now_reads_aware_samples_in_local_time(self):
        """Test aware samples are converted to system local time when now is naive."""
        now = datetime(2026, 3, 10, 22, 0)
        sample = datetime(2026, 3, 10, 18, 30).astimezone()

        entries = bucketize(make_record("Austin", 0.9, [(sample, 0.1)]), now)

        assert labels(entries) == [("Today", "Evening"), ("Tomorrow", "Morning")]
        assert entries[0].emotion == Emotion.ANGRY
        assert entries[0].is_now is False

    def test_nan_score_classifies_neutral(self):
        record = make_record("Austin", float("nan"), [(at(TODAY, 14), float("nan"))])
        entries = bucketize(record, NOW)
        assert [e.emotion for e in entries] == [Emotion.NEUTRAL, Emotion.NEUTRAL]
