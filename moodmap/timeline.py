"""
Daypart timeline construction.

Reduces a city's raw, unsorted mood samples into a fixed sequence of labeled
dayparts (yesterday evening through tomorrow morning) with a marker on the
daypart containing the current hour.

Daypart table (hours are inclusive, evaluated in the timezone of ``now``):

    Yesterday Evening   day -1   18-19   never now
    Yesterday Night     day -1   21-22   never now
    Today Morning       day  0    8-9    now during 8-11
    Today Afternoon     day  0   14-15   now during 12-17
    Today Evening       day  0   18-19   now during 18-20
    Today Night         day  0   21-22   now from 21
    Tomorrow Morning    predicted from the city's current score
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from .emotion import Emotion, classify
from .models import CityMoodRecord, DayLabel, MoodSample, Segment, TimelineEntry


@dataclass(frozen=True)
class _Slot:
    day_label: DayLabel
    segment: Segment
    day_offset: int
    first_hour: int
    last_hour: int
    now_from: int | None = None  # None: never marked as now
    now_until: int = 23

    def contains(self, hour: int) -> bool:
        return self.first_hour <= hour <= self.last_hour

    def is_now(self, hour: int) -> bool:
        return self.now_from is not None and self.now_from <= hour <= self.now_until


_SLOTS = (
    _Slot(DayLabel.YESTERDAY, Segment.EVENING, -1, 18, 19),
    _Slot(DayLabel.YESTERDAY, Segment.NIGHT, -1, 21, 22),
    _Slot(DayLabel.TODAY, Segment.MORNING, 0, 8, 9, now_from=8, now_until=11),
    _Slot(DayLabel.TODAY, Segment.AFTERNOON, 0, 14, 15, now_from=12, now_until=17),
    _Slot(DayLabel.TODAY, Segment.EVENING, 0, 18, 19, now_from=18, now_until=20),
    _Slot(DayLabel.TODAY, Segment.NIGHT, 0, 21, 22, now_from=21),
)

# Shown when no sample lands in any daypart
FALLBACK_TIMELINE = (
    TimelineEntry(day_label=DayLabel.YESTERDAY, segment=Segment.EVENING, emotion=Emotion.NEUTRAL),
    TimelineEntry(day_label=DayLabel.YESTERDAY, segment=Segment.NIGHT, emotion=Emotion.ANGRY),
    TimelineEntry(day_label=DayLabel.TODAY, segment=Segment.MORNING, emotion=Emotion.SAD),
    TimelineEntry(
        day_label=DayLabel.TODAY,
        segment=Segment.AFTERNOON,
        emotion=Emotion.NEUTRAL,
        is_now=True,
    ),
    TimelineEntry(day_label=DayLabel.TODAY, segment=Segment.EVENING, emotion=Emotion.NEUTRAL),
    TimelineEntry(day_label=DayLabel.TODAY, segment=Segment.NIGHT, emotion=Emotion.HAPPY),
    TimelineEntry(day_label=DayLabel.TOMORROW, segment=Segment.MORNING, emotion=Emotion.NEUTRAL),
)


def _localize(timestamp: datetime, now: datetime) -> datetime:
    """
    Express a sample time as a naive wall-clock time in now's timezone.

    A naive ``now`` is system local time, so aware samples are converted to
    local time. Naive samples are taken to already be in now's timezone.
    """
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(now.tzinfo) if now.tzinfo else timestamp.astimezone()
    return timestamp.replace(tzinfo=None)


def bucketize(record: CityMoodRecord, now: datetime) -> list[TimelineEntry]:
    """
    Build the display timeline for a city.

    When several samples fall in one daypart the latest of them is used.

    Args:
        record: The city's mood record; its timeline may be unsorted
        now: Current time; its timezone defines calendar days

    Returns:
        Entries for the matched dayparts in chronological order followed by a
        tomorrow-morning prediction, or the fixed fallback timeline when no
        daypart matched
    """
    local_now = _localize(now, now)
    today = local_now.date()

    samples: list[tuple[datetime, MoodSample]] = sorted(
        ((_localize(sample.timestamp, now), sample) for sample in record.timeline),
        key=lambda pair: pair[0],
        reverse=True,
    )

    entries = []
    for slot in _SLOTS:
        day = today + timedelta(days=slot.day_offset)
        match = next(
            (
                sample
                for local, sample in samples
                if local.date() == day and slot.contains(local.hour)
            ),
            None,
        )
        if match is None:
            continue

        entries.append(
            TimelineEntry(
                day_label=slot.day_label,
                segment=slot.segment,
                emotion=classify(match.score),
                is_now=slot.is_now(local_now.hour),
            )
        )

    if not entries:
        return list(FALLBACK_TIMELINE)

    entries.append(
        TimelineEntry(
            day_label=DayLabel.TOMORROW,
            segment=Segment.MORNING,
            emotion=classify(record.current_score),
            is_now=False,
        )
    )
    return entries
