"""Weak-area aggregation over exam and practice performance records."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence

from engines.categories import DEFAULT_CATEGORY, classify

WEAK_THRESHOLD = 60
MIN_SAMPLES = 2
NOISY_CATEGORIES = frozenset({"Current Affairs", DEFAULT_CATEGORY})
NOISY_FLOOR = 30
TREND_WINDOW = 5
TREND_MARGIN = 5.0

TrendDirection = Literal["improving", "declining", "stable"]


@dataclass(frozen=True)
class PerformanceRecord:
    source_name: str
    score_percent: float
    occurred_at: Optional[datetime] = None
    category: Optional[str] = None  # practice sessions carry this directly
    questions_attempted: int = 0

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "PerformanceRecord":
        """Build a record from an exam or practice payload as the API returns it."""

        name = payload.get("source_name") or payload.get("examName") or payload.get("name") or ""
        raw_score = payload.get("score_percent")
        if raw_score is None:
            raw_score = payload.get("percentage")
        if raw_score is None:
            raw_score = payload.get("accuracy")
        occurred_at = payload.get("occurred_at") or payload.get("completedAt") or payload.get("createdAt")
        if isinstance(occurred_at, str):
            try:
                occurred_at = datetime.fromisoformat(occurred_at.replace("Z", "+00:00"))
            except ValueError:
                occurred_at = None
        category = payload.get("category")
        try:
            attempted = int(payload.get("questions_attempted") or payload.get("questionsAttempted") or 0)
        except (TypeError, ValueError):
            attempted = 0
        return cls(
            source_name=str(name),
            score_percent=normalize_score(raw_score),
            occurred_at=occurred_at if isinstance(occurred_at, datetime) else None,
            category=str(category) if category else None,
            questions_attempted=max(0, attempted),
        )


@dataclass
class CategoryScore:
    category: str
    scores: List[float] = field(default_factory=list)
    questions_attempted: int = 0

    @property
    def sample_count(self) -> int:
        return len(self.scores)

    @property
    def mean(self) -> float:
        if not self.scores:
            return 0.0
        return sum(self.scores) / len(self.scores)


@dataclass(frozen=True)
class WeakArea:
    category: str
    average_score: int
    sample_count: int


@dataclass(frozen=True)
class Trend:
    direction: TrendDirection
    recent_average: float
    earlier_average: float

    def describe(self) -> str:
        return (
            f"Trend: {self.direction} (recent avg: {self.recent_average:.1f}% "
            f"vs earlier: {self.earlier_average:.1f}%)"
        )


def normalize_score(value: Any) -> float:
    """Coerce a raw score into a 0-100 percentage.

    Strings are parsed, missing values become 0 and fractions strictly between
    0 and 1 are scaled up.
    """

    if value is None or value == "":
        return 0.0
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score):
        return 0.0
    if 0.0 < score < 1.0:
        score *= 100.0
    return max(0.0, min(100.0, score))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_category(record: PerformanceRecord) -> str:
    if record.category and record.category.strip():
        return record.category.strip()
    return classify(record.source_name)


def category_breakdown(records: Iterable[PerformanceRecord]) -> Dict[str, CategoryScore]:
    """Group scores per category, preserving first-seen order."""

    groups: Dict[str, CategoryScore] = {}
    for record in records:
        category = resolve_category(record)
        bucket = groups.get(category)
        if bucket is None:
            bucket = groups[category] = CategoryScore(category)
        bucket.scores.append(float(record.score_percent))
        bucket.questions_attempted += record.questions_attempted
    return groups


def chronological(records: Iterable[PerformanceRecord]) -> List[PerformanceRecord]:
    """Order records oldest first by ``occurred_at``.

    Undated records keep their input position relative to each other and sort
    ahead of dated ones; the sort is stable so equal timestamps keep input
    order.
    """

    def _key(item):
        index, record = item
        if record.occurred_at is None:
            return (0, 0.0, index)
        return (1, record.occurred_at.timestamp(), index)

    return [record for _, record in sorted(enumerate(records), key=_key)]


def _is_weak(category: str, average: int, sample_count: int) -> bool:
    if sample_count < MIN_SAMPLES:
        return False
    # A zero average means nothing was attempted, not that the learner is weak.
    if average <= 0 or average >= WEAK_THRESHOLD:
        return False
    if category in NOISY_CATEGORIES and average < NOISY_FLOOR:
        return False
    return True


def aggregate(
    records: Iterable[PerformanceRecord],
    top_k: Optional[int] = None,
) -> List[WeakArea]:
    """Return weak areas ordered weakest first.

    Categories need at least two samples and a rounded average strictly
    between 0 and 60. Current Affairs and General are additionally ignored
    below 30 because low scores in those umbrella buckets are not actionable.
    Ties keep the order in which categories were first seen.
    """

    weak_areas: List[WeakArea] = []
    for category, bucket in category_breakdown(records).items():
        average = round_half_up(bucket.mean)
        if _is_weak(category, average, bucket.sample_count):
            weak_areas.append(WeakArea(category, average, bucket.sample_count))

    weak_areas.sort(key=lambda area: area.average_score)
    if top_k is not None:
        weak_areas = weak_areas[: max(0, int(top_k))]
    return weak_areas


def analyze_trend(scores: Sequence[float]) -> Optional[Trend]:
    """Compare the newer half of the latest scores against the older half.

    ``scores`` must be in chronological order (oldest first). Only the last
    five positive scores are considered.
    """

    recent = [float(score) for score in scores[-TREND_WINDOW:] if score and score > 0]
    if len(recent) < 2:
        return None

    split = math.ceil(len(recent) / 2)
    earlier, newer = recent[:split], recent[split:]
    earlier_avg = sum(earlier) / len(earlier)
    newer_avg = sum(newer) / len(newer)

    if newer_avg > earlier_avg + TREND_MARGIN:
        direction: TrendDirection = "improving"
    elif newer_avg < earlier_avg - TREND_MARGIN:
        direction = "declining"
    else:
        direction = "stable"
    return Trend(direction, newer_avg, earlier_avg)


__all__ = [
    "CategoryScore",
    "PerformanceRecord",
    "Trend",
    "WeakArea",
    "aggregate",
    "analyze_trend",
    "category_breakdown",
    "chronological",
    "normalize_score",
    "resolve_category",
    "round_half_up",
]
