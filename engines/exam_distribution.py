"""Question budget allocation across categories for generated exams."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Dict, Iterable, Iterator, List, Sequence

logger = logging.getLogger(__name__)

SMALL_EXAM_LIMIT = 20
MARKS_PER_QUESTION = 2
MINUTES_PER_QUESTION = 0.75
NEGATIVE_MARKS_RATIO = 0.25

DEFAULT_PRIORITY_CATEGORIES = ("polity", "economy", "history", "science", "gk", "current-affairs")


class InvalidRequest(ValueError):
    """Raised when an allocation request cannot be satisfied."""


@dataclass(frozen=True)
class DistributionEntry:
    category: str
    count: int


@dataclass
class DistributionPlan:
    entries: List[DistributionEntry]
    requested_total: int
    min_per_category: int
    priority: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(entry.count for entry in self.entries)

    def counts(self) -> Dict[str, int]:
        return {entry.category: entry.count for entry in self.entries}

    def __iter__(self) -> Iterator[DistributionEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class QuickExam:
    exam_name: str
    plan: DistributionPlan
    negative_marking: bool

    @property
    def total_marks(self) -> int:
        return self.plan.total * MARKS_PER_QUESTION

    @property
    def duration_minutes(self) -> int:
        return math.ceil(self.plan.total * MINUTES_PER_QUESTION)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize in the shape the exam-creation endpoint accepts."""

        return {
            "examName": self.exam_name,
            "totalMarks": self.total_marks,
            "durationMinutes": self.duration_minutes,
            "questionDistribution": [
                {
                    "category": entry.category,
                    "count": entry.count,
                    "marksPerQuestion": MARKS_PER_QUESTION,
                }
                for entry in self.plan
            ],
            "negativeMarking": self.negative_marking,
            "negativeMarksRatio": NEGATIVE_MARKS_RATIO if self.negative_marking else 0,
        }


def min_per_category(total_questions: int, category_count: int) -> int:
    """Per-category floor before the budget check.

    Small exams (20 questions or fewer) aim for one or two questions per
    category; larger exams aim for at least three.
    """

    even_share = total_questions // category_count
    if total_questions <= SMALL_EXAM_LIMIT:
        floor = max(1, even_share)
        if total_questions >= 2 * category_count:
            floor = 2
    else:
        floor = max(3, even_share)
        if total_questions >= 3 * category_count:
            floor = 3
    return floor


def _unique(categories: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for category in categories:
        if category is None:
            continue
        name = str(category).strip()
        if not name or name in seen:
            continue
        seen.add(name)
        ordered.append(name)
    return ordered


def _largest_remainder(weights: Sequence[int], seats: int, is_priority: Sequence[bool]) -> List[int]:
    """Hamilton apportionment of ``seats`` proportionally to ``weights``."""

    total_weight = sum(weights)
    if total_weight <= 0 or seats <= 0:
        return [0] * len(weights)

    quotas = [Fraction(weight * seats, total_weight) for weight in weights]
    shares = [math.floor(quota) for quota in quotas]
    leftover = seats - sum(shares)
    order = sorted(
        range(len(weights)),
        key=lambda idx: (-(quotas[idx] - shares[idx]), not is_priority[idx], idx),
    )
    for idx in order[:leftover]:
        shares[idx] += 1
    return shares


def _sparse_plan(ordered: List[str], total: int, is_priority: List[bool]) -> List[int]:
    # Fewer questions than categories: one each, priority categories first.
    chosen = sorted(range(len(ordered)), key=lambda idx: (not is_priority[idx], idx))[:total]
    counts = [0] * len(ordered)
    for idx in chosen:
        counts[idx] = 1
    return counts


def allocate(
    categories: Sequence[str],
    total_questions: int,
    priority_categories: Iterable[str] = (),
) -> DistributionPlan:
    """Split ``total_questions`` across ``categories``.

    Every category first receives the per-category floor. The leftover budget
    is shared out with priority categories taking ``ceil(r / (p + 2))`` each and
    the rest ``floor(r / 3n)``. Any shortfall is handed out one question at a
    time to priority categories (or to every category when none is flagged);
    any overshoot is removed by largest-remainder apportionment of the extras.
    The resulting counts always sum to ``total_questions``.
    """

    ordered = _unique(categories or ())
    if not ordered:
        raise InvalidRequest("At least one category is required")
    if isinstance(total_questions, bool) or not isinstance(total_questions, int):
        raise InvalidRequest(f"total_questions must be an integer, got {total_questions!r}")
    if total_questions <= 0:
        raise InvalidRequest(f"total_questions must be positive, got {total_questions}")

    n = len(ordered)
    wanted = {str(item).strip().lower() for item in (priority_categories or ()) if item}
    is_priority = [name.lower() in wanted for name in ordered]
    priority = [name for name, flag in zip(ordered, is_priority) if flag]

    if total_questions < n:
        counts = _sparse_plan(ordered, total_questions, is_priority)
        logger.debug(
            "Sparse allocation: %d questions across %d categories", total_questions, n
        )
        entries = [
            DistributionEntry(name, count) for name, count in zip(ordered, counts) if count > 0
        ]
        return DistributionPlan(entries, total_questions, 1, priority)

    floor = min(min_per_category(total_questions, n), total_questions // n)
    remaining = total_questions - floor * n

    extras = [0] * n
    if remaining > 0:
        priority_share = math.ceil(remaining / (len(priority) + 2))
        other_share = remaining // (n * 3)
        extras = [priority_share if flag else other_share for flag in is_priority]

    difference = remaining - sum(extras)
    if difference > 0:
        targets = [idx for idx, flag in enumerate(is_priority) if flag] or list(range(n))
        for step in range(difference):
            extras[targets[step % len(targets)]] += 1
    elif difference < 0:
        extras = _largest_remainder(extras, remaining, is_priority)

    entries = [DistributionEntry(name, floor + extra) for name, extra in zip(ordered, extras)]
    plan = DistributionPlan(entries, total_questions, floor, priority)
    if plan.total != total_questions:  # pragma: no cover - guarded by construction
        raise AssertionError(
            f"Allocation drifted: expected {total_questions}, produced {plan.total}"
        )
    return plan


def build_quick_exam(
    categories: Sequence[str],
    total_questions: int,
    priority_categories: Iterable[str] = DEFAULT_PRIORITY_CATEGORIES,
    *,
    negative_marking: bool = False,
) -> QuickExam:
    plan = allocate(categories, total_questions, priority_categories)
    return QuickExam(
        exam_name=f"Quick Test - {plan.total} Questions",
        plan=plan,
        negative_marking=negative_marking,
    )


__all__ = [
    "DEFAULT_PRIORITY_CATEGORIES",
    "DistributionEntry",
    "DistributionPlan",
    "InvalidRequest",
    "QuickExam",
    "allocate",
    "build_quick_exam",
    "min_per_category",
]
