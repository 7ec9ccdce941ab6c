"""Pydantic schemas for the personalization API."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from engines.insight_pipeline import SummaryStats
from engines.weak_areas import PerformanceRecord, WeakArea

__all__ = [
    "PerformanceRecordIn",
    "WeakAreaModel",
    "WeakAreasRequest",
    "WeakAreasResponse",
    "DistributionRequest",
    "DistributionEntryModel",
    "DistributionResponse",
    "QuickExamRequest",
    "QuestionAllocationModel",
    "QuickExamResponse",
    "SummaryStatsModel",
    "InsightRequest",
    "InsightResponse",
    "QuestionRequest",
    "QuestionResponse",
]


class PerformanceRecordIn(BaseModel):
    source_name: str = Field(default="", description="Exam or practice session name.")
    score_percent: float = Field(
        ge=0,
        le=100,
        description="Percentage (0-100) or a fraction strictly between 0 and 1.",
    )
    occurred_at: datetime | None = None
    category: str | None = Field(
        default=None,
        description="Explicit category; practice sessions usually carry one.",
    )
    questions_attempted: int = Field(default=0, ge=0)

    def to_record(self) -> PerformanceRecord:
        return PerformanceRecord.from_mapping(self.model_dump())


class WeakAreaModel(BaseModel):
    category: str
    average_score: int = Field(ge=0, le=100)
    sample_count: int = Field(ge=0)
    suggestions: List[str] = Field(default_factory=list)

    def to_weak_area(self) -> WeakArea:
        return WeakArea(self.category, self.average_score, self.sample_count)


class WeakAreasRequest(BaseModel):
    records: List[PerformanceRecordIn] = Field(default_factory=list)
    top_k: int | None = Field(default=None, ge=0)


class WeakAreasResponse(BaseModel):
    weak_areas: List[WeakAreaModel]
    count: int


class DistributionRequest(BaseModel):
    categories: List[str]
    total_questions: int
    priority_categories: List[str] = Field(default_factory=list)


class DistributionEntryModel(BaseModel):
    category: str
    count: int


class DistributionResponse(BaseModel):
    distribution: List[DistributionEntryModel]
    total: int
    min_per_category: int


class QuickExamRequest(BaseModel):
    categories: List[str]
    total_questions: int
    priority_categories: List[str] | None = None
    negative_marking: bool = False


class QuestionAllocationModel(BaseModel):
    category: str
    count: int
    marks_per_question: int = Field(alias="marksPerQuestion")


class QuickExamResponse(BaseModel):
    """Quick-exam payload in the camelCase shape the exam-creation API accepts."""

    exam_name: str = Field(alias="examName")
    total_marks: int = Field(alias="totalMarks")
    duration_minutes: int = Field(alias="durationMinutes")
    question_distribution: List[QuestionAllocationModel] = Field(alias="questionDistribution")
    negative_marking: bool = Field(alias="negativeMarking")
    negative_marks_ratio: float = Field(alias="negativeMarksRatio")


class SummaryStatsModel(BaseModel):
    accuracy: float = Field(ge=0, le=100)
    total_attempted: int = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)

    def to_stats(self) -> SummaryStats:
        return SummaryStats(self.accuracy, self.total_attempted, self.streak)


class InsightRequest(BaseModel):
    stats: SummaryStatsModel
    weak_areas: List[WeakAreaModel] = Field(default_factory=list)
    records: List[PerformanceRecordIn] = Field(default_factory=list)


class InsightResponse(BaseModel):
    insight: str
    fingerprint: str


class QuestionRequest(BaseModel):
    question: str = Field(min_length=1)
    stats: SummaryStatsModel
    weak_areas: List[WeakAreaModel] = Field(default_factory=list)
    records: List[PerformanceRecordIn] = Field(default_factory=list)


class QuestionResponse(BaseModel):
    answer: str
    category: str | None = None
