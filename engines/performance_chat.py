"""Answer learner questions about their own performance."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Sequence

from engines.categories import detect_category_in_question
from engines.insight_pipeline import SummaryStats, format_percent
from engines.insight_providers import TextProvider
from engines.weak_areas import CategoryScore, PerformanceRecord, WeakArea, category_breakdown

logger = logging.getLogger(__name__)

ANSWER_TIMEOUT_SECONDS = 15.0


def _sessions(count: int) -> str:
    return f"{count} session{'s' if count != 1 else ''}"


def _verdict(accuracy: float, high: str, mid: str, low: str) -> str:
    if accuracy >= 80:
        return high
    if accuracy >= 60:
        return mid
    return low


def fallback_answer(
    question: str,
    stats: SummaryStats,
    weak_areas: Sequence[WeakArea],
    breakdown: Optional[Dict[str, CategoryScore]] = None,
) -> str:
    """Rule-based answer used whenever no provider can respond."""

    lowered = (question or "").lower()
    breakdown = breakdown or {}
    category = detect_category_in_question(question)
    bucket = breakdown.get(category) if category else None
    accuracy = format_percent(stats.accuracy)

    asks_count = "how many" in lowered and ("question" in lowered or "attempt" in lowered)

    if bucket is not None:
        avg = f"{bucket.mean:.1f}"
        sessions = _sessions(bucket.sample_count)
        if asks_count:
            tail = (
                f"Your average accuracy in this category is {avg}% across {sessions}."
                if bucket.questions_attempted > 0
                else "Start practicing this category to see your progress!"
            )
            return f"You have attempted {bucket.questions_attempted} questions in {category}. {tail}"
        if "performance" in lowered or "how is" in lowered or "how am i" in lowered:
            return (
                f"Your {category} performance: {bucket.questions_attempted} questions attempted "
                f"with {avg}% average accuracy across {sessions}. "
                + _verdict(bucket.mean, "Excellent!", "Good progress!", "Keep practicing to improve.")
            )
        if "accuracy" in lowered or "score" in lowered or "percentage" in lowered:
            return (
                f"Your {category} accuracy is {avg}% based on {sessions} with "
                f"{bucket.questions_attempted} questions attempted. "
                + _verdict(
                    bucket.mean,
                    "Outstanding!",
                    "Good work!",
                    "Focus on reviewing mistakes and practicing more in this area.",
                )
            )
        if "improve" in lowered or "better" in lowered:
            return (
                f"To improve in {category} (currently {avg}% accuracy), practice 20-30 questions "
                "daily in this area, review explanations carefully, and focus on understanding "
                f"concepts. You've attempted {bucket.questions_attempted} questions so far - keep going!"
            )
        advice = (
            "Consider focusing more practice time on this category."
            if bucket.mean < 60
            else "Keep up the good work!"
        )
        return (
            f"For {category}: You've attempted {bucket.questions_attempted} questions with "
            f"{avg}% average accuracy across {sessions}. {advice}"
        )

    if asks_count:
        if category:
            return (
                f"I couldn't find specific data for {category} questions. You've attempted "
                f"{stats.total_attempted} questions overall. Try practicing this category to "
                "track your progress!"
            )
        tail = "Great dedication!" if stats.total_attempted >= 100 else "Keep practicing to improve your skills."
        return f"You have attempted {stats.total_attempted} questions overall. {tail}"

    if "improve" in lowered or "better" in lowered:
        if weak_areas:
            top = weak_areas[0]
            return (
                f"Based on your performance, focus on improving {top.category} where you're "
                f"scoring {top.average_score}%. Practice 20-30 questions daily in this area, "
                "review explanations carefully, and track your progress. Your "
                f"{accuracy}% overall accuracy shows you're on the right track!"
            )
        target = "7+" if stats.streak < 7 else "maintain your"
        return (
            f"Your current accuracy is {accuracy}%. To improve, practice consistently (aim for "
            f"{target} day streak), review mistakes thoroughly, and focus on understanding "
            "concepts rather than memorizing."
        )

    if "weak" in lowered or "struggl" in lowered:
        if weak_areas:
            listed = ", ".join(f"{area.category} ({area.average_score}%)" for area in weak_areas[:3])
            return (
                f"Your weak areas are: {listed}. Focus on these topics with targeted practice "
                "sessions. Review the explanations for incorrect answers to understand the "
                "concepts better."
            )
        return (
            f"Great news! You don't have any significantly weak areas. Your {accuracy}% accuracy "
            "is solid. Keep practicing to maintain and improve further!"
        )

    if "streak" in lowered or "consist" in lowered:
        verdict = "Excellent consistency!" if stats.streak >= 7 else "Keep it up to build a strong habit."
        return (
            f"You have a {stats.streak}-day streak! {verdict} Consistency is key to improvement. "
            "Try to maintain daily practice."
        )

    if "score" in lowered or "accuracy" in lowered or "performance" in lowered:
        verdict = _verdict(
            stats.accuracy, "Outstanding performance!", "Good progress!", "Keep practicing to improve."
        )
        return (
            f"Your overall accuracy is {accuracy}% with {stats.total_attempted} questions "
            f"attempted. {verdict} Focus on weak areas and maintain your practice streak."
        )

    focus = f"Focus on improving {weak_areas[0].category}. " if weak_areas else ""
    return (
        f"Based on your performance data: {accuracy}% accuracy, {stats.total_attempted} questions "
        f"attempted, and a {stats.streak}-day streak. {focus}Keep practicing consistently for "
        "better results!"
    )


def build_question_prompt(
    question: str,
    stats: SummaryStats,
    weak_areas: Sequence[WeakArea],
    breakdown: Dict[str, CategoryScore],
) -> str:
    lines = [
        "You are a helpful educational AI assistant. Answer the student's question about "
        "their performance based on the following data:",
        "",
        f"- Overall Accuracy: {format_percent(stats.accuracy)}%",
        f"- Total Questions Attempted: {stats.total_attempted}",
        f"- Current Streak: {stats.streak} days",
        "",
        "Category Performance:",
    ]
    if breakdown:
        for name, bucket in breakdown.items():
            lines.append(
                f"- {name}: {bucket.questions_attempted} questions attempted, "
                f"{bucket.mean:.1f}% average accuracy, {bucket.sample_count} sessions"
            )
    else:
        lines.append("- No category-specific data available yet.")

    if weak_areas:
        lines.append("Weak Areas:")
        lines.extend(
            f"- {area.category}: {area.average_score}% accuracy ({area.sample_count} tests)"
            for area in weak_areas
        )
    else:
        lines.append("No significant weak areas identified.")

    category = detect_category_in_question(question)
    lines.append("")
    if category and category in breakdown:
        lines.append(f'IMPORTANT: The student is asking about "{category}". Use the data for this category.')
    lines.append(f"Student Question: {question}")
    focus = f"Focus on the {category} category data specifically. " if category else ""
    lines.append(f"Provide a helpful, specific, and encouraging answer. {focus}(max 150 words):")
    return "\n".join(lines)


async def answer_question(
    question: str,
    stats: SummaryStats,
    weak_areas: Sequence[WeakArea],
    records: Sequence[PerformanceRecord] = (),
    provider: Optional[TextProvider] = None,
    *,
    timeout: float = ANSWER_TIMEOUT_SECONDS,
) -> str:
    """Ask ``provider`` about the learner's data, falling back to local rules."""

    breakdown = category_breakdown(records)
    if provider is None:
        return fallback_answer(question, stats, weak_areas, breakdown)

    prompt = build_question_prompt(question, stats, weak_areas, breakdown)
    try:
        text = await asyncio.wait_for(provider.generate(prompt), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Performance chat via %s timed out after %.1fs", provider.name, timeout)
        text = None
    except Exception as exc:
        logger.warning("Performance chat via %s failed: %s", provider.name, exc)
        text = None

    if text and text.strip():
        return text.strip()
    return fallback_answer(question, stats, weak_areas, breakdown)


__all__ = ["answer_question", "build_question_prompt", "fallback_answer"]
