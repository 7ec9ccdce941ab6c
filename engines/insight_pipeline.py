"""Insight synthesis: cache lookup, provider race and deterministic fallback.

Each call to :meth:`InsightSynthesisPipeline.synthesize` first consults the
process-wide insight cache. On a miss it starts one task per configured
provider (each bounded by its own timeout) together with a fallback timer,
takes the first well-formed completion and cancels the rest. When every
provider fails, or the timer fires first, the locally templated insight is
used instead. Whatever wins is cached under the statistics fingerprint.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from engines.caching import INSIGHT_CACHE, InsightCache
from engines.insight_providers import TextProvider, build_providers
from engines.weak_areas import PerformanceRecord, WeakArea, analyze_trend, chronological

logger = logging.getLogger(__name__)
_INSIGHT_LOGGER = logging.getLogger("padhlo.insights")

PROVIDER_TIMEOUT_SECONDS = 8.0
FALLBACK_TIMEOUT_SECONDS = 10.0

# Tier markers only the local template emits; a provider echoing them is
# treated as a disguised fallback.
FALLBACK_MARKERS = ("🌟", "👍", "💪")


@dataclass(frozen=True)
class SummaryStats:
    accuracy: float
    total_attempted: int
    streak: int


def format_percent(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return f"{number:.1f}"


def fingerprint(stats: SummaryStats, weak_areas: Sequence[WeakArea]) -> str:
    """Derive the cache key from the statistics that shape the insight."""

    leading = weak_areas[0].category if weak_areas else ""
    raw = "|".join(
        [repr(float(stats.accuracy)), str(int(stats.total_attempted)), str(int(stats.streak)), leading]
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def fallback_insight(stats: SummaryStats, weak_areas: Sequence[WeakArea]) -> str:
    accuracy = format_percent(stats.accuracy)
    parts: List[str] = []

    if stats.accuracy >= 80:
        parts.append(f"🌟 Outstanding {accuracy}% accuracy! You're excelling. ")
    elif stats.accuracy >= 60:
        parts.append(f"👍 Solid {accuracy}% accuracy. You're on the right track. ")
    else:
        parts.append(f"💪 At {accuracy}%, focus on fundamentals through targeted practice. ")

    if stats.streak >= 7:
        parts.append(f"Your {stats.streak}-day streak shows exceptional consistency! ")
    elif stats.streak >= 3:
        parts.append(f"{stats.streak}-day streak is great progress. ")

    if stats.total_attempted >= 100:
        parts.append(f"{stats.total_attempted} questions completed shows dedication. ")

    if weak_areas:
        top = weak_areas[0]
        parts.append(
            f"Priority: Improve {top.category} ({top.average_score}%). "
            "Dedicate 15-20 min daily here. "
        )

    parts.append("Next step: Practice 20 questions today, review all mistakes carefully.")
    return "".join(parts)


def is_well_formed(text: Optional[str]) -> bool:
    if not text or not text.strip():
        return False
    return not any(marker in text for marker in FALLBACK_MARKERS)


def _session_summary(records: Sequence[PerformanceRecord]) -> str:
    ordered = chronological(records)
    recent = ordered[-5:]
    if not recent:
        return ""
    average = sum(record.score_percent for record in recent) / len(recent)
    latest = recent[-1]
    summary = (
        f"Recent sessions ({len(recent)}): avg {average:.1f}%. "
        f"Latest: {latest.source_name or latest.category or 'Session'} - "
        f"{latest.score_percent:.1f}%. "
    )
    trend = analyze_trend([record.score_percent for record in ordered])
    if trend is not None and trend.direction != "stable":
        summary += f"Scores {trend.direction}. "
    return summary


def build_prompt(
    stats: SummaryStats,
    weak_areas: Sequence[WeakArea],
    records: Optional[Sequence[PerformanceRecord]] = None,
) -> str:
    prompt = (
        f"Student performance analysis: Overall {format_percent(stats.accuracy)}% accuracy, "
        f"{stats.total_attempted} questions attempted, {stats.streak}-day streak. "
    )
    if records:
        prompt += _session_summary(records)
    if weak_areas:
        top = weak_areas[0]
        prompt += f"Weakest area: {top.category} ({top.average_score}%, {top.sample_count} tests). "
    prompt += (
        "Provide 2-3 brief, actionable, motivational tips based on this data "
        "(max 120 words)."
    )
    return prompt


class InsightSynthesisPipeline:
    """Race configured providers against a fallback timer, with caching."""

    def __init__(
        self,
        providers: Optional[Iterable[TextProvider]] = None,
        *,
        cache: Optional[InsightCache] = None,
        provider_timeout: float = PROVIDER_TIMEOUT_SECONDS,
        fallback_timeout: float = FALLBACK_TIMEOUT_SECONDS,
    ):
        self.providers: List[TextProvider] = list(providers or [])
        self.cache = cache if cache is not None else INSIGHT_CACHE
        self.provider_timeout = float(provider_timeout)
        self.fallback_timeout = float(fallback_timeout)
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings, cache: Optional[InsightCache] = None) -> "InsightSynthesisPipeline":
        return cls(
            build_providers(settings),
            cache=cache,
            provider_timeout=settings.provider_timeout,
            fallback_timeout=settings.fallback_timeout,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def synthesize(
        self,
        stats: SummaryStats,
        weak_areas: Sequence[WeakArea],
        records: Optional[Sequence[PerformanceRecord]] = None,
    ) -> str:
        """Return an insight for ``stats``; never raises for provider trouble."""

        try:
            return await self._synthesize(stats, weak_areas, records)
        except Exception:
            logger.exception("Insight synthesis failed; serving local fallback")
            return fallback_insight(stats, weak_areas)

    def preload(
        self,
        stats: SummaryStats,
        weak_areas: Sequence[WeakArea],
    ) -> Optional[asyncio.Task]:
        """Warm the cache in the background unless a fresh entry exists."""

        if self.cache.get(fingerprint(stats, weak_areas)) is not None:
            return None
        task = asyncio.get_running_loop().create_task(
            self.synthesize(stats, weak_areas), name="insight:preload"
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def clear_cache(self) -> None:
        self.cache.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _synthesize(
        self,
        stats: SummaryStats,
        weak_areas: Sequence[WeakArea],
        records: Optional[Sequence[PerformanceRecord]],
    ) -> str:
        start = perf_counter()
        key = fingerprint(stats, weak_areas)

        cached = self.cache.get(key)
        if cached is not None:
            self._log_outcome(key, "cache", start, cache_hit=True)
            return cached

        fallback_text = fallback_insight(stats, weak_areas)
        if not self.providers:
            text, source = fallback_text, "fallback"
        else:
            prompt = build_prompt(stats, weak_areas, records)
            text, source = await self._race(prompt, fallback_text)

        self.cache.set(key, text)
        self._log_outcome(key, source, start, cache_hit=False)
        return text

    async def _call_provider(self, provider: TextProvider, prompt: str) -> Optional[str]:
        try:
            text = await asyncio.wait_for(provider.generate(prompt), timeout=self.provider_timeout)
        except asyncio.TimeoutError:
            logger.warning("Insight provider %s timed out after %.1fs", provider.name, self.provider_timeout)
            return None
        except Exception as exc:
            logger.warning("Insight provider %s failed: %s", provider.name, exc)
            return None

        if not is_well_formed(text):
            logger.warning("Insight provider %s returned an unusable completion", provider.name)
            return None
        return text.strip()

    async def _race(self, prompt: str, fallback_text: str) -> Tuple[str, str]:
        branches: Dict[asyncio.Task, str] = {
            asyncio.create_task(
                self._call_provider(provider, prompt), name=f"insight:{provider.name}"
            ): provider.name
            for provider in self.providers
        }
        timer = asyncio.create_task(asyncio.sleep(self.fallback_timeout), name="insight:fallback")
        pending: Set[asyncio.Task] = set(branches) | {timer}

        try:
            while True:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task, name in branches.items():
                    if task in done and task.result() is not None:
                        return task.result(), name
                if timer in done:
                    logger.info("Insight fallback timer fired after %.1fs", self.fallback_timeout)
                    return fallback_text, "fallback"
                if not pending - {timer}:
                    logger.info("All insight providers failed; using fallback")
                    return fallback_text, "fallback"
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    def _log_outcome(self, key: str, source: str, start: float, *, cache_hit: bool) -> None:
        record = {
            "event": "insight_synthesis",
            "fingerprint": key[:12],
            "source": source,
            "cache_hit": cache_hit,
            "latency_ms": int((perf_counter() - start) * 1000),
            "providers": [provider.name for provider in self.providers],
        }
        try:
            _INSIGHT_LOGGER.info(json.dumps(record, ensure_ascii=False))
        except (TypeError, ValueError):
            _INSIGHT_LOGGER.info(record)


_DEFAULT_PIPELINE: Optional[InsightSynthesisPipeline] = None


def get_pipeline() -> InsightSynthesisPipeline:
    """Return the process-wide pipeline built from environment settings."""

    global _DEFAULT_PIPELINE
    if _DEFAULT_PIPELINE is None:
        from env_validation import load_insight_settings

        settings = load_insight_settings()
        INSIGHT_CACHE.ttl_seconds = settings.cache_ttl
        _DEFAULT_PIPELINE = InsightSynthesisPipeline.from_settings(settings, cache=INSIGHT_CACHE)
    return _DEFAULT_PIPELINE


def reset_pipeline() -> None:
    global _DEFAULT_PIPELINE
    _DEFAULT_PIPELINE = None


def clear_cache() -> None:
    """Drop every cached insight, e.g. on logout."""

    INSIGHT_CACHE.clear()


__all__ = [
    "FALLBACK_MARKERS",
    "format_percent",
    "InsightSynthesisPipeline",
    "SummaryStats",
    "build_prompt",
    "clear_cache",
    "fallback_insight",
    "fingerprint",
    "get_pipeline",
    "is_well_formed",
    "reset_pipeline",
]
