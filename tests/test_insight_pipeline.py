import asyncio
import time
import unittest
from datetime import datetime

from engines.caching import InsightCache
from engines.insight_pipeline import (
    InsightSynthesisPipeline,
    SummaryStats,
    build_prompt,
    fallback_insight,
    fingerprint,
    is_well_formed,
)
from engines.insight_providers import CallableProvider, ProviderError
from engines.weak_areas import PerformanceRecord, WeakArea


class FakeClock:
    def __init__(self, start: float = 50.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class CountingProvider(CallableProvider):
    """Provider double that records calls and can delay, fail or be cancelled."""

    def __init__(self, name, text="Practice ten polity questions daily.", delay=0.0, error=None):
        super().__init__(name, self._respond)
        self.text = text
        self.delay = delay
        self.error = error
        self.calls = 0
        self.prompts = []
        self.cancelled = False

    async def _respond(self, prompt):
        self.calls += 1
        self.prompts.append(prompt)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.text


HISTORY = [WeakArea("History", 38, 2)]


class FallbackTemplateTests(unittest.TestCase):
    def test_outstanding_tier(self):
        text = fallback_insight(SummaryStats(85, 40, 1), [])
        self.assertIn("Outstanding 85% accuracy", text)
        self.assertTrue(text.endswith("Next step: Practice 20 questions today, review all mistakes carefully."))

    def test_fundamentals_tier(self):
        text = fallback_insight(SummaryStats(45, 10, 0), [])
        self.assertIn("focus on fundamentals", text)
        self.assertNotIn("streak", text)

    def test_full_template_is_deterministic(self):
        text = fallback_insight(SummaryStats(72, 150, 8), HISTORY)
        self.assertEqual(
            text,
            "👍 Solid 72% accuracy. You're on the right track. "
            "Your 8-day streak shows exceptional consistency! "
            "150 questions completed shows dedication. "
            "Priority: Improve History (38%). Dedicate 15-20 min daily here. "
            "Next step: Practice 20 questions today, review all mistakes carefully.",
        )
        self.assertEqual(text, fallback_insight(SummaryStats(72, 150, 8), HISTORY))

    def test_short_streak_phrase(self):
        self.assertIn("3-day streak is great progress.", fallback_insight(SummaryStats(65.5, 5, 3), []))

    def test_fallback_is_never_well_formed_provider_output(self):
        for accuracy in (95, 70, 20):
            self.assertFalse(is_well_formed(fallback_insight(SummaryStats(accuracy, 0, 0), [])))
        self.assertFalse(is_well_formed("   "))
        self.assertTrue(is_well_formed("Revise the constitution chapters."))


class FingerprintTests(unittest.TestCase):
    def test_same_inputs_same_key(self):
        stats = SummaryStats(85, 120, 4)
        self.assertEqual(fingerprint(stats, HISTORY), fingerprint(SummaryStats(85.0, 120, 4), HISTORY))

    def test_leading_category_changes_key(self):
        stats = SummaryStats(85, 120, 4)
        self.assertNotEqual(fingerprint(stats, HISTORY), fingerprint(stats, [WeakArea("Polity", 38, 2)]))
        self.assertNotEqual(fingerprint(stats, HISTORY), fingerprint(stats, []))

    def test_accuracies_sharing_a_display_form_get_distinct_keys(self):
        below = SummaryStats(79.96, 10, 0)
        above = SummaryStats(80.04, 10, 0)
        self.assertNotEqual(fingerprint(below, []), fingerprint(above, []))

    def test_only_leading_weak_area_matters(self):
        stats = SummaryStats(85, 120, 4)
        extended = HISTORY + [WeakArea("Polity", 50, 3)]
        self.assertEqual(fingerprint(stats, HISTORY), fingerprint(stats, extended))


class PromptTests(unittest.TestCase):
    def test_prompt_mentions_stats_and_leading_weak_area(self):
        prompt = build_prompt(SummaryStats(55, 80, 2), HISTORY + [WeakArea("Polity", 50, 3)])
        self.assertIn("55% accuracy", prompt)
        self.assertIn("80 questions attempted", prompt)
        self.assertIn("History (38%, 2 tests)", prompt)
        self.assertNotIn("Polity", prompt)

    def test_prompt_summarises_recent_sessions(self):
        records = [PerformanceRecord("History Prelims", 30), PerformanceRecord("History Mains", 60)]
        prompt = build_prompt(SummaryStats(55, 80, 2), [], records)
        self.assertIn("Recent sessions (2): avg 45.0%", prompt)
        self.assertIn("Scores improving.", prompt)

    def test_prompt_orders_sessions_by_date(self):
        records = [
            PerformanceRecord("History Mains", 60, occurred_at=datetime(2024, 3, 5)),
            PerformanceRecord("History Prelims", 30, occurred_at=datetime(2024, 3, 1)),
        ]
        prompt = build_prompt(SummaryStats(55, 80, 2), [], records)
        self.assertIn("Latest: History Mains - 60.0%.", prompt)
        self.assertIn("Scores improving.", prompt)


class InsightPipelineTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cache = InsightCache(ttl_seconds=300, clock=self.clock)
        self.stats = SummaryStats(72, 150, 8)

    def _pipeline(self, providers, **kwargs):
        return InsightSynthesisPipeline(providers, cache=self.cache, **kwargs)

    async def test_no_providers_always_uses_fallback(self):
        pipeline = self._pipeline([])

        text = await pipeline.synthesize(SummaryStats(85, 10, 0), [])
        self.assertIn("Outstanding", text)
        self.assertEqual(text, fallback_insight(SummaryStats(85, 10, 0), []))

        low = await pipeline.synthesize(SummaryStats(45, 10, 0), [])
        self.assertIn("focus on fundamentals", low)

    async def test_tier_boundary_is_not_served_from_a_neighbouring_entry(self):
        pipeline = self._pipeline([])

        solid = await pipeline.synthesize(SummaryStats(79.96, 10, 0), [])
        outstanding = await pipeline.synthesize(SummaryStats(80.04, 10, 0), [])

        self.assertTrue(solid.startswith("👍 Solid"))
        self.assertTrue(outstanding.startswith("🌟 Outstanding"))
        self.assertEqual(len(self.cache), 2)

    async def test_cache_hit_skips_providers(self):
        provider = CountingProvider("remote")
        pipeline = self._pipeline([provider])

        first = await pipeline.synthesize(self.stats, HISTORY)
        second = await pipeline.synthesize(self.stats, HISTORY)

        self.assertEqual(first, "Practice ten polity questions daily.")
        self.assertEqual(first, second)
        self.assertEqual(provider.calls, 1)

    async def test_expired_entry_triggers_fresh_synthesis(self):
        provider = CountingProvider("remote")
        pipeline = self._pipeline([provider])

        await pipeline.synthesize(self.stats, HISTORY)
        self.clock.now += 301
        await pipeline.synthesize(self.stats, HISTORY)

        self.assertEqual(provider.calls, 2)

    async def test_changed_stats_miss_the_cache(self):
        provider = CountingProvider("remote")
        pipeline = self._pipeline([provider])

        await pipeline.synthesize(self.stats, HISTORY)
        await pipeline.synthesize(SummaryStats(73, 150, 8), HISTORY)

        self.assertEqual(provider.calls, 2)

    async def test_fastest_provider_wins_and_loser_is_cancelled(self):
        fast = CountingProvider("fast", text="Fast tip.", delay=0.01)
        slow = CountingProvider("slow", text="Slow tip.", delay=1.0)
        pipeline = self._pipeline([slow, fast], provider_timeout=2.0, fallback_timeout=5.0)

        text = await pipeline.synthesize(self.stats, HISTORY)

        self.assertEqual(text, "Fast tip.")
        self.assertTrue(slow.cancelled)
        self.assertEqual(self.cache.get(fingerprint(self.stats, HISTORY)), "Fast tip.")

    async def test_failing_providers_fall_back_without_waiting_for_timer(self):
        broken = CountingProvider("broken", error=ProviderError("HTTP 500"))
        empty = CountingProvider("empty", text="")
        pipeline = self._pipeline([broken, empty], fallback_timeout=5.0)

        started = time.perf_counter()
        text = await pipeline.synthesize(self.stats, HISTORY)

        self.assertEqual(text, fallback_insight(self.stats, HISTORY))
        self.assertLess(time.perf_counter() - started, 2.0)
        self.assertEqual(broken.calls, 1)
        self.assertEqual(empty.calls, 1)

    async def test_provider_timeout_counts_as_a_loss(self):
        sluggish = CountingProvider("sluggish", delay=1.0)
        pipeline = self._pipeline([sluggish], provider_timeout=0.05, fallback_timeout=5.0)

        text = await pipeline.synthesize(self.stats, HISTORY)

        self.assertEqual(text, fallback_insight(self.stats, HISTORY))

    async def test_fallback_timer_beats_slow_providers(self):
        sluggish = CountingProvider("sluggish", delay=1.0)
        pipeline = self._pipeline([sluggish], provider_timeout=5.0, fallback_timeout=0.05)

        text = await pipeline.synthesize(self.stats, HISTORY)

        self.assertEqual(text, fallback_insight(self.stats, HISTORY))
        self.assertTrue(sluggish.cancelled)
        self.assertEqual(self.cache.get(fingerprint(self.stats, HISTORY)), text)

    async def test_disguised_fallback_loses_to_real_answer(self):
        echo = CountingProvider("echo", text="🌟 Outstanding work!")
        real = CountingProvider("real", text="Revise Mughal history timelines.", delay=0.02)
        pipeline = self._pipeline([echo, real], fallback_timeout=5.0)

        text = await pipeline.synthesize(self.stats, HISTORY)

        self.assertEqual(text, "Revise Mughal history timelines.")

    async def test_unexpected_errors_never_escape(self):
        crashing = CountingProvider("crashing", error=RuntimeError("boom"))
        pipeline = self._pipeline([crashing])

        text = await pipeline.synthesize(self.stats, HISTORY)

        self.assertEqual(text, fallback_insight(self.stats, HISTORY))

    async def test_prompt_sent_to_providers(self):
        provider = CountingProvider("remote")
        pipeline = self._pipeline([provider])

        await pipeline.synthesize(self.stats, HISTORY)

        self.assertIn("History (38%, 2 tests)", provider.prompts[0])

    async def test_clear_cache_forces_new_synthesis(self):
        provider = CountingProvider("remote")
        pipeline = self._pipeline([provider])

        await pipeline.synthesize(self.stats, HISTORY)
        pipeline.clear_cache()
        self.assertEqual(len(self.cache), 0)
        await pipeline.synthesize(self.stats, HISTORY)

        self.assertEqual(provider.calls, 2)

    async def test_preload_warms_cache_once(self):
        provider = CountingProvider("remote")
        pipeline = self._pipeline([provider])

        task = pipeline.preload(self.stats, HISTORY)
        self.assertIsNotNone(task)
        await task

        self.assertIsNone(pipeline.preload(self.stats, HISTORY))
        self.assertEqual(await pipeline.synthesize(self.stats, HISTORY), provider.text)
        self.assertEqual(provider.calls, 1)


class SettingsPipelineTests(unittest.TestCase):
    def test_from_settings_without_keys_has_no_providers(self):
        from env_validation import load_insight_settings

        pipeline = InsightSynthesisPipeline.from_settings(load_insight_settings(), cache=InsightCache())
        self.assertEqual(pipeline.providers, [])
        self.assertEqual(pipeline.provider_timeout, 8.0)
        self.assertEqual(pipeline.fallback_timeout, 10.0)

    def test_synthesize_runs_under_asyncio_run(self):
        pipeline = InsightSynthesisPipeline([], cache=InsightCache())
        text = asyncio.run(pipeline.synthesize(SummaryStats(90, 0, 0), []))
        self.assertTrue(text.startswith("🌟 Outstanding 90% accuracy!"))


if __name__ == "__main__":
    unittest.main()
