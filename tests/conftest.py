import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


_PROVIDER_ENV = (
    "OPENAI_API_KEY",
    "HUGGINGFACE_API_KEY",
    "OPENAI_API_URL",
    "HUGGINGFACE_API_URL",
    "INSIGHT_PROVIDER_TIMEOUT",
    "INSIGHT_FALLBACK_TIMEOUT",
    "INSIGHT_CACHE_TTL",
    "INSIGHT_PROVIDERS_ENABLED",
)


@pytest.fixture(autouse=True)
def isolated_insights(monkeypatch):
    from engines import caching, insight_pipeline

    for var in _PROVIDER_ENV:
        monkeypatch.delenv(var, raising=False)

    # Reset the process-wide cache and pipeline for each test
    caching.INSIGHT_CACHE.clear()
    caching.INSIGHT_CACHE.ttl_seconds = caching.DEFAULT_TTL_SECONDS
    insight_pipeline.reset_pipeline()
    yield
    caching.INSIGHT_CACHE.clear()
    insight_pipeline.reset_pipeline()
