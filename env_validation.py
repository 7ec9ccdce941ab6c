"""Environment variable validation and insight provider settings."""

import os
import logging
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_HUGGINGFACE_URL = "https://api-inference.huggingface.co/models"


class ConfigurationError(Exception):
    """Raised when environment variables are present but invalid."""
    pass


@dataclass(frozen=True)
class InsightSettings:
    openai_api_key: Optional[str]
    openai_api_url: str
    openai_model: str
    huggingface_api_key: Optional[str]
    huggingface_api_url: str
    huggingface_model: str
    provider_timeout: float
    fallback_timeout: float
    cache_ttl: float
    providers_enabled: bool

    @property
    def configured_providers(self) -> int:
        if not self.providers_enabled:
            return 0
        return sum(1 for key in (self.openai_api_key, self.huggingface_api_key) if key)


def get_env_bool(name: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on", "enabled"}


def _safe_float(env_name: str, default: float) -> float:
    raw = os.getenv(env_name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        logger.warning("Invalid float for %s: %r; using %s", env_name, raw, default)
        return default


def _optional(env_name: str) -> Optional[str]:
    value = (os.getenv(env_name) or "").strip()
    return value or None


def load_insight_settings() -> InsightSettings:
    """Read provider configuration from the environment."""
    return InsightSettings(
        openai_api_key=_optional("OPENAI_API_KEY"),
        openai_api_url=os.getenv("OPENAI_API_URL") or DEFAULT_OPENAI_URL,
        openai_model=os.getenv("OPENAI_MODEL") or "gpt-3.5-turbo",
        huggingface_api_key=_optional("HUGGINGFACE_API_KEY"),
        huggingface_api_url=os.getenv("HUGGINGFACE_API_URL") or DEFAULT_HUGGINGFACE_URL,
        huggingface_model=os.getenv("HUGGINGFACE_MODEL") or "EleutherAI/pythia-160m",
        provider_timeout=_safe_float("INSIGHT_PROVIDER_TIMEOUT", 8.0),
        fallback_timeout=_safe_float("INSIGHT_FALLBACK_TIMEOUT", 10.0),
        cache_ttl=_safe_float("INSIGHT_CACHE_TTL", 300.0),
        providers_enabled=get_env_bool("INSIGHT_PROVIDERS_ENABLED", True),
    )


def validate_environment() -> InsightSettings:
    """Validate insight-related environment variables.

    Raises ConfigurationError if validation fails. No variable is required:
    without provider keys every insight comes from the local fallback.
    """
    settings = load_insight_settings()

    url_vars = {"OPENAI_API_URL", "HUGGINGFACE_API_URL"}
    for var in url_vars:
        value = os.getenv(var)
        if value and not (value.startswith("http://") or value.startswith("https://")):
            raise ConfigurationError(f"Invalid URL format for {var}: {value}")

    timeouts: Dict[str, float] = {
        "INSIGHT_PROVIDER_TIMEOUT": settings.provider_timeout,
        "INSIGHT_FALLBACK_TIMEOUT": settings.fallback_timeout,
        "INSIGHT_CACHE_TTL": settings.cache_ttl,
    }
    for var, value in timeouts.items():
        if value <= 0:
            raise ConfigurationError(f"{var} must be positive, got {value}")

    optional_vars = {
        "OPENAI_API_KEY": "OpenAI insight provider",
        "HUGGINGFACE_API_KEY": "Hugging Face insight provider",
    }
    for var, description in optional_vars.items():
        if not os.getenv(var):
            logger.warning(f"Optional environment variable not set: {var} ({description})")

    if settings.configured_providers == 0:
        logger.info("No insight providers configured; using deterministic fallback only")
    return settings
