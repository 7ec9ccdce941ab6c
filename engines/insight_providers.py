"""Remote text-generation providers used by the insight pipeline."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Raised when a provider cannot return usable text."""


class TextProvider:
    """Send a prompt string, receive a text string."""

    name = "provider"

    async def generate(self, prompt: str) -> str:
        raise NotImplementedError


class CallableProvider(TextProvider):
    """Adapt an async callable into a provider."""

    def __init__(self, name: str, func: Callable[[str], Awaitable[str]]):
        self.name = name
        self._func = func

    async def generate(self, prompt: str) -> str:
        return await self._func(prompt)


class HttpTextProvider(TextProvider):
    """Shared POST/parse flow for JSON text-generation endpoints."""

    def __init__(
        self,
        *,
        api_url: str,
        api_key: str,
        model_id: str,
        timeout: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.model_id = model_id
        self.timeout = float(timeout)
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _url(self) -> str:
        return self.api_url

    def _payload(self, prompt: str) -> Dict[str, Any]:
        raise NotImplementedError

    def _extract_text(self, data: Any) -> str:
        raise NotImplementedError

    async def generate(self, prompt: str) -> str:
        start_time = perf_counter()
        client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        try:
            response = await client.post(
                self._url(),
                json=self._payload(prompt),
                headers=self._headers(),
            )
            response.raise_for_status()
            data = response.json()
            text = self._extract_text(data)
        except httpx.HTTPStatusError as exc:
            status = getattr(exc.response, "status_code", "unknown")
            body = exc.response.text[:300] if exc.response is not None else ""
            raise ProviderError(f"{self.name} returned HTTP {status}: {body}") from exc
        except httpx.TimeoutException as exc:
            raise ProviderError(f"{self.name} timed out after {self.timeout:.1f}s") from exc
        except (httpx.RequestError, ValueError, TypeError, KeyError, IndexError) as exc:
            raise ProviderError(f"{self.name} request failed: {exc}") from exc
        finally:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - closing failures are logged but ignored
                logger.debug("%s client close failed", self.name, exc_info=True)

        text = (text or "").strip()
        if not text:
            raise ProviderError(f"{self.name} returned an empty completion")
        logger.info(
            "%s produced %d chars in %d ms using model %s",
            self.name,
            len(text),
            int((perf_counter() - start_time) * 1000),
            self.model_id,
        )
        return text


class OpenAIChatProvider(HttpTextProvider):
    name = "openai"

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model_id,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": 150,
            "temperature": 0.7,
        }

    def _extract_text(self, data: Any) -> str:
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return data["choices"][0]["text"]


class HuggingFaceInferenceProvider(HttpTextProvider):
    name = "huggingface"

    def _url(self) -> str:
        return f"{self.api_url.rstrip('/')}/{self.model_id}"

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": 100,
                "temperature": 0.7,
                "do_sample": True,
                "top_p": 0.9,
                "return_full_text": False,
            },
            "options": {"wait_for_model": True, "use_cache": True},
        }

    def _extract_text(self, data: Any) -> str:
        if isinstance(data, list) and data and isinstance(data[0], dict):
            text = data[0].get("generated_text") or data[0].get("text")
            if text:
                return text
        if isinstance(data, dict) and data.get("generated_text"):
            return data["generated_text"]
        raise ValueError(f"Unexpected response format: {str(data)[:200]}")


def build_providers(settings) -> List[TextProvider]:
    """Instantiate the providers whose API keys are configured."""

    if not settings.providers_enabled:
        return []

    providers: List[TextProvider] = []
    if settings.huggingface_api_key:
        providers.append(
            HuggingFaceInferenceProvider(
                api_url=settings.huggingface_api_url,
                api_key=settings.huggingface_api_key,
                model_id=settings.huggingface_model,
                timeout=settings.provider_timeout,
            )
        )
    if settings.openai_api_key:
        providers.append(
            OpenAIChatProvider(
                api_url=settings.openai_api_url,
                api_key=settings.openai_api_key,
                model_id=settings.openai_model,
                timeout=settings.provider_timeout,
            )
        )
    return providers


__all__ = [
    "CallableProvider",
    "HttpTextProvider",
    "HuggingFaceInferenceProvider",
    "OpenAIChatProvider",
    "ProviderError",
    "TextProvider",
    "build_providers",
]
