"""LLM API client.

Lightweight client calling the OpenAI Chat Completions API directly with
httpx, with exponential-backoff retries on throttling, server errors and
timeouts.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any

import httpx

from studystreak.core.config import settings

LOGGER = logging.getLogger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class LLMNotConfiguredError(RuntimeError):
    """No API key is configured."""


def extract_openai_content(result: dict[str, Any], fallback: str = "") -> str:
    """Message text from a Chat Completions response."""
    try:
        content = result["choices"][0]["message"]["content"]
        if isinstance(content, str):
            return content or fallback
        if isinstance(content, list):
            parts = [item.get("text", "") for item in content if isinstance(item, dict)]
            joined = "\n".join(parts).strip()
            return joined or fallback
        return fallback
    except (KeyError, IndexError, TypeError):
        return fallback


def extract_total_tokens(result: dict[str, Any]) -> int | None:
    usage = result.get("usage") if isinstance(result, dict) else None
    if not isinstance(usage, dict):
        return None
    total = usage.get("total_tokens")
    return int(total) if isinstance(total, (int, float)) else None


class LLMClient:
    """Chat Completions over httpx with exponential backoff between attempts."""

    def __init__(
        self,
        openai_key: str = "",
        timeout: float = 60.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.openai_key = openai_key or settings.OPENAI_API_KEY
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.openai_key)

    async def call_openai(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        if not self.configured:
            raise LLMNotConfiguredError("OPENAI_API_KEY is not set")

        model = model or settings.AI_MODEL
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": settings.AI_TEMPERATURE if temperature is None else temperature,
            "max_tokens": max_tokens or settings.AI_MAX_TOKENS,
        }
        return await self._post(payload, model)

    async def _backoff(self, provider: str, attempt: int) -> None:
        wait = (2 ** attempt) + random.uniform(0, 1)
        LOGGER.info("[%s] retrying in %.1fs", provider, wait)
        await asyncio.sleep(wait)

    async def _post(self, payload: dict[str, Any], model: str, provider: str = "OpenAI") -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.openai_key}"}
        last_attempt = self.max_retries - 1

        for attempt in range(self.max_retries):
            started = time.perf_counter()
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(OPENAI_API_URL, headers=headers, json=payload)
            except httpx.TransportError as exc:
                LOGGER.warning(
                    "[%s] %s model=%s attempt=%d/%d",
                    provider, type(exc).__name__, model, attempt + 1, self.max_retries,
                )
                if attempt == last_attempt:
                    raise
                await self._backoff(provider, attempt)
                continue

            elapsed = time.perf_counter() - started
            if response.is_success:
                LOGGER.info("[%s] model=%s ok in %.2fs", provider, model, elapsed)
                try:
                    body = response.json()
                except ValueError:
                    body = None
                if not isinstance(body, dict):
                    LOGGER.error("[%s] unexpected body: %s", provider, response.text[:200])
                    raise httpx.DecodingError(
                        f"{provider} returned a non-JSON-object body", request=response.request
                    )
                return body

            LOGGER.warning(
                "[%s] status=%d model=%s elapsed=%.2fs body=%s",
                provider, response.status_code, model, elapsed, response.text[:500],
            )
            if response.status_code in RETRYABLE_STATUS_CODES and attempt < last_attempt:
                await self._backoff(provider, attempt)
                continue
            raise httpx.HTTPStatusError(
                f"{provider} API error: {response.status_code}",
                request=response.request,
                response=response,
            )

        raise RuntimeError(f"{provider} API call made no attempts (max_retries={self.max_retries})")


_instance: LLMClient | None = None


def get_llm_client() -> LLMClient:
    global _instance
    if _instance is None:
        _instance = LLMClient()
    return _instance
