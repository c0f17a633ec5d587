"""
Model Layer — LLM Abstraction & Policy Enforcement.

Responsibility:
- Abstract specific LLM client details (OpenAI-compatible routers, Ollama)
- Enforce the per-call timeout from ModelPolicy
- Single attempt per call; callers decide what a failure means

This is the ONLY place where LLMs are called.
"""

import logging
import os
from typing import Any

import httpx

from observability.logger import Observability
from shared.models import ModelPolicy

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "meta-llama/llama-3.3-70b-instruct"


class ModelSelector:
    """Issues chat completions against the configured provider."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        configured_base_url = os.getenv("MODEL_BASE_URL", "").strip()
        self.base_url = (configured_base_url or base_url).rstrip("/")
        provider_raw = os.getenv("MODEL_PROVIDER", "auto").strip().lower()
        if provider_raw not in {"auto", "ollama", "openai_compatible"}:
            provider_raw = "auto"
        self.provider = self._resolve_provider(provider_raw, self.base_url)
        self.api_key = (
            os.getenv("MODEL_API_KEY", "").strip()
            or os.getenv("OPENROUTER_API_KEY", "").strip()
        )
        self.default_model = os.getenv("MODEL_NAME", DEFAULT_MODEL).strip() or DEFAULT_MODEL
        self.default_timeout = float(os.getenv("MODEL_TIMEOUT_SECONDS", "60"))

        base_headers: dict[str, str] = {}
        if self.provider == "openai_compatible" and self.api_key:
            base_headers["Authorization"] = f"Bearer {self.api_key}"

        # Persistent client with connection pooling
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.default_timeout,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            headers=base_headers,
            transport=transport,
        )
        self.observability = Observability()

    def default_policy(self, **overrides: Any) -> ModelPolicy:
        values: dict[str, Any] = {
            "model_name": self.default_model,
            "timeout_seconds": self.default_timeout,
        }
        values.update(overrides)
        return ModelPolicy(**values)

    async def complete(
        self,
        messages: list[dict[str, str]],
        policy: ModelPolicy | None = None,
        session_id: str | None = None,
    ) -> str:
        """Execute one chat completion and return the assistant text."""
        active_policy = policy or self.default_policy()
        obs = Observability(session_id) if session_id else self.observability
        with obs.measure(
            "model_call",
            {"model": active_policy.model_name, "provider": self.provider},
        ):
            if self.provider == "ollama":
                text = await self._call_ollama_chat(messages, active_policy)
            else:
                text = await self._call_openai_chat(messages, active_policy)
        return text.strip()

    async def close(self) -> None:
        await self._client.aclose()

    def _resolve_provider(self, provider_raw: str, base_url: str) -> str:
        if provider_raw != "auto":
            return provider_raw

        lowered = (base_url or "").strip().lower()
        if "11434" in lowered or "ollama" in lowered:
            return "ollama"
        return "openai_compatible"

    async def _call_openai_chat(self, messages: list[dict[str, str]], policy: ModelPolicy) -> str:
        """Low-level OpenAI-compatible /chat/completions call."""
        if not self.api_key and "openrouter.ai" in self.base_url:
            raise RuntimeError("OPENROUTER_API_KEY (or MODEL_API_KEY) is not set.")

        response = await self._client.post(
            "/chat/completions",
            json={
                "model": policy.model_name,
                "messages": messages,
                "temperature": policy.temperature,
                "max_tokens": policy.max_tokens,
            },
            timeout=policy.timeout_seconds,
        )
        response.raise_for_status()
        data = response.json()
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            return ""
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        return str(content or "")

    async def _call_ollama_chat(self, messages: list[dict[str, str]], policy: ModelPolicy) -> str:
        """Low-level Ollama /api/chat call."""
        response = await self._client.post(
            "/api/chat",
            json={
                "model": policy.model_name,
                "messages": messages,
                "stream": False,
                "options": {"temperature": policy.temperature, "num_predict": policy.max_tokens},
            },
            timeout=policy.timeout_seconds,
        )
        response.raise_for_status()
        data = response.json()
        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        return str(content or "")
