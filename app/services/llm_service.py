"""
Multi-Model LLM Service

Provides a unified interface for multiple AI model providers so agents never
see provider-specific request/response shapes.

Supported Providers:
- OpenAI (chat + embeddings)
- Anthropic (Claude)
- Google (Gemini, via google-genai)
- Groq (OpenAI-compatible endpoint)

A provider is registered only when its API key is present in the injected
Settings. With no keys at all, chat() raises ProviderNotConfiguredError and
callers fall through to their next tier.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.config import Settings, get_settings
from app.exceptions import ProviderNotConfiguredError
from app.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Enums and Types
# =============================================================================

class ModelProvider(str, Enum):
    """Supported AI providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    GROQ = "groq"


class TaskType(str, Enum):
    """Task types for model selection."""
    CHAT = "chat"  # Assistant conversation
    ANALYSIS = "analysis"  # Insight aggregation
    EXTRACTION = "extraction"  # Structured agent data


@dataclass
class ModelConfig:
    """Configuration for a model."""
    provider: ModelProvider
    model_id: str
    max_tokens: int
    cost_per_1k_input: float  # USD
    cost_per_1k_output: float
    supports_json_mode: bool = True


@dataclass
class ChatMessage:
    """A chat message."""
    role: str  # system, user, assistant
    content: str


@dataclass
class ChatCompletion:
    """Result from chat completion."""
    content: str
    model: str
    provider: ModelProvider
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost_usd: float
    latency_ms: float
    finish_reason: str = "stop"


# Provider preference by task type; the rest of FALLBACK_CHAIN follows
DEFAULT_PROVIDERS: dict[TaskType, ModelProvider] = {
    TaskType.CHAT: ModelProvider.GROQ,
    TaskType.ANALYSIS: ModelProvider.GOOGLE,
    TaskType.EXTRACTION: ModelProvider.OPENAI,
}

FALLBACK_CHAIN = [ModelProvider.OPENAI, ModelProvider.ANTHROPIC, ModelProvider.GOOGLE, ModelProvider.GROQ]


def build_model_catalog(settings: Settings) -> dict[ModelProvider, ModelConfig]:
    """One configured model per provider, taken from settings."""
    return {
        ModelProvider.OPENAI: ModelConfig(
            provider=ModelProvider.OPENAI,
            model_id=settings.openai_model,
            max_tokens=4096,
            cost_per_1k_input=0.00015,
            cost_per_1k_output=0.0006,
        ),
        ModelProvider.ANTHROPIC: ModelConfig(
            provider=ModelProvider.ANTHROPIC,
            model_id=settings.anthropic_model,
            max_tokens=4096,
            cost_per_1k_input=0.0008,
            cost_per_1k_output=0.004,
            supports_json_mode=False,
        ),
        ModelProvider.GOOGLE: ModelConfig(
            provider=ModelProvider.GOOGLE,
            model_id=settings.gemini_model,
            max_tokens=8192,
            cost_per_1k_input=0.0001,
            cost_per_1k_output=0.0004,
        ),
        ModelProvider.GROQ: ModelConfig(
            provider=ModelProvider.GROQ,
            model_id=settings.groq_model,
            max_tokens=4096,
            cost_per_1k_input=0.00059,
            cost_per_1k_output=0.00079,
        ),
    }


# =============================================================================
# JSON helpers
# =============================================================================

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_payload(text: str) -> dict:
    """
    Parse a JSON object out of model output.

    Accepts bare JSON, fenced ```json blocks, or JSON embedded in prose.

    Raises:
        ValueError: If no JSON object can be decoded
    """
    if not text or not text.strip():
        raise ValueError("Empty model response")

    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object in model response")
        try:
            payload = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in model response: {e}") from e

    if not isinstance(payload, dict):
        raise ValueError("Model response is not a JSON object")
    return payload


def _split_system(messages: list[ChatMessage]) -> tuple[Optional[str], list[ChatMessage]]:
    system_parts = [m.content for m in messages if m.role == "system"]
    rest = [m for m in messages if m.role != "system"]
    return ("\n\n".join(system_parts) if system_parts else None), rest


# =============================================================================
# Provider Clients
# =============================================================================

class BaseProvider(ABC):
    """Base class for model providers."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model_config: ModelConfig,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ChatCompletion:
        """Execute chat completion."""
        pass


class OpenAIProvider(BaseProvider):
    """OpenAI API provider."""

    provider = ModelProvider.OPENAI

    def __init__(self, api_key: str, timeout: float, base_url: Optional[str] = None):
        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model_config: ModelConfig,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ChatCompletion:
        start_time = utc_now()

        kwargs = {
            "model": model_config.model_id,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens or model_config.max_tokens,
        }

        if json_mode and model_config.supports_json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**kwargs)

        latency = (utc_now() - start_time).total_seconds() * 1000

        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        cost = (
            (prompt_tokens / 1000 * model_config.cost_per_1k_input) +
            (completion_tokens / 1000 * model_config.cost_per_1k_output)
        )

        return ChatCompletion(
            content=response.choices[0].message.content or "",
            model=model_config.model_id,
            provider=self.provider,
            input_tokens=prompt_tokens,
            output_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            cost_usd=cost,
            latency_ms=latency,
            finish_reason=response.choices[0].finish_reason or "stop",
        )

    async def embed(self, texts: list[str], model: str) -> list[list[float]]:
        response = await self.client.embeddings.create(model=model, input=texts)
        return [item.embedding for item in sorted(response.data, key=lambda d: d.index)]


class GroqProvider(OpenAIProvider):
    """Groq serves an OpenAI-compatible API, so it reuses the OpenAI client."""

    provider = ModelProvider.GROQ


class AnthropicProvider(BaseProvider):
    """Anthropic API provider."""

    def __init__(self, api_key: str, timeout: float):
        from anthropic import AsyncAnthropic
        self.client = AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model_config: ModelConfig,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ChatCompletion:
        start_time = utc_now()

        system_msg, chat_messages = _split_system(messages)
        if json_mode:
            json_instruction = "Respond with a single valid JSON object and nothing else."
            system_msg = f"{system_msg}\n\n{json_instruction}" if system_msg else json_instruction

        kwargs = {
            "model": model_config.model_id,
            "messages": [{"role": m.role, "content": m.content} for m in chat_messages],
            "max_tokens": max_tokens or model_config.max_tokens,
            "temperature": temperature,
        }

        if system_msg:
            kwargs["system"] = system_msg

        response = await self.client.messages.create(**kwargs)

        latency = (utc_now() - start_time).total_seconds() * 1000

        cost = (
            (response.usage.input_tokens / 1000 * model_config.cost_per_1k_input) +
            (response.usage.output_tokens / 1000 * model_config.cost_per_1k_output)
        )

        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")

        return ChatCompletion(
            content=text,
            model=model_config.model_id,
            provider=ModelProvider.ANTHROPIC,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            cost_usd=cost,
            latency_ms=latency,
            finish_reason=response.stop_reason or "stop",
        )


class GoogleProvider(BaseProvider):
    """Google Gemini API provider."""

    def __init__(self, api_key: str, timeout: float):
        from google import genai
        from google.genai import types
        self.types = types
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model_config: ModelConfig,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ChatCompletion:
        start_time = utc_now()

        system_msg, chat_messages = _split_system(messages)

        # Convert messages to Gemini format
        contents = [
            self.types.Content(
                role="model" if m.role == "assistant" else "user",
                parts=[self.types.Part(text=m.content)],
            )
            for m in chat_messages
        ]

        config = self.types.GenerateContentConfig(
            system_instruction=system_msg,
            temperature=temperature,
            max_output_tokens=max_tokens or model_config.max_tokens,
            response_mime_type="application/json" if json_mode else None,
        )

        response = await self.client.aio.models.generate_content(
            model=model_config.model_id,
            contents=contents,
            config=config,
        )

        latency = (utc_now() - start_time).total_seconds() * 1000

        usage = response.usage_metadata
        input_tokens = (usage.prompt_token_count or 0) if usage else 0
        output_tokens = (usage.candidates_token_count or 0) if usage else 0

        return ChatCompletion(
            content=response.text or "",
            model=model_config.model_id,
            provider=ModelProvider.GOOGLE,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cost_usd=(
                input_tokens / 1000 * model_config.cost_per_1k_input
                + output_tokens / 1000 * model_config.cost_per_1k_output
            ),
            latency_ms=latency,
        )


# =============================================================================
# Unified LLM Service
# =============================================================================

class LLMService:
    """
    Unified interface for multiple LLM providers.

    Usage:
        llm = LLMService(settings)
        result = await llm.chat([
            ChatMessage(role="user", content="Hello!")
        ])
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.catalog = build_model_catalog(self.settings)
        self.providers: dict[ModelProvider, BaseProvider] = {}

        timeout = self.settings.external_call_timeout_seconds
        if self.settings.openai_api_key:
            self.providers[ModelProvider.OPENAI] = OpenAIProvider(self.settings.openai_api_key, timeout)
        if self.settings.anthropic_api_key:
            self.providers[ModelProvider.ANTHROPIC] = AnthropicProvider(self.settings.anthropic_api_key, timeout)
        if self.settings.google_api_key:
            self.providers[ModelProvider.GOOGLE] = GoogleProvider(self.settings.google_api_key, timeout)
        if self.settings.groq_api_key:
            self.providers[ModelProvider.GROQ] = GroqProvider(
                self.settings.groq_api_key, timeout, base_url=self.settings.groq_base_url
            )

    @property
    def available(self) -> bool:
        return bool(self.providers)

    @property
    def embeddings_available(self) -> bool:
        return ModelProvider.OPENAI in self.providers

    def get_available_models(self) -> list[dict]:
        """Get list of configured models."""
        return [
            {
                "id": config.model_id,
                "provider": config.provider.value,
            }
            for provider, config in self.catalog.items()
            if provider in self.providers
        ]

    def providers_for_task(self, task_type: Optional[TaskType], fallback: bool = True) -> list[ModelProvider]:
        """Preferred provider for the task first, then the fallback chain."""
        preferred = DEFAULT_PROVIDERS.get(task_type, ModelProvider.OPENAI) if task_type else ModelProvider.OPENAI
        order = [preferred]
        if fallback:
            order.extend(p for p in FALLBACK_CHAIN if p != preferred)
        return [p for p in order if p in self.providers]

    async def chat(
        self,
        messages: list[ChatMessage],
        task_type: Optional[TaskType] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        fallback: bool = True,
    ) -> ChatCompletion:
        """
        Execute chat completion.

        Args:
            messages: List of chat messages
            task_type: Task type for provider selection
            temperature: Sampling temperature
            max_tokens: Max output tokens
            json_mode: Request JSON response
            fallback: Try the other configured providers on failure

        Returns:
            ChatCompletion result

        Raises:
            ProviderNotConfiguredError: No provider has an API key
            RuntimeError: Every configured provider failed
        """
        candidates = self.providers_for_task(task_type, fallback=fallback)
        if not candidates:
            raise ProviderNotConfiguredError("No LLM provider configured")

        last_error = None

        for provider_name in candidates:
            config = self.catalog[provider_name]
            provider = self.providers[provider_name]

            try:
                completion = await provider.chat_completion(
                    messages=messages,
                    model_config=config,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    json_mode=json_mode,
                )
                logger.debug(
                    f"LLM {provider_name.value}/{config.model_id}: {completion.total_tokens} tokens, "
                    f"${completion.cost_usd:.5f}, {completion.latency_ms:.0f}ms"
                )
                return completion
            except Exception as e:
                logger.warning(f"Model {provider_name.value}/{config.model_id} failed: {e}")
                last_error = e
                continue

        raise RuntimeError(f"All models failed. Last error: {last_error}")

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Embed texts with the configured OpenAI embedding model.

        Raises:
            ProviderNotConfiguredError: OpenAI key missing
        """
        provider = self.providers.get(ModelProvider.OPENAI)
        if not isinstance(provider, OpenAIProvider):
            raise ProviderNotConfiguredError("Embeddings require OPENAI_API_KEY")
        if not texts:
            return []
        return await provider.embed(texts, self.settings.openai_embedding_model)


# =============================================================================
# Global Instance
# =============================================================================

_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get or create the LLM service singleton."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService(get_settings())
    return _llm_service
