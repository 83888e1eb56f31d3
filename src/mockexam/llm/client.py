"""Completion client for OpenAI-compatible providers.

Provides one async entry point, CompletionClient.complete(contract, messages),
that asks the provider to fill a strict output contract and returns the
parsed JSON object.

Supported providers:
- openai: OpenAI API (strict json_schema structured outputs)
- lmstudio: Local LM Studio server (OpenAI-compatible API)
- anthropic: Anthropic API (via OpenAI-compatible endpoint, schema in prompt)

Calls are awaited on openai.AsyncOpenAI, so cancelling the calling task
cancels the pending HTTP request.
"""

from __future__ import annotations

import json
import os
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import openai
import structlog
from openai import AsyncOpenAI

from mockexam.config.app_config import read_config_file
from mockexam.core.contracts import Contract

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

Provider = Literal["openai", "lmstudio", "anthropic"]

DEFAULT_MODEL = "gpt-4o-mini"
MODEL_ENV = "OPENAI_MODEL"
TRAINING_MODEL_ENV = "OPENAI_MODEL_TRAIN"

# Provider-specific defaults
PROVIDER_DEFAULTS: dict[str, dict[str, Any]] = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
    },
    "lmstudio": {
        "base_url": "http://localhost:1234/v1",
        "api_key": "lm-studio",  # LM Studio doesn't need real API key
    },
    "anthropic": {
        "base_url": "https://api.anthropic.com/v1",
        "api_key_env": "ANTHROPIC_API_KEY",
    },
}

# Provider capabilities (configurable via YAML)
PROVIDER_CAPABILITIES_DEFAULTS: dict[str, dict[str, bool]] = {
    "openai": {
        "supports_json_schema": True,
    },
    "lmstudio": {
        "supports_json_schema": True,
    },
    "anthropic": {
        "supports_json_schema": False,
    },
}

SCHEMA_IN_PROMPT = """Respond ONLY with one JSON object that matches this JSON schema exactly.
No markdown, no comments, no extra keys.
Schema ({name}):
{schema}"""

# Some models emit <think>...</think> blocks that can interfere with JSON parsing
SANITIZE_PATTERNS = [
    re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<analysis>.*?</analysis>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<reasoning>.*?</reasoning>", re.DOTALL | re.IGNORECASE),
]


def _sanitize_for_json(text: str) -> str:
    """Remove thinking/reasoning tags before JSON parsing."""
    result = text
    for pattern in SANITIZE_PATTERNS:
        result = pattern.sub("", result)
    return result.strip()


def parse_json_object(content: str) -> dict[str, Any] | None:
    """Parse a JSON object from model output, with multiple strategies.

    Tries:
    1. Direct parse
    2. Extract from ```json ... ``` blocks
    3. Extract first {...} object

    Returns the dict, or None if all strategies fail or the result is not an
    object.
    """
    content = _sanitize_for_json(content)

    candidates = [content]

    json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", content)
    if json_match:
        candidates.append(json_match.group(1).strip())

    start = content.find("{")
    end = content.rfind("}") + 1
    if start >= 0 and end > start:
        candidates.append(content[start:end])

    for candidate in candidates:
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(result, dict):
            return result

    return None


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class LLMConfig:
    """Configuration for the completion client."""

    provider: Provider = "openai"
    base_url: str = "https://api.openai.com/v1"
    model: str = DEFAULT_MODEL
    temperature: float = 0.2
    max_tokens: int = 8192
    timeout: int = 120
    api_key: str | None = None
    # Capability override (from config)
    supports_json_schema: bool | None = None

    @classmethod
    def from_yaml(
        cls,
        config_path: Path | None = None,
        model_env: tuple[str, ...] = (MODEL_ENV,),
    ) -> LLMConfig:
        """Load configuration from the `llm:` section of the YAML file.

        Args:
            config_path: Config file (default: configs/mockexam.yaml)
            model_env: Environment variables that override the model, first
                non-empty wins

        Returns:
            LLMConfig (defaults when the file is missing)
        """
        data = read_config_file(config_path)
        llm_config = data.get("llm") or {}

        provider = llm_config.get("provider", "openai")
        defaults = PROVIDER_DEFAULTS.get(provider, {})

        # Get API key from environment if needed
        api_key = None
        if "api_key_env" in defaults:
            api_key = os.environ.get(defaults["api_key_env"])
        elif "api_key" in defaults:
            api_key = defaults["api_key"]

        model = llm_config.get("model", DEFAULT_MODEL)
        for env_name in model_env:
            env_model = os.environ.get(env_name)
            if env_model:
                model = env_model
                break

        return cls(
            provider=provider,
            base_url=llm_config.get("base_url", defaults.get("base_url", "")),
            model=model,
            temperature=llm_config.get("temperature", 0.2),
            max_tokens=llm_config.get("max_tokens", 8192),
            timeout=llm_config.get("timeout", 120),
            api_key=api_key,
            supports_json_schema=llm_config.get("supports_json_schema", None),
        )

    @classmethod
    def for_training(cls, config_path: Path | None = None) -> LLMConfig:
        """Config for training material (OPENAI_MODEL_TRAIN, then OPENAI_MODEL)."""
        return cls.from_yaml(config_path, model_env=(TRAINING_MODEL_ENV, MODEL_ENV))


@dataclass
class Message:
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for API call."""
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Response from the completion service."""

    content: str
    model: str
    provider: str
    finish_reason: str | None = None
    refusal: str | None = None
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        """Get total token count."""
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Error during completion service interaction."""

    category = "llm"

    def __init__(self, message: str, status: int | None = None, raw: str | None = None):
        super().__init__(message)
        self.status = status
        self.raw = raw


class LLMConnectionError(LLMError):
    """Error connecting to the completion service."""

    category = "connection"


class LLMStatusError(LLMError):
    """Completion service answered with an error status."""

    category = "status"


class LLMResponseError(LLMError):
    """Completion service answered, but not with a usable object."""

    category = "response"


# =============================================================================
# COMPLETION CLIENT
# =============================================================================


class CompletionClient:
    """Async client that fills output contracts.

    Configuration (provider, model, API key) is injected through LLMConfig;
    nothing is read from the environment after construction.
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        provider: Provider | None = None,
        model: str | None = None,
    ):
        """Initialize completion client.

        Args:
            config: LLM configuration (loads from YAML if not provided)
            provider: Override provider from config
            model: Override model from config
        """
        if config is None:
            config = LLMConfig.from_yaml()

        self.config = config

        if provider is not None:
            self.config.provider = provider
            defaults = PROVIDER_DEFAULTS.get(provider, {})
            if "base_url" in defaults:
                self.config.base_url = defaults["base_url"]
            if "api_key_env" in defaults:
                self.config.api_key = os.environ.get(defaults["api_key_env"])
            elif "api_key" in defaults:
                self.config.api_key = defaults["api_key"]

        if model is not None:
            self.config.model = model

        self._client = AsyncOpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key or "not-needed",
            timeout=self.config.timeout,
            max_retries=0,
        )

        logger.info(
            "completion_client_initialized",
            provider=self.config.provider,
            model=self.config.model,
            base_url=self.config.base_url,
        )

    def _supports_json_schema(self) -> bool:
        """Check if the provider enforces strict json_schema response formats.

        Uses config override if set, otherwise falls back to provider defaults.
        """
        if self.config.supports_json_schema is not None:
            return self.config.supports_json_schema

        caps = PROVIDER_CAPABILITIES_DEFAULTS.get(self.config.provider, {})
        return caps.get("supports_json_schema", False)

    async def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        response_format: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Send chat completion request.

        Raises:
            LLMConnectionError: If the server cannot be reached
            LLMStatusError: If the server answers with an error status
            LLMResponseError: If the response has no choices
        """
        if temperature is None:
            temperature = self.config.temperature
        if max_tokens is None:
            max_tokens = self.config.max_tokens

        request_kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format is not None:
            request_kwargs["response_format"] = response_format

        start_time = time.time()

        try:
            response = await self._client.chat.completions.create(**request_kwargs)
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            raise LLMConnectionError(
                f"Could not reach {self.config.provider} at {self.config.base_url}: {e}"
            ) from e
        except openai.APIStatusError as e:
            raise LLMStatusError(
                f"{self.config.provider} returned HTTP {e.status_code}: {e.message}",
                status=e.status_code,
                raw=e.response.text if e.response is not None else None,
            ) from e
        except openai.OpenAIError as e:
            raise LLMError(f"Completion call failed: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise LLMResponseError("Empty response from completion service")

        choice = response.choices[0]
        content = choice.message.content or ""

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.debug(
            "llm_response",
            provider=self.config.provider,
            model=response.model,
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
            finish_reason=choice.finish_reason,
        )

        return LLMResponse(
            content=content,
            model=response.model,
            provider=self.config.provider,
            finish_reason=choice.finish_reason,
            refusal=getattr(choice.message, "refusal", None),
            usage=usage,
            latency_ms=latency_ms,
        )

    def _prepare(self, contract: Contract, messages: list[Message]) -> tuple[list[Message], dict[str, Any] | None]:
        """Attach the contract to the request.

        Strict providers get it as response_format; others get the schema
        appended to the system turn.
        """
        if self._supports_json_schema():
            response_format = {
                "type": "json_schema",
                "json_schema": {
                    "name": contract.full_name,
                    "strict": True,
                    "schema": contract.schema,
                },
            }
            return list(messages), response_format

        schema_text = SCHEMA_IN_PROMPT.format(
            name=contract.full_name,
            schema=json.dumps(contract.schema, ensure_ascii=False),
        )
        prepared = list(messages)
        if prepared and prepared[0].role == "system":
            prepared[0] = Message(
                role="system", content=f"{prepared[0].content}\n\n{schema_text}"
            )
        else:
            prepared.insert(0, Message(role="system", content=schema_text))
        return prepared, None

    async def complete(
        self,
        contract: Contract,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """Ask the provider to fill `contract` and return the parsed object.

        Args:
            contract: Output contract
            messages: Conversation turns
            temperature: Override temperature
            max_tokens: Override max tokens

        Returns:
            Parsed JSON object

        Raises:
            LLMError: Transport failure, error status, refusal, truncated or
                unparseable output
        """
        prepared, response_format = self._prepare(contract, messages)

        response = await self.chat(
            prepared,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format=response_format,
        )

        if response.refusal:
            raise LLMResponseError(
                f"Model refused to fill {contract.full_name}: {response.refusal}",
                raw=response.refusal,
            )

        if response.finish_reason == "length":
            raise LLMResponseError(
                f"Output for {contract.full_name} was truncated (max_tokens reached)",
                raw=response.content,
            )

        parsed = parse_json_object(response.content)
        if parsed is None:
            logger.warning(
                "contract_output_not_json",
                contract=contract.full_name,
                content=response.content[:100],
                provider=self.config.provider,
            )
            raise LLMResponseError(
                f"Model did not return a JSON object for {contract.full_name}",
                raw=response.content,
            )

        return parsed

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.close()

    async def __aenter__(self) -> CompletionClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def is_available(self) -> bool:
        """Check if the completion service is reachable."""
        try:
            await self._client.models.list()
            return True
        except openai.OpenAIError:
            return False
