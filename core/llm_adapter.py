"""
LLM Adapter for WeekStreak.

Provides a unified interface for the text-generation providers used by
content generation. Supports: Anthropic Messages API, OpenAI-compatible
chat completions, and a rule-based fallback when nothing is configured.
"""
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import yaml

from core.exceptions import (
    ConfigError,
    LLMAuthError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from core.logger import get_logger
from core.paths import CONFIG_DIR

MODEL_CONFIG_PATH = CONFIG_DIR / "model.yaml"
LOCAL_MODEL_CONFIG_PATH = CONFIG_DIR / "local_model.yaml"

logger = get_logger("llm_adapter")


@dataclass
class LLMResponse:
    """Structured response from LLM."""
    content: str
    model: str
    usage: Optional[Dict[str, int]] = None


class BaseLLMAdapter(ABC):
    """Base class for LLM adapters."""

    provider = "unknown"

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.model_name = config.get("model_name", "unknown")
        self.timeout = float(config.get("timeout", 60.0))

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000
    ) -> LLMResponse:
        """Generate text completion."""

    def get_model_name(self) -> str:
        return self.model_name

    def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST and translate transport/HTTP failures into LLMError subclasses."""
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise LLMAuthError(self.provider, self.model_name, url) from e
            if status == 429:
                retry_after = e.response.headers.get("retry-after")
                raise LLMRateLimitError(
                    self.provider,
                    self.model_name,
                    url,
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                ) from e
            raise LLMError(
                f"HTTP {status} - {e.response.text[:200]}",
                provider=self.provider,
                model_name=self.model_name,
                endpoint=url,
            ) from e
        except httpx.ConnectError as e:
            raise LLMConnectionError(self.provider, self.model_name, url) from e
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(self.provider, self.model_name, url, timeout_seconds=self.timeout) from e
        except httpx.HTTPError as e:
            raise LLMError(f"Request failed: {e}", self.provider, self.model_name, url) from e


class AnthropicAdapter(BaseLLMAdapter):
    """Adapter for the Anthropic Messages API."""

    provider = "anthropic"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.api_key = config.get("api_key") or os.environ.get("ANTHROPIC_API_KEY")
        self.base_url = config.get("base_url", "https://api.anthropic.com/v1")
        self.api_version = config.get("api_version", "2023-06-01")
        self.model_name = config.get("model_name", "claude-sonnet-4-20250514")

        if not self.api_key:
            raise ConfigError(
                "Anthropic API key not found. Set ANTHROPIC_API_KEY or add "
                "'api_key' to config/local_model.yaml",
                config_path=str(MODEL_CONFIG_PATH),
            )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000
    ) -> LLMResponse:
        payload: Dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = self._post(
            f"{self.base_url}/messages",
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": self.api_version,
                "content-type": "application/json",
            },
            payload=payload,
        )

        blocks = data.get("content") or []
        text = next((b.get("text", "") for b in blocks if b.get("type") == "text"), None)
        if text is None:
            raise LLMError(
                "Unexpected response format from the AI service",
                self.provider,
                self.model_name,
                self.base_url,
            )
        usage = data.get("usage") or {}
        return LLMResponse(
            content=text.strip(),
            model=data.get("model", self.model_name),
            usage={
                "prompt_tokens": usage.get("input_tokens", 0),
                "completion_tokens": usage.get("output_tokens", 0),
            },
        )


class OpenAIAdapter(BaseLLMAdapter):
    """Adapter for OpenAI API (also compatible with other OpenAI-compatible APIs)."""

    provider = "openai"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.api_key = config.get("api_key") or os.environ.get("OPENAI_API_KEY")
        self.base_url = config.get("base_url", "https://api.openai.com/v1")
        self.model_name = config.get("model_name", "gpt-4o-mini")

        if not self.api_key:
            raise ConfigError(
                "OpenAI API key not found. Set OPENAI_API_KEY or add "
                "'api_key' to config/local_model.yaml",
                config_path=str(MODEL_CONFIG_PATH),
            )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000
    ) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        data = self._post(
            f"{self.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            payload={
                "model": self.model_name,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(
                "Unexpected response format from the AI service",
                self.provider,
                self.model_name,
                self.base_url,
            ) from e
        return LLMResponse(
            content=(content or "").strip(),
            model=data.get("model", self.model_name),
            usage=data.get("usage"),
        )


class RuleBasedAdapter(BaseLLMAdapter):
    """
    Fallback used when no provider is configured. Returns a fixed notice so
    the rest of the flow keeps working in local development.
    """

    provider = "rule_based"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.model_name = "rule_based"

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000
    ) -> LLMResponse:
        return LLMResponse(
            content="[rule_based] AI generation is not configured.",
            model=self.model_name,
            usage={"prompt_tokens": 0, "completion_tokens": 0},
        )


def load_model_config(profile_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Load model configuration from YAML.
    Priority: local_model.yaml > model.yaml

    Supports a `profiles` mapping with `active_profile`, or a flat mapping.
    Values of the form ${ENV_VAR} are expanded from the environment.
    """
    raw_config: Dict[str, Any] = {}
    for path in (LOCAL_MODEL_CONFIG_PATH, MODEL_CONFIG_PATH):
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    raw_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid model config: {e}", config_path=str(path)) from e
            break

    if "profiles" in raw_config:
        profiles = raw_config["profiles"] or {}
        active_profile = (
            profile_name
            or os.environ.get("WEEKSTREAK_LLM_PROFILE")
            or raw_config.get("active_profile", "rule_based")
        )
        if active_profile not in profiles:
            logger.warning("Model profile '%s' not found, using rule-based mode", active_profile)
            return {"provider": "rule_based"}
        return _expand_env_vars(profiles[active_profile])

    if raw_config:
        return _expand_env_vars(raw_config)

    return {"provider": "rule_based"}


def _expand_env_vars(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Expand ${VAR} placeholders. An unset variable leaves the key out, so the
    adapter falls back to its own environment lookup.
    """
    result: Dict[str, Any] = {}
    pattern = re.compile(r"^\$\{([^}]+)\}$")

    for key, value in config.items():
        if isinstance(value, str):
            match = pattern.match(value)
            if match:
                env_value = os.environ.get(match.group(1))
                if env_value:
                    result[key] = env_value
            else:
                result[key] = value
        elif isinstance(value, dict):
            result[key] = _expand_env_vars(value)
        else:
            result[key] = value

    return result


def create_llm_adapter(
    config: Optional[Dict[str, Any]] = None,
    profile_name: Optional[str] = None,
) -> BaseLLMAdapter:
    """
    Factory for the configured adapter.

    Args:
        config: Optional config dict. If None, loads from model.yaml.
        profile_name: Optional profile name. Only used when config is None.
    """
    if config is None:
        config = load_model_config(profile_name)

    provider = str(config.get("provider", "rule_based")).lower()

    if provider == "anthropic":
        return AnthropicAdapter(config)
    if provider == "openai":
        return OpenAIAdapter(config)
    if provider == "rule_based":
        return RuleBasedAdapter(config)
    raise ConfigError(
        f"Unknown LLM provider '{provider}' (profile: {profile_name})",
        config_path=str(MODEL_CONFIG_PATH),
    )


# Profile name -> adapter instance
_llm_registry: Dict[str, BaseLLMAdapter] = {}


def get_llm(profile_name: Optional[str] = None) -> BaseLLMAdapter:
    """Return the cached adapter for a profile, creating it on first use."""
    key = profile_name or "__default__"
    if key not in _llm_registry:
        adapter = create_llm_adapter(profile_name=profile_name)
        logger.info("LLM profile %s initialised (%s)", key, adapter.get_model_name())
        _llm_registry[key] = adapter
    return _llm_registry[key]


def reset_llm() -> None:
    """Reset the adapter cache (tests, config changes)."""
    _llm_registry.clear()
