"""Wrapper for directly configured chat-completion endpoints."""

import logging
from typing import Any, Dict, List, Optional

import litellm

from autofill_engine.core.exceptions import (
    ClassificationBackendError,
    ClassifierNotConfiguredError,
    ErrorCategory,
)

logger = logging.getLogger(__name__)

PROVIDER_ENDPOINTS = {
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com",
    "dashscope": "https://dashscope.aliyuncs.com/compatible-mode/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "zhipu": "https://open.bigmodel.cn/api/paas/v4",
}

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-haiku-20240307",
    "dashscope": "qwen-plus",
    "deepseek": "deepseek-chat",
    "zhipu": "glm-4-flash",
}

# litellm routing prefix per provider; OpenAI-compatible vendors go through "openai/"
_LITELLM_PREFIX = {
    "openai": "openai",
    "anthropic": "anthropic",
    "dashscope": "openai",
    "deepseek": "deepseek",
    "zhipu": "openai",
    "custom": "openai",
}


def _api_base(endpoint: str) -> str:
    # Accept full chat URLs as configured in the UI and reduce them to a base URL
    for suffix in ("/chat/completions", "/messages"):
        if endpoint.endswith(suffix):
            return endpoint[: -len(suffix)]
    return endpoint


class LLMWrapper:
    """Provides a consistent interface to the configured chat-completion provider."""

    def __init__(self, provider: str = "openai", api_key: Optional[str] = None,
                 model: Optional[str] = None, endpoint: Optional[str] = None,
                 temperature: float = 0.0, max_tokens: int = 800):
        """
        Initialize the LLM wrapper.

        Args:
            provider: One of openai, anthropic, dashscope, deepseek, zhipu, custom
            api_key: The API key for the provider
            model: Model name; defaults to the provider's small model
            endpoint: Optional endpoint override (required for custom providers)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
        """
        self.provider = (provider or "openai").lower()
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS.get(self.provider, DEFAULT_MODELS["openai"])
        self.endpoint = endpoint
        self.temperature = temperature
        self.max_tokens = max_tokens

        if self.provider == "custom" and not endpoint:
            raise ClassifierNotConfiguredError("Custom provider requires an endpoint")

        logger.info(f"LLMWrapper initialized with provider {self.provider}, model {self.model}")

    @property
    def litellm_model(self) -> str:
        prefix = _LITELLM_PREFIX.get(self.provider, "openai")
        if self.model.startswith(f"{prefix}/"):
            return self.model
        return f"{prefix}/{self.model}"

    def _request_kwargs(self, messages: List[Dict[str, str]], temperature: Optional[float],
                        max_tokens: Optional[int]) -> Dict[str, Any]:
        kwargs = {
            "model": self.litellm_model,
            "messages": messages,
            "api_key": self.api_key,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        endpoint = self.endpoint or (
            PROVIDER_ENDPOINTS.get(self.provider) if self.provider in ("dashscope", "zhipu") else None
        )
        if endpoint:
            kwargs["api_base"] = _api_base(endpoint)
        return kwargs

    async def acall(self, prompt: str, system_prompt: Optional[str] = None,
                    temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> str:
        """
        Makes an asynchronous call to the LLM using litellm.

        Args:
            prompt: The user prompt
            system_prompt: Optional system instruction
            temperature: Sampling temperature override
            max_tokens: Maximum tokens override

        Returns:
            The response content as a string.

        Raises:
            ClassificationBackendError: If the provider call fails
        """
        if not self.api_key:
            raise ClassifierNotConfiguredError(f"No API key configured for provider {self.provider}")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            logger.debug(f"Sending async prompt to LLM ({self.litellm_model}): {prompt[:100]}...")
            response = await litellm.acompletion(**self._request_kwargs(messages, temperature, max_tokens))
        except litellm.AuthenticationError as e:
            raise ClassificationBackendError(f"LLM authentication failed: {e}",
                                             ErrorCategory.AUTHENTICATION) from e
        except litellm.RateLimitError as e:
            raise ClassificationBackendError(f"LLM rate limit exceeded: {e}", ErrorCategory.QUOTA) from e
        except Exception as e:
            raise ClassificationBackendError(f"Async LLM communication error: {e}",
                                             ErrorCategory.NETWORK) from e

        content = response.choices[0].message.content
        logger.debug(f"Received async LLM response: {(content or '')[:100]}...")
        return content.strip() if content else ""
