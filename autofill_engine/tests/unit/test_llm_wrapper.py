"""Tests for the direct chat-completion wrapper."""

import sys
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../..')))

from autofill_engine.core.exceptions import ClassificationBackendError, ClassifierNotConfiguredError, ErrorCategory
from autofill_engine.core.llm_wrapper import LLMWrapper


def completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


async def test_acall_sends_messages_and_strips_content():
    llm = LLMWrapper(provider="openai", api_key="sk-test", model="gpt-4o-mini")
    with patch("autofill_engine.core.llm_wrapper.litellm.acompletion",
               new=AsyncMock(return_value=completion("  [] \n"))) as mock_completion:
        text = await llm.acall("classify", system_prompt="system")

    assert text == "[]"
    kwargs = mock_completion.call_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o-mini"
    assert kwargs["messages"] == [{"role": "system", "content": "system"}, {"role": "user", "content": "classify"}]
    assert kwargs["api_key"] == "sk-test"
    assert "api_base" not in kwargs


async def test_compatible_provider_uses_base_url():
    llm = LLMWrapper(provider="dashscope", api_key="k")
    with patch("autofill_engine.core.llm_wrapper.litellm.acompletion",
               new=AsyncMock(return_value=completion("ok"))) as mock_completion:
        await llm.acall("hi")

    kwargs = mock_completion.call_args.kwargs
    assert kwargs["model"] == "openai/qwen-plus"
    assert kwargs["api_base"] == "https://dashscope.aliyuncs.com/compatible-mode/v1"


async def test_custom_endpoint_is_reduced_to_base():
    llm = LLMWrapper(provider="custom", api_key="k", model="my-model",
                     endpoint="https://llm.internal/v1/chat/completions")
    with patch("autofill_engine.core.llm_wrapper.litellm.acompletion",
               new=AsyncMock(return_value=completion("ok"))) as mock_completion:
        await llm.acall("hi")
    assert mock_completion.call_args.kwargs["api_base"] == "https://llm.internal/v1"


async def test_missing_key_raises_config_error():
    llm = LLMWrapper(provider="anthropic")
    with pytest.raises(ClassifierNotConfiguredError):
        await llm.acall("hi")


def test_custom_provider_requires_endpoint():
    with pytest.raises(ClassifierNotConfiguredError):
        LLMWrapper(provider="custom", api_key="k")


async def test_provider_failure_is_wrapped():
    llm = LLMWrapper(provider="openai", api_key="k")
    with patch("autofill_engine.core.llm_wrapper.litellm.acompletion",
               new=AsyncMock(side_effect=RuntimeError("connection reset"))):
        with pytest.raises(ClassificationBackendError) as excinfo:
            await llm.acall("hi")
    assert excinfo.value.category == ErrorCategory.NETWORK
