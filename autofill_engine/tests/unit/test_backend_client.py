"""Tests for the hosted backend client."""

import sys
import os
from unittest.mock import MagicMock

import pytest
import requests

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../..')))

from autofill_engine.core.backend_client import BackendClient
from autofill_engine.core.exceptions import (
    ClassificationBackendError,
    ClassifierNotConfiguredError,
    ErrorCategory,
    InsufficientCreditsError,
    ResponseParseError,
)


def make_response(status, text):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.text = text
    return response


def make_client(status=200, text="{}", token="token-123"):
    session = MagicMock(spec=requests.Session)
    session.post.return_value = make_response(status, text)
    return BackendClient("https://api.example.com/api/", token, timeout=5, session=session), session


async def test_classify_fields_posts_payload_and_tracks_credits():
    client, session = make_client(text='{"success": true, "results": [{"index": 0, "type": "EMAIL", '
                                        '"confidence": 0.9}], "creditsUsed": 2}')

    response = await client.classify_fields([{"index": 0}], ["Page title: Apply"])

    assert response.results[0]["type"] == "EMAIL"
    assert response.credits_used == 2
    assert client.total_credits_used == 2
    args, kwargs = session.post.call_args
    assert args[0] == "https://api.example.com/api/classify"
    assert kwargs["json"] == {"fields": [{"index": 0}], "contextBlocks": ["Page title: Apply"]}
    assert kwargs["headers"]["Authorization"] == "Bearer token-123"
    assert kwargs["timeout"] == 5


async def test_context_blocks_omitted_when_empty():
    client, session = make_client(text='{"success": true, "results": []}')
    await client.classify_fields([{"index": 0}])
    assert session.post.call_args[1]["json"] == {"fields": [{"index": 0}]}


async def test_insufficient_credits():
    client, _ = make_client(status=402, text='{"error": "Insufficient credits", "balance": 0}')
    with pytest.raises(InsufficientCreditsError) as excinfo:
        await client.classify_fields([{"index": 0}])
    assert excinfo.value.category == ErrorCategory.QUOTA
    assert excinfo.value.context["balance"] == 0


async def test_unauthorized():
    client, _ = make_client(status=401, text="Unauthorized")
    with pytest.raises(ClassificationBackendError) as excinfo:
        await client.classify_fields([{"index": 0}])
    assert excinfo.value.category == ErrorCategory.AUTHENTICATION


async def test_server_error():
    client, _ = make_client(status=500, text='{"error": "boom"}')
    with pytest.raises(ClassificationBackendError) as excinfo:
        await client.classify_fields([{"index": 0}])
    assert str(excinfo.value) == "boom"
    assert excinfo.value.category == ErrorCategory.NETWORK


async def test_missing_results_list():
    client, _ = make_client(text='{"success": true}')
    with pytest.raises(ResponseParseError):
        await client.classify_fields([{"index": 0}])


async def test_connection_error_is_wrapped():
    client, session = make_client()
    session.post.side_effect = requests.exceptions.ConnectionError("refused")
    with pytest.raises(ClassificationBackendError) as excinfo:
        await client.post("/classify", {})
    assert excinfo.value.category == ErrorCategory.NETWORK


async def test_no_session_token():
    client, session = make_client(token=None)
    with pytest.raises(ClassifierNotConfiguredError):
        await client.classify_fields([{"index": 0}])
    session.post.assert_not_called()


async def test_chat_returns_text():
    client, session = make_client(text='{"text": "{\\"shouldAdd\\": true}"}')
    text = await client.chat("prompt", system_prompt="system")
    assert text == '{"shouldAdd": true}'
    assert session.post.call_args[0][0].endswith("/llm/chat")
