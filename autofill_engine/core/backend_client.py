"""Client for the hosted classification backend."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from autofill_engine.core.exceptions import (
    ClassificationBackendError,
    ClassifierNotConfiguredError,
    ErrorCategory,
    InsufficientCreditsError,
    ResponseParseError,
)
from autofill_engine.utils.json_parsing import parse_json_lenient

logger = logging.getLogger(__name__)


@dataclass
class BackendResponse:
    """Raw HTTP outcome: status, success flag and body text."""
    ok: bool
    status: int
    body: str


@dataclass
class BackendClassification:
    """Normalized classification response from the hosted backend."""
    results: List[Dict[str, Any]] = field(default_factory=list)
    credits_used: Optional[float] = None


class BackendClient:
    """
    Talks to the hosted backend with a bearer session token.

    Requests are made with `requests` on a worker thread so the event loop
    keeps running while a call is in flight.
    """

    def __init__(self, base_url: str, session_token: Optional[str],
                 timeout: float = 30.0, session: Optional[requests.Session] = None):
        """
        Initialize the backend client.

        Args:
            base_url: Backend API root, e.g. https://api.example.com/api
            session_token: Bearer token of the signed-in user
            timeout: Per-request timeout in seconds
            session: Optional preconfigured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.session_token = session_token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.total_credits_used = 0.0

    def _post(self, path: str, payload: Dict[str, Any]) -> BackendResponse:
        try:
            response = self.session.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {self.session_token}"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ClassificationBackendError(f"Backend request failed: {e}", ErrorCategory.NETWORK) from e
        return BackendResponse(ok=response.ok, status=response.status_code, body=response.text)

    async def post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a JSON payload and return the decoded body.

        Args:
            path: Path below the base URL
            payload: JSON-serializable request body

        Returns:
            Decoded response body

        Raises:
            InsufficientCreditsError: On HTTP 402
            ClassificationBackendError: On any other failed request
        """
        if not self.session_token:
            raise ClassifierNotConfiguredError("Not authenticated: no backend session token")

        response = await asyncio.to_thread(self._post, path, payload)
        data = parse_json_lenient(response.body, fallback={})
        if not isinstance(data, dict):
            data = {}

        if response.status == 402:
            raise InsufficientCreditsError(
                f"Insufficient credits. Balance: {data.get('balance', 0)}",
                context={"balance": data.get("balance", 0)},
            )
        if response.status == 401:
            raise ClassificationBackendError("Authentication expired", ErrorCategory.AUTHENTICATION)
        if not response.ok:
            raise ClassificationBackendError(
                data.get("error") or f"Backend API error {response.status}",
                ErrorCategory.NETWORK,
                context={"status": response.status},
            )
        return data

    async def classify_fields(self, fields: List[Dict[str, Any]],
                              context_blocks: Optional[List[str]] = None) -> BackendClassification:
        """
        Classify a chunk of scrubbed field metadata.

        Args:
            fields: Field payloads (index, tagName, type, name, id, ...)
            context_blocks: Optional page-level context strings

        Returns:
            BackendClassification with raw `{index, type, confidence}` entries
        """
        payload: Dict[str, Any] = {"fields": fields}
        if context_blocks:
            payload["contextBlocks"] = context_blocks

        data = await self.post("/classify", payload)
        if not data.get("success"):
            raise ClassificationBackendError(data.get("error") or "Backend reported failure")

        results = data.get("results")
        if not isinstance(results, list):
            raise ResponseParseError("Backend response has no results list")

        credits_used = data.get("creditsUsed")
        if isinstance(credits_used, (int, float)):
            self.total_credits_used += credits_used
            logger.debug(f"Classification used {credits_used} credits")
        return BackendClassification(results=results, credits_used=credits_used)

    async def chat(self, prompt: str, system_prompt: Optional[str] = None,
                   max_tokens: int = 200, temperature: float = 0.0) -> str:
        """Free-text completion through the backend gateway."""
        data = await self.post("/llm/chat", {
            "prompt": prompt,
            "systemPrompt": system_prompt,
            "maxTokens": max_tokens,
            "temperature": temperature,
        })
        return data.get("text") or ""
