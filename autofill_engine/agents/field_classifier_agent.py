"""Agent for statistically classifying fields the rule cascade left ambiguous."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from autofill_engine.core.backend_client import BackendClient
from autofill_engine.core.classification_cache import ClassificationCache
from autofill_engine.core.exceptions import ClassifierNotConfiguredError, ResponseParseError
from autofill_engine.core.llm_wrapper import LLMWrapper
from autofill_engine.core.models import Candidate, FieldDescriptor, PassToken, clamp_score
from autofill_engine.core.rate_limiter import RequestPacer
from autofill_engine.core.taxonomy import TAXONOMY_DESCRIPTIONS, Taxonomy
from autofill_engine.tools.constants import BATCH_SIZE, STATISTICAL_SCORE_FACTOR, STATISTICAL_TRIGGER_SCORE
from autofill_engine.tools.pii_scrubber import scrub_all, scrub_pii
from autofill_engine.utils.json_parsing import parse_json_lenient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a form field classifier for job application forms.

YOUR TASK:
Assign each form field exactly one type from the closed list you are given.

RULES:
- Use only the listed type names, spelled exactly.
- Use UNKNOWN when no listed type fits.
- Confidence is a number between 0.0 and 1.0.

Respond with valid JSON only."""

MAX_PROMPT_OPTIONS = 20
MAX_CONTEXT_CHARS = 200


@dataclass
class ClassificationContext:
    """Optional page-level hints sent along with each chunk."""
    page_title: str = ""
    url_path: str = ""
    keywords: List[str] = field(default_factory=list)
    # (label, type) pairs for fields already classified on the same form
    siblings: List[Tuple[str, Taxonomy]] = field(default_factory=list)
    # (label, type) pairs learned from earlier sessions
    examples: List[Tuple[str, Taxonomy]] = field(default_factory=list)

    def context_blocks(self) -> List[str]:
        blocks = []
        if self.page_title:
            blocks.append(f"Page title: {scrub_pii(self.page_title)}")
        if self.url_path:
            blocks.append(f"URL path: {self.url_path}")
        if self.keywords:
            blocks.append(f"Keywords: {', '.join(self.keywords)}")
        if self.siblings:
            blocks.append("Already classified: " + "; ".join(
                f"{scrub_pii(label)} -> {t.value}" for label, t in self.siblings))
        if self.examples:
            blocks.append("Examples: " + "; ".join(
                f"{scrub_pii(label)} -> {t.value}" for label, t in self.examples))
        return blocks


@dataclass
class ClassificationRequest:
    """One chunk's request, carried to whichever transport is configured."""
    fields: List[Dict[str, Any]]
    prompt: str
    system_prompt: str = SYSTEM_PROMPT
    context_blocks: List[str] = field(default_factory=list)


def normalize_results(data: Any) -> List[Dict[str, Any]]:
    """
    Reduce a parsed response to a list of `{index, type, confidence}` entries.

    Raises:
        ResponseParseError: If the response holds no recognizable result list
    """
    if isinstance(data, list):
        return [entry for entry in data if isinstance(entry, dict)]
    if isinstance(data, dict):
        for key in ("results", "fields", "classifications"):
            if isinstance(data.get(key), list):
                return [entry for entry in data[key] if isinstance(entry, dict)]
        if "index" in data and "type" in data:
            return [data]
    raise ResponseParseError("Response contains no classification results")


class ClassifierTransport:
    """Base class for classifier backends; both return normalized result entries."""

    name = "transport"

    async def classify(self, request: ClassificationRequest) -> List[Dict[str, Any]]:
        raise NotImplementedError


class HostedTransport(ClassifierTransport):
    """Hosted backend keyed by the user's session token."""

    name = "hosted"

    def __init__(self, client: BackendClient):
        self.client = client

    async def classify(self, request: ClassificationRequest) -> List[Dict[str, Any]]:
        response = await self.client.classify_fields(request.fields, request.context_blocks or None)
        return normalize_results(response.results)


class DirectTransport(ClassifierTransport):
    """Directly configured chat-completion endpoint (OpenAI, Anthropic or compatible)."""

    name = "direct"

    def __init__(self, llm: LLMWrapper):
        self.llm = llm

    async def classify(self, request: ClassificationRequest) -> List[Dict[str, Any]]:
        text = await self.llm.acall(request.prompt, system_prompt=request.system_prompt)
        return normalize_results(parse_json_lenient(text))


def create_transport(settings: Any, backend_client: Optional[BackendClient] = None) -> ClassifierTransport:
    """
    Build the transport selected by the classifier settings.

    Args:
        settings: ClassifierSettings (use_custom_api, provider, api_key, endpoint, model, ...)
        backend_client: Client for the hosted backend when not using a custom API

    Returns:
        ClassifierTransport
    """
    if settings.use_custom_api:
        return DirectTransport(LLMWrapper(
            provider=settings.provider,
            api_key=settings.api_key,
            model=settings.model,
            endpoint=settings.endpoint,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        ))
    if backend_client is None:
        raise ClassifierNotConfiguredError("Hosted classification requires a backend client")
    return HostedTransport(backend_client)


def needs_statistical(candidates: List[Candidate]) -> bool:
    """True when the rule result is too weak to trust on its own."""
    if not candidates:
        return True
    best = candidates[0]
    return best.type == Taxonomy.UNKNOWN or best.score < STATISTICAL_TRIGGER_SCORE


class FieldClassifierAgent:
    """Batches, scrubs and sends ambiguous fields to a classification backend."""

    def __init__(self, transport: ClassifierTransport, cache: ClassificationCache,
                 pacer: Optional[RequestPacer] = None, batch_size: int = BATCH_SIZE):
        """
        Initialize the classifier agent.

        Args:
            transport: Backend to send chunks to
            cache: Shared classification cache
            pacer: Request pacer enforcing the inter-chunk cooldown
            batch_size: Maximum fields per request
        """
        self.transport = transport
        self.cache = cache
        self.pacer = pacer or RequestPacer()
        self.batch_size = batch_size
        self.logger = logging.getLogger(__name__)

    def _field_payload(self, field: FieldDescriptor) -> Dict[str, Any]:
        return {
            "index": field.index,
            "tagName": field.tag_name.lower(),
            "type": field.input_type or "text",
            "name": field.name,
            "id": field.id,
            "placeholder": scrub_pii(field.placeholder),
            "labelText": scrub_pii(field.label_text),
            "sectionTitle": scrub_pii(field.section_title),
            "options": scrub_all(field.options[:MAX_PROMPT_OPTIONS]),
            "ariaLabel": scrub_pii(field.aria_label),
            "surroundingText": scrub_pii(field.surrounding_text[:MAX_CONTEXT_CHARS]),
            "ancestorCandidates": scrub_all(field.ancestor_texts),
        }

    def create_prompt(self, payload: List[Dict[str, Any]], context_blocks: List[str]) -> str:
        """
        Create the classification prompt for one chunk.

        Args:
            payload: Scrubbed field payloads
            context_blocks: Page context, sibling and example lines

        Returns:
            Prompt text
        """
        taxonomy_list = "\n".join(
            f"- {t.value}: {desc}" for t, desc in TAXONOMY_DESCRIPTIONS.items() if t != Taxonomy.UNKNOWN
        )
        context_text = "\n".join(f"- {block}" for block in context_blocks) or "- none"

        return f"""Classify each form field into one of these types:

{taxonomy_list}

PAGE CONTEXT:
{context_text}

FORM FIELDS:
{json.dumps(payload, indent=2, ensure_ascii=False)}

Return a JSON array with one entry per field, using the field's index:
[{{"index": 0, "type": "TAXONOMY_TYPE", "confidence": 0.0}}]
If unsure about a field, use {{"type": "UNKNOWN", "confidence": 0}}."""

    def _to_candidates(self, entries: List[Dict[str, Any]],
                       chunk: List[FieldDescriptor]) -> Dict[int, List[Candidate]]:
        by_index: Dict[int, List[Candidate]] = {f.index: [] for f in chunk}
        for entry in entries:
            try:
                index = int(entry.get("index"))
            except (TypeError, ValueError):
                continue
            if index not in by_index:
                self.logger.debug(f"Ignoring result for unknown field index {index}")
                continue

            field_type = Taxonomy.parse(entry.get("type"))
            if field_type is None or field_type == Taxonomy.UNKNOWN:
                by_index[index] = []
                continue

            raw_confidence = entry.get("confidence")
            confidence = clamp_score(0.5 if raw_confidence is None else raw_confidence)
            by_index[index] = [Candidate(
                type=field_type,
                score=confidence * STATISTICAL_SCORE_FACTOR,
                reasons=[f"{self.transport.name} classifier (confidence {confidence:.2f})"],
            )]
        return by_index

    async def _classify_chunk(self, chunk: List[FieldDescriptor],
                              context: Optional[ClassificationContext]) -> Dict[int, List[Candidate]]:
        payload = [self._field_payload(f) for f in chunk]
        blocks = context.context_blocks() if context else []
        request = ClassificationRequest(
            fields=payload,
            prompt=self.create_prompt(payload, blocks),
            context_blocks=blocks,
        )
        entries = await self.transport.classify(request)
        return self._to_candidates(entries, chunk)

    async def classify_batch(self, fields: List[FieldDescriptor],
                             context: Optional[ClassificationContext] = None,
                             token: Optional[PassToken] = None) -> Dict[int, List[Candidate]]:
        """
        Classify fields, serving cached results and batching the rest.

        A failing chunk yields empty candidate lists for its own fields only;
        the error is logged and never raised. Chunks are sent one after the
        other with the pacer's cooldown between them. When `token` is
        cancelled, no further chunks are sent and the remaining fields get
        empty lists.

        Args:
            fields: Fields to classify, in scan order
            context: Optional page-level hints
            token: Pass token checked before each chunk

        Returns:
            Mapping of field index to statistical candidates (possibly empty)
        """
        results: Dict[int, List[Candidate]] = {}
        uncached: List[FieldDescriptor] = []

        for field in fields:
            cached = self.cache.get(field)
            if cached is not None:
                results[field.index] = cached
            else:
                uncached.append(field)

        if not uncached:
            return results

        chunks = [uncached[i:i + self.batch_size] for i in range(0, len(uncached), self.batch_size)]
        self.logger.info(f"Classifying {len(uncached)} fields in {len(chunks)} chunk(s) "
                         f"({len(fields) - len(uncached)} cached)")
        self.pacer.reset()

        for number, chunk in enumerate(chunks, start=1):
            if token is not None and token.cancelled:
                self.logger.info(f"Pass {token.generation} cancelled; skipping chunk {number}/{len(chunks)}")
                for field in chunk:
                    results[field.index] = []
                continue

            try:
                chunk_results = await self.pacer.execute_api_call(self._classify_chunk, chunk, context)
            except Exception as e:
                self.logger.error(f"Classification chunk {number}/{len(chunks)} failed: {e}")
                for field in chunk:
                    results[field.index] = []
                continue

            for field in chunk:
                candidates = chunk_results.get(field.index, [])
                self.cache.store(field, candidates)
                results[field.index] = candidates

        return results
