"""Classification and fill-planning passes over scanned form fields."""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from autofill_engine.agents.auto_add_agent import AutoAddAgent
from autofill_engine.agents.field_classifier_agent import (
    ClassificationContext,
    FieldClassifierAgent,
    create_transport,
    needs_statistical,
)
from autofill_engine.core.answer_resolver import AnswerResolver
from autofill_engine.core.auto_add_loop import AutoAddLoop, AutoAddOutcome
from autofill_engine.core.backend_client import BackendClient
from autofill_engine.core.candidate_merger import best_known_type, merge_candidates
from autofill_engine.core.classification_cache import ClassificationCache
from autofill_engine.core.diagnostics_manager import DiagnosticsManager
from autofill_engine.core.exceptions import ClassificationBackendError
from autofill_engine.core.fill_planner import FillPlanner
from autofill_engine.core.interfaces import AnswerStore, ExperienceStore, FillExecutor, RevealControl
from autofill_engine.core.llm_wrapper import LLMWrapper
from autofill_engine.core.models import (
    ClassifiedField,
    FieldDescriptor,
    FillResult,
    PassToken,
    PlanResult,
    Section,
)
from autofill_engine.core.rate_limiter import RequestPacer
from autofill_engine.core.section_detector import detect_sections
from autofill_engine.core.taxonomy import GroupType, Taxonomy
from autofill_engine.tools.constants import CONFIDENCE_THRESHOLD, RESCAN_DEBOUNCE
from autofill_engine.tools.rule_parsers import ParserRegistry

logger = logging.getLogger(__name__)

MAX_SIBLING_HINTS = 10


class EngineContext:
    """
    State that outlives a single pass.

    Holds the classification cache and the parser registry, plus the
    processed-field set and user-modified markers, both keyed by field index.
    `reset()` is called at page or session boundaries.
    """

    def __init__(self, cache: Optional[ClassificationCache] = None,
                 registry: Optional[ParserRegistry] = None):
        self.cache = cache or ClassificationCache()
        self.registry = registry or ParserRegistry()
        self.processed: Set[int] = set()
        self.user_modified: Dict[int, str] = {}

    def mark_processed(self, field_index: int) -> None:
        self.processed.add(field_index)

    def mark_user_modified(self, field_index: int, value: str) -> None:
        self.user_modified[field_index] = value

    def reset(self, clear_cache: bool = False) -> None:
        """Forget per-page state; the cache survives unless `clear_cache` is set."""
        self.processed.clear()
        self.user_modified.clear()
        if clear_cache:
            self.cache.clear()
        logger.info("Engine context reset")


class RescanDebouncer:
    """
    Coalesces page-change notifications into one re-scan.

    The first notification opens a window of `delay` seconds; everything
    notified before it closes is delivered to the callback as one batch.
    Notifications that arrive during delivery open the next window.
    """

    def __init__(self, callback: Callable[[List[Any]], Awaitable[Any]],
                 delay: float = RESCAN_DEBOUNCE,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.callback = callback
        self.delay = delay
        self._sleep = sleep
        self._pending: List[Any] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> List[Any]:
        return list(self._pending)

    def notify(self, *items: Any) -> None:
        """Queue items (e.g. new field descriptors or mutation records)."""
        self._pending.extend(items)
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._flush_later())

    async def _flush_later(self) -> None:
        await self._sleep(self.delay)
        await self._deliver()
        # Changes notified while the callback ran get a window of their own
        while self._pending:
            await self._sleep(self.delay)
            await self._deliver()

    async def _deliver(self) -> None:
        batch, self._pending = self._pending, []
        if batch:
            logger.debug(f"Re-scan triggered for {len(batch)} coalesced change(s)")
            await self.callback(batch)

    async def flush(self) -> None:
        """Deliver pending items now instead of waiting for the window to close."""
        self.cancel()
        await self._deliver()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait for the currently open window, if any, to be delivered."""
        if self._task is not None:
            await self._task


class AutofillEngine:
    """Runs rule classification, statistical fallback, grouping and planning for a scan."""

    def __init__(self, answer_store: AnswerStore, experience_store: Optional[ExperienceStore] = None,
                 classifier: Optional[FieldClassifierAgent] = None,
                 context: Optional[EngineContext] = None,
                 diagnostics: Optional[DiagnosticsManager] = None,
                 confidence_threshold: float = CONFIDENCE_THRESHOLD):
        """
        Initialize the engine.

        Args:
            answer_store: Stored answers for the active profile
            experience_store: Stored work/education/project entries
            classifier: Statistical classifier; rules only when None
            context: Cross-pass state (cache, registry, processed set)
            diagnostics: Collector for stage timings and field decisions
            confidence_threshold: Minimum best score for auto-fill
        """
        self.context = context or EngineContext()
        self.answer_store = answer_store
        self.experience_store = experience_store
        self.classifier = classifier
        self.diagnostics = diagnostics or DiagnosticsManager(run_id=time.strftime("%Y%m%d_%H%M%S"))
        self.planner = FillPlanner(AnswerResolver(answer_store, experience_store), confidence_threshold)
        self.last_sections: List[Section] = []
        # Every field on the page in scan order, with its best type, so blocks
        # revealed later are numbered after the ones already there
        self._page_fields: Dict[int, FieldDescriptor] = {}
        self._page_types: Dict[int, Taxonomy] = {}
        self._generation = 0
        self._token: Optional[PassToken] = None

    def start_pass(self) -> PassToken:
        """Begin a new pass, cancelling the previous one."""
        if self._token is not None:
            self._token.cancel()
        self._generation += 1
        self._token = PassToken(self._generation)
        return self._token

    def classify_rules(self, fields: List[FieldDescriptor]) -> Dict[int, list]:
        return {f.index: self.context.registry.parse_field(f) for f in fields}

    def _with_siblings(self, context: Optional[ClassificationContext], fields: List[FieldDescriptor],
                       rule_results: Dict[int, list]) -> ClassificationContext:
        siblings = []
        for field in fields:
            best = rule_results[field.index][0]
            if best.type != Taxonomy.UNKNOWN and not needs_statistical(rule_results[field.index]) and field.label_text:
                siblings.append((field.label_text, best.type))
        base = context or ClassificationContext()
        return replace(base, siblings=list(base.siblings) + siblings[:MAX_SIBLING_HINTS])

    async def classify(self, fields: List[FieldDescriptor],
                       page_context: Optional[ClassificationContext] = None,
                       token: Optional[PassToken] = None) -> List[ClassifiedField]:
        """
        Classify fields with the rule cascade, falling back to the statistical classifier.

        Only fields whose best rule score is below the trigger score (or
        UNKNOWN) are sent to the classifier. Results keep scan order.

        Args:
            fields: Fields in scan order
            page_context: Optional page-level hints for the classifier
            token: Pass token forwarded to the classifier

        Returns:
            ClassifiedField per input field
        """
        rule_results = self.classify_rules(fields)
        ambiguous = [f for f in fields if needs_statistical(rule_results[f.index])]

        statistical: Dict[int, list] = {}
        if ambiguous and self.classifier is not None:
            context = self._with_siblings(page_context, fields, rule_results)
            statistical = await self.classifier.classify_batch(ambiguous, context, token)
        elif ambiguous:
            logger.debug(f"{len(ambiguous)} ambiguous fields left to rules (no classifier)")

        return [ClassifiedField(f, merge_candidates(rule_results[f.index], statistical.get(f.index, [])))
                for f in fields]

    def _record_plan(self, result: PlanResult) -> None:
        for plan in result.plans:
            self.diagnostics.record_field_decision(plan.field.index, "planned", "",
                                                   {"type": plan.field_type.value, "confidence": plan.confidence})
        for suggestion in result.suggestions:
            self.diagnostics.record_field_decision(suggestion.field.index, "suggested", suggestion.reason,
                                                   {"type": suggestion.candidate.type.value})
        for suggestion in result.sensitive:
            self.diagnostics.record_field_decision(suggestion.field.index, "sensitive", suggestion.reason,
                                                   {"type": suggestion.candidate.type.value})
        for index, reason in result.skipped.items():
            self.diagnostics.record_field_decision(index, "skipped", reason)

    def _page_sections(self) -> List[Section]:
        """Detect sections over every field on the page, not just the ones planned now."""
        page = list(self._page_fields.values())
        for field in page:
            if field.index not in self._page_types:
                # Skipped this pass and never classified; rules are enough for grouping
                self._page_types[field.index] = best_known_type(self.context.registry.parse_field(field))
        return detect_sections(page, self._page_types)

    async def _plan_fields(self, fields: List[FieldDescriptor], token: PassToken,
                           page_context: Optional[ClassificationContext]) -> PlanResult:
        with self.diagnostics.track_stage(f"classification_{token.generation}"):
            classified = await self.classify(fields, page_context, token)

        if token.cancelled:
            logger.info(f"Pass {token.generation} was superseded; dropping its results")
            return PlanResult()

        for field in fields:
            self._page_fields.setdefault(field.index, field)
        self._page_types.update({c.field.index: best_known_type(c.candidates) for c in classified})
        sections = self._page_sections()
        self.last_sections = sections

        with self.diagnostics.track_stage(f"planning_{token.generation}"):
            result = self.planner.build(classified, sections)
        self._record_plan(result)
        return result

    async def plan(self, fields: List[FieldDescriptor],
                   page_context: Optional[ClassificationContext] = None) -> PlanResult:
        """
        Run one classification and planning pass.

        Fields already filled in this page session and fields the user has
        edited by hand are skipped. Starting a pass cancels any earlier one.

        Args:
            fields: Scanned fields, in scan order
            page_context: Optional page-level hints for the classifier

        Returns:
            PlanResult for the remaining fields
        """
        token = self.start_pass()
        self._page_fields = {f.index: f for f in fields}
        self._page_types = {i: t for i, t in self._page_types.items() if i in self._page_fields}
        pending = []
        skipped: Dict[int, str] = {}
        for field in fields:
            if field.index in self.context.user_modified:
                skipped[field.index] = "modified by user"
            elif field.index in self.context.processed:
                skipped[field.index] = "already processed"
            else:
                pending.append(field)

        logger.info(f"Pass {token.generation}: planning {len(pending)} of {len(fields)} fields")
        result = await self._plan_fields(pending, token, page_context)
        result.skipped.update(skipped)
        return result

    async def plan_new_fields(self, fields: List[FieldDescriptor]) -> PlanResult:
        """
        Plan freshly revealed fields within the current pass, bypassing the processed set.

        The fields join the page scanned by the last `plan()`, so a revealed
        second WORK block gets block_index 1 and the second stored entry.
        """
        token = self._token or self.start_pass()
        return await self._plan_fields(fields, token, None)

    async def execute(self, result: PlanResult, executor: FillExecutor) -> List[FillResult]:
        """
        Hand each plan to the executor in order, yielding to the event loop between writes.

        Failed writes are reported, not retried.

        Args:
            result: Plan result from `plan()`
            executor: Collaborator that writes values into the page

        Returns:
            FillResult per plan
        """
        outcomes = []
        for plan in result.plans:
            try:
                outcome = await executor.fill(plan)
            except Exception as e:
                logger.error(f"Executor failed on field {plan.field.index}: {e}")
                outcome = FillResult(field_index=plan.field.index, success=False, error=str(e))

            if outcome.success:
                self.context.mark_processed(plan.field.index)
                self.diagnostics.record_field_decision(plan.field.index, "filled")
            else:
                self.diagnostics.record_field_decision(plan.field.index, "failed", outcome.error or "")
            outcomes.append(outcome)
            await asyncio.sleep(0)
        return outcomes

    async def run_pass(self, fields: List[FieldDescriptor], executor: FillExecutor,
                       page_context: Optional[ClassificationContext] = None) -> List[FillResult]:
        result = await self.plan(fields, page_context)
        return await self.execute(result, executor)

    def labels_by_group(self) -> Dict[GroupType, List[str]]:
        labels: Dict[GroupType, List[str]] = {}
        for section in self.last_sections:
            if section.group_type is not None:
                labels.setdefault(section.group_type, []).extend(
                    f.label_text for f in section.fields if f.label_text)
        return labels

    async def auto_add(self, reveal: RevealControl, agent: AutoAddAgent,
                       known_indices: List[int],
                       group_types: Optional[List[GroupType]] = None) -> List[AutoAddOutcome]:
        """
        Reveal and plan extra repeated blocks for each group type.

        Args:
            reveal: Collaborator for "add another" controls
            agent: Add-entry decision agent
            known_indices: Indices of every field currently on the page
            group_types: Group types to try (defaults to those seen in the last pass)

        Returns:
            AutoAddOutcome per group type
        """
        if self.experience_store is None:
            logger.info("No experience store; skipping auto-add")
            return []
        labels = self.labels_by_group()
        if group_types is None:
            group_types = [g for g in GroupType if g in labels]
        loop = AutoAddLoop(reveal, self.experience_store, agent, self.plan_new_fields)
        return await loop.run(group_types, known_indices, labels)


def build_engine(config: Any, answer_store: AnswerStore,
                 experience_store: Optional[ExperienceStore] = None,
                 use_classifier: bool = True,
                 diagnostics: Optional[DiagnosticsManager] = None) -> AutofillEngine:
    """
    Build an engine from configuration.

    Args:
        config: Config instance
        answer_store: Stored answers
        experience_store: Stored experiences
        use_classifier: Set False to classify with rules only
        diagnostics: Optional diagnostics collector

    Returns:
        AutofillEngine
    """
    settings = config.get_classifier_options()
    context = EngineContext()
    classifier = None

    if use_classifier and settings.enabled:
        backend = None
        if not settings.use_custom_api:
            backend = BackendClient(config.get("backend.base_url"), config.get("backend.session_token"),
                                    timeout=config.get("backend.timeout", 30.0))
        try:
            transport = create_transport(settings, backend)
        except ClassificationBackendError as e:
            logger.warning(f"Statistical classifier unavailable, using rules only: {e}")
        else:
            classifier = FieldClassifierAgent(transport, context.cache, RequestPacer())

    return AutofillEngine(answer_store, experience_store, classifier, context, diagnostics)


def build_auto_add_agent(config: Any) -> AutoAddAgent:
    """Build the add-entry agent using the same provider as the classifier."""
    settings = config.get_classifier_options()
    if settings.use_custom_api:
        try:
            return AutoAddAgent(llm=LLMWrapper(settings.provider, settings.api_key, settings.model,
                                               settings.endpoint, settings.temperature))
        except ClassificationBackendError as e:
            logger.warning(f"Add-entry agent falls back to count comparison: {e}")
            return AutoAddAgent()
    return AutoAddAgent(backend_client=BackendClient(config.get("backend.base_url"),
                                                     config.get("backend.session_token"),
                                                     timeout=config.get("backend.timeout", 30.0)))
