"""Agent deciding whether another repeated entry block should be revealed."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from autofill_engine.core.backend_client import BackendClient
from autofill_engine.core.llm_wrapper import LLMWrapper
from autofill_engine.core.models import clamp_score
from autofill_engine.core.taxonomy import GroupType
from autofill_engine.tools.constants import MAX_AUTO_ADD_LABELS
from autofill_engine.tools.pii_scrubber import scrub_all, scrub_pii
from autofill_engine.utils.json_parsing import parse_json_lenient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You help fill multi-entry job application forms.

YOUR TASK:
Decide whether clicking an "add another" button is needed so that every
stored entry of a section (jobs, degrees or projects) gets its own block.

Respond with valid JSON only:
{"shouldAdd": true, "reason": "short reason", "confidence": 0.0}"""

FALLBACK_CONFIDENCE = 0.5
MAX_SECTION_CHARS = 500


def _is_yes(value: Any) -> bool:
    """JSON true, or a "true"/"yes" string; anything else is a no."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes")
    return False


@dataclass
class AddDecisionContext:
    """What the page shows for one group type."""
    group_type: GroupType
    current_count: int
    stored_count: int
    button_text: str = ""
    section_text: str = ""
    labels: List[str] = field(default_factory=list)


@dataclass
class AddDecision:
    should_add: bool
    confidence: float
    reason: str


class AutoAddAgent:
    """Asks the classifier backend whether to reveal one more entry block."""

    def __init__(self, llm: Optional[LLMWrapper] = None, backend_client: Optional[BackendClient] = None):
        """
        Initialize the agent.

        Args:
            llm: Directly configured endpoint, used when present
            backend_client: Hosted backend, used when no direct endpoint is configured
        """
        self.llm = llm
        self.backend_client = backend_client

    def create_prompt(self, context: AddDecisionContext) -> str:
        labels = scrub_all(context.labels[:MAX_AUTO_ADD_LABELS])
        return f"""SECTION: {context.group_type.value}
ENTRIES CURRENTLY ON THE PAGE: {context.current_count}
ENTRIES STORED FOR THE USER: {context.stored_count}
BUTTON TEXT: {scrub_pii(context.button_text)}

SECTION CONTEXT:
{scrub_pii(context.section_text[:MAX_SECTION_CHARS])}

FIELD LABELS:
{json.dumps(labels, ensure_ascii=False)}

Should the button be clicked to add another {context.group_type.value.lower()} entry?"""

    def fallback(self, context: AddDecisionContext, reason: str) -> AddDecision:
        """Count-based decision used when no backend answer is available."""
        return AddDecision(
            should_add=context.stored_count > context.current_count,
            confidence=FALLBACK_CONFIDENCE,
            reason=reason,
        )

    @staticmethod
    def parse_decision(text: str) -> Optional[AddDecision]:
        data = parse_json_lenient(text)
        if not isinstance(data, dict):
            return None
        raw_confidence = data.get("confidence")
        return AddDecision(
            should_add=_is_yes(data.get("shouldAdd", data.get("should_add", False))),
            confidence=clamp_score(0.5 if raw_confidence is None else raw_confidence),
            reason=str(data.get("reason") or "No reason provided"),
        )

    async def decide(self, context: AddDecisionContext) -> AddDecision:
        """
        Decide whether to reveal another block for a group type.

        Backend failures never propagate; they fall back to comparing the
        stored and visible entry counts at low confidence.

        Args:
            context: Page state for the group type

        Returns:
            AddDecision
        """
        prompt = self.create_prompt(context)
        try:
            if self.llm is not None:
                text = await self.llm.acall(prompt, system_prompt=SYSTEM_PROMPT, max_tokens=200)
            elif self.backend_client is not None:
                text = await self.backend_client.chat(prompt, system_prompt=SYSTEM_PROMPT)
            else:
                return self.fallback(context, "classifier unavailable; compared entry counts")
        except Exception as e:
            logger.warning(f"Add-entry decision failed for {context.group_type.value}: {e}")
            return self.fallback(context, f"classifier error: {e}")

        decision = self.parse_decision(text)
        if decision is None:
            logger.warning(f"Unparseable add-entry decision: {text[:100]}")
            return self.fallback(context, "unparseable classifier response")

        logger.info(f"Add-entry decision for {context.group_type.value}: add={decision.should_add} "
                    f"confidence={decision.confidence:.2f} ({decision.reason})")
        return decision
