"""Bounded loop revealing and filling extra repeated entry blocks."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from autofill_engine.agents.auto_add_agent import AddDecisionContext, AutoAddAgent
from autofill_engine.core.interfaces import ExperienceStore, RevealControl
from autofill_engine.core.models import FieldDescriptor, PlanResult
from autofill_engine.core.taxonomy import GroupType
from autofill_engine.tools.constants import AUTO_ADD_CONFIDENCE_THRESHOLD, MAX_AUTO_ADD_ITERATIONS

logger = logging.getLogger(__name__)

PlanCallback = Callable[[List[FieldDescriptor]], Awaitable[PlanResult]]


class AddLoopState(str, Enum):
    IDLE = "idle"
    DECIDE = "decide"
    CLICKED = "clicked"
    FILLED = "filled"


@dataclass
class AutoAddOutcome:
    """What the loop did for one group type."""
    group_type: GroupType
    iterations: int = 0
    added_fields: List[int] = field(default_factory=list)
    stop_reason: str = ""
    states: List[AddLoopState] = field(default_factory=list)
    result: PlanResult = field(default_factory=PlanResult)


class AutoAddLoop:
    """
    Per group type: idle -> decide -> clicked -> filled -> idle.

    Each group type gets at most `max_iterations` reveals per pass. A missing
    reveal control, a declined decision or a reveal that produces no new
    fields stops that group type only.
    """

    def __init__(self, reveal: RevealControl, experience_store: ExperienceStore,
                 agent: AutoAddAgent, plan_new_fields: PlanCallback,
                 max_iterations: int = MAX_AUTO_ADD_ITERATIONS,
                 confidence_threshold: float = AUTO_ADD_CONFIDENCE_THRESHOLD):
        """
        Initialize the loop.

        Args:
            reveal: Collaborator that finds and clicks "add another" controls
            experience_store: Stored entries, counted per group type
            agent: Decides whether another block should be revealed
            plan_new_fields: Classifies and plans newly revealed fields
            max_iterations: Reveal limit per group type per pass
            confidence_threshold: Minimum decision confidence to click
        """
        self.reveal = reveal
        self.experience_store = experience_store
        self.agent = agent
        self.plan_new_fields = plan_new_fields
        self.max_iterations = max_iterations
        self.confidence_threshold = confidence_threshold

    async def run_group(self, group_type: GroupType, known_indices: Set[int],
                        labels: Optional[List[str]] = None) -> AutoAddOutcome:
        """
        Run the loop for one group type.

        Args:
            group_type: Group type to reveal blocks for
            known_indices: Field indices already seen on the page; updated in place
            labels: Labels of fields relevant to this group type

        Returns:
            AutoAddOutcome
        """
        outcome = AutoAddOutcome(group_type=group_type, states=[AddLoopState.IDLE])
        labels = list(labels or [])

        stored = self.experience_store.count_by_group_type(group_type)
        if stored == 0:
            outcome.stop_reason = "no stored entries"
            return outcome

        while outcome.iterations < self.max_iterations:
            outcome.states.append(AddLoopState.DECIDE)
            current = await self.reveal.visible_block_count(group_type)
            if current >= stored:
                outcome.stop_reason = f"all {stored} stored entries visible"
                break

            button_text = await self.reveal.find_add_button(group_type)
            if not button_text:
                outcome.stop_reason = "no reveal control found"
                break

            decision = await self.agent.decide(AddDecisionContext(
                group_type=group_type,
                current_count=current,
                stored_count=stored,
                button_text=button_text,
                section_text=await self.reveal.section_text(group_type),
                labels=labels,
            ))
            if not decision.should_add or decision.confidence < self.confidence_threshold:
                outcome.stop_reason = f"declined ({decision.confidence:.2f}): {decision.reason}"
                break

            outcome.iterations += 1
            if not await self.reveal.click_add(group_type):
                outcome.stop_reason = "reveal control click failed"
                break
            outcome.states.append(AddLoopState.CLICKED)

            new_fields = [f for f in await self.reveal.wait_for_new_fields(sorted(known_indices))
                          if f.index not in known_indices]
            if not new_fields:
                outcome.stop_reason = "reveal produced no new fields"
                break

            known_indices.update(f.index for f in new_fields)
            outcome.added_fields.extend(f.index for f in new_fields)
            labels.extend(f.label_text for f in new_fields if f.label_text)
            outcome.result.extend(await self.plan_new_fields(new_fields))
            outcome.states.append(AddLoopState.FILLED)
            outcome.states.append(AddLoopState.IDLE)
        else:
            outcome.stop_reason = f"reached {self.max_iterations} iterations"

        if outcome.states[-1] != AddLoopState.IDLE:
            outcome.states.append(AddLoopState.IDLE)
        logger.info(f"Auto-add {group_type.value}: {outcome.iterations} reveal(s), "
                    f"{len(outcome.added_fields)} new fields; stopped: {outcome.stop_reason}")
        return outcome

    async def run(self, group_types: Iterable[GroupType], known_indices: Iterable[int],
                  labels: Optional[Dict[GroupType, List[str]]] = None) -> List[AutoAddOutcome]:
        """
        Run the loop for several group types, one after the other.

        A collaborator error ends that group type's loop and is logged; the
        remaining group types still run.
        """
        known = set(known_indices)
        labels = labels or {}
        outcomes = []
        for group_type in group_types:
            try:
                outcomes.append(await self.run_group(group_type, known, labels.get(group_type)))
            except Exception as e:
                logger.error(f"Auto-add loop for {group_type.value} failed: {e}")
                outcomes.append(AutoAddOutcome(group_type=group_type, stop_reason=f"error: {e}",
                                               states=[AddLoopState.IDLE]))
        return outcomes
