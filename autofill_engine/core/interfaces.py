"""Collaborator interfaces the engine depends on but does not implement."""

from typing import List, Optional, Protocol

from autofill_engine.core.models import (
    AnswerValue,
    ExperienceEntry,
    FieldDescriptor,
    FillPlan,
    FillResult,
)
from autofill_engine.core.taxonomy import GroupType, Taxonomy


class FieldScanner(Protocol):
    """Discovers form controls on a page region, in a stable order."""

    async def scan(self) -> List[FieldDescriptor]:
        ...


class FillExecutor(Protocol):
    """Writes one plan into its host element and reports the outcome."""

    async def fill(self, plan: FillPlan) -> FillResult:
        ...


class AnswerStore(Protocol):
    """Stored answers for the active profile."""

    def get_by_type(self, answer_type: Taxonomy) -> List[AnswerValue]:
        ...

    def find_by_value(self, answer_type: Taxonomy, value: str) -> Optional[AnswerValue]:
        ...

    def save(self, answer: AnswerValue) -> AnswerValue:
        ...

    def delete(self, answer_id: str) -> bool:
        ...


class ExperienceStore(Protocol):
    """Stored work, education and project entries for the active profile."""

    def get_by_priority(self, group_type: GroupType, priority: int) -> Optional[ExperienceEntry]:
        ...

    def count_by_group_type(self, group_type: GroupType) -> int:
        ...


class RevealControl(Protocol):
    """Finds and clicks "add another" controls for repeated entry blocks."""

    async def find_add_button(self, group_type: GroupType) -> Optional[str]:
        """Return the control's visible text, or None when there is none."""
        ...

    async def visible_block_count(self, group_type: GroupType) -> int:
        ...

    async def section_text(self, group_type: GroupType) -> str:
        ...

    async def click_add(self, group_type: GroupType) -> bool:
        ...

    async def wait_for_new_fields(self, known_indices: List[int]) -> List[FieldDescriptor]:
        """Wait for the page to settle and return fields not in `known_indices`."""
        ...
