"""Ranking of stored answers for a classified field."""

import logging
from typing import Dict, List, Optional, Tuple

from autofill_engine.core.interfaces import AnswerStore, ExperienceStore
from autofill_engine.core.models import AnswerValue, FieldDescriptor, ResolvedAnswer, Section
from autofill_engine.core.taxonomy import Taxonomy
from autofill_engine.tools.value_transformer import NameTransformer, transform_value

logger = logging.getLogger(__name__)

PRIORITY_EXPERIENCE = 3
PRIORITY_DIRECT = 2
PRIORITY_RELATED = 1

# Types whose stored values can be derived into one another
RELATED_TYPES: Dict[Taxonomy, List[Taxonomy]] = {
    Taxonomy.FIRST_NAME: [Taxonomy.FULL_NAME],
    Taxonomy.LAST_NAME: [Taxonomy.FULL_NAME],
    Taxonomy.FULL_NAME: [Taxonomy.FIRST_NAME, Taxonomy.LAST_NAME],
    Taxonomy.GRAD_YEAR: [Taxonomy.GRAD_DATE],
    Taxonomy.GRAD_MONTH: [Taxonomy.GRAD_DATE],
    Taxonomy.GRAD_DATE: [Taxonomy.GRAD_YEAR, Taxonomy.GRAD_MONTH],
    Taxonomy.COUNTRY_CODE: [Taxonomy.PHONE],
    Taxonomy.PHONE: [Taxonomy.COUNTRY_CODE],
}


class AnswerResolver:
    """Resolves a field's classified type to ranked stored values."""

    def __init__(self, answer_store: AnswerStore, experience_store: Optional[ExperienceStore] = None):
        """
        Initialize the resolver.

        Args:
            answer_store: Store of global answers for the active profile
            experience_store: Store of per-block work/education/project entries
        """
        self.answer_store = answer_store
        self.experience_store = experience_store

    def _experience_answers(self, field: FieldDescriptor, field_type: Taxonomy,
                            section: Optional[Section]) -> List[ResolvedAnswer]:
        if section is None or section.group_type is None or self.experience_store is None:
            return []
        entry = self.experience_store.get_by_priority(section.group_type, section.block_index)
        if entry is None or not entry.fields.get(field_type):
            return []

        answer = AnswerValue.create(field_type, entry.fields[field_type], now=0.0)
        answer.id = f"experience:{entry.id}:{field_type.value}"
        value = transform_value(answer.value, field_type, field, field_type)
        return [ResolvedAnswer(answer=answer.with_value(value), value=value,
                               priority=PRIORITY_EXPERIENCE,
                               source=f"experience {section.group_type.value}#{section.block_index}")]

    def _direct_answers(self, field: FieldDescriptor, field_type: Taxonomy) -> List[ResolvedAnswer]:
        resolved = []
        for answer in self.answer_store.get_by_type(field_type):
            value = transform_value(answer.value, field_type, field, field_type)
            resolved.append(ResolvedAnswer(answer=answer.with_value(value), value=value,
                                           priority=PRIORITY_DIRECT, source="direct"))
        return resolved

    def _related_answers(self, field: FieldDescriptor, field_type: Taxonomy) -> List[ResolvedAnswer]:
        resolved = []
        for related_type in RELATED_TYPES.get(field_type, []):
            for answer in self.answer_store.get_by_type(related_type):
                value = transform_value(answer.value, related_type, field, field_type)
                if value == answer.value and related_type != field_type:
                    continue
                if not value:
                    continue
                resolved.append(ResolvedAnswer(answer=answer.with_value(value), value=value,
                                               priority=PRIORITY_RELATED,
                                               source=f"related {related_type.value}"))

        if field_type == Taxonomy.FULL_NAME:
            resolved.extend(self._merged_full_names())
        return resolved

    def _merged_full_names(self) -> List[ResolvedAnswer]:
        firsts = self.answer_store.get_by_type(Taxonomy.FIRST_NAME)
        lasts = self.answer_store.get_by_type(Taxonomy.LAST_NAME)
        if not firsts or not lasts:
            return []
        first = max(firsts, key=lambda a: a.updated_at)
        last = max(lasts, key=lambda a: a.updated_at)
        value = NameTransformer.merge(first.value, last.value)
        answer = first.with_value(value)
        answer.updated_at = max(first.updated_at, last.updated_at)
        return [ResolvedAnswer(answer=answer, value=value, priority=PRIORITY_RELATED,
                               source="related FIRST_NAME+LAST_NAME")]

    def resolve_with_reason(self, field: FieldDescriptor, field_type: Taxonomy,
                            section: Optional[Section] = None) -> Tuple[List[ResolvedAnswer], str]:
        """
        Rank stored values for a field.

        Experience-aligned values (priority 3) come first, then direct type
        matches (2), then values derived from related types (1). Ties within
        a priority go to the most recently updated answer.

        Args:
            field: Target field, used to transform values for it
            field_type: Classified type of the field
            section: Grouped section containing the field, if any

        Returns:
            Tuple of (ranked answers, debug reason when the list is empty)
        """
        if field_type == Taxonomy.UNKNOWN:
            return [], "classified UNKNOWN"

        resolved = (self._experience_answers(field, field_type, section)
                    + self._direct_answers(field, field_type)
                    + self._related_answers(field, field_type))
        resolved.sort(key=lambda r: (-r.priority, -r.answer.updated_at))

        if resolved:
            logger.debug(f"Field {field.index} ({field_type.value}): {len(resolved)} candidate answers, "
                         f"top from {resolved[0].source}")
            return resolved, ""

        reason = f"no stored answer for {field_type.value}"
        if section is not None and section.group_type is not None:
            reason += f" (no {section.group_type.value} entry at priority {section.block_index})"
        return [], reason

    def resolve(self, field: FieldDescriptor, field_type: Taxonomy,
                section: Optional[Section] = None) -> List[ResolvedAnswer]:
        return self.resolve_with_reason(field, field_type, section)[0]
