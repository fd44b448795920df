"""Confidence and sensitivity gating of resolved answers into fill buckets."""

import logging
from typing import List, Optional

from autofill_engine.core.answer_resolver import AnswerResolver
from autofill_engine.core.models import ClassifiedField, FillPlan, FillSuggestion, PlanResult, Section
from autofill_engine.core.section_detector import section_for_field
from autofill_engine.core.taxonomy import Taxonomy, is_sensitive
from autofill_engine.tools.constants import CONFIDENCE_THRESHOLD, MAX_RANKED_CANDIDATES
from autofill_engine.tools.value_transformer import strip_country_code

logger = logging.getLogger(__name__)


class FillPlanner:
    """Splits classified fields into auto-fill plans, suggestions and sensitive picks."""

    def __init__(self, resolver: AnswerResolver, confidence_threshold: float = CONFIDENCE_THRESHOLD):
        self.resolver = resolver
        self.confidence_threshold = confidence_threshold

    def build(self, classified: List[ClassifiedField],
              sections: Optional[List[Section]] = None) -> PlanResult:
        """
        Build the bucketed plan for one pass.

        Sensitive types and answers that disallow autofill always go to the
        sensitive bucket; a best score under the confidence threshold goes to
        suggestions; everything else becomes a FillPlan with the top-ranked
        transformed value. Fields keep scan order within each bucket.

        Args:
            classified: Fields with merged candidate lists, in scan order
            sections: Sections detected for the same scan

        Returns:
            PlanResult with plans, suggestions, sensitive picks and skip reasons
        """
        sections = sections or []
        result = PlanResult()

        for item in classified:
            best = item.best
            index = item.field.index
            if best.type == Taxonomy.UNKNOWN:
                result.skipped[index] = "classified UNKNOWN"
                continue

            section = section_for_field(sections, index)
            answers, reason = self.resolver.resolve_with_reason(item.field, best.type, section)
            if not answers:
                result.skipped[index] = reason
                continue

            ranked = answers[:MAX_RANKED_CANDIDATES]
            top = answers[0]

            if is_sensitive(best.type) or not top.answer.autofill_allowed:
                result.sensitive.append(FillSuggestion(
                    field=item.field, candidate=best, answers=ranked,
                    reason=f"{best.type.value} requires manual selection",
                ))
            elif best.score < self.confidence_threshold:
                result.suggestions.append(FillSuggestion(
                    field=item.field, candidate=best, answers=ranked,
                    reason=f"confidence {best.score:.2f} below {self.confidence_threshold:.2f}",
                ))
            else:
                result.plans.append(FillPlan(field=item.field, answer=top.answer,
                                             confidence=best.score, field_type=best.type))

        if any(item.best.type == Taxonomy.COUNTRY_CODE for item in classified):
            self._strip_phone_country_codes(result.plans)

        logger.info(f"Planned {len(result.plans)} fills, {len(result.suggestions)} suggestions, "
                    f"{len(result.sensitive)} sensitive, {len(result.skipped)} skipped")
        return result

    @staticmethod
    def _strip_phone_country_codes(plans: List[FillPlan]) -> None:
        """Drop the dialing code from phone values when the form has its own country-code field."""
        for plan in plans:
            if plan.field_type != Taxonomy.PHONE:
                continue
            stripped = strip_country_code(plan.answer.value)
            if stripped != plan.answer.value:
                logger.debug(f"Stripped country code from phone field {plan.field.index}")
                plan.answer = plan.answer.with_value(stripped)
