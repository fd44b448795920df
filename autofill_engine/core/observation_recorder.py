"""Two-phase capture of values the user types into fields."""

import hashlib
import logging
import time
import uuid
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

from autofill_engine.core.interfaces import AnswerStore
from autofill_engine.core.models import (
    AnswerValue,
    FieldDescriptor,
    Observation,
    ObservationStatus,
    PendingObservation,
)
from autofill_engine.core.taxonomy import Taxonomy
from autofill_engine.tools.rule_parsers import ParserRegistry, parse_field_rules

logger = logging.getLogger(__name__)

PendingCallback = Callable[[PendingObservation], None]
CommitCallback = Callable[[Observation, AnswerValue], None]


def is_partial_value(partial: str, full: str) -> bool:
    """
    True when `partial` is a strictly shorter, non-empty prefix of `full`.

    Both values are whitespace-trimmed and compared case-insensitively, so
    "2023-09" is partial for "2023-09-01" but not the other way round.
    """
    a = partial.strip().casefold()
    b = full.strip().casefold()
    return bool(a) and len(a) < len(b) and b.startswith(a)


def site_key_for(url: str) -> str:
    host = urlparse(url).hostname if url else None
    return host or "unknown"


def question_key_for(field: FieldDescriptor, field_type: Taxonomy) -> str:
    """Stable key for "this question on this kind of form", independent of the stored value."""
    phrases = []
    for phrase in (field.label_text, field.name, field.id, field.placeholder):
        phrase = phrase.strip().lower()
        if phrase and phrase not in phrases:
            phrases.append(phrase)
    options = "|".join(sorted(o.strip().lower() for o in field.options))
    raw = "|".join([field_type.value, *phrases, field.section_title.strip().lower(), options])
    return hashlib.md5(raw.encode("utf-8")).hexdigest()[:16]


def widget_signature_for(field: FieldDescriptor) -> str:
    return f"{field.tag_name.lower()}:{field.input_type or 'text'}"


class ObservationRecorder:
    """
    Keeps in-progress manual entries pending until they are committed.

    Nothing reaches the answer store until `commit_all()`, so transient
    keystrokes are never stored.
    """

    def __init__(self, answer_store: AnswerStore, registry: Optional[ParserRegistry] = None,
                 clock: Callable[[], float] = time.time):
        self.answer_store = answer_store
        self.registry = registry
        self.clock = clock
        self.pending: Dict[int, PendingObservation] = {}
        self.observations: List[Observation] = []
        self._fields: Dict[int, FieldDescriptor] = {}
        self._on_pending: List[PendingCallback] = []
        self._on_commit: List[CommitCallback] = []

    def on_pending(self, callback: PendingCallback) -> None:
        self._on_pending.append(callback)

    def on_commit(self, callback: CommitCallback) -> None:
        self._on_commit.append(callback)

    def observe(self, field: FieldDescriptor, raw_value: str, url: str = "") -> Optional[PendingObservation]:
        """
        Record the current value of a field the user edited.

        Empty and unchanged values are ignored. A value that extends the
        pending one (the user kept typing) updates it in place; any other
        change starts a fresh pending entry.

        Args:
            field: The edited field
            raw_value: Its current value
            url: Page URL, used for the site key

        Returns:
            The pending observation, or None when the value was ignored
        """
        if not raw_value or not raw_value.strip():
            return None

        existing = self.pending.get(field.index)
        if existing is not None and existing.raw_value == raw_value:
            return None

        if existing is not None and is_partial_value(existing.raw_value, raw_value):
            existing.raw_value = raw_value
            pending = existing
        else:
            best = parse_field_rules(field, self.registry)[0]
            pending = PendingObservation(
                field_index=field.index,
                classified_type=best.type,
                raw_value=raw_value,
                timestamp=self.clock(),
                site_key=site_key_for(url),
                url=url,
                widget_signature=widget_signature_for(field),
                confidence=best.score,
            )
            self.pending[field.index] = pending
            self._fields[field.index] = field

        for callback in self._on_pending:
            callback(pending)
        return pending

    def commit_all(self) -> List[Observation]:
        """
        Promote every pending entry to an Observation.

        Values are linked to an existing answer with the same type and value
        when one exists; otherwise a new answer is saved. UNKNOWN-typed
        entries are discarded.

        Returns:
            Observations created by this commit
        """
        committed = []
        for index, pending in list(self.pending.items()):
            if pending.classified_type == Taxonomy.UNKNOWN:
                pending.status = ObservationStatus.DISCARDED
                logger.debug(f"Discarding unclassified observation for field {index}")
                continue

            answer = self.answer_store.find_by_value(pending.classified_type, pending.raw_value)
            if answer is None:
                answer = self.answer_store.save(
                    AnswerValue.create(pending.classified_type, pending.raw_value, now=self.clock()))
                logger.info(f"Stored new {pending.classified_type.value} answer from field {index}")

            observation = Observation(
                id=str(uuid.uuid4()),
                timestamp=self.clock(),
                site_key=pending.site_key,
                url=pending.url,
                question_key=question_key_for(self._fields[index], pending.classified_type),
                answer_id=answer.id,
                widget_signature=pending.widget_signature,
                confidence=pending.confidence,
            )
            pending.status = ObservationStatus.COMMITTED
            self.observations.append(observation)
            committed.append(observation)
            for callback in self._on_commit:
                callback(observation, answer)

        self.pending.clear()
        self._fields.clear()
        return committed

    def discard_all(self) -> int:
        """Drop every pending entry; returns how many were dropped."""
        count = len(self.pending)
        for pending in self.pending.values():
            pending.status = ObservationStatus.DISCARDED
        self.pending.clear()
        self._fields.clear()
        return count
