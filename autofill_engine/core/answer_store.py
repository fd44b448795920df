"""In-memory answer and experience stores, and the profile loader that fills them."""

import json
import logging
import os
import time
from typing import Any, Dict, List, Optional, Tuple

import yaml

from autofill_engine.core.models import AnswerValue, ExperienceEntry
from autofill_engine.core.taxonomy import GroupType, Taxonomy

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"


class InMemoryAnswerStore:
    """Answer store keeping every profile's answers in a dict, namespaced by profile id."""

    def __init__(self, profile_id: str = DEFAULT_PROFILE):
        self.profile_id = profile_id
        self._answers: Dict[str, Dict[str, AnswerValue]] = {}

    @property
    def _current(self) -> Dict[str, AnswerValue]:
        return self._answers.setdefault(self.profile_id, {})

    def switch_profile(self, profile_id: str) -> None:
        """Make another profile the active namespace."""
        logger.info(f"Switching answer store to profile '{profile_id}'")
        self.profile_id = profile_id

    def get_by_type(self, answer_type: Taxonomy) -> List[AnswerValue]:
        return [a for a in self._current.values() if a.type == answer_type]

    def get(self, answer_id: str) -> Optional[AnswerValue]:
        return self._current.get(answer_id)

    def find_by_value(self, answer_type: Taxonomy, value: str) -> Optional[AnswerValue]:
        """Return the stored answer of this type whose value or alias equals `value`."""
        for answer in self.get_by_type(answer_type):
            if answer.matches_value(value):
                return answer
        return None

    def save(self, answer: AnswerValue) -> AnswerValue:
        self._current[answer.id] = answer
        return answer

    def update_value(self, answer_id: str, value: str) -> Optional[AnswerValue]:
        """Edit an answer's value in place, bumping its updated_at."""
        answer = self._current.get(answer_id)
        if answer is None:
            return None
        answer.value = value
        answer.display = value
        answer.updated_at = time.time()
        return answer

    def delete(self, answer_id: str) -> bool:
        return self._current.pop(answer_id, None) is not None

    def all(self) -> List[AnswerValue]:
        return list(self._current.values())

    def __len__(self) -> int:
        return len(self._current)


class InMemoryExperienceStore:
    """
    Experience store with per-group priority bookkeeping.

    Priorities within a group type are always 0..n-1 without gaps, so the
    N-th repeated block on a page lines up with priority N.
    """

    def __init__(self, profile_id: str = DEFAULT_PROFILE):
        self.profile_id = profile_id
        self._entries: Dict[str, Dict[str, ExperienceEntry]] = {}

    @property
    def _current(self) -> Dict[str, ExperienceEntry]:
        return self._entries.setdefault(self.profile_id, {})

    def switch_profile(self, profile_id: str) -> None:
        self.profile_id = profile_id

    def get_by_group_type(self, group_type: GroupType) -> List[ExperienceEntry]:
        entries = [e for e in self._current.values() if e.group_type == group_type]
        return sorted(entries, key=lambda e: e.priority)

    def get_by_priority(self, group_type: GroupType, priority: int) -> Optional[ExperienceEntry]:
        for entry in self._current.values():
            if entry.group_type == group_type and entry.priority == priority:
                return entry
        return None

    def count_by_group_type(self, group_type: GroupType) -> int:
        return len(self.get_by_group_type(group_type))

    def save(self, entry: ExperienceEntry) -> ExperienceEntry:
        """
        Save an entry, resolving priority collisions.

        An entry whose priority is already taken by another entry is inserted
        at that position and the others shift down.
        """
        siblings = [e for e in self.get_by_group_type(entry.group_type) if e.id != entry.id]
        position = max(0, min(entry.priority, len(siblings)))
        siblings.insert(position, entry)
        self._current[entry.id] = entry
        self._normalize(siblings)
        return entry

    def delete(self, entry_id: str) -> bool:
        entry = self._current.pop(entry_id, None)
        if entry is None:
            return False
        self._normalize(self.get_by_group_type(entry.group_type))
        return True

    def reorder(self, group_type: GroupType, ordered_ids: List[str]) -> None:
        """
        Reassign priorities from an explicit id order.

        Raises:
            ValueError: If the ids are not exactly the group's entries
        """
        entries = {e.id: e for e in self.get_by_group_type(group_type)}
        if set(ordered_ids) != set(entries) or len(ordered_ids) != len(entries):
            raise ValueError(f"Reorder ids do not match the stored {group_type.value} entries")
        self._normalize([entries[entry_id] for entry_id in ordered_ids])

    @staticmethod
    def _normalize(entries: List[ExperienceEntry]) -> None:
        for priority, entry in enumerate(entries):
            entry.priority = priority


class ProfileLoader:
    """Loads a profile file (JSON or YAML) into in-memory stores."""

    def __init__(self, profile_path: str):
        self.profile_path = profile_path

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.profile_path):
            raise FileNotFoundError(f"Profile file not found: {self.profile_path}")

        with open(self.profile_path, "r", encoding="utf-8") as f:
            if self.profile_path.endswith((".yaml", ".yml")):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Profile must be a mapping: {self.profile_path}")
        return data

    def load(self, profile_id: Optional[str] = None) -> Tuple[InMemoryAnswerStore, InMemoryExperienceStore]:
        """
        Load answers and experiences from the profile file.

        Answers may be given as a list of answer dicts or as a `TYPE: value`
        mapping. Experience priorities follow list order within each group
        type unless given explicitly.

        Args:
            profile_id: Namespace for the stores (defaults to the file's `id`)

        Returns:
            Tuple of (answer store, experience store)
        """
        data = self._read()
        namespace = profile_id or data.get("id") or DEFAULT_PROFILE
        answers = InMemoryAnswerStore(namespace)
        experiences = InMemoryExperienceStore(namespace)

        raw_answers = data.get("answers") or []
        if isinstance(raw_answers, dict):
            raw_answers = [{"type": key, "value": value} for key, value in raw_answers.items()]

        for item in raw_answers:
            answer_type = Taxonomy.parse(item.get("type"))
            if answer_type is None or answer_type == Taxonomy.UNKNOWN or item.get("value") is None:
                logger.warning(f"Skipping profile answer with unusable type/value: {item}")
                continue
            answers.save(AnswerValue.from_dict({**item, "type": answer_type.value}))

        counters: Dict[GroupType, int] = {}
        for item in data.get("experiences") or []:
            group_type = GroupType(str(item["group_type"]).upper())
            entry = ExperienceEntry.from_dict({"priority": counters.get(group_type, 0), **item})
            counters[entry.group_type] = counters.get(entry.group_type, 0) + 1
            experiences.save(entry)

        logger.info(f"Loaded {len(answers)} answers and {sum(counters.values())} experiences "
                    f"from {self.profile_path}")
        return answers, experiences
