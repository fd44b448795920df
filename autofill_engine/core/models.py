"""Data model shared by the classification and fill-planning pipeline."""

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from autofill_engine.core.taxonomy import GroupType, Taxonomy, is_sensitive


def clamp_score(value: Any) -> float:
    """Coerce a score into the closed interval [0, 1]."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return max(0.0, min(1.0, score))


@dataclass(frozen=True)
class FieldDescriptor:
    """
    Metadata for one form control, as produced by the scanner.

    `index` is an opaque handle into the scanner's element table; the engine
    never touches the element itself. Instances are immutable for a pass and
    are keyed by `index`, never hashed.
    """
    index: int
    label_text: str = ""
    section_title: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    options: List[str] = field(default_factory=list)
    tag_name: str = "input"
    surrounding_text: str = ""
    ancestor_texts: List[str] = field(default_factory=list)

    def attr(self, name: str) -> str:
        """Return an attribute value as a string ('' when absent)."""
        value = self.attributes.get(name)
        return "" if value is None else str(value)

    @property
    def name(self) -> str:
        return self.attr("name")

    @property
    def id(self) -> str:
        return self.attr("id")

    @property
    def placeholder(self) -> str:
        return self.attr("placeholder")

    @property
    def input_type(self) -> str:
        return self.attr("type").lower()

    @property
    def autocomplete(self) -> str:
        return self.attr("autocomplete").strip().lower()

    @property
    def aria_label(self) -> str:
        return self.attr("aria-label")

    @property
    def max_length(self) -> Optional[int]:
        raw = self.attr("maxlength")
        try:
            length = int(raw)
        except ValueError:
            return None
        return length if length > 0 else None

    @property
    def is_choice(self) -> bool:
        return bool(self.options) or self.tag_name.lower() == "select"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDescriptor":
        """
        Build a descriptor from scanner output.

        Accepts both snake_case and the camelCase keys used by page scripts
        (labelText, sectionTitle, tagName, surroundingText).

        Args:
            data: Raw field dictionary

        Returns:
            FieldDescriptor
        """
        attributes = dict(data.get("attributes") or {})
        for key in ("name", "id", "placeholder", "type", "autocomplete", "maxlength"):
            if key in data and key not in attributes:
                attributes[key] = data[key]
        aria = data.get("ariaLabel", data.get("aria_label"))
        if aria and "aria-label" not in attributes:
            attributes["aria-label"] = aria
        return cls(
            index=int(data["index"]),
            label_text=data.get("label_text", data.get("labelText", "")) or "",
            section_title=data.get("section_title", data.get("sectionTitle", "")) or "",
            attributes={k: str(v) for k, v in attributes.items() if v is not None},
            options=[str(o) for o in (data.get("options") or [])],
            tag_name=data.get("tag_name", data.get("tagName", "input")) or "input",
            surrounding_text=data.get("surrounding_text", data.get("surroundingText", "")) or "",
            ancestor_texts=[str(t) for t in (data.get("ancestor_texts") or data.get("ancestorCandidates") or [])],
        )


@dataclass
class Candidate:
    """A scored hypothesis that a field is of a given taxonomy kind."""
    type: Taxonomy
    score: float
    reasons: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.score = clamp_score(self.score)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "score": self.score, "reasons": list(self.reasons)}


class Sensitivity(str, Enum):
    NORMAL = "normal"
    SENSITIVE = "sensitive"


@dataclass
class AnswerValue:
    """A stored value the user has entered or confirmed for a field type."""
    id: str
    type: Taxonomy
    value: str
    display: str = ""
    aliases: List[str] = field(default_factory=list)
    sensitivity: Sensitivity = Sensitivity.NORMAL
    autofill_allowed: bool = True
    created_at: float = 0.0
    updated_at: float = 0.0

    @classmethod
    def create(cls, answer_type: Taxonomy, value: str, display: Optional[str] = None,
               aliases: Optional[List[str]] = None, now: Optional[float] = None) -> "AnswerValue":
        """
        Create a new answer, deriving sensitivity from its type.

        Sensitive types are always created with autofill disabled.

        Args:
            answer_type: Taxonomy kind of the value
            value: Raw value
            display: Optional display text (defaults to the value)
            aliases: Alternative spellings used for value lookups
            now: Timestamp override, mostly for tests

        Returns:
            AnswerValue
        """
        timestamp = time.time() if now is None else now
        sensitive = is_sensitive(answer_type)
        return cls(
            id=str(uuid.uuid4()),
            type=answer_type,
            value=value,
            display=display if display is not None else value,
            aliases=list(aliases or []),
            sensitivity=Sensitivity.SENSITIVE if sensitive else Sensitivity.NORMAL,
            autofill_allowed=not sensitive,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def matches_value(self, value: str) -> bool:
        """Case-insensitive comparison against the value and its aliases."""
        needle = value.strip().lower()
        if self.value.strip().lower() == needle:
            return True
        return any(alias.strip().lower() == needle for alias in self.aliases)

    def with_value(self, value: str) -> "AnswerValue":
        """Return a copy carrying a field-specific transformed value."""
        return replace(self, value=value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "value": self.value,
            "display": self.display,
            "aliases": list(self.aliases),
            "sensitivity": self.sensitivity.value,
            "autofill_allowed": self.autofill_allowed,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnswerValue":
        answer_type = Taxonomy(data["type"])
        created = cls.create(answer_type, str(data["value"]), data.get("display"),
                             data.get("aliases"), now=data.get("created_at"))
        if data.get("id"):
            created.id = data["id"]
        if "updated_at" in data:
            created.updated_at = float(data["updated_at"])
        # An explicit opt-out is honored; sensitive types can never opt back in.
        if data.get("autofill_allowed") is False:
            created.autofill_allowed = False
        return created


@dataclass
class ExperienceEntry:
    """One stored job, degree or project record."""
    id: str
    group_type: GroupType
    priority: int
    start_date: str = ""
    end_date: str = ""
    fields: Dict[Taxonomy, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExperienceEntry":
        fields = {}
        for key, value in (data.get("fields") or {}).items():
            field_type = Taxonomy.parse(key)
            if field_type is not None and value is not None:
                fields[field_type] = str(value)
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            group_type=GroupType(str(data["group_type"]).upper()),
            priority=int(data.get("priority", 0)),
            start_date=data.get("start_date", "") or "",
            end_date=data.get("end_date", "") or "",
            fields=fields,
        )


@dataclass
class Section:
    """A transient group of fields sharing a block boundary."""
    id: str
    title: str
    fields: List[FieldDescriptor] = field(default_factory=list)
    group_type: Optional[GroupType] = None
    block_index: int = 0
    is_repeating_block: bool = False

    def contains(self, field_index: int) -> bool:
        return any(f.index == field_index for f in self.fields)


class ObservationStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    DISCARDED = "discarded"


@dataclass
class PendingObservation:
    """An in-progress manual entry that has not been confirmed yet."""
    field_index: int
    classified_type: Taxonomy
    raw_value: str
    timestamp: float
    site_key: str = ""
    url: str = ""
    widget_signature: str = ""
    confidence: float = 0.0
    status: ObservationStatus = ObservationStatus.PENDING


@dataclass
class Observation:
    """A committed observation linking a question to a stored answer."""
    id: str
    timestamp: float
    site_key: str
    url: str
    question_key: str
    answer_id: str
    widget_signature: str
    confidence: float


@dataclass
class FillPlan:
    """A field paired with the final, already-transformed value to write."""
    field: FieldDescriptor
    answer: AnswerValue
    confidence: float
    field_type: Taxonomy = Taxonomy.UNKNOWN

    def __post_init__(self):
        self.confidence = clamp_score(self.confidence)

    @property
    def value(self) -> str:
        return self.answer.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.field.index,
            "label": self.field.label_text,
            "type": self.field_type.value,
            "value": self.answer.value,
            "answer_id": self.answer.id,
            "confidence": self.confidence,
        }


@dataclass
class ResolvedAnswer:
    """A stored answer ranked for a specific field."""
    answer: AnswerValue
    value: str
    priority: int
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer_id": self.answer.id,
            "type": self.answer.type.value,
            "value": self.value,
            "priority": self.priority,
            "source": self.source,
        }


@dataclass
class FillSuggestion:
    """A field that needs the user to pick a value manually."""
    field: FieldDescriptor
    candidate: Candidate
    answers: List[ResolvedAnswer] = field(default_factory=list)
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.field.index,
            "label": self.field.label_text,
            "type": self.candidate.type.value,
            "score": self.candidate.score,
            "reason": self.reason,
            "answers": [a.to_dict() for a in self.answers],
        }


@dataclass
class FillResult:
    """Executor outcome for one plan."""
    field_index: int
    success: bool
    error: Optional[str] = None


@dataclass
class ClassifiedField:
    """A field together with its merged, ranked candidate list."""
    field: FieldDescriptor
    candidates: List[Candidate]

    @property
    def best(self) -> Candidate:
        return self.candidates[0]


@dataclass
class PlanResult:
    """Outcome of one planning pass, split into buckets."""
    plans: List[FillPlan] = field(default_factory=list)
    suggestions: List[FillSuggestion] = field(default_factory=list)
    sensitive: List[FillSuggestion] = field(default_factory=list)
    skipped: Dict[int, str] = field(default_factory=dict)

    def extend(self, other: "PlanResult") -> None:
        self.plans.extend(other.plans)
        self.suggestions.extend(other.suggestions)
        self.sensitive.extend(other.sensitive)
        self.skipped.update(other.skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plans": [p.to_dict() for p in self.plans],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "sensitive": [s.to_dict() for s in self.sensitive],
            "skipped": {str(k): v for k, v in self.skipped.items()},
        }


@dataclass
class PassToken:
    """
    Identifies one classification pass.

    Starting a new pass cancels the previous token; a cancelled pass stops
    issuing classifier requests and its late results are not planned.
    """
    generation: int
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True
