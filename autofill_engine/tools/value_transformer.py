"""Tools for adapting stored values to the format a specific field expects."""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from thefuzz import fuzz, process

from autofill_engine.core.models import FieldDescriptor
from autofill_engine.core.taxonomy import Taxonomy

logger = logging.getLogger(__name__)

MONTH_NAMES = ["January", "February", "March", "April", "May", "June",
               "July", "August", "September", "October", "November", "December"]
MONTH_SHORT = [m[:3] for m in MONTH_NAMES]
MONTH_LOOKUP = {name.lower(): i + 1 for i, name in enumerate(MONTH_NAMES)}
MONTH_LOOKUP.update({name.lower(): i + 1 for i, name in enumerate(MONTH_SHORT)})
MONTH_LOOKUP["sept"] = 9

OPTION_MATCH_THRESHOLD = 85

_CJK_RE = re.compile(r"[一-龥]")


def _contains_cjk(text: str) -> bool:
    return bool(_CJK_RE.search(text))


def _word_start(term: str, text: str) -> bool:
    """True when `term` starts a word in `text` (substring match for CJK terms)."""
    if _contains_cjk(term):
        return term in text
    return re.search(rf"(?<![a-z0-9]){re.escape(term)}", text) is not None


def _field_text(field: FieldDescriptor) -> str:
    return f"{field.label_text} {field.name} {field.id}".lower()


def _usable_options(field: FieldDescriptor) -> List[str]:
    return [o for o in field.options if o.strip()]


def match_option(value: str, options: List[str], threshold: int = OPTION_MATCH_THRESHOLD) -> Optional[str]:
    """
    Find the choice option that best matches a value.

    Exact (case-insensitive) matches win; otherwise the closest option by
    token-sort ratio is returned when it clears the threshold.

    Args:
        value: Value to place
        options: Option texts of the choice field
        threshold: Minimum similarity (0-100)

    Returns:
        The option text, or None when nothing is close enough
    """
    candidates = [o for o in options if o.strip()]
    if not value or not candidates:
        return None
    needle = value.strip().lower()
    for option in candidates:
        if option.strip().lower() == needle:
            return option
    best = process.extractOne(value, candidates, scorer=fuzz.token_sort_ratio)
    if best and best[1] >= threshold:
        return best[0]
    return None


class ValueTransformer:
    """Base class for value transformers."""

    name = "ValueTransformer"
    handled_types: frozenset = frozenset()

    def can_transform(self, value: str, field: FieldDescriptor) -> bool:
        raise NotImplementedError

    def transform(self, value: str, field: FieldDescriptor,
                  target_type: Optional[Taxonomy] = None) -> str:
        raise NotImplementedError


class NameTransformer(ValueTransformer):
    """Splits full names into first/last parts and merges them back."""

    name = "NameTransformer"
    handled_types = frozenset({Taxonomy.FULL_NAME, Taxonomy.FIRST_NAME, Taxonomy.LAST_NAME})

    def can_transform(self, value: str, field: FieldDescriptor) -> bool:
        return bool(value.strip())

    def detect_target_type(self, field: FieldDescriptor) -> Taxonomy:
        text = _field_text(field)
        if re.search(r"first.?name|given.?name|名", text) and not re.search(r"姓名", text):
            return Taxonomy.FIRST_NAME
        if re.search(r"last.?name|family.?name|sur.?name|姓", text) and not re.search(r"姓名", text):
            return Taxonomy.LAST_NAME
        return Taxonomy.FULL_NAME

    def transform(self, value: str, field: FieldDescriptor,
                  target_type: Optional[Taxonomy] = None) -> str:
        target = target_type if target_type in self.handled_types else self.detect_target_type(field)
        name = value.strip()
        if target == Taxonomy.FULL_NAME:
            return value

        if _contains_cjk(name) and " " not in name:
            # Chinese names: family name first, one character
            return name[0] if target == Taxonomy.LAST_NAME else name[1:]

        parts = name.split()
        if target == Taxonomy.FIRST_NAME:
            return parts[0]
        return parts[-1] if len(parts) > 1 else ""

    @staticmethod
    def merge(first: str, last: str) -> str:
        """Combine first and last name in the order their script expects."""
        first, last = first.strip(), last.strip()
        if not last:
            return first
        if _contains_cjk(first) or _contains_cjk(last):
            return f"{last}{first}"
        return f"{first} {last}".strip()


@dataclass
class ParsedDate:
    year: int
    month: Optional[int] = None
    day: Optional[int] = None


class DateTransformer(ValueTransformer):
    """Re-formats dates for date inputs, month inputs and year/month selects."""

    name = "DateTransformer"
    handled_types = frozenset({
        Taxonomy.GRAD_DATE, Taxonomy.GRAD_YEAR, Taxonomy.GRAD_MONTH,
        Taxonomy.START_DATE, Taxonomy.END_DATE,
    })

    def parse_date(self, value: str) -> Optional[ParsedDate]:
        """
        Parse ISO (YYYY-MM[-DD]), US (MM/DD/YYYY), "Month YYYY", YYYY/MM,
        YYYY年M月 and year-only values.
        """
        text = value.strip()

        match = re.match(r"^(\d{4})[-/.](\d{1,2})(?:[-/.](\d{1,2}))?$", text)
        if match:
            parsed = ParsedDate(int(match.group(1)), int(match.group(2)),
                                int(match.group(3)) if match.group(3) else None)
            return parsed if 1 <= parsed.month <= 12 else None

        match = re.match(r"^(\d{1,2})/(\d{1,2})/(\d{4})$", text)
        if match:
            return ParsedDate(int(match.group(3)), int(match.group(1)), int(match.group(2)))

        match = re.match(r"^(\d{4})年(\d{1,2})月(?:(\d{1,2})日)?$", text)
        if match:
            return ParsedDate(int(match.group(1)), int(match.group(2)),
                              int(match.group(3)) if match.group(3) else None)

        match = re.match(r"^([A-Za-z]+)\.?\s+(\d{4})$", text)
        if match and match.group(1).lower() in MONTH_LOOKUP:
            return ParsedDate(int(match.group(2)), MONTH_LOOKUP[match.group(1).lower()])

        match = re.match(r"^(\d{4})$", text)
        if match:
            return ParsedDate(int(match.group(1)))

        return None

    def can_transform(self, value: str, field: FieldDescriptor) -> bool:
        return self.parse_date(value) is not None

    def detect_target_format(self, field: FieldDescriptor, target_type: Optional[Taxonomy] = None) -> str:
        if field.input_type == "date":
            return "iso"
        if field.input_type == "month":
            return "month-input"

        options = _usable_options(field)
        if options:
            option_text = " ".join(options).lower()
            if any(_word_start(m.lower(), option_text) for m in MONTH_SHORT):
                return "month"
            if re.fullmatch(r"\d{4}", options[0].strip()):
                return "year"

        text = _field_text(field)
        if target_type == Taxonomy.GRAD_YEAR or re.search(r"year|年", text):
            return "year"
        if target_type == Taxonomy.GRAD_MONTH or re.search(r"month|月", text):
            return "month"
        return "iso"

    def _month_option(self, month: int, options: List[str]) -> Optional[str]:
        for option in options:
            lowered = option.strip().lower().rstrip(".")
            if lowered in (MONTH_NAMES[month - 1].lower(), MONTH_SHORT[month - 1].lower()):
                return option
            if lowered.isdigit() and int(lowered) == month:
                return option
        return None

    def transform(self, value: str, field: FieldDescriptor,
                  target_type: Optional[Taxonomy] = None) -> str:
        parsed = self.parse_date(value)
        if parsed is None:
            return value

        fmt = self.detect_target_format(field, target_type)
        options = _usable_options(field)

        if fmt == "year":
            year = str(parsed.year)
            if options:
                return next((o for o in options if o.strip() == year), year)
            return year

        if fmt == "month":
            if parsed.month is None:
                return value
            if options:
                return self._month_option(parsed.month, options) or MONTH_NAMES[parsed.month - 1]
            return str(parsed.month)

        if fmt == "month-input":
            return f"{parsed.year}-{parsed.month or 1:02d}"

        if parsed.month is None:
            return str(parsed.year)
        if parsed.day is None:
            return f"{parsed.year}-{parsed.month:02d}"
        return f"{parsed.year}-{parsed.month:02d}-{parsed.day:02d}"


@dataclass
class ParsedPhone:
    number: str
    country_code: Optional[str] = None


# Dialing codes recognized in compact "+<code><number>" input, longest first
KNOWN_COUNTRY_CODES = [
    "852", "853", "886", "971", "966", "234",
    "20", "27", "30", "31", "32", "33", "34", "39", "41", "43", "44", "45", "46", "47", "48", "49",
    "52", "55", "60", "61", "62", "63", "64", "65", "66", "81", "82", "84", "86", "90", "91",
    "1", "7",
]


class PhoneTransformer(ValueTransformer):
    """Formats phone numbers for country-code, local and formatted inputs."""

    name = "PhoneTransformer"
    handled_types = frozenset({Taxonomy.PHONE, Taxonomy.COUNTRY_CODE})

    def parse_phone(self, value: str) -> Optional[ParsedPhone]:
        raw = value.strip()
        cleaned = re.sub(r"[\s\-().]", "", raw)

        if cleaned.startswith("+"):
            digits = cleaned[1:]
            if not digits.isdigit() or not 8 <= len(digits) <= 18:
                return None
            separated = re.match(r"^\+(\d{1,3})[\s\-.(]", raw)
            if separated:
                code = separated.group(1)
                return ParsedPhone(number=digits[len(code):], country_code=code)
            for code in sorted(KNOWN_COUNTRY_CODES, key=len, reverse=True):
                if digits.startswith(code) and 7 <= len(digits) - len(code) <= 15:
                    return ParsedPhone(number=digits[len(code):], country_code=code)
            if len(digits) > 10:
                return ParsedPhone(number=digits[-10:], country_code=digits[:-10])
            return None

        if re.fullmatch(r"\d{10,11}", cleaned):
            return ParsedPhone(number=cleaned)
        return None

    def can_transform(self, value: str, field: FieldDescriptor) -> bool:
        return self.parse_phone(value) is not None

    def detect_target_format(self, field: FieldDescriptor, target_type: Optional[Taxonomy] = None) -> str:
        text = _field_text(field)
        if target_type == Taxonomy.COUNTRY_CODE or re.search(r"country.?code|dial.?code|国家|区号", text):
            return "country-only"
        if field.max_length == 10 or re.search(r"local|本地", field.label_text.lower()):
            return "local-only"
        placeholder = field.placeholder
        if re.search(r"\(\d{3}\)", placeholder):
            return "us-format"
        if re.search(r"\d{3}-\d{3}-\d{4}", placeholder):
            return "us-dashes"
        return "international"

    def transform(self, value: str, field: FieldDescriptor,
                  target_type: Optional[Taxonomy] = None) -> str:
        parsed = self.parse_phone(value)
        if parsed is None:
            return value

        fmt = self.detect_target_format(field, target_type)
        number = parsed.number

        if fmt == "country-only":
            code = f"+{parsed.country_code or '1'}"
            for option in _usable_options(field):
                if re.search(rf"{re.escape(code)}(?!\d)", option):
                    return option
            return code
        if fmt == "us-format" and len(number) == 10:
            return f"({number[:3]}) {number[3:6]}-{number[6:]}"
        if fmt == "us-dashes" and len(number) == 10:
            return f"{number[:3]}-{number[3:6]}-{number[6:]}"
        if fmt == "international" and parsed.country_code:
            return f"+{parsed.country_code} {number}"
        return number


class BooleanTransformer(ValueTransformer):
    """Maps yes/no answers onto checkboxes or the matching option text."""

    name = "BooleanTransformer"
    handled_types = frozenset({Taxonomy.WORK_AUTH, Taxonomy.NEED_SPONSORSHIP})

    true_values = ["yes", "true", "1", "on", "是", "authorized", "i agree", "i confirm"]
    false_values = ["no", "false", "0", "off", "否", "not authorized", "i decline"]

    def can_transform(self, value: str, field: FieldDescriptor) -> bool:
        normalized = value.strip().lower()
        return normalized in self.true_values or normalized in self.false_values

    def transform(self, value: str, field: FieldDescriptor,
                  target_type: Optional[Taxonomy] = None) -> str:
        normalized = value.strip().lower()
        if normalized not in self.true_values and normalized not in self.false_values:
            return value
        is_true = normalized in self.true_values

        if field.input_type == "checkbox":
            return "true" if is_true else "false"

        for term in (self.true_values if is_true else self.false_values):
            for option in _usable_options(field):
                if _word_start(term, option.lower()):
                    return option
        return "Yes" if is_true else "No"


class DegreeTransformer(ValueTransformer):
    """Matches degree names and their aliases against select options."""

    name = "DegreeTransformer"
    handled_types = frozenset({Taxonomy.DEGREE})

    degree_aliases: Dict[str, List[str]] = {
        "bachelors": ["bachelor", "bs", "ba", "bsc", "undergraduate", "本科", "学士"],
        "masters": ["master", "ms", "ma", "msc", "mba", "graduate", "硕士", "研究生"],
        "phd": ["ph.d", "phd", "doctorate", "doctoral", "博士"],
        "associate": ["associate", "aa", "as", "专科", "大专"],
        "high school": ["high school", "hs", "高中"],
    }

    @staticmethod
    def _normalize(text: str) -> str:
        return text.strip().lower().replace("'", "").replace("’", "")

    def can_transform(self, value: str, field: FieldDescriptor) -> bool:
        return bool(value.strip()) and bool(_usable_options(field))

    def _degree_key(self, value: str) -> Optional[str]:
        normalized = self._normalize(value)
        for key, aliases in self.degree_aliases.items():
            if normalized == key or any(_word_start(alias, normalized) for alias in aliases):
                return key
        return None

    def transform(self, value: str, field: FieldDescriptor,
                  target_type: Optional[Taxonomy] = None) -> str:
        options = _usable_options(field)
        key = self._degree_key(value) if options else None
        if key is None:
            return value

        aliases = [key] + self.degree_aliases[key]
        for option in options:
            normalized = self._normalize(option)
            if any(_word_start(alias, normalized) for alias in aliases):
                return option
        return value


_TRANSFORMERS: List[ValueTransformer] = [
    NameTransformer(),
    DateTransformer(),
    PhoneTransformer(),
    BooleanTransformer(),
    DegreeTransformer(),
]


def transform_value(value: str, source_type: Taxonomy, field: FieldDescriptor,
                    target_type: Optional[Taxonomy] = None) -> str:
    """
    Adapt a stored value to a target field.

    The first transformer handling the source (or target) type does the
    work; choice fields are then snapped to their closest option when one is
    close enough.

    Args:
        value: Stored value
        source_type: Taxonomy kind of the stored value
        field: Target field
        target_type: Classified kind of the target field, when known

    Returns:
        Transformed value (the input unchanged when nothing applies)
    """
    result = value
    for transformer in _TRANSFORMERS:
        handles = source_type in transformer.handled_types or target_type in transformer.handled_types
        if handles and transformer.can_transform(value, field):
            result = transformer.transform(value, field, target_type)
            break

    if field.is_choice and result:
        snapped = match_option(result, field.options)
        if snapped is not None:
            result = snapped
    return result


def strip_country_code(value: str) -> str:
    """
    Remove a leading international dialing code from a phone number.

    Values without a "+<code>" prefix are returned unchanged.
    """
    if not value or not value.strip().startswith("+"):
        return value
    parsed = PhoneTransformer().parse_phone(value)
    if parsed is None or not parsed.country_code:
        return value
    return parsed.number
