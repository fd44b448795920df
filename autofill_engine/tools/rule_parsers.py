"""Rule-based field parsers that classify fields from structural hints."""

import logging
import re
from typing import List, Optional, Pattern, Tuple

from autofill_engine.core.candidate_merger import merge_candidates
from autofill_engine.core.models import Candidate, FieldDescriptor
from autofill_engine.core.taxonomy import Taxonomy
from autofill_engine.tools.constants import SECTION_ONLY_DISCOUNT

logger = logging.getLogger(__name__)

PatternTable = List[Tuple[Pattern, Taxonomy, float]]


def _table(entries: List[Tuple[str, Taxonomy, float]]) -> PatternTable:
    return [(re.compile(pattern, re.IGNORECASE), field_type, score)
            for pattern, field_type, score in entries]


class FieldParser:
    """
    Base class for rule parsers.

    `priority` orders the cascade only; it never affects candidate scores.
    """

    name = "FieldParser"
    priority = 0

    def can_parse(self, field: FieldDescriptor) -> bool:
        raise NotImplementedError

    def parse(self, field: FieldDescriptor) -> List[Candidate]:
        raise NotImplementedError


class AutocompleteParser(FieldParser):
    """Maps declared autocomplete hints to taxonomy kinds."""

    name = "AutocompleteParser"
    priority = 100
    score = 0.95

    autocomplete_map = {
        "name": Taxonomy.FULL_NAME,
        "given-name": Taxonomy.FIRST_NAME,
        "family-name": Taxonomy.LAST_NAME,
        "email": Taxonomy.EMAIL,
        "tel": Taxonomy.PHONE,
        "tel-national": Taxonomy.PHONE,
        "tel-country-code": Taxonomy.COUNTRY_CODE,
        "address-level2": Taxonomy.CITY,
        "address-level1": Taxonomy.LOCATION,
        "country-name": Taxonomy.LOCATION,
        "url": Taxonomy.PORTFOLIO,
        "organization": Taxonomy.COMPANY_NAME,
        "organization-title": Taxonomy.JOB_TITLE,
    }

    def _hint(self, field: FieldDescriptor) -> Optional[str]:
        # Hints may carry section/billing prefixes, e.g. "section-1 shipping email"
        tokens = field.autocomplete.split()
        return tokens[-1] if tokens else None

    def can_parse(self, field: FieldDescriptor) -> bool:
        return self._hint(field) in self.autocomplete_map

    def parse(self, field: FieldDescriptor) -> List[Candidate]:
        hint = self._hint(field)
        field_type = self.autocomplete_map.get(hint)
        if not field_type:
            return []
        return [Candidate(field_type, self.score, [f'autocomplete="{hint}"'])]


class InputTypeParser(FieldParser):
    """Maps the input kind (type attribute) to taxonomy kinds."""

    name = "InputTypeParser"
    priority = 90
    score = 0.90

    type_map = {
        "email": Taxonomy.EMAIL,
        "tel": Taxonomy.PHONE,
        "url": Taxonomy.PORTFOLIO,
        "date": Taxonomy.GRAD_DATE,
        "month": Taxonomy.GRAD_DATE,
    }

    def can_parse(self, field: FieldDescriptor) -> bool:
        return field.input_type in self.type_map

    def parse(self, field: FieldDescriptor) -> List[Candidate]:
        field_type = self.type_map.get(field.input_type)
        if not field_type:
            return []
        return [Candidate(field_type, self.score, [f'type="{field.input_type}"'])]


class NameIdParser(FieldParser):
    """Matches the name and id attributes against a substring pattern table."""

    name = "NameIdParser"
    priority = 80

    # (?<![a-z]) / (?![a-z]) keep short tokens like "tel" or "pay" from firing inside words
    patterns = _table([
        (r"full.?name|fullname", Taxonomy.FULL_NAME, 0.90),
        (r"first.?name|given.?name|fname", Taxonomy.FIRST_NAME, 0.90),
        (r"last.?name|family.?name|surname|lname", Taxonomy.LAST_NAME, 0.90),
        (r"^name$", Taxonomy.FULL_NAME, 0.85),
        (r"e.?mail", Taxonomy.EMAIL, 0.90),
        (r"phone|mobile|(?<![a-z])tel(?![a-z])", Taxonomy.PHONE, 0.90),
        (r"country.?code|dial.?code", Taxonomy.COUNTRY_CODE, 0.95),
        (r"city|town", Taxonomy.CITY, 0.85),
        (r"location|address", Taxonomy.LOCATION, 0.80),
        (r"linkedin", Taxonomy.LINKEDIN, 0.95),
        (r"github", Taxonomy.GITHUB, 0.95),
        (r"portfolio|website", Taxonomy.PORTFOLIO, 0.85),
        (r"school|university|college|institution", Taxonomy.SCHOOL, 0.90),
        (r"degree", Taxonomy.DEGREE, 0.85),
        (r"major|field.?of.?study|specialization", Taxonomy.MAJOR, 0.85),
        (r"(?<![a-z])gpa(?![a-z])|grade.?point", Taxonomy.GPA, 0.90),
        (r"grad.*date|graduation(?!.*(year|month))", Taxonomy.GRAD_DATE, 0.85),
        (r"grad.*year", Taxonomy.GRAD_YEAR, 0.90),
        (r"grad.*month", Taxonomy.GRAD_MONTH, 0.90),
        (r"company|employer|organi[sz]ation", Taxonomy.COMPANY_NAME, 0.85),
        (r"job.?title|position.?title|(?<![a-z])title(?![a-z])", Taxonomy.JOB_TITLE, 0.80),
        (r"start.?date|date.?from|from.?date", Taxonomy.START_DATE, 0.80),
        (r"end.?date|date.?to|to.?date", Taxonomy.END_DATE, 0.80),
        (r"skill", Taxonomy.SKILLS, 0.85),
        (r"summary|about.?me|cover.?letter", Taxonomy.SUMMARY, 0.80),
        (r"authorized.?to.?work|work.?auth|legally.?authorized", Taxonomy.WORK_AUTH, 0.90),
        (r"sponsor|visa", Taxonomy.NEED_SPONSORSHIP, 0.90),
        (r"gender|(?<![a-z])sex(?![a-z])", Taxonomy.EEO_GENDER, 0.90),
        (r"ethnic|(?<![a-z])race(?![a-z])", Taxonomy.EEO_ETHNICITY, 0.90),
        (r"veteran|military", Taxonomy.EEO_VETERAN, 0.90),
        (r"disab", Taxonomy.EEO_DISABILITY, 0.90),
        (r"salary|compensation|(?<![a-z])pay(?![a-z])", Taxonomy.SALARY, 0.85),
        (r"resume|(?<![a-z])cv(?![a-z])", Taxonomy.RESUME_TEXT, 0.85),
        (r"(?<![a-z])ssn(?![a-z])|social.?security|passport|national.?id", Taxonomy.GOV_ID, 0.90),
    ])

    def can_parse(self, field: FieldDescriptor) -> bool:
        return bool(field.name or field.id)

    def parse(self, field: FieldDescriptor) -> List[Candidate]:
        results = []
        for token in {t.lower() for t in (field.name, field.id) if t}:
            for pattern, field_type, score in self.patterns:
                if pattern.search(token):
                    results.append(Candidate(field_type, score, [f'name/id matches "{pattern.pattern}"']))
        return merge_candidates(results) if results else []


class LabelParser(FieldParser):
    """Matches label and section-title text against a bilingual pattern table."""

    name = "LabelParser"
    priority = 70

    patterns = _table([
        (r"full\s*name|姓名|名字", Taxonomy.FULL_NAME, 0.85),
        (r"first\s*name|given\s*name|^名$", Taxonomy.FIRST_NAME, 0.85),
        (r"last\s*name|family\s*name|surname|^姓$", Taxonomy.LAST_NAME, 0.85),
        (r"e-?mail|邮箱|电子邮件", Taxonomy.EMAIL, 0.85),
        (r"phone|mobile|电话|手机", Taxonomy.PHONE, 0.85),
        (r"country\s*code|区号", Taxonomy.COUNTRY_CODE, 0.85),
        (r"city|城市", Taxonomy.CITY, 0.80),
        (r"linkedin", Taxonomy.LINKEDIN, 0.90),
        (r"github", Taxonomy.GITHUB, 0.90),
        (r"portfolio|personal\s*website|个人网站", Taxonomy.PORTFOLIO, 0.80),
        (r"school|university|college|学校|大学|院校", Taxonomy.SCHOOL, 0.85),
        (r"degree|学历|学位", Taxonomy.DEGREE, 0.80),
        (r"major|field\s*of\s*study|专业", Taxonomy.MAJOR, 0.80),
        (r"\bgpa\b|绩点", Taxonomy.GPA, 0.85),
        (r"graduation|毕业", Taxonomy.GRAD_DATE, 0.80),
        (r"company|employer|公司|单位", Taxonomy.COMPANY_NAME, 0.85),
        (r"job\s*title|position|职位|岗位", Taxonomy.JOB_TITLE, 0.80),
        (r"start\s*date|开始时间|入职时间", Taxonomy.START_DATE, 0.80),
        (r"end\s*date|结束时间|离职时间", Taxonomy.END_DATE, 0.80),
        (r"skills|技能", Taxonomy.SKILLS, 0.80),
        (r"authorized\s*to\s*work|work\s*authorization|工作授权", Taxonomy.WORK_AUTH, 0.85),
        (r"sponsorship|签证担保", Taxonomy.NEED_SPONSORSHIP, 0.85),
        (r"gender|性别", Taxonomy.EEO_GENDER, 0.85),
        (r"ethnicity|\brace\b|种族|民族", Taxonomy.EEO_ETHNICITY, 0.85),
        (r"veteran|退伍", Taxonomy.EEO_VETERAN, 0.85),
        (r"disability|残疾", Taxonomy.EEO_DISABILITY, 0.85),
        (r"salary|compensation|薪资|期望薪水", Taxonomy.SALARY, 0.85),
    ])

    def _label(self, field: FieldDescriptor) -> str:
        return (field.label_text or field.aria_label).strip().lower()

    def can_parse(self, field: FieldDescriptor) -> bool:
        return bool(self._label(field) or field.section_title.strip())

    def parse(self, field: FieldDescriptor) -> List[Candidate]:
        label = self._label(field)
        section = field.section_title.strip().lower()

        results = []
        for pattern, field_type, score in self.patterns:
            if label and pattern.search(label):
                results.append(Candidate(field_type, score, [f'label matches "{pattern.pattern}"']))
            elif section and pattern.search(section):
                results.append(Candidate(
                    field_type,
                    score * SECTION_ONLY_DISCOUNT,
                    [f'section title matches "{pattern.pattern}"'],
                ))
        return sorted(results, key=lambda c: c.score, reverse=True)


class ParserRegistry:
    """
    Priority-ordered collection of rule parsers.

    Owned by the engine context rather than held globally so tests and
    embedders can register extra parsers without affecting each other.
    """

    def __init__(self, parsers: Optional[List[FieldParser]] = None):
        self._parsers: List[FieldParser] = []
        for parser in parsers if parsers is not None else default_parsers():
            self.register(parser)

    @property
    def parsers(self) -> List[FieldParser]:
        return list(self._parsers)

    def register(self, parser: FieldParser) -> None:
        """Add a parser, keeping the cascade sorted by descending priority."""
        self._parsers.append(parser)
        self._parsers.sort(key=lambda p: p.priority, reverse=True)
        logger.debug(f"Registered parser {parser.name} (priority {parser.priority})")

    def parse_field(self, field: FieldDescriptor) -> List[Candidate]:
        """
        Run every applicable parser and merge the results.

        All parsers run; a field matching several rules keeps every match and
        the merger resolves them.

        Args:
            field: Field to classify

        Returns:
            Merged, non-empty candidate list sorted by descending score
        """
        contributions = []
        for parser in self._parsers:
            if not parser.can_parse(field):
                continue
            try:
                contributions.append(parser.parse(field))
            except Exception as e:
                logger.error(f"Parser {parser.name} failed on field {field.index}: {e}")
        return merge_candidates(*contributions)


def default_parsers() -> List[FieldParser]:
    return [AutocompleteParser(), InputTypeParser(), NameIdParser(), LabelParser()]


def parse_field_rules(field: FieldDescriptor, registry: Optional[ParserRegistry] = None) -> List[Candidate]:
    """Classify a field with the rule cascade only."""
    return (registry or ParserRegistry()).parse_field(field)
