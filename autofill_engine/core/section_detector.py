"""Grouping of fields into repeated entry blocks (job #1, job #2, degree #1, ...)."""

import logging
import re
from typing import Dict, List, Optional

from autofill_engine.core.models import FieldDescriptor, Section
from autofill_engine.core.taxonomy import GroupType, Taxonomy

logger = logging.getLogger(__name__)

# Section-title keywords, checked in this order ("project experience" is a project)
SECTION_KEYWORDS = [
    (GroupType.PROJECT, ["project", "项目"]),
    (GroupType.WORK, [
        "work experience", "employment", "professional experience", "work history",
        "工作经历", "工作经验", "职业经历", "实习经历", "experience", "position", "职位",
    ]),
    (GroupType.EDUCATION, [
        "education", "academic", "school", "university", "degree",
        "教育经历", "教育背景", "学历", "学校",
    ]),
]

# Label keywords; each hit is one vote for the group
LABEL_KEYWORDS = {
    GroupType.WORK: ["company", "employer", "job", "position", "公司", "职位", "岗位"],
    GroupType.EDUCATION: ["school", "university", "college", "degree", "major", "学校", "专业", "学历"],
    GroupType.PROJECT: ["project", "项目"],
}

WORK_FIELD_TYPES = {Taxonomy.COMPANY_NAME, Taxonomy.JOB_TITLE, Taxonomy.JOB_DESCRIPTION}

EDUCATION_FIELD_TYPES = {
    Taxonomy.SCHOOL, Taxonomy.DEGREE, Taxonomy.MAJOR, Taxonomy.GPA,
    Taxonomy.GRAD_DATE, Taxonomy.GRAD_YEAR, Taxonomy.GRAD_MONTH,
}

# Types that appear in both work and education blocks
SHARED_FIELD_TYPES = {Taxonomy.START_DATE, Taxonomy.END_DATE, Taxonomy.LOCATION, Taxonomy.CITY}

BLOCK_FIELD_TYPES = WORK_FIELD_TYPES | EDUCATION_FIELD_TYPES | SHARED_FIELD_TYPES

_NUMBERED_TITLE_RE = re.compile(r"^(.+?)\s*#?\s*(\d+)\s*$")

MIN_GROUP_SCORE = 2.0


def _title_group(title: str) -> Optional[GroupType]:
    lowered = title.lower()
    for group_type, keywords in SECTION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return group_type
    return None


def _vote_group(fields: List[FieldDescriptor], best_types: Dict[int, Taxonomy]) -> Optional[GroupType]:
    scores = {group_type: 0.0 for group_type in GroupType}

    for field in fields:
        label = field.label_text.lower()
        for group_type, keywords in LABEL_KEYWORDS.items():
            if any(keyword in label for keyword in keywords):
                scores[group_type] += 1

        field_type = best_types.get(field.index)
        if field_type in WORK_FIELD_TYPES:
            scores[GroupType.WORK] += 2
        elif field_type in EDUCATION_FIELD_TYPES:
            scores[GroupType.EDUCATION] += 2
        elif field_type in SHARED_FIELD_TYPES:
            scores[GroupType.WORK] += 0.5
            scores[GroupType.EDUCATION] += 0.5

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    (top, top_score), (_, runner_up) = ranked[0], ranked[1]
    if top_score >= MIN_GROUP_SCORE and top_score > runner_up:
        return top
    return None


def detect_group_type(title: str, fields: List[FieldDescriptor],
                      best_types: Dict[int, Taxonomy]) -> Optional[GroupType]:
    """
    Infer the group type of a block from its title, labels and field types.

    Args:
        title: Section title shared by the block
        fields: Fields in the block
        best_types: Best non-UNKNOWN type per field index

    Returns:
        GroupType, or None for an ordinary (non-repeating) section
    """
    return _title_group(title) or _vote_group(fields, best_types)


def _split_runs(fields: List[FieldDescriptor], best_types: Dict[int, Taxonomy]) -> List[List[FieldDescriptor]]:
    """
    Split the scan into runs of consecutive fields sharing a section title.

    A run is also split when a block-level type repeats inside it, which is
    how two adjacent blocks with identical headings are told apart.
    """
    runs: List[List[FieldDescriptor]] = []
    seen_types: set = set()

    for field in fields:
        field_type = best_types.get(field.index)
        new_title = not runs or runs[-1][0].section_title != field.section_title
        repeated = field_type in BLOCK_FIELD_TYPES and field_type in seen_types

        if new_title or repeated:
            runs.append([field])
            seen_types = set()
        else:
            runs[-1].append(field)

        if field_type in BLOCK_FIELD_TYPES:
            seen_types.add(field_type)
    return runs


def _explicit_block_index(title: str, titles: List[str]) -> Optional[int]:
    """Zero-based index from a numbered title ("Experience 2" -> 1) when siblings share its base."""
    match = _NUMBERED_TITLE_RE.match(title.strip())
    if not match:
        return None
    base = match.group(1).strip().lower()
    if not any(other != title and other.strip().lower().startswith(base) for other in titles):
        return None
    return max(int(match.group(2)) - 1, 0)


def detect_sections(fields: List[FieldDescriptor], best_types: Dict[int, Taxonomy]) -> List[Section]:
    """
    Group fields into sections and number repeated blocks per group type.

    The N-th section of a group type on the page gets block_index N-1, unless
    its title carries an explicit number shared with sibling titles. Sections
    keep scan order.

    Args:
        fields: All fields from one scan, in scan order
        best_types: Best non-UNKNOWN type per field index

    Returns:
        List of sections; unsectioned fields sit in sections with group_type None
    """
    runs = _split_runs(fields, best_types)
    titles = [run[0].section_title for run in runs]
    counts: Dict[GroupType, int] = {}
    sections: List[Section] = []

    for run in runs:
        title = run[0].section_title
        group_type = detect_group_type(title, run, best_types)
        block_index = 0

        if group_type is not None:
            explicit = _explicit_block_index(title, titles)
            block_index = explicit if explicit is not None else counts.get(group_type, 0)
            counts[group_type] = counts.get(group_type, 0) + 1

        sections.append(Section(
            id=f"section-{len(sections)}",
            title=title,
            fields=run,
            group_type=group_type,
            block_index=block_index,
        ))

    for section in sections:
        if section.group_type is not None and counts.get(section.group_type, 0) > 1:
            section.is_repeating_block = True

    logger.debug(f"Detected {len(sections)} sections: " + ", ".join(
        f"{s.title or '_default'}[{s.group_type.value if s.group_type else '-'}#{s.block_index}]"
        for s in sections))
    return sections


def section_for_field(sections: List[Section], field_index: int) -> Optional[Section]:
    """Return the grouped section containing a field, if any."""
    for section in sections:
        if section.group_type is not None and section.contains(field_index):
            return section
    return None
