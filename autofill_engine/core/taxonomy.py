"""Closed taxonomy of semantic field kinds."""

from enum import Enum
from typing import Optional


class Taxonomy(str, Enum):
    """Semantic kinds a form field can be classified as."""
    FULL_NAME = "FULL_NAME"
    FIRST_NAME = "FIRST_NAME"
    LAST_NAME = "LAST_NAME"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    COUNTRY_CODE = "COUNTRY_CODE"
    LOCATION = "LOCATION"
    CITY = "CITY"
    LINKEDIN = "LINKEDIN"
    GITHUB = "GITHUB"
    PORTFOLIO = "PORTFOLIO"
    SUMMARY = "SUMMARY"
    SCHOOL = "SCHOOL"
    DEGREE = "DEGREE"
    MAJOR = "MAJOR"
    GPA = "GPA"
    GRAD_DATE = "GRAD_DATE"
    GRAD_YEAR = "GRAD_YEAR"
    GRAD_MONTH = "GRAD_MONTH"
    COMPANY_NAME = "COMPANY_NAME"
    JOB_TITLE = "JOB_TITLE"
    JOB_DESCRIPTION = "JOB_DESCRIPTION"
    SKILLS = "SKILLS"
    START_DATE = "START_DATE"
    END_DATE = "END_DATE"
    WORK_AUTH = "WORK_AUTH"
    NEED_SPONSORSHIP = "NEED_SPONSORSHIP"
    RESUME_TEXT = "RESUME_TEXT"
    SALARY = "SALARY"
    EEO_GENDER = "EEO_GENDER"
    EEO_ETHNICITY = "EEO_ETHNICITY"
    EEO_VETERAN = "EEO_VETERAN"
    EEO_DISABILITY = "EEO_DISABILITY"
    GOV_ID = "GOV_ID"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Taxonomy"]:
        """
        Look up a taxonomy member by name, tolerating case and surrounding whitespace.

        Args:
            value: Raw type name, e.g. from a classifier response

        Returns:
            The matching member or None if the name is not in the taxonomy
        """
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class GroupType(str, Enum):
    """Kinds of repeated entry blocks on multi-entry forms."""
    WORK = "WORK"
    EDUCATION = "EDUCATION"
    PROJECT = "PROJECT"


SENSITIVE_TYPES = frozenset({
    Taxonomy.EEO_GENDER,
    Taxonomy.EEO_ETHNICITY,
    Taxonomy.EEO_VETERAN,
    Taxonomy.EEO_DISABILITY,
    Taxonomy.GOV_ID,
    Taxonomy.SALARY,
    Taxonomy.RESUME_TEXT,
})

# One-line descriptions sent to the statistical classifier
TAXONOMY_DESCRIPTIONS = {
    Taxonomy.FULL_NAME: "Full name (first + last)",
    Taxonomy.FIRST_NAME: "First name / given name",
    Taxonomy.LAST_NAME: "Last name / family name / surname",
    Taxonomy.EMAIL: "Email address",
    Taxonomy.PHONE: "Phone number",
    Taxonomy.COUNTRY_CODE: "Phone country / dialing code",
    Taxonomy.LOCATION: "General location or address",
    Taxonomy.CITY: "City name",
    Taxonomy.LINKEDIN: "LinkedIn profile URL",
    Taxonomy.GITHUB: "GitHub profile URL",
    Taxonomy.PORTFOLIO: "Portfolio or personal website URL",
    Taxonomy.SUMMARY: "Professional summary / about me / cover letter text",
    Taxonomy.SCHOOL: "School or university name",
    Taxonomy.DEGREE: "Degree type (Bachelor, Master, PhD, etc.)",
    Taxonomy.MAJOR: "Field of study / major",
    Taxonomy.GPA: "Grade point average",
    Taxonomy.GRAD_DATE: "Graduation date (full date)",
    Taxonomy.GRAD_YEAR: "Graduation year",
    Taxonomy.GRAD_MONTH: "Graduation month",
    Taxonomy.COMPANY_NAME: "Company / employer name",
    Taxonomy.JOB_TITLE: "Job title / position",
    Taxonomy.JOB_DESCRIPTION: "Job responsibilities / description",
    Taxonomy.SKILLS: "Skills list",
    Taxonomy.START_DATE: "Start date of a job or education entry",
    Taxonomy.END_DATE: "End date of a job or education entry",
    Taxonomy.WORK_AUTH: "Work authorization status",
    Taxonomy.NEED_SPONSORSHIP: "Whether visa sponsorship is needed",
    Taxonomy.RESUME_TEXT: "Resume / CV upload or pasted text",
    Taxonomy.SALARY: "Salary expectation",
    Taxonomy.EEO_GENDER: "Gender (EEO)",
    Taxonomy.EEO_ETHNICITY: "Ethnicity / race (EEO)",
    Taxonomy.EEO_VETERAN: "Veteran status (EEO)",
    Taxonomy.EEO_DISABILITY: "Disability status (EEO)",
    Taxonomy.GOV_ID: "Government ID (SSN, passport, etc.)",
    Taxonomy.UNKNOWN: "Cannot determine",
}


def is_sensitive(field_type: Taxonomy) -> bool:
    """Return True when values of this type must never be auto-filled."""
    return field_type in SENSITIVE_TYPES
