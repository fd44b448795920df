"""Removal of personally identifying substrings before text leaves the process."""

import re
from typing import List

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# Government IDs are matched before phones, whose pattern would otherwise swallow them
SSN_PATTERN = re.compile(r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b")
PHONE_PATTERN = re.compile(r"[\+]?[(]?[0-9]{1,3}[)]?[-\s\.]?[(]?[0-9]{1,3}[)]?[-\s\.]?[0-9]{4,6}")

EMAIL_TOKEN = "[EMAIL]"
PHONE_TOKEN = "[PHONE]"
SSN_TOKEN = "[SSN]"


def scrub_pii(text: str) -> str:
    """
    Replace email-like, government-ID-like and phone-like substrings with fixed tokens.

    Args:
        text: Free text from a field (label, placeholder, option, context)

    Returns:
        Scrubbed text
    """
    if not text:
        return ""
    text = EMAIL_PATTERN.sub(EMAIL_TOKEN, text)
    text = SSN_PATTERN.sub(SSN_TOKEN, text)
    return PHONE_PATTERN.sub(PHONE_TOKEN, text)


def scrub_all(values: List[str]) -> List[str]:
    return [scrub_pii(v) for v in values]
