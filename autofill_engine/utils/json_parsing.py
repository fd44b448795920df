"""Lenient JSON extraction for free-text model responses."""

import json
import logging
import re
from typing import Any, Optional

import json_repair

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def _try_loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None


def _outermost_block(text: str) -> Optional[str]:
    """Return the span from the first opening bracket to its last matching closer."""
    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    closer = "]" if text[start] == "[" else "}"
    end = text.rfind(closer)
    if end <= start:
        # Truncated response, keep everything after the opener
        return text[start:]
    return text[start:end + 1]


def _repair(block: str) -> Optional[Any]:
    """Run json_repair over a damaged block; anything but an object or array is a failure."""
    repaired = json_repair.loads(block.replace("“", '"').replace("”", '"'))
    return repaired if isinstance(repaired, (dict, list)) else None


def parse_json_lenient(text: str, fallback: Any = None) -> Any:
    """
    Parse JSON from a model response, recovering from common damage.

    Tries, in order: the raw text, the first markdown code fence, the
    outermost bracketed block (dropping surrounding commentary), and finally
    that block after json_repair (trailing commas, single quotes, smart
    quotes, unclosed brackets).

    Args:
        text: Raw response text
        fallback: Value returned when nothing can be recovered

    Returns:
        Parsed JSON value or fallback
    """
    if not text or not isinstance(text, str):
        return fallback

    parsed = _try_loads(text)
    if parsed is not None:
        return parsed

    candidate = text
    fence = _FENCE_RE.search(text)
    if fence:
        candidate = fence.group(1).strip()
        parsed = _try_loads(candidate)
        if parsed is not None:
            return parsed

    block = _outermost_block(candidate)
    if block:
        parsed = _try_loads(block)
        if parsed is not None:
            return parsed
        parsed = _repair(block)
        if parsed is not None:
            logger.debug("Recovered JSON after repair")
            return parsed

    logger.warning(f"Failed to parse JSON from response: {text[:200]}")
    return fallback
