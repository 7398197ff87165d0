"""
Parsing of architect output into an Architecture.
"""

from __future__ import annotations

import json
import re

from pydantic import ValidationError

from stratforge.core.models import Architecture

_FENCE_RE = re.compile(r"```(?:json)?\n?")


class ArchitectureError(ValueError):
    """Raised when architect output is not a usable architecture."""


def parse_architecture(raw: str) -> Architecture:
    """
    Extract and validate the JSON architecture from a model reply.

    Strips markdown fences, keeps the text from the first ``{`` to the last
    ``}`` and rejects unbalanced braces as a truncated response.

    Raises:
        ArchitectureError: if no complete JSON object with a ``functions``
            list can be recovered
    """
    cleaned = _FENCE_RE.sub("", raw).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ArchitectureError("No valid JSON object found in response")

    candidate = cleaned[start : end + 1]

    unmatched = candidate.count("{") - candidate.count("}")
    if unmatched != 0:
        raise ArchitectureError(
            f"Incomplete JSON detected (unmatched braces: {unmatched}). The response may "
            "have been truncated. Try again with a simpler request."
        )

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ArchitectureError(
            "JSON parsing failed - response may be truncated. Try simplifying your "
            f"requirements. Error: {e}"
        ) from e

    if not isinstance(data, dict) or not isinstance(data.get("functions"), list):
        raise ArchitectureError("Invalid JSON structure: missing functions array")

    try:
        return Architecture.model_validate(data)
    except ValidationError as e:
        raise ArchitectureError(f"Failed to parse architecture JSON: {e}") from e
