"""
Model Output Parsing
====================

Turns free-text model answers into either a structured object or a raw
text fallback. A model that ignores the JSON instruction is not an error.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

import structlog

logger = structlog.get_logger()

SEVERITIES = ("critical", "high", "medium", "low")

# ```json ... ``` or plain ``` ... ```; the first fence wins
_FENCE = re.compile(r"```(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)


@dataclass
class StructuredOutput:
    data: dict[str, Any]

    success = True


@dataclass
class RawOutput:
    text: str
    reason: str

    success = False


ModelOutput = Union[StructuredOutput, RawOutput]


def extract_json_text(text: str) -> str:
    """Contents of the first fenced block, or the whole text when there is none."""
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_model_output(text: str) -> ModelOutput:
    """
    Parse a model answer that is supposed to contain one JSON object.

    Returns RawOutput with the text untouched when no JSON object can be
    read from it.
    """
    candidate = extract_json_text(text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning("model_output_not_json", error=str(e), length=len(text))
        return RawOutput(text=text, reason=f"Invalid JSON: {e.msg}")

    if not isinstance(data, dict):
        logger.warning("model_output_not_object", kind=type(data).__name__)
        return RawOutput(text=text, reason="Expected a JSON object")

    return StructuredOutput(data=data)


# ==========================================================================
# Field Validation
# ==========================================================================

def trusted_score(data: dict[str, Any], key: str = "modernizationScore") -> Optional[int]:
    """Score clamped to 0-100, or None if the model gave something non-numeric."""
    value = data.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    return max(0, min(100, round(value)))


def trusted_severity(data: dict[str, Any], key: str = "overallSeverity") -> Optional[str]:
    value = data.get(key)
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value if value in SEVERITIES else None


def fallback_payload(output: RawOutput) -> dict[str, Any]:
    return {
        "success": False,
        "error": "Model response could not be parsed as JSON",
        "parseError": output.reason,
        "rawResponse": output.text,
    }
