"""
Robust JSON extraction and parsing utilities for LLM responses.

PROBLEM
-------
Even with an output-schema constraint, models sometimes wrap the JSON
object in a markdown fence or add a sentence around it:
    "Here's the answer: {"sqlQuery": "..."} Hope this helps!"

This causes json.loads() to fail with "Extra data" errors.

SOLUTION
--------
Always extract ONLY the first JSON object before parsing, then validate it
against the response model once. Anything that still fails is a protocol
violation reported as ResponseValidationError.
"""
import json
import re
from typing import Dict, Any, Optional, Tuple

from pydantic import ValidationError

from verisql.models import SqlModelResponse


class JSONExtractionError(Exception):
    """Raised when no valid JSON object can be extracted."""
    pass


class ResponseValidationError(Exception):
    """Model output did not match the required JSON shape."""

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


def extract_first_json_block(text: str) -> Tuple[str, Optional[str]]:
    """
    Extract the first JSON object from LLM response text.

    Algorithm:
    ----------
    1. Prefer the body of a ```json (or bare ```) fence when present
    2. Otherwise find the first '{' and track brace depth to its match,
       ignoring braces inside string literals

    Returns:
        Tuple of (json_string, stripped_text), where stripped_text is any
        text around the JSON (None if none)

    Raises:
        JSONExtractionError: If no JSON object is found

    Examples:
        >>> extract_first_json_block('{"key": "value"}')
        ('{"key": "value"}', None)

        >>> extract_first_json_block('Analysis: {"a": 1} Done!')
        ('{"a": 1}', 'Analysis: Done!')
    """
    if not text or not isinstance(text, str):
        raise JSONExtractionError("Input text is empty or not a string")

    text = text.strip()

    fence = re.search(r'```(?:json)?\s*([\s\S]*?)\s*```', text)
    if fence and fence.group(1).lstrip().startswith("{"):
        before = text[:fence.start()].strip()
        after = text[fence.end():].strip()
        stripped = (before + " " + after).strip() if (before or after) else None
        return fence.group(1).strip(), stripped

    start_idx = text.find('{')
    if start_idx == -1:
        raise JSONExtractionError("No JSON object found (no opening brace)")

    depth = 0
    in_string = False
    escape_next = False
    end_idx = None

    for i in range(start_idx, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue

        if char == '\\':
            escape_next = True
            continue

        # Braces inside strings don't count
        if char == '"':
            in_string = not in_string
            continue

        if not in_string:
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    end_idx = i + 1
                    break

    if end_idx is None:
        raise JSONExtractionError("No matching closing brace found (unbalanced braces)")

    json_str = text[start_idx:end_idx].strip()

    before = text[:start_idx].strip()
    after = text[end_idx:].strip()
    stripped = (before + " " + after).strip() if (before or after) else None

    return json_str, stripped


def safe_parse_llm_json(text: str) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Extract and parse the first JSON object in an LLM response.

    Returns:
        Tuple of (parsed_dict, stripped_text)

    Raises:
        JSONExtractionError: If extraction or parsing fails, or the JSON is not an object
    """
    json_str, stripped_text = extract_first_json_block(text)

    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise JSONExtractionError(
            f"Extracted text is not valid JSON: {e}\n"
            f"Extracted: {json_str[:200]}"
        )

    if not isinstance(parsed, dict):
        raise JSONExtractionError(
            f"Expected JSON object (dict), got {type(parsed).__name__}: {parsed}"
        )

    return parsed, stripped_text


def parse_sql_model_response(text: str) -> SqlModelResponse:
    """
    Decode a structured-mode model reply into a SqlModelResponse.

    Raises:
        ResponseValidationError: On malformed JSON or a missing / mistyped field
    """
    try:
        parsed, _ = safe_parse_llm_json(text)
        return SqlModelResponse.model_validate(parsed)
    except JSONExtractionError as e:
        raise ResponseValidationError(str(e), raw_text=text)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors())
        raise ResponseValidationError(f"Response does not match the required schema ({fields}): {e}", raw_text=text)
