import json
import re
from typing import Any, Dict, List, Union

from smeta.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced code block, or the text itself.

    Models often wrap JSON in ```json ... ``` even when told not to, and
    sometimes add prose around the block.
    """
    if not text:
        return ""

    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()

    cleaned = text.strip()
    # Unterminated fence (reply cut off by max_tokens)
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    return cleaned.strip()


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from text, handling common LLM formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```), anywhere in the reply
    - Leading/trailing whitespace and prose
    - Concatenated JSON values (e.g., {...}\\n{...}), returned as a list

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON object or None if parsing fails
    """
    if not text:
        return None

    cleaned_text = strip_code_fences(text)
    if not cleaned_text:
        return None

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.warning(f"Initial JSON parse failed: {e}, attempting repairs...")

    values = _decode_sequence(cleaned_text)
    if not values:
        LOGGER.error("Failed to parse JSON from model reply", extra={"excerpt": cleaned_text[:200]})
        return None

    if len(values) == 1:
        return values[0]

    LOGGER.info(f"Parsed {len(values)} concatenated JSON values")
    return values


def _decode_sequence(text: str) -> List[Any]:
    """Decode every top-level JSON object or array found in text.

    Args:
        text: Text containing one or more JSON values, possibly with noise

    Returns:
        Decoded values in order of appearance
    """
    decoder = json.JSONDecoder()
    results: List[Any] = []
    idx = 0

    while idx < len(text):
        next_brace = text.find("{", idx)
        next_bracket = text.find("[", idx)
        candidates = [pos for pos in (next_brace, next_bracket) if pos != -1]
        if not candidates:
            break
        start = min(candidates)

        try:
            obj, end_idx = decoder.raw_decode(text, start)
            results.append(obj)
            idx = end_idx
        except json.JSONDecodeError:
            idx = start + 1

    return results

