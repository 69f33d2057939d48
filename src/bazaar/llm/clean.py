import json
import re
from typing import Any


def clean_and_parse_json(text: str) -> dict[str, Any]:
    """Strip Markdown fences from a model reply and parse the JSON object in it.

    Handles:
    - ```json fenced replies
    - bare JSON
    - a JSON object surrounded by prose
    - an object nested under "details", "suggestion" or "result"
    """
    if not text or not isinstance(text, str):
        raise ValueError(f"Invalid input: expected string, got {type(text)}")

    text = re.sub(r"^```(?:json)?\s*", "", text.strip(), flags=re.IGNORECASE)
    text = re.sub(r"\s*```$", "", text).strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    # Outermost braces, for objects wrapped in prose
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass

    nested = re.search(
        r'"(details|suggestion|result)"\s*:\s*(\{.*?\})', text, re.DOTALL
    )
    if nested:
        try:
            return json.loads(nested.group(2))
        except json.JSONDecodeError:
            pass

    raise ValueError(f"Failed to parse valid JSON from model response: {text[:100]}...")
