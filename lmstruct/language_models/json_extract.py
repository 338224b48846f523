"""
Tolerant extraction of JSON data from free text.

Models routinely wrap JSON in prose or in markdown code fences, and
produce small syntax errors (trailing commas, unquoted keys, single
quotes). The functions in this module locate the JSON region of the
text, repair it, and parse it with the json_repair library.

The functions never raise on malformed input: they return None when no
data can be found, and the caller decides how to react.
"""

import re
from typing import Any

import json_repair

# greedy and multiline: from the first opening to the last closing char
_OBJECT_REGION = re.compile(r"\{.*\}", re.DOTALL)
_ARRAY_REGION = re.compile(r"\[.*\]", re.DOTALL)


def parse_unsafe_json(text: str) -> Any | None:
    """
    Repair and parse a JSON string.

    Args:
        text: the text of a JSON value, possibly with syntax defects

    Returns:
        the parsed object or array, or None if the text could not be
        parsed into one
    """
    if not text or not text.strip():
        return None
    try:
        value = json_repair.loads(text)
    except (ValueError, TypeError, RecursionError):
        return None
    if isinstance(value, (dict, list)):
        return value  # type: ignore
    return None


def extract_json(text: str | None) -> Any | None:
    """
    Extract the JSON object or array contained in a text.

    The largest region delimited by braces and the largest region
    delimited by brackets are located, and the longest of the two is
    taken to be the outermost structure.

    Args:
        text: free text, e.g. the response of a model

    Returns:
        the parsed object or array, or None if no data was found

    Example:
        ```python
        extract_json('Sure! Here is the result: {"a": 1,}')
        # {'a': 1}
        ```
    """
    if not text:
        return None

    candidates: list[str] = []
    for pattern in (_OBJECT_REGION, _ARRAY_REGION):
        match = pattern.search(text)
        if match:
            candidates.append(match.group(0))
    if not candidates:
        return None

    # max returns the first of equally long candidates (the object)
    return parse_unsafe_json(max(candidates, key=len))
