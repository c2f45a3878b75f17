"""
Validation and serialization of the Extracted JSON document.

The extraction step turns a consultation transcript into::

    {
      "vital": {"temp_c": 39.8},
      "s": "...", "o": "...",
      "a": [{"name": "肺炎疑い"}],
      "p": [{"name": "アモキシシリンLA注", "type": "drug", "dosage": "10mL"}]
    }

``a`` holds assessments (diseases), ``p`` holds planned procedures and drugs.
Master matching may add ``canonical_name``, ``confidence``, ``master_code``
and ``status`` to items.
"""
from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

REQUIRED_FIELDS = ("vital", "s", "o", "a", "p")
PLAN_ITEM_TYPES = ("procedure", "drug")
ITEM_STATUSES = ("confirmed", "unconfirmed")


@dataclass
class ParseResult:
    success: bool
    data: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_item(item: Any, path: str, errors: List[str], plan: bool) -> None:
    if not isinstance(item, dict):
        errors.append(f"Field '{path}' must be an object")
        return

    if "name" not in item:
        errors.append(f"Field '{path}.name' is required")
    elif not isinstance(item["name"], str):
        errors.append(f"Field '{path}.name' must be a string")

    if plan:
        if "type" not in item:
            errors.append(f"Field '{path}.type' is required")
        elif item["type"] not in PLAN_ITEM_TYPES:
            errors.append(f"Field '{path}.type' must be 'procedure' or 'drug'")
        if item.get("dosage") is not None and not isinstance(item["dosage"], str):
            errors.append(f"Field '{path}.dosage' must be a string")

    confidence = item.get("confidence")
    if confidence is not None:
        if not _is_number(confidence):
            errors.append(f"Field '{path}.confidence' must be a number")
        elif confidence < 0 or confidence > 1:
            errors.append(f"Field '{path}.confidence' must be between 0 and 1")

    for key in ("canonical_name", "master_code"):
        if item.get(key) is not None and not isinstance(item[key], str):
            errors.append(f"Field '{path}.{key}' must be a string")

    status = item.get("status")
    if status is not None and status not in ITEM_STATUSES:
        errors.append(f"Field '{path}.status' must be 'confirmed' or 'unconfirmed'")


def validate_extracted(obj: Any) -> List[str]:
    """
    Check an Extracted JSON object.

    Returns:
        List of error messages (empty when valid)
    """
    if not isinstance(obj, dict):
        return ["Root must be an object"]

    errors = [f"Missing required field: {name}" for name in REQUIRED_FIELDS if name not in obj]
    if errors:
        return errors

    vital = obj["vital"]
    if not isinstance(vital, dict):
        errors.append("Field 'vital' must be an object")
    elif "temp_c" not in vital:
        errors.append("Field 'vital.temp_c' is required")
    elif vital["temp_c"] is not None and not _is_number(vital["temp_c"]):
        errors.append("Field 'vital.temp_c' must be a number or null")

    for key in ("s", "o"):
        if obj[key] is not None and not isinstance(obj[key], str):
            errors.append(f"Field '{key}' must be a string or null")

    for key, plan in (("a", False), ("p", True)):
        items = obj[key]
        if not isinstance(items, list):
            errors.append(f"Field '{key}' must be an array")
            continue
        for i, item in enumerate(items):
            _validate_item(item, f"{key}[{i}]", errors, plan)

    return errors


def parse_extracted(json_string: str) -> ParseResult:
    """Parse and validate an Extracted JSON string."""
    try:
        parsed = json.loads(json_string)
    except json.JSONDecodeError as exc:
        return ParseResult(success=False, errors=[f"Invalid JSON string: {exc}"])

    errors = validate_extracted(parsed)
    if errors:
        return ParseResult(success=False, errors=errors)
    return ParseResult(success=True, data=parsed)


def stringify_extracted(data: Dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False)
