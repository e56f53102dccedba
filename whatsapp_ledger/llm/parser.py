"""
Parsing utilities for raw LLM completions.
"""

import json
import re

from pydantic import ValidationError

from ..errors import ClassificationError
from ..models import ParsedIntent


class InvalidLLMOutputError(ClassificationError):
    """Raised when LLM output is malformed and should trigger a retry."""

    pass


CURRENCY_PREFIXES = [
    r"^INR\s*",
    r"^Rs\.?\s*",
    r"^USD\s*",
    r"^₹\s*",
    r"^\$\s*",
]


def sanitize_amount(value: str) -> float:
    """
    Extract numeric amount from potentially malformed string.

    Handles common LLM mistakes:
    - Currency prefixes: "INR 194.00" -> 194.0
    - Currency symbols: "₹420" -> 420.0
    - Formatted numbers: "1,00,000.50" -> 100000.5

    Raises:
        InvalidLLMOutputError: If amount contains garbage or no number
    """
    original = value
    value = value.strip()

    if "{" in value or "(" in value or ":" in value:
        raise InvalidLLMOutputError(
            f"Amount contains garbage/nested structure: {original}"
        )

    for pattern in CURRENCY_PREFIXES:
        value = re.sub(pattern, "", value, flags=re.IGNORECASE)

    # Indian 1,00,000 and Western 100,000 formats
    value = value.replace(",", "")

    value = re.sub(r"[^\d.]+$", "", value)
    value = re.sub(r"^[^\d.]+", "", value).strip()
    if not value:
        raise InvalidLLMOutputError(f"No numeric value found in: {original}")

    try:
        return float(value)
    except ValueError:
        raise InvalidLLMOutputError(f"Could not convert to float: {original}")


def parse_llm_response(response_text: str) -> dict:
    """
    Pull the JSON object out of a completion.

    Models sometimes wrap the object in prose or a ```json fence, so the
    outermost {...} span is taken.
    """
    match = re.search(r"\{.*\}", response_text, re.DOTALL)
    if not match:
        raise InvalidLLMOutputError(f"No JSON object in LLM response: {response_text}")

    try:
        args = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise InvalidLLMOutputError(f"Malformed JSON in LLM response: {e}")

    if not isinstance(args, dict):
        raise InvalidLLMOutputError(f"Expected a JSON object, got: {type(args).__name__}")
    return args


def _clean_amount(value):
    if value is None or isinstance(value, (int, float)):
        return value
    return sanitize_amount(str(value))


def validate_parsed_intent(args: dict) -> ParsedIntent:
    """
    Validate and sanitize classifier arguments.

    Amounts (top level and inside updated_fields) are sanitized before
    validation; anything the model cannot express as a ParsedIntent is
    treated as malformed output.
    """
    if "intent" not in args:
        raise InvalidLLMOutputError("Missing required field: intent")

    args = dict(args)
    if isinstance(args.get("intent"), str):
        args["intent"] = args["intent"].strip().upper()
    args["amount"] = _clean_amount(args.get("amount"))

    updated = args.get("updated_fields") or args.pop("updatedFields", None)
    if isinstance(updated, dict):
        updated = dict(updated)
        updated["amount"] = _clean_amount(updated.get("amount"))
        args["updated_fields"] = updated

    try:
        return ParsedIntent.model_validate(args)
    except ValidationError as e:
        raise InvalidLLMOutputError(f"LLM output does not match schema: {e}")
