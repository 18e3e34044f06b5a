"""Shared Gemini API helper utilities."""

import re
from functools import lru_cache
from typing import Any, Dict, Type

from pydantic import BaseModel

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


def clean_schema_for_gemini(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Clean Pydantic JSON schema for Gemini responseSchema format.
    - Resolves $ref references to their definitions (Gemini doesn't support $ref)
    - Removes 'additionalProperties' (Gemini rejects this field)
    - Removes Pydantic metadata fields (title, examples, $defs, defaults)
    - Handles anyOf for Optional fields (extracts the non-null type)
    """
    defs = schema.get("$defs", {})

    def resolve_ref(ref: str) -> Dict[str, Any]:
        if ref.startswith("#/$defs/"):
            return defs.get(ref[len("#/$defs/"):], {})
        return {}

    def clean(s: Dict[str, Any]) -> Dict[str, Any]:
        if "$ref" in s:
            return clean(resolve_ref(s["$ref"]))

        result: Dict[str, Any] = {}
        for key, value in s.items():
            if key in ("additionalProperties", "title", "examples", "example", "$defs", "default"):
                continue
            if isinstance(value, dict):
                # "properties" maps field names to schemas; the names are not keywords
                if key == "properties":
                    result[key] = {name: clean(sub) for name, sub in value.items()}
                else:
                    result[key] = clean(value)
            elif isinstance(value, list):
                result[key] = [clean(item) if isinstance(item, dict) else item for item in value]
            else:
                result[key] = value

        if "anyOf" in result:
            any_of = result.pop("anyOf")
            for option in any_of:
                if isinstance(option, dict) and option.get("type") != "null":
                    result.update(option)
                    result["nullable"] = True
                    break

        return result

    return clean(schema)


@lru_cache(maxsize=None)
def get_response_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    """Return `model`'s JSON schema cleaned for Gemini, cached per model."""
    return clean_schema_for_gemini(model.model_json_schema())


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```lang ... ``` fence, if any."""
    t = (text or "").strip()
    t = _FENCE_OPEN.sub("", t)
    t = _FENCE_CLOSE.sub("", t)
    return t.strip()


def extract_json_object(text: str) -> str:
    """Extract the outermost JSON object from text (handles accidental wrappers)."""
    t = strip_code_fences(text)

    if t.startswith("{") and t.endswith("}"):
        return t

    first = t.find("{")
    last = t.rfind("}")
    if first != -1 and last > first:
        return t[first:last + 1]

    return t
