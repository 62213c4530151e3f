from __future__ import annotations

import json
from datetime import datetime
from typing import Any

REDACTED_VALUE = "<redacted>"
SENSITIVE_KEY_SUBSTRINGS = (
    "token",
    "password",
    "secret",
    "private_key",
    "user_data",
)


def _is_sensitive_key(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    lowered = key.lower()
    return any(token in lowered for token in SENSITIVE_KEY_SUBSTRINGS)


def sanitize_for_json(value: Any) -> Any:
    """
    Convert common non-JSON types to serializable forms and redact sensitive fields.
    Wrapper models expose their provider payload through `raw`.
    """
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if _is_sensitive_key(k):
                out[k] = REDACTED_VALUE
            else:
                out[k] = sanitize_for_json(v)
        return out
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_json(v) for v in value]
    raw = getattr(value, "raw", None)
    if isinstance(raw, dict):
        return sanitize_for_json(raw)
    if hasattr(value, "__dict__"):
        return sanitize_for_json(vars(value))
    return value


def stable_json_dumps(value: Any, *, indent: int | None = 2) -> str:
    return json.dumps(sanitize_for_json(value), sort_keys=True, indent=indent, ensure_ascii=False)
