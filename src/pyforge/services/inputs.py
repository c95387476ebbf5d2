from __future__ import annotations

from typing import Any, Optional

from ..errors import InvalidInput


def require_str(data: dict[str, Any], key: str, *, allow_empty: bool = False) -> str:
    v = data.get(key)
    if not isinstance(v, str) or (not allow_empty and not v.strip()):
        raise InvalidInput(f"Missing required field: {key}", field=key)
    return v


def opt_str(data: dict[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
    v = data.get(key, default)
    if v is None:
        return None
    if not isinstance(v, str):
        raise InvalidInput(f"Field {key} must be a string", field=key)
    return v


def opt_int(data: dict[str, Any], key: str, default: Optional[int] = None) -> Optional[int]:
    v = data.get(key, default)
    if v is None:
        return None
    if isinstance(v, bool) or not isinstance(v, (int, float)) or int(v) != v:
        raise InvalidInput(f"Field {key} must be an integer", field=key)
    return int(v)


def opt_float(data: dict[str, Any], key: str, default: Optional[float] = None) -> Optional[float]:
    v = data.get(key, default)
    if v is None:
        return None
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise InvalidInput(f"Field {key} must be a number", field=key)
    return float(v)


def opt_bool(data: dict[str, Any], key: str, default: bool = False) -> bool:
    v = data.get(key, default)
    if v is None:
        return default
    if not isinstance(v, bool):
        raise InvalidInput(f"Field {key} must be a boolean", field=key)
    return v


def opt_str_list(data: dict[str, Any], key: str) -> list[str]:
    v = data.get(key)
    if v is None:
        return []
    if not isinstance(v, list) or not all(isinstance(x, str) for x in v):
        raise InvalidInput(f"Field {key} must be a list of strings", field=key)
    return list(v)
