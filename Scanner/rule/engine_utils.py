"""Helpers shared by the engine adapters."""

from __future__ import annotations

import locale
from typing import Iterable, Mapping, Optional


def is_custom_run(custom_config_key: Optional[str], engine_options: Mapping[str, str]) -> bool:
    """An invocation is a custom run for an engine when its custom-config option is set."""
    if not custom_config_key:
        return False
    return custom_config_key in (engine_options or {})


def is_filter_empty_or_name_in_filter(engine_name: str, filter_values: Optional[Iterable[str]]) -> bool:
    values = list(filter_values or [])
    return not values or engine_name in values


def decode_output(data: bytes) -> str:
    """Decode subprocess output, falling back to the locale encoding."""
    if not data:
        return ""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    return data.decode(locale.getpreferredencoding(False) or "utf-8", errors="replace")


__all__ = [
    "is_custom_run",
    "is_filter_empty_or_name_in_filter",
    "decode_output",
]
