"""
Key-case helpers for Firestore documents, which use camelCase field names.
"""

from __future__ import annotations

import re

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def convert_keys(data: dict, direction: str) -> dict:
    """
    Convert the top-level keys of ``data``.

    Nested mappings are left alone: their keys are document ids, not field
    names.
    """
    if direction == "camel_to_snake":
        convert = camel_to_snake
    elif direction == "snake_to_camel":
        convert = snake_to_camel
    else:
        raise ValueError(f"Unknown direction: {direction}")
    return {convert(key): value for key, value in data.items()}
