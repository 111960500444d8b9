from __future__ import annotations

import string

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50
_ALLOWED_NAME_CHARACTERS = frozenset(string.ascii_lowercase + " ")


def is_valid_name(name: str) -> bool:
    """Return ``True`` when ``name`` is acceptable as a profile display name.

    Names must be 2-50 characters of ASCII letters and spaces, contain at least
    one letter, and must not end in a space.
    """

    if not isinstance(name, str):
        return False
    if len(name) < MIN_NAME_LENGTH or len(name) > MAX_NAME_LENGTH:
        return False
    if any(ch not in _ALLOWED_NAME_CHARACTERS for ch in name.lower()):
        return False
    if not name.strip():
        return False
    return not name.endswith(" ")


__all__ = ["MAX_NAME_LENGTH", "MIN_NAME_LENGTH", "is_valid_name"]
