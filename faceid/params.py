"""Task parameter keys and the shared typed extraction helper."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Tuple, Type, TypeVar, Union

from .exceptions import ParameterError
from .states import GameState

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

TaskParams = Optional[Mapping[str, Any]]
Enqueue = Callable[..., None]

TYPED_NAME = "typedName"
PHOTO = "photo"
SAVED_FRAME = "savedFrame"
PROFILE = "profile"
ATTEMPTED_LOGIN = "attemptedLogin"
PROFILE_IMG = "profileImg"
NAME = "name"
GUESSES = "guesses"


def _type_name(expected: Union[Type[Any], Tuple[Type[Any], ...]]) -> str:
    if isinstance(expected, tuple):
        return " | ".join(item.__name__ for item in expected)
    return expected.__name__


def extract_param(
    params: TaskParams,
    key: str,
    expected: Union[Type[T], Tuple[Type[Any], ...]],
    enqueue: Enqueue,
) -> T:
    """Return ``params[key]`` when it is an instance of ``expected``.

    On failure the key, the expected type and the underlying cause are logged,
    :attr:`GameState.INTERNAL_ERROR_PARSING` is enqueued once, and
    :class:`~faceid.exceptions.ParameterError` is raised so the calling handler
    stops before doing any further work.
    """

    expected_name = _type_name(expected)
    try:
        if params is None:
            raise TypeError("task carries no parameters")
        value = params[key]
        if not isinstance(value, expected):
            raise TypeError(f"got {type(value).__name__}")
    except (KeyError, TypeError) as exc:
        reason = str(exc) if not isinstance(exc, KeyError) else "missing key"
        _LOGGER.error("[parameter parsing] Parsing %s to %s: %s", key, expected_name, reason)
        enqueue(GameState.INTERNAL_ERROR_PARSING)
        raise ParameterError(key, expected_name, reason) from exc
    return value  # type: ignore[return-value]


__all__ = [
    "ATTEMPTED_LOGIN",
    "GUESSES",
    "NAME",
    "PHOTO",
    "PROFILE",
    "PROFILE_IMG",
    "SAVED_FRAME",
    "TYPED_NAME",
    "TaskParams",
    "extract_param",
]
