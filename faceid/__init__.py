"""Face ID kiosk: task-queue state machine over a cloud face recognition service."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - only for type checking
    from .app import FaceIDKiosk
    from .auth import Authenticator, AuthPolicy
    from .config import Settings, load_settings
    from .dispatcher import Dispatcher
    from .exceptions import FaceIDError, ParameterError
    from .gateway import AzureFaceGateway
    from .profiles import Profile, ProfileImage, ProfileStore
    from .states import GameState

__all__ = [
    "AuthPolicy",
    "Authenticator",
    "AzureFaceGateway",
    "Dispatcher",
    "FaceIDError",
    "FaceIDKiosk",
    "GameState",
    "ParameterError",
    "Profile",
    "ProfileImage",
    "ProfileStore",
    "Settings",
    "load_settings",
]

_MODULE_MAP = {
    "AuthPolicy": "faceid.auth",
    "Authenticator": "faceid.auth",
    "AzureFaceGateway": "faceid.gateway",
    "Dispatcher": "faceid.dispatcher",
    "FaceIDError": "faceid.exceptions",
    "FaceIDKiosk": "faceid.app",
    "GameState": "faceid.states",
    "ParameterError": "faceid.exceptions",
    "Profile": "faceid.profiles",
    "ProfileImage": "faceid.profiles",
    "ProfileStore": "faceid.profiles",
    "Settings": "faceid.config",
    "load_settings": "faceid.config",
}


def __getattr__(name: str):  # pragma: no cover - trivial delegation
    module_name = _MODULE_MAP.get(name)
    if module_name is None:
        raise AttributeError(f"module 'faceid' has no attribute '{name}'")
    module = import_module(module_name)
    return getattr(module, name)
