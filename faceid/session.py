"""Mutable kiosk session owned by the dispatcher."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .profiles import Profile, ProfileImage, ProfileStore
from .states import GameState
from .ui import Photo

_LOGGER = logging.getLogger(__name__)


@dataclass
class Session:
    """Everything the handlers share between tasks.

    Only handler bodies mutate the session and the dispatcher runs one at a
    time, so no locking is required.
    """

    current_state: Optional[GameState] = None
    logged_in: Optional[Profile] = None
    selected_profile: Optional[Profile] = None
    selected_image: Optional[ProfileImage] = None
    pending_photo: Optional[Photo] = None

    def set_state(self, state: GameState) -> None:
        self.current_state = state

    def clear(self, store: ProfileStore) -> None:
        """Persist the logged-in profile, then forget the login and selections."""

        if self.logged_in is not None:
            store.export(self.logged_in)
        self.logged_in = None
        self.selected_profile = None
        self.selected_image = None
        self.pending_photo = None

    def reload_logged_in(self, store: ProfileStore) -> Optional[Profile]:
        """Refresh the logged-in profile from disk, keeping it if the reload fails."""

        if self.logged_in is None:
            return None
        profile = store.load(self.logged_in.folder_name)
        if profile is None:
            _LOGGER.warning("Could not reload profile %s; keeping the in-memory copy", self.logged_in.folder_name)
        else:
            self.logged_in = profile
        return self.logged_in

    def snapshot(self) -> Tuple[str, str]:
        """Return ``(game_state, logged_in_folder)`` for status publishing."""

        state = self.current_state.value if self.current_state is not None else ""
        folder = self.logged_in.folder_name if self.logged_in is not None else ""
        return state, folder


__all__ = ["Session"]
