"""Translate kiosk UI interactions into dispatcher tasks.

Button presses, typed text, snapped photos and list selections arrive from the
rendering layer on its own thread. The router looks at the state the session
is currently showing and enqueues the task that screen leads to; presses that
make no sense for the current screen are logged and ignored.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .params import ATTEMPTED_LOGIN, PHOTO, PROFILE, PROFILE_IMG, TYPED_NAME
from .profiles import Profile, ProfileImage
from .session import Session
from .states import GameState
from .ui import Photo

_LOGGER = logging.getLogger(__name__)

Enqueue = Callable[..., None]

YES = "yes"
NO = "no"
OK = "ok"
CONTINUE = "continue"
BACK = "back"
ADD = "add"

# (current state, button) -> next state for presses that carry no payload.
_BUTTON_TRANSITIONS: Dict[Tuple[GameState, str], GameState] = {
    (GameState.ROS_HELLO_WORLD_ACK, CONTINUE): GameState.STARTED,
    (GameState.STARTED, YES): GameState.LISTING_PROFILES,
    (GameState.STARTED, NO): GameState.NEW_PROFILE_PROMPT,
    (GameState.NEW_PROFILE_PROMPT, YES): GameState.ENTER_NAME_PROMPT,
    (GameState.NEW_PROFILE_PROMPT, NO): GameState.MUST_LOGIN_PROMPT,
    (GameState.MUST_LOGIN_PROMPT, OK): GameState.STARTED,
    (GameState.ENTER_NAME_PROMPT, BACK): GameState.STARTED,
    (GameState.WELCOME_SCREEN, OK): GameState.LISTING_IMAGES,
    (GameState.LISTING_IMAGES, ADD): GameState.TAKING_WEBCAM_PIC,
    (GameState.LISTING_IMAGES, BACK): GameState.STARTED,
    (GameState.TAKING_WEBCAM_PIC, BACK): GameState.LISTING_IMAGES,
    (GameState.PIC_APPROVAL, NO): GameState.TAKING_WEBCAM_PIC,
    (GameState.PIC_DISAPPROVAL, YES): GameState.TAKING_WEBCAM_PIC,
    (GameState.PIC_DISAPPROVAL, NO): GameState.LISTING_IMAGES,
    (GameState.LISTING_PROFILES, BACK): GameState.STARTED,
    (GameState.LOGIN_DOUBLE_CHECK, NO): GameState.CANCELLING_LOGIN,
    (GameState.SHOWING_SELECTED_PHOTO, NO): GameState.LISTING_IMAGES,
}


class InputRouter:
    """Map UI events onto the next task for the screen being shown."""

    def __init__(self, session: Session, enqueue: Enqueue) -> None:
        self._session = session
        self._enqueue = enqueue

    @property
    def state(self) -> Optional[GameState]:
        return self._session.current_state

    def _emit(self, state: GameState, parameters: Optional[Mapping[str, Any]] = None) -> GameState:
        self._enqueue(state, parameters)
        return state

    def _ignored(self, event: str) -> None:
        _LOGGER.warning("Ignoring %s while in state %s", event, self.state)
        return None

    def press(self, button: str) -> Optional[GameState]:
        """Handle a button press; returns the state enqueued, if any."""

        button = button.strip().lower()
        current = self.state
        if current is None:
            return self._ignored(button)

        if current.is_error or current is GameState.REJECTION_PROMPT:
            if button != OK:
                return self._ignored(button)
            return self._emit(self._after_dialog(current))

        if current is GameState.PIC_APPROVAL and button == YES:
            photo = self._session.pending_photo
            if photo is None:
                return self._ignored("keep without a pending photo")
            return self._emit(GameState.SAVING_PIC, {PHOTO: photo})

        if current is GameState.LOGIN_DOUBLE_CHECK and button == YES:
            profile = self._session.selected_profile
            if profile is None:
                return self._ignored("login without a selected profile")
            return self._emit(GameState.LOGGING_IN, {PROFILE: profile})

        if current is GameState.SHOWING_SELECTED_PHOTO and button == YES:
            image = self._session.selected_image
            if image is None:
                return self._ignored("delete without a selected image")
            return self._emit(GameState.DELETING_PHOTO, {PROFILE_IMG: image})

        target = _BUTTON_TRANSITIONS.get((current, button))
        if target is None:
            return self._ignored(button)
        return self._emit(target)

    def _after_dialog(self, current: GameState) -> GameState:
        if current is GameState.REJECTION_PROMPT:
            if self._session.logged_in is not None:
                return GameState.LISTING_IMAGES
            return GameState.LISTING_PROFILES
        return GameState.STARTED

    def submit_text(self, text: str) -> Optional[GameState]:
        if self.state is not GameState.ENTER_NAME_PROMPT:
            return self._ignored("typed text")
        return self._emit(GameState.EVALUATING_TYPED_NAME, {TYPED_NAME: text})

    def submit_photo(self, photo: Photo) -> Optional[GameState]:
        if self.state is not GameState.TAKING_WEBCAM_PIC:
            return self._ignored("snapped photo")
        return self._emit(GameState.CHECKING_TAKEN_PIC, {PHOTO: photo})

    def select_profile(self, profile: Profile) -> Optional[GameState]:
        if self.state is not GameState.LISTING_PROFILES:
            return self._ignored("profile selection")
        return self._emit(GameState.LOGIN_DOUBLE_CHECK, {ATTEMPTED_LOGIN: profile})

    def select_image(self, image: ProfileImage) -> Optional[GameState]:
        if self.state is not GameState.LISTING_IMAGES:
            return self._ignored("image selection")
        return self._emit(GameState.SHOWING_SELECTED_PHOTO, {PROFILE_IMG: image})


__all__ = ["ADD", "BACK", "CONTINUE", "InputRouter", "NO", "OK", "YES"]
