"""Game states understood by the kiosk dispatcher."""

from __future__ import annotations

import enum
from typing import Dict


class GameState(str, enum.Enum):
    """Tag identifying which screen or operation is executing."""

    ROS_CONNECTION = "ROS_CONNECTION"
    ROS_HELLO_WORLD_ACK = "ROS_HELLO_WORLD_ACK"

    STARTED = "STARTED"
    NEW_PROFILE_PROMPT = "NEW_PROFILE_PROMPT"
    MUST_LOGIN_PROMPT = "MUST_LOGIN_PROMPT"
    ENTER_NAME_PROMPT = "ENTER_NAME_PROMPT"
    EVALUATING_TYPED_NAME = "EVALUATING_TYPED_NAME"
    LISTING_IMAGES = "LISTING_IMAGES"
    TAKING_WEBCAM_PIC = "TAKING_WEBCAM_PIC"
    CHECKING_TAKEN_PIC = "CHECKING_TAKEN_PIC"
    PIC_APPROVAL = "PIC_APPROVAL"
    PIC_DISAPPROVAL = "PIC_DISAPPROVAL"
    SAVING_PIC = "SAVING_PIC"
    LISTING_PROFILES = "LISTING_PROFILES"
    LOGIN_DOUBLE_CHECK = "LOGIN_DOUBLE_CHECK"
    LOGGING_IN = "LOGGING_IN"
    CANCELLING_LOGIN = "CANCELLING_LOGIN"
    WELCOME_SCREEN = "WELCOME_SCREEN"
    SHOWING_SELECTED_PHOTO = "SHOWING_SELECTED_PHOTO"
    DELETING_PHOTO = "DELETING_PHOTO"
    REJECTION_PROMPT = "REJECTION_PROMPT"

    API_ERROR_CREATE = "API_ERROR_CREATE"
    API_ERROR_COUNTING_FACES = "API_ERROR_COUNTING_FACES"
    API_ERROR_ADDING_FACE = "API_ERROR_ADDING_FACE"
    API_ERROR_IDENTIFYING = "API_ERROR_IDENTIFYING"
    API_ERROR_GET_NAME = "API_ERROR_GET_NAME"
    API_ERROR_TRAINING_STATUS = "API_ERROR_TRAINING_STATUS"
    API_ERROR_DELETING_FACE = "API_ERROR_DELETING_FACE"

    INTERNAL_ERROR_PARSING = "INTERNAL_ERROR_PARSING"
    INTERNAL_ERROR_NAME_FROM_ID = "INTERNAL_ERROR_NAME_FROM_ID"
    INTERNAL_ERROR_CAMERA = "INTERNAL_ERROR_CAMERA"
    INTERNAL_ERROR_SAVING_PROFILE = "INTERNAL_ERROR_SAVING_PROFILE"

    @property
    def is_api_error(self) -> bool:
        return self.name.startswith("API_ERROR_")

    @property
    def is_internal_error(self) -> bool:
        return self.name.startswith("INTERNAL_ERROR_")

    @property
    def is_error(self) -> bool:
        return self.is_api_error or self.is_internal_error


API_ERROR_DESCRIPTIONS: Dict[GameState, str] = {
    GameState.API_ERROR_CREATE: "(during LargePersonGroup Person creation)",
    GameState.API_ERROR_COUNTING_FACES: "(while counting faces)",
    GameState.API_ERROR_ADDING_FACE: "(while adding a face)",
    GameState.API_ERROR_IDENTIFYING: "(while identifying)",
    GameState.API_ERROR_GET_NAME: "(while trying to get name from ID after auth fail)",
    GameState.API_ERROR_TRAINING_STATUS: "(while checking training status)",
    GameState.API_ERROR_DELETING_FACE: "(while deleting a face)",
}

INTERNAL_ERROR_DESCRIPTIONS: Dict[GameState, str] = {
    GameState.INTERNAL_ERROR_PARSING: "(while parsing Task parameters)",
    GameState.INTERNAL_ERROR_NAME_FROM_ID: "(while retrieving name for personId locally)",
    GameState.INTERNAL_ERROR_CAMERA: "(while capturing a frame from the camera)",
    GameState.INTERNAL_ERROR_SAVING_PROFILE: "(while saving profile data locally)",
}


__all__ = [
    "API_ERROR_DESCRIPTIONS",
    "GameState",
    "INTERNAL_ERROR_DESCRIPTIONS",
]
