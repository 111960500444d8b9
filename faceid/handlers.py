"""State handlers and the command registry that binds them to game states.

Each handler is a coroutine ``handler(ctx, params)``. It records its own state
on the session as its first action, pulls the parameters it needs through
:func:`~faceid.params.extract_param`, drives the UI and the face service, and
chains to the next screen by enqueueing follow-up tasks.
"""
from __future__ import annotations

import collections.abc
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .auth import Authenticator
from .enrollment import Enroller
from .face_service import FaceService
from .params import (
    ATTEMPTED_LOGIN,
    GUESSES,
    NAME,
    PHOTO,
    PROFILE,
    PROFILE_IMG,
    SAVED_FRAME,
    TYPED_NAME,
    TaskParams,
    extract_param,
)
from .profiles import Profile, ProfileImage, ProfileStore
from .session import Session
from .states import API_ERROR_DESCRIPTIONS, INTERNAL_ERROR_DESCRIPTIONS, GameState
from .ui import KioskUI, Photo, load_picture
from .validators import is_valid_name

_LOGGER = logging.getLogger(__name__)

Enqueue = Callable[..., None]


@dataclass
class KioskContext:
    """Collaborators handed explicitly to every handler."""

    session: Session
    store: ProfileStore
    faces: FaceService
    auth: Authenticator
    enroller: Enroller
    ui: KioskUI
    enqueue: Enqueue

    def set_state(self, state: GameState) -> None:
        self.session.set_state(state)

    def param(self, params: TaskParams, key: str, expected: Any) -> Any:
        return extract_param(params, key, expected, self.enqueue)

    def require_login(self) -> Optional[Profile]:
        profile = self.session.logged_in
        if profile is None:
            _LOGGER.warning("%s requires a logged-in profile", self.session.current_state)
            self.enqueue(GameState.MUST_LOGIN_PROMPT)
        return profile


# -- connection ---------------------------------------------------------------
async def open_ros_connect_screen(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.ROS_CONNECTION)
    ctx.session.clear(ctx.store)
    ctx.ui.hide_all()
    ctx.ui.show_connection_screen()


async def ros_hello_world_ack(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.ROS_HELLO_WORLD_ACK)
    _LOGGER.info("rosbridge acknowledged our hello")
    ctx.ui.show_continue_button()


# -- start and profile creation -----------------------------------------------
async def start_game(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.STARTED)
    ctx.session.clear(ctx.store)
    ctx.ui.ask_question("Hi! Are you new here?")


async def ask_new_profile(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.NEW_PROFILE_PROMPT)
    ctx.ui.ask_question("Would you like to make a profile?")


async def show_must_login(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.MUST_LOGIN_PROMPT)
    ctx.ui.prompt_ok("In order to use the app, you must be logged into a profile.")


async def ask_for_new_profile_name(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.ENTER_NAME_PROMPT)
    ctx.ui.prompt_text("What is your name?\n\nPlease ensure that the name you enter is valid.")


async def evaluate_typed_name(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.EVALUATING_TYPED_NAME)
    typed_name: str = ctx.param(params, TYPED_NAME, str)

    if not is_valid_name(typed_name):
        _LOGGER.info("Rejected typed name %r", typed_name)
        ctx.enqueue(GameState.ENTER_NAME_PROMPT)
        return

    ctx.ui.prompt_busy("Hold on, I'm thinking... (creating LargePersonGroup Person)")
    call = await ctx.faces.create_person(typed_name)
    person_id = call.result
    if not call.successful or not person_id:
        _LOGGER.error("API error occurred while trying to create a LargePersonGroup Person")
        ctx.enqueue(GameState.API_ERROR_CREATE)
        return

    try:
        profile = ctx.store.create_profile(typed_name, person_id)
    except OSError as exc:
        _LOGGER.error("Could not save profile for personId %s: %s", person_id, exc)
        ctx.enqueue(GameState.INTERNAL_ERROR_SAVING_PROFILE)
        return
    ctx.enqueue(GameState.LOGGING_IN, {PROFILE: profile})


# -- photos -------------------------------------------------------------------
async def show_pictures_for_profile(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.LISTING_IMAGES)
    profile = ctx.require_login()
    if profile is None:
        return
    ctx.ui.list_images("Here is your photo listing:", list(profile.images))


async def open_webcam_for_picture(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.TAKING_WEBCAM_PIC)
    profile = ctx.require_login()
    if profile is None:
        return
    await ctx.auth.authenticate_then(
        lambda: ctx.ui.show_webcam("Take a picture!", "Snap!"),
        profile,
        show_rejection=True,
    )


async def check_picture_taken(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.CHECKING_TAKEN_PIC)
    photo: Photo = ctx.param(params, PHOTO, Photo)
    profile = ctx.require_login()
    if profile is None:
        return

    ctx.ui.prompt_busy("Hold on, I'm thinking... (counting faces in image)")
    call = await ctx.faces.count_faces(photo.data)
    face_count = call.result
    if not call.successful or face_count == -1:
        _LOGGER.error("API error occurred while trying to count the faces in a frame")
        ctx.enqueue(GameState.API_ERROR_COUNTING_FACES)
        return

    if face_count < 1:
        ctx.enqueue(GameState.PIC_DISAPPROVAL)
        return

    def approve() -> None:
        ctx.session.pending_photo = photo
        ctx.enqueue(GameState.PIC_APPROVAL, {SAVED_FRAME: photo})

    await ctx.auth.authenticate_then(approve, profile, show_rejection=True, photo=photo)


async def show_img_disapproval_page(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.PIC_DISAPPROVAL)
    ctx.ui.sad_face_window("I didn't like this picture :( Can we try again?", "Try again...", "Cancel")


async def show_img_approval_page(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.PIC_APPROVAL)
    frame: Photo = ctx.param(params, SAVED_FRAME, Photo)
    ctx.ui.picture_window(frame, "I like it! What do you think?", "Keep it!", "Try again...")


async def add_img_to_profile(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.SAVING_PIC)
    photo: Photo = ctx.param(params, PHOTO, Photo)
    profile = ctx.require_login()
    if profile is None:
        return

    ctx.session.pending_photo = None
    if await ctx.enroller.add_face(profile, photo):
        ctx.session.reload_logged_in(ctx.store)
        ctx.enqueue(GameState.LISTING_IMAGES)


async def show_selected_photo(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.SHOWING_SELECTED_PHOTO)
    image: ProfileImage = ctx.param(params, PROFILE_IMG, ProfileImage)
    ctx.session.selected_image = image
    ctx.ui.picture_window(
        load_picture(image.path),
        "Nice picture! What would you like to do with it?",
        "Delete it",
        "Keep it",
    )


async def delete_photo(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.DELETING_PHOTO)
    image: ProfileImage = ctx.param(params, PROFILE_IMG, ProfileImage)
    profile = ctx.require_login()
    if profile is None:
        return

    async def remove() -> None:
        if await ctx.enroller.delete_face(profile, image):
            ctx.session.selected_image = None
            ctx.session.reload_logged_in(ctx.store)
            ctx.enqueue(GameState.LISTING_IMAGES)

    await ctx.auth.authenticate_then(remove, profile, show_rejection=True)


# -- login --------------------------------------------------------------------
async def list_profiles(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.LISTING_PROFILES)
    ctx.ui.list_profiles("Here are the existing profiles:", ctx.store.load_all())


async def show_login_double_check(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.LOGIN_DOUBLE_CHECK)
    attempt: Profile = ctx.param(params, ATTEMPTED_LOGIN, Profile)
    ctx.session.selected_profile = attempt
    ctx.ui.picture_window(
        load_picture(attempt.profile_picture),
        f"Are you sure you want to log in as {attempt.display_name}?",
        "Login",
        "Back",
    )


async def log_in(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.LOGGING_IN)
    profile: Profile = ctx.param(params, PROFILE, Profile)

    def complete_login() -> None:
        ctx.session.logged_in = profile
        _LOGGER.info("Logged in as %s", profile.folder_name)
        ctx.enqueue(GameState.WELCOME_SCREEN)

    await ctx.auth.authenticate_then(complete_login, profile, show_rejection=True)


async def cancel_login(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.CANCELLING_LOGIN)
    ctx.session.clear(ctx.store)
    ctx.enqueue(GameState.LISTING_PROFILES)


async def show_welcome_screen(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.WELCOME_SCREEN)
    profile = ctx.require_login()
    if profile is None:
        return
    ctx.ui.prompt_ok(f"Welcome, {profile.display_name}!")


def _format_percent(confidence: float) -> str:
    return f"{float(confidence) * 100:g}%"


def compose_rejection_message(attempted_name: str, named_guesses: list[tuple[str, float]]) -> str:
    """Build the "Are you sure you're ...?" explanation for a failed verification."""

    response = f"Are you sure you're {attempted_name}? Because I'm"
    if not named_guesses:
        return response + " not sure who you are, to be honest."
    count = len(named_guesses)
    for position, (name, confidence) in enumerate(named_guesses, start=1):
        if position == count and count > 1:
            response += " and"
        response += f" {_format_percent(confidence)} sure you are {name}"
        if position < count:
            response += ","
    return response


async def show_rejection_prompt(ctx: KioskContext, params: TaskParams) -> None:
    ctx.set_state(GameState.REJECTION_PROMPT)
    attempted_name: str = ctx.param(params, NAME, str)
    guesses: Mapping[str, float] = ctx.param(params, GUESSES, collections.abc.Mapping)

    named: list[tuple[str, float]] = []
    if guesses:
        ctx.ui.prompt_busy("Hold on, I'm thinking... (retrieving name(s) from personId(s))")
    for person_id, confidence in guesses.items():
        name = ctx.store.name_for_person_id(person_id)
        if name is None:
            _LOGGER.error("Internal error: no local profile owns personId %s (after auth fail)", person_id)
            ctx.enqueue(GameState.INTERNAL_ERROR_NAME_FROM_ID)
            return
        named.append((name, confidence))

    ctx.ui.prompt_ok(compose_rejection_message(attempted_name, named))


# -- errors -------------------------------------------------------------------
async def show_api_error(ctx: KioskContext, state: GameState, params: TaskParams) -> None:
    ctx.set_state(state)
    ctx.ui.prompt_ok(f"API Error\n{API_ERROR_DESCRIPTIONS[state]}")


async def show_internal_error(ctx: KioskContext, state: GameState, params: TaskParams) -> None:
    ctx.set_state(state)
    ctx.ui.prompt_ok(f"Internal Error\n{INTERNAL_ERROR_DESCRIPTIONS[state]}")


_SCREEN_HANDLERS: Dict[GameState, Callable[[KioskContext, TaskParams], Awaitable[None]]] = {
    GameState.ROS_CONNECTION: open_ros_connect_screen,
    GameState.ROS_HELLO_WORLD_ACK: ros_hello_world_ack,
    GameState.STARTED: start_game,
    GameState.NEW_PROFILE_PROMPT: ask_new_profile,
    GameState.MUST_LOGIN_PROMPT: show_must_login,
    GameState.ENTER_NAME_PROMPT: ask_for_new_profile_name,
    GameState.EVALUATING_TYPED_NAME: evaluate_typed_name,
    GameState.LISTING_IMAGES: show_pictures_for_profile,
    GameState.TAKING_WEBCAM_PIC: open_webcam_for_picture,
    GameState.CHECKING_TAKEN_PIC: check_picture_taken,
    GameState.PIC_APPROVAL: show_img_approval_page,
    GameState.PIC_DISAPPROVAL: show_img_disapproval_page,
    GameState.SAVING_PIC: add_img_to_profile,
    GameState.LISTING_PROFILES: list_profiles,
    GameState.LOGIN_DOUBLE_CHECK: show_login_double_check,
    GameState.LOGGING_IN: log_in,
    GameState.CANCELLING_LOGIN: cancel_login,
    GameState.WELCOME_SCREEN: show_welcome_screen,
    GameState.SHOWING_SELECTED_PHOTO: show_selected_photo,
    GameState.DELETING_PHOTO: delete_photo,
    GameState.REJECTION_PROMPT: show_rejection_prompt,
}


def build_commands(ctx: KioskContext) -> Dict[GameState, Callable[[TaskParams], Awaitable[None]]]:
    """Return the registry binding every :class:`GameState` to its handler."""

    commands: Dict[GameState, Callable[[TaskParams], Awaitable[None]]] = {
        state: functools.partial(handler, ctx) for state, handler in _SCREEN_HANDLERS.items()
    }
    for state in API_ERROR_DESCRIPTIONS:
        commands[state] = functools.partial(show_api_error, ctx, state)
    for state in INTERNAL_ERROR_DESCRIPTIONS:
        commands[state] = functools.partial(show_internal_error, ctx, state)
    return commands


__all__ = ["KioskContext", "build_commands", "compose_rejection_message"]
