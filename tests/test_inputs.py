"""Tests for :mod:`faceid.inputs`."""

from __future__ import annotations

import pytest

from faceid.inputs import ADD, BACK, CONTINUE, NO, OK, YES, InputRouter
from faceid.params import ATTEMPTED_LOGIN, PHOTO, PROFILE, PROFILE_IMG, TYPED_NAME
from faceid.profiles import Profile, ProfileImage
from faceid.session import Session
from faceid.states import GameState


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
def router(session, enqueue) -> InputRouter:
    return InputRouter(session, enqueue)


@pytest.mark.parametrize(
    ("state", "button", "expected"),
    [
        (GameState.ROS_HELLO_WORLD_ACK, CONTINUE, GameState.STARTED),
        (GameState.STARTED, YES, GameState.LISTING_PROFILES),
        (GameState.STARTED, NO, GameState.NEW_PROFILE_PROMPT),
        (GameState.NEW_PROFILE_PROMPT, YES, GameState.ENTER_NAME_PROMPT),
        (GameState.NEW_PROFILE_PROMPT, NO, GameState.MUST_LOGIN_PROMPT),
        (GameState.MUST_LOGIN_PROMPT, OK, GameState.STARTED),
        (GameState.WELCOME_SCREEN, OK, GameState.LISTING_IMAGES),
        (GameState.LISTING_IMAGES, ADD, GameState.TAKING_WEBCAM_PIC),
        (GameState.PIC_APPROVAL, NO, GameState.TAKING_WEBCAM_PIC),
        (GameState.PIC_DISAPPROVAL, YES, GameState.TAKING_WEBCAM_PIC),
        (GameState.PIC_DISAPPROVAL, NO, GameState.LISTING_IMAGES),
        (GameState.LOGIN_DOUBLE_CHECK, NO, GameState.CANCELLING_LOGIN),
        (GameState.SHOWING_SELECTED_PHOTO, NO, GameState.LISTING_IMAGES),
        (GameState.API_ERROR_IDENTIFYING, OK, GameState.STARTED),
        (GameState.INTERNAL_ERROR_PARSING, OK, GameState.STARTED),
        (GameState.INTERNAL_ERROR_CAMERA, OK, GameState.STARTED),
    ],
)
def test_button_transitions(router, session, enqueue, state, button, expected):
    session.set_state(state)

    assert router.press(button) is expected
    assert enqueue.calls == [(expected, None)]


def test_irrelevant_press_is_ignored(router, session, enqueue, caplog):
    session.set_state(GameState.WELCOME_SCREEN)

    with caplog.at_level("WARNING"):
        assert router.press(BACK) is None

    assert enqueue.calls == []
    assert "Ignoring back while in state" in caplog.text


def test_keeping_picture_forwards_pending_photo(router, session, enqueue, photo):
    session.set_state(GameState.PIC_APPROVAL)
    session.pending_photo = photo

    assert router.press("Yes") is GameState.SAVING_PIC
    assert enqueue.calls == [(GameState.SAVING_PIC, {PHOTO: photo})]


def test_login_confirmation_uses_selected_profile(router, session, enqueue):
    profile = Profile(display_name="Ada", folder_name="Ada", person_id="p-ada")
    session.set_state(GameState.LOGIN_DOUBLE_CHECK)
    session.selected_profile = profile

    router.press(YES)

    assert enqueue.calls == [(GameState.LOGGING_IN, {PROFILE: profile})]


def test_delete_confirmation_uses_selected_image(router, session, enqueue):
    image = ProfileImage("Ada", 0, 0, "Ada/Image 0.png", "face-0")
    session.set_state(GameState.SHOWING_SELECTED_PHOTO)
    session.selected_image = image

    router.press(YES)

    assert enqueue.calls == [(GameState.DELETING_PHOTO, {PROFILE_IMG: image})]


@pytest.mark.parametrize(("logged_in", "expected"), [(True, GameState.LISTING_IMAGES), (False, GameState.LISTING_PROFILES)])
def test_rejection_dismissal_depends_on_login(router, session, enqueue, logged_in, expected):
    session.set_state(GameState.REJECTION_PROMPT)
    if logged_in:
        session.logged_in = Profile(display_name="Ada", folder_name="Ada", person_id="p-ada")

    assert router.press(OK) is expected


def test_typed_text_only_accepted_on_name_prompt(router, session, enqueue):
    session.set_state(GameState.STARTED)
    assert router.submit_text("Ada") is None

    session.set_state(GameState.ENTER_NAME_PROMPT)
    assert router.submit_text("Ada") is GameState.EVALUATING_TYPED_NAME
    assert enqueue.calls == [(GameState.EVALUATING_TYPED_NAME, {TYPED_NAME: "Ada"})]


def test_selections_and_snapshots(router, session, enqueue, photo):
    profile = Profile(display_name="Ada", folder_name="Ada", person_id="p-ada")
    image = ProfileImage("Ada", 0, 0, "Ada/Image 0.png", "face-0")

    session.set_state(GameState.LISTING_PROFILES)
    router.select_profile(profile)
    session.set_state(GameState.LISTING_IMAGES)
    router.select_image(image)
    session.set_state(GameState.TAKING_WEBCAM_PIC)
    router.submit_photo(photo)

    assert enqueue.calls == [
        (GameState.LOGIN_DOUBLE_CHECK, {ATTEMPTED_LOGIN: profile}),
        (GameState.SHOWING_SELECTED_PHOTO, {PROFILE_IMG: image}),
        (GameState.CHECKING_TAKEN_PIC, {PHOTO: photo}),
    ]
