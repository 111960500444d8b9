"""Live face verification gating sensitive kiosk actions."""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from .exceptions import CameraError
from .face_service import FaceService
from .params import GUESSES, NAME
from .profiles import Profile
from .states import GameState
from .ui import Camera, KioskUI, Photo

_LOGGER = logging.getLogger(__name__)

Action = Callable[[], Union[None, Awaitable[None]]]
Enqueue = Callable[..., None]


@dataclass(frozen=True)
class AuthPolicy:
    """Thresholds for live verification.

    Profiles with fewer than ``min_images`` enrolled photos are not verified:
    the person group is too weakly trained for identification to mean much.
    """

    min_images: int = 5
    confidence_threshold: float = 0.70
    camera_warmup: float = 2.0

    def requires_verification(self, profile: Profile) -> bool:
        return len(profile.images) >= self.min_images

    def accepts(self, person_id: str, guesses: Mapping[str, float]) -> bool:
        if person_id not in guesses:
            _LOGGER.info("Identification candidates do not contain personId %s", person_id)
            return False
        return float(guesses[person_id]) >= self.confidence_threshold


def select_primary_face(face_ids: Sequence[str]) -> Optional[str]:
    """Pick the face to identify: the first id in the gateway's response order."""

    return face_ids[0] if face_ids else None


class Authenticator:
    """Run the detect, identify and threshold pipeline before an action."""

    def __init__(
        self,
        faces: FaceService,
        ui: KioskUI,
        camera: Camera,
        enqueue: Enqueue,
        policy: AuthPolicy | None = None,
    ) -> None:
        self._faces = faces
        self._ui = ui
        self._camera = camera
        self._enqueue = enqueue
        self._policy = policy or AuthPolicy()

    @property
    def policy(self) -> AuthPolicy:
        return self._policy

    async def authenticate_then(
        self,
        action: Action,
        profile: Profile,
        *,
        show_rejection: bool = True,
        photo: Optional[Photo] = None,
    ) -> bool:
        """Run ``action`` if ``profile`` needs no verification or passes it."""

        if self._policy.requires_verification(profile):
            verified = await self.verify(profile, show_rejection=show_rejection, photo=photo)
            if not verified:
                return False
        result = action()
        if inspect.isawaitable(result):
            await result
        return True

    async def _frame(self, photo: Optional[Photo]) -> Photo:
        if photo is not None:
            return photo
        self._camera.enable()
        if self._policy.camera_warmup > 0:
            await asyncio.sleep(self._policy.camera_warmup)
        return await self._camera.capture()

    async def verify(
        self,
        profile: Profile,
        *,
        show_rejection: bool = False,
        photo: Optional[Photo] = None,
    ) -> bool:
        self._ui.hide_all()
        try:
            frame = await self._frame(photo)
        except CameraError as exc:
            _LOGGER.error("Could not capture a frame for verification: %s", exc)
            self._enqueue(GameState.INTERNAL_ERROR_CAMERA)
            return False
        self._ui.prompt_busy("Hold on, I'm thinking... (identifying faces in current frame)")

        detect = await self._faces.detect_faces(frame.data)
        face_ids = detect.result
        if not detect.successful or face_ids is None:
            return self._api_error("detecting faces for identification")

        face_id = select_primary_face(face_ids)
        if face_id is None:
            return self._api_error("selecting a face to identify (none detected)")

        identify = await self._faces.identify(face_id)
        guesses = identify.result
        if not identify.successful or guesses is None:
            return self._api_error("identifying the detected face")

        if self._policy.accepts(profile.person_id, guesses):
            _LOGGER.info("Verified %s", profile.folder_name)
            return True

        _LOGGER.info("Rejected verification for %s (guesses=%s)", profile.folder_name, guesses)
        if show_rejection:
            parameters: dict[str, Any] = {NAME: profile.display_name, GUESSES: dict(guesses)}
            self._enqueue(GameState.REJECTION_PROMPT, parameters)
        return False

    def _api_error(self, operation: str) -> bool:
        _LOGGER.error("API error occurred while %s", operation)
        self._enqueue(GameState.API_ERROR_IDENTIFYING)
        return False


__all__ = ["AuthPolicy", "Authenticator", "select_primary_face"]
