"""Add and remove enrolled faces, retraining the person group afterwards."""
from __future__ import annotations

import logging
from typing import Callable

from .face_service import FaceService
from .profiles import Profile, ProfileImage, ProfileStore
from .states import GameState
from .training import Retrainer
from .ui import KioskUI, Photo

_LOGGER = logging.getLogger(__name__)

Enqueue = Callable[..., None]


class Enroller:
    """Keep the cloud person, the local profile and the stored images in step.

    Every mutation is persisted before retraining starts, so the profile on
    disk is current even when training later fails.
    """

    def __init__(
        self,
        faces: FaceService,
        store: ProfileStore,
        retrainer: Retrainer,
        ui: KioskUI,
        enqueue: Enqueue,
    ) -> None:
        self._faces = faces
        self._store = store
        self._retrainer = retrainer
        self._ui = ui
        self._enqueue = enqueue

    async def add_face(self, profile: Profile, photo: Photo) -> bool:
        self._ui.prompt_busy("Hold on, I'm thinking... (adding Face to LargePersonGroup Person)")
        call = await self._faces.add_face(profile.person_id, photo.data)
        persisted_face_id = call.result
        if not call.successful or not persisted_face_id:
            _LOGGER.error("API error while trying to add Face to LargePersonGroup Person %s", profile.person_id)
            self._enqueue(GameState.API_ERROR_ADDING_FACE)
            return False

        image = self._store.add_image(profile, photo.data, persisted_face_id)
        _LOGGER.info("Added %s to %s", image.identifying_name, profile.folder_name)
        return await self.retrain()

    async def delete_face(self, profile: Profile, image: ProfileImage) -> bool:
        self._ui.prompt_busy("Hold on, I'm thinking... (deleting Face from LargePersonGroup Person)")
        call = await self._faces.delete_face(profile.person_id, image.persisted_face_id)
        if not call.successful or not call.result:
            _LOGGER.error(
                "API error while trying to delete Face %s from LargePersonGroup Person %s",
                image.persisted_face_id,
                profile.person_id,
            )
            self._enqueue(GameState.API_ERROR_DELETING_FACE)
            return False

        self._store.remove_image(profile, image)
        _LOGGER.info("Deleted %s from %s", image.identifying_name, profile.folder_name)
        return await self.retrain()

    async def retrain(self) -> bool:
        self._ui.prompt_busy("Hold on, I'm thinking... (re-training profiles)")
        if await self._retrainer.retrain():
            return True
        self._enqueue(GameState.API_ERROR_TRAINING_STATUS)
        return False


__all__ = ["Enroller"]
