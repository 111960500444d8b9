"""Execute face API calls while mirroring them onto the messaging bus."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, TypeVar

from .bridge import MessagingBridge
from .gateway import AzureFaceGateway, FaceApiCall, TrainingStatus

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class FaceService:
    """Run gateway calls, publishing each request before and each response after."""

    def __init__(self, gateway: AzureFaceGateway, bridge: MessagingBridge) -> None:
        self._gateway = gateway
        self._bridge = bridge

    async def invoke(self, call: FaceApiCall[T]) -> FaceApiCall[T]:
        self._bridge.send_face_api_request(call.request)
        await call.make_call()
        if call.response is not None:
            self._bridge.send_face_api_response(call.response)
        _LOGGER.debug(
            "Face API %s finished (successful=%s)", call.request.request_type.value, call.successful
        )
        return call

    async def create_person(self, name: str) -> FaceApiCall[str]:
        return await self.invoke(self._gateway.create_person(name))

    async def count_faces(self, image: bytes) -> FaceApiCall[int]:
        return await self.invoke(self._gateway.count_faces(image))

    async def add_face(self, person_id: str, image: bytes) -> FaceApiCall[str]:
        return await self.invoke(self._gateway.add_face(person_id, image))

    async def delete_face(self, person_id: str, persisted_face_id: str) -> FaceApiCall[bool]:
        return await self.invoke(self._gateway.delete_face(person_id, persisted_face_id))

    async def detect_faces(self, image: bytes) -> FaceApiCall[Optional[List[str]]]:
        return await self.invoke(self._gateway.detect_faces(image))

    async def identify(self, face_id: str) -> FaceApiCall[Optional[Dict[str, float]]]:
        return await self.invoke(self._gateway.identify(face_id))

    async def start_training(self) -> FaceApiCall[bool]:
        return await self.invoke(self._gateway.start_training())

    async def training_status(self) -> FaceApiCall[TrainingStatus]:
        return await self.invoke(self._gateway.training_status())


__all__ = ["FaceService"]
