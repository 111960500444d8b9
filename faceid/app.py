"""Wire the kiosk together: store, face service, bridge, handlers, dispatcher."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

from .auth import Authenticator, AuthPolicy
from .bridge import MessagingBridge, NullBridge, RosbridgeClient
from .config import Settings
from .dispatcher import Dispatcher
from .enrollment import Enroller
from .face_service import FaceService
from .gateway import AiohttpTransport, AzureFaceGateway, Transport, default_endpoint
from .handlers import KioskContext, build_commands
from .inputs import InputRouter
from .profiles import ProfileStore
from .protocol import HELLO_WORLD_ACK_COMMAND
from .session import Session
from .states import GameState
from .training import RetrainPolicy, Retrainer
from .ui import Camera, KioskUI, LoggingUI, OpenCVCamera

_LOGGER = logging.getLogger(__name__)


class FaceIDKiosk:
    """Own every long-lived collaborator of a running kiosk.

    Parameters
    ----------
    settings:
        Parsed configuration.
    ui, camera, transport, bridge:
        Optional replacements for the default adapters (headless logging UI,
        OpenCV camera, aiohttp transport, rosbridge client). Tests pass stubs.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        ui: Optional[KioskUI] = None,
        camera: Optional[Camera] = None,
        transport: Optional[Transport] = None,
        bridge: Optional[MessagingBridge] = None,
    ) -> None:
        self.settings = settings
        self.session = Session()
        self.dispatcher = Dispatcher()
        self.store = ProfileStore(settings.storage.root)
        self.ui: KioskUI = ui or LoggingUI()
        self.camera: Camera = camera or OpenCVCamera(settings.camera.device)
        self.transport: Transport = transport or self._default_transport()
        self.bridge: MessagingBridge = bridge or self._default_bridge()

        enqueue = self.dispatcher.enqueue
        gateway = AzureFaceGateway(settings.face_api.person_group_id, self.transport)
        self.faces = FaceService(gateway, self.bridge)
        training = settings.training
        retrainer = Retrainer(
            self.faces,
            RetrainPolicy(
                poll_interval=training.poll_interval,
                max_polls=training.max_polls,
                backoff=training.backoff,
                max_interval=training.max_interval,
            ),
        )
        policy = AuthPolicy(
            min_images=settings.face_api.min_images_for_auth,
            confidence_threshold=settings.face_api.confidence_threshold,
            camera_warmup=settings.camera.warmup_delay,
        )
        self.context = KioskContext(
            session=self.session,
            store=self.store,
            faces=self.faces,
            auth=Authenticator(self.faces, self.ui, self.camera, enqueue, policy),
            enroller=Enroller(self.faces, self.store, retrainer, self.ui, enqueue),
            ui=self.ui,
            enqueue=enqueue,
        )
        self.dispatcher.register_all(build_commands(self.context))
        self.router = InputRouter(self.session, enqueue)

    def _default_transport(self) -> Transport:
        face_api = self.settings.face_api
        access_key = face_api.resolve_access_key()
        if not access_key:
            _LOGGER.warning("No face API access key configured; every face API call will fail")
        endpoint = face_api.endpoint or default_endpoint(face_api.location)
        return AiohttpTransport(endpoint, access_key, timeout=face_api.timeout)

    def _default_bridge(self) -> MessagingBridge:
        rosbridge = self.settings.rosbridge
        if not rosbridge.enabled:
            _LOGGER.info("rosbridge disabled; face API traffic will not be mirrored")
            return NullBridge()
        client = RosbridgeClient(
            rosbridge.uri,
            enqueue=self.dispatcher.enqueue,
            state_provider=self.session.snapshot,
            state_publish_hz=rosbridge.state_publish_hz,
            reconnect_delay=rosbridge.connect_delay,
        )
        client.register_handler(HELLO_WORLD_ACK_COMMAND, GameState.ROS_HELLO_WORLD_ACK)
        return client

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run the dispatcher (and the bus client, if any) until ``stop_event`` is set."""

        self.store.ensure_root()
        self.dispatcher.enqueue(GameState.ROS_CONNECTION)

        tasks: list[asyncio.Task[Any]] = [
            asyncio.create_task(
                self.dispatcher.run(stop_event, tick_interval=self.settings.kiosk.tick_interval)
            )
        ]
        if isinstance(self.bridge, RosbridgeClient):
            tasks.append(asyncio.create_task(self.bridge.run(stop_event)))
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            for task in tasks:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            await self.close()

    async def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()
        release = getattr(self.camera, "release", None)
        if release is not None:
            release()
        _LOGGER.info("Face ID kiosk stopped")


__all__ = ["FaceIDKiosk"]
