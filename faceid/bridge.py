"""Asyncio rosbridge client relaying face API traffic and kiosk commands."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from .exceptions import BridgeError, ProtocolError
from .gateway import FaceApiRequest, FaceApiResponse
from .protocol import (
    FACEAPIREQUEST_TOPIC,
    FACEAPIRESPONSE_TOPIC,
    FACEID_COMMAND_MESSAGE_TYPE,
    FACEID_COMMAND_TOPIC,
    FACEID_EVENT_TOPIC,
    FACEID_STATE_TOPIC,
    HELLO_WORLD_EVENT,
    OUTBOUND_TOPICS,
    OutboundOp,
    make_advertise,
    make_event,
    make_publish,
    make_state,
    make_subscribe,
    parse_command,
    parse_inbound,
)
from .states import GameState

_LOGGER = logging.getLogger(__name__)

Enqueue = Callable[..., None]
StateProvider = Callable[[], Tuple[str, str]]


class MessagingBridge(Protocol):
    """Outbound half of the bus used by the face service."""

    def send_face_api_request(self, request: FaceApiRequest) -> None: ...

    def send_face_api_response(self, response: FaceApiResponse) -> None: ...


class NullBridge:
    """Bridge used when the kiosk runs without a rosbridge connection."""

    def send_face_api_request(self, request: FaceApiRequest) -> None:
        _LOGGER.debug("rosbridge disabled; not mirroring %s request", request.request_type.value)

    def send_face_api_response(self, response: FaceApiResponse) -> None:
        _LOGGER.debug("rosbridge disabled; not mirroring %s response", response.response_type.value)


class RosbridgeClient:
    """Maintain a websocket connection to rosbridge.

    Outbound messages are buffered in a bounded queue and drained by a sender
    task, so publishing never suspends a handler. Commands received on
    ``/faceid_command`` are handed to the dispatcher through ``enqueue``; the
    receive loop never runs handler code itself.

    Parameters
    ----------
    uri:
        rosbridge websocket URI, e.g. ``ws://192.168.1.166:9090``.
    enqueue:
        Dispatcher entry point used for inbound commands.
    state_provider:
        Callable returning ``(game_state, logged_in_profile)`` for the
        periodic ``/faceid_state`` message.
    """

    def __init__(
        self,
        uri: str,
        *,
        enqueue: Enqueue,
        state_provider: Optional[StateProvider] = None,
        state_publish_hz: float = 3.0,
        reconnect_delay: float = 1.0,
        queue_size: int = 256,
    ) -> None:
        if not uri.startswith(("ws://", "wss://")):
            raise BridgeError(f"rosbridge URI must use ws:// or wss://, got {uri!r}")
        self._uri = uri
        self._enqueue = enqueue
        self._state_provider = state_provider
        self._state_period = 1.0 / state_publish_hz if state_publish_hz > 0 else 0.0
        self._reconnect_delay = max(0.0, float(reconnect_delay))
        self._outbound: asyncio.Queue[OutboundOp] = asyncio.Queue(maxsize=max(1, queue_size))
        self._commands: Dict[str, GameState] = {}
        self._connected = False

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def connected(self) -> bool:
        return self._connected

    # -- command registry -------------------------------------------------
    def register_handler(self, command: str, state: GameState) -> None:
        self._commands[command.strip().upper()] = state

    def handle_raw(self, raw: str | bytes) -> Optional[GameState]:
        """Route one inbound frame; returns the state enqueued, if any."""

        try:
            message = parse_inbound(raw)
            if message is None or message.topic != FACEID_COMMAND_TOPIC:
                return None
            command = parse_command(message.msg)
        except ProtocolError as exc:
            _LOGGER.warning("Ignoring malformed rosbridge frame: %s", exc)
            return None

        state = self._commands.get(command.command)
        if state is None:
            _LOGGER.warning("No handler registered for FaceID command %s", command.command)
            return None
        _LOGGER.info("Received FaceID command %s", command.command)
        self._enqueue(state, command.properties or None)
        return state

    # -- outbound ---------------------------------------------------------
    def publish(self, topic: str, msg: Mapping[str, Any]) -> None:
        try:
            self._outbound.put_nowait(make_publish(topic, dict(msg)))
        except asyncio.QueueFull:
            _LOGGER.warning("Dropping rosbridge message for %s; outbound queue is full", topic)

    def send_face_api_request(self, request: FaceApiRequest) -> None:
        self.publish(FACEAPIREQUEST_TOPIC, request.to_message())

    def send_face_api_response(self, response: FaceApiResponse) -> None:
        self.publish(FACEAPIRESPONSE_TOPIC, response.to_message())

    def send_event(self, event_type: str, message: str = "") -> None:
        self.publish(FACEID_EVENT_TOPIC, make_event(event_type, message))

    def send_state(self) -> None:
        if self._state_provider is None:
            return
        game_state, profile = self._state_provider()
        self.publish(FACEID_STATE_TOPIC, make_state(game_state, profile))

    # -- connection lifecycle --------------------------------------------
    async def run(self, stop_event: asyncio.Event) -> None:
        """Connect, relay traffic, and reconnect until ``stop_event`` is set."""

        while not stop_event.is_set():
            try:
                await self._run_connection(stop_event)
            except (OSError, ConnectionClosed, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as exc:
                _LOGGER.warning("rosbridge connection to %s lost: %s", self._uri, exc)
            finally:
                self._connected = False
            if stop_event.is_set():
                break
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self._reconnect_delay)

    async def _run_connection(self, stop_event: asyncio.Event) -> None:
        _LOGGER.info("Connecting to rosbridge at %s", self._uri)
        async with websockets.connect(self._uri, open_timeout=10, ping_interval=20) as ws:
            for topic, message_type in OUTBOUND_TOPICS.items():
                await ws.send(make_advertise(topic, message_type).to_json())
            await ws.send(make_subscribe(FACEID_COMMAND_TOPIC, FACEID_COMMAND_MESSAGE_TYPE).to_json())
            self._connected = True
            _LOGGER.info("Connected to rosbridge at %s", self._uri)
            self.send_event(HELLO_WORLD_EVENT)

            tasks = [
                asyncio.create_task(self._sender(ws)),
                asyncio.create_task(self._receiver(ws)),
                asyncio.create_task(stop_event.wait()),
            ]
            if self._state_period > 0 and self._state_provider is not None:
                tasks.append(asyncio.create_task(self._state_publisher()))
            try:
                done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in tasks:
                    task.cancel()
                for task in tasks:
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
            for task in done:
                exc = task.exception()
                if exc is not None:
                    raise exc

    async def _sender(self, ws: Any) -> None:
        while True:
            op = await self._outbound.get()
            await ws.send(op.to_json())

    async def _receiver(self, ws: Any) -> None:
        async for raw in ws:
            self.handle_raw(raw)

    async def _state_publisher(self) -> None:
        while True:
            self.send_state()
            await asyncio.sleep(self._state_period)


__all__ = ["MessagingBridge", "NullBridge", "RosbridgeClient"]
