"""rosbridge v2 JSON protocol helpers used by the messaging bridge."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from .exceptions import ProtocolError

RosbridgeOp = Literal["advertise", "unadvertise", "publish", "subscribe", "unsubscribe"]

# FaceID to roscore
FACEID_EVENT_TOPIC = "/faceid_event"
FACEID_EVENT_MESSAGE_TYPE = "unity_game_msgs/FaceIDEvent"
FACEID_STATE_TOPIC = "/faceid_state"
FACEID_STATE_MESSAGE_TYPE = "unity_game_msgs/FaceIDState"
FACEAPIREQUEST_TOPIC = "/faceapi_requests"
FACEAPIREQUEST_MESSAGE_TYPE = "face_msgs/FaceAPIRequest"
FACEAPIRESPONSE_TOPIC = "/faceapi_responses"
FACEAPIRESPONSE_MESSAGE_TYPE = "face_msgs/FaceAPIResponse"

# roscore to FaceID
FACEID_COMMAND_TOPIC = "/faceid_command"
FACEID_COMMAND_MESSAGE_TYPE = "unity_game_msgs/FaceIDCommand"

OUTBOUND_TOPICS: Dict[str, str] = {
    FACEID_EVENT_TOPIC: FACEID_EVENT_MESSAGE_TYPE,
    FACEID_STATE_TOPIC: FACEID_STATE_MESSAGE_TYPE,
    FACEAPIREQUEST_TOPIC: FACEAPIREQUEST_MESSAGE_TYPE,
    FACEAPIRESPONSE_TOPIC: FACEAPIRESPONSE_MESSAGE_TYPE,
}

HELLO_WORLD_EVENT = "HELLO_WORLD"
HELLO_WORLD_ACK_COMMAND = "HELLO_WORLD_ACK"
APP_NAME = "Face ID"


@dataclass(slots=True)
class OutboundOp:
    """Message structure sent to rosbridge."""

    op: RosbridgeOp
    topic: str
    type: Optional[str] = None
    msg: Optional[Dict[str, Any]] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"op": self.op, "topic": self.topic}
        if self.type is not None:
            payload["type"] = self.type
        if self.msg is not None:
            payload["msg"] = self.msg
        return payload

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), separators=(",", ":"))


@dataclass(slots=True)
class InboundMessage:
    """Normalised ``publish`` op received from rosbridge."""

    topic: str
    msg: Dict[str, Any]


@dataclass(slots=True)
class FaceIDCommand:
    """Command delivered on ``/faceid_command``."""

    command: str
    properties: Dict[str, Any]


def make_advertise(topic: str, message_type: str) -> OutboundOp:
    return OutboundOp(op="advertise", topic=topic, type=message_type)


def make_subscribe(topic: str, message_type: str) -> OutboundOp:
    return OutboundOp(op="subscribe", topic=topic, type=message_type)


def make_publish(topic: str, msg: Dict[str, Any]) -> OutboundOp:
    return OutboundOp(op="publish", topic=topic, msg=msg)


def make_event(event_type: str, message: str = "") -> Dict[str, Any]:
    return {"app_name": APP_NAME, "event_type": event_type, "message": message}


def make_state(game_state: str, logged_in_profile: str = "") -> Dict[str, Any]:
    return {"app_name": APP_NAME, "game_state": game_state, "logged_in_profile": logged_in_profile}


def parse_inbound(raw: str | bytes) -> Optional[InboundMessage]:
    """Parse a raw rosbridge frame.

    Returns ``None`` for operations the kiosk does not act on (status reports,
    service responses); raises :class:`ProtocolError` for malformed frames.
    """

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("rosbridge frame is not UTF-8") from exc
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"invalid json: {exc.msg}") from exc

    if not isinstance(parsed, dict):
        raise ProtocolError("expected JSON object")

    op = parsed.get("op")
    if op != "publish":
        return None

    topic = parsed.get("topic")
    if not isinstance(topic, str) or not topic:
        raise ProtocolError("expected non-empty topic")

    message = parsed.get("msg")
    if not isinstance(message, dict):
        raise ProtocolError("expected msg object")
    return InboundMessage(topic=topic, msg=message)


def parse_command(message: Dict[str, Any]) -> FaceIDCommand:
    """Decode a ``FaceIDCommand`` payload.

    ``properties`` may arrive either as an object or as a JSON-encoded string.
    """

    command = message.get("command")
    if isinstance(command, int) and not isinstance(command, bool):
        command = str(command)
    if not isinstance(command, str) or not command.strip():
        raise ProtocolError("expected non-empty command")

    properties: Any = message.get("properties") or {}
    if isinstance(properties, str):
        try:
            properties = json.loads(properties)
        except json.JSONDecodeError as exc:
            raise ProtocolError(f"invalid command properties: {exc.msg}") from exc
    if not isinstance(properties, dict):
        raise ProtocolError("command properties must be an object")
    return FaceIDCommand(command=command.strip().upper(), properties=properties)


__all__ = [
    "FACEAPIREQUEST_TOPIC",
    "FACEAPIRESPONSE_TOPIC",
    "FACEID_COMMAND_MESSAGE_TYPE",
    "FACEID_COMMAND_TOPIC",
    "FACEID_EVENT_TOPIC",
    "FACEID_STATE_TOPIC",
    "FaceIDCommand",
    "HELLO_WORLD_ACK_COMMAND",
    "HELLO_WORLD_EVENT",
    "InboundMessage",
    "OUTBOUND_TOPICS",
    "OutboundOp",
    "make_advertise",
    "make_event",
    "make_publish",
    "make_state",
    "make_subscribe",
    "parse_command",
    "parse_inbound",
]
