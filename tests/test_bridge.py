"""Tests for the rosbridge protocol helpers and client."""

from __future__ import annotations

import asyncio
import json

import pytest
import websockets

from faceid.bridge import RosbridgeClient
from faceid.exceptions import BridgeError, ProtocolError
from faceid.gateway import ContentType, FaceApiRequest, RequestMethod, RequestType
from faceid.protocol import (
    FACEAPIREQUEST_TOPIC,
    FACEID_COMMAND_TOPIC,
    FACEID_EVENT_TOPIC,
    FACEID_STATE_TOPIC,
    HELLO_WORLD_ACK_COMMAND,
    OUTBOUND_TOPICS,
    make_advertise,
    make_event,
    make_state,
    parse_command,
    parse_inbound,
)
from faceid.states import GameState


def command_frame(command, properties=None) -> str:
    msg = {"command": command}
    if properties is not None:
        msg["properties"] = properties
    return json.dumps({"op": "publish", "topic": FACEID_COMMAND_TOPIC, "msg": msg})


def drain(client: RosbridgeClient) -> list:
    ops = []
    while not client._outbound.empty():
        ops.append(client._outbound.get_nowait().as_dict())
    return ops


def test_advertise_op_serialises_type():
    payload = json.loads(make_advertise("/faceid_event", "unity_game_msgs/FaceIDEvent").to_json())
    assert payload == {"op": "advertise", "topic": "/faceid_event", "type": "unity_game_msgs/FaceIDEvent"}


def test_event_and_state_messages_carry_app_name():
    assert make_event("HELLO_WORLD") == {"app_name": "Face ID", "event_type": "HELLO_WORLD", "message": ""}
    assert make_state("STARTED", "Ada")["logged_in_profile"] == "Ada"


def test_parse_inbound_ignores_non_publish_ops():
    assert parse_inbound(json.dumps({"op": "status", "level": "info"})) is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps([1, 2]),
        json.dumps({"op": "publish", "topic": "", "msg": {}}),
        json.dumps({"op": "publish", "topic": "/x", "msg": "nope"}),
    ],
)
def test_parse_inbound_rejects_malformed_frames(raw):
    with pytest.raises(ProtocolError):
        parse_inbound(raw)


def test_parse_command_accepts_json_encoded_properties():
    command = parse_command({"command": " hello_world_ack ", "properties": '{"a": 1}'})
    assert command.command == "HELLO_WORLD_ACK"
    assert command.properties == {"a": 1}


def test_handle_raw_enqueues_registered_command(enqueue):
    client = RosbridgeClient("ws://localhost:9090", enqueue=enqueue)
    client.register_handler(HELLO_WORLD_ACK_COMMAND, GameState.ROS_HELLO_WORLD_ACK)

    assert client.handle_raw(command_frame("HELLO_WORLD_ACK")) is GameState.ROS_HELLO_WORLD_ACK
    assert enqueue.calls == [(GameState.ROS_HELLO_WORLD_ACK, None)]

    client.handle_raw(command_frame("hello_world_ack", {"source": "unity"}))
    assert enqueue.calls[-1] == (GameState.ROS_HELLO_WORLD_ACK, {"source": "unity"})


def test_handle_raw_ignores_unknown_and_malformed(enqueue, caplog):
    client = RosbridgeClient("ws://localhost:9090", enqueue=enqueue)

    with caplog.at_level("WARNING"):
        assert client.handle_raw(command_frame("REBOOT")) is None
        assert client.handle_raw("{broken") is None
        assert client.handle_raw(json.dumps({"op": "publish", "topic": "/other", "msg": {}})) is None

    assert enqueue.calls == []
    assert "No handler registered for FaceID command REBOOT" in caplog.text


def test_publishing_never_blocks_when_queue_is_full(enqueue, caplog):
    client = RosbridgeClient("ws://localhost:9090", enqueue=enqueue, queue_size=1)

    with caplog.at_level("WARNING"):
        client.send_event("HELLO_WORLD")
        client.send_event("SECOND")

    ops = drain(client)
    assert len(ops) == 1
    assert ops[0]["topic"] == FACEID_EVENT_TOPIC
    assert "outbound queue is full" in caplog.text


def test_face_api_request_is_published_as_message(enqueue):
    client = RosbridgeClient("ws://localhost:9090", enqueue=enqueue)
    request = FaceApiRequest(
        RequestMethod.POST,
        RequestType.CREATE_PERSON,
        ContentType.JSON,
        "/face/v1.0/largepersongroups/unity/persons",
        json_body={"name": "Ada"},
    )

    client.send_face_api_request(request)

    (op,) = drain(client)
    assert op["op"] == "publish"
    assert op["topic"] == FACEAPIREQUEST_TOPIC
    assert op["msg"]["request_type"] == RequestType.CREATE_PERSON.value
    assert json.loads(op["msg"]["request_body"]) == {"name": "Ada"}


def test_state_is_published_from_provider(enqueue):
    client = RosbridgeClient(
        "ws://localhost:9090",
        enqueue=enqueue,
        state_provider=lambda: ("WELCOME_SCREEN", "Ada"),
    )

    client.send_state()

    (op,) = drain(client)
    assert op["topic"] == FACEID_STATE_TOPIC
    assert op["msg"]["game_state"] == "WELCOME_SCREEN"


@pytest.mark.asyncio
async def test_client_handshake_against_local_server(enqueue):
    received: list = []
    acked = asyncio.Event()

    async def handler(ws):
        async for raw in ws:
            payload = json.loads(raw)
            received.append(payload)
            if payload.get("op") == "publish" and payload.get("topic") == FACEID_EVENT_TOPIC:
                await ws.send(command_frame(HELLO_WORLD_ACK_COMMAND))

    def record(state, parameters=None):
        enqueue(state, parameters)
        acked.set()

    server = await websockets.serve(handler, "127.0.0.1", 0)
    try:
        port = server.sockets[0].getsockname()[1]
        client = RosbridgeClient(f"ws://127.0.0.1:{port}", enqueue=record, state_publish_hz=0)
        client.register_handler(HELLO_WORLD_ACK_COMMAND, GameState.ROS_HELLO_WORLD_ACK)
        stop = asyncio.Event()
        runner = asyncio.create_task(client.run(stop))

        await asyncio.wait_for(acked.wait(), timeout=5.0)
        stop.set()
        await asyncio.wait_for(runner, timeout=5.0)
    finally:
        server.close()
        await server.wait_closed()

    advertised = {item["topic"] for item in received if item["op"] == "advertise"}
    assert advertised == set(OUTBOUND_TOPICS)
    assert {"op": "subscribe", "topic": FACEID_COMMAND_TOPIC, "type": "unity_game_msgs/FaceIDCommand"} in received
    assert enqueue.calls == [(GameState.ROS_HELLO_WORLD_ACK, None)]


def test_non_websocket_uri_is_rejected(enqueue):
    with pytest.raises(BridgeError):
        RosbridgeClient("http://localhost:9090", enqueue=enqueue)
