"""Pytest configuration and shared stubs for the Face ID kiosk tests."""

from __future__ import annotations

import dataclasses
import json
import sys
from collections import defaultdict, deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple, Union

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

import pytest  # noqa: E402

from faceid.config import Settings  # noqa: E402
from faceid.exceptions import CameraError, TransportError  # noqa: E402
from faceid.gateway import FaceApiRequest, FaceApiResponse, RequestType, ResponseType  # noqa: E402
from faceid.ui import Photo  # noqa: E402

ScriptItem = Union[FaceApiResponse, Exception]


def ok(body: Any = None, status: int = 200) -> FaceApiResponse:
    """Return a successful response carrying ``body`` as JSON."""

    text = "" if body is None else json.dumps(body)
    return FaceApiResponse(ResponseType.SUCCESS, text, status)


def error(status: int = 500, body: str = '{"error": {"code": "InternalServerError"}}') -> FaceApiResponse:
    return FaceApiResponse(ResponseType.ERROR, body, status)


class ScriptedTransport:
    """Transport answering each request type from a per-type script."""

    def __init__(self) -> None:
        self.requests: List[FaceApiRequest] = []
        self._scripts: Dict[RequestType, Deque[ScriptItem]] = defaultdict(deque)

    def script(self, request_type: RequestType, *items: ScriptItem) -> None:
        self._scripts[request_type].extend(items)

    def calls(self, request_type: RequestType) -> List[FaceApiRequest]:
        return [request for request in self.requests if request.request_type is request_type]

    async def __call__(self, request: FaceApiRequest) -> FaceApiResponse:
        self.requests.append(request)
        script = self._scripts[request.request_type]
        if not script:
            raise TransportError(f"no scripted response for {request.request_type.value}")
        item = script.popleft()
        if isinstance(item, Exception):
            raise item
        return item


class RecordingBridge:
    def __init__(self) -> None:
        self.requests: List[FaceApiRequest] = []
        self.responses: List[FaceApiResponse] = []

    def send_face_api_request(self, request: FaceApiRequest) -> None:
        self.requests.append(request)

    def send_face_api_response(self, response: FaceApiResponse) -> None:
        self.responses.append(response)


class RecordingUI:
    """Kiosk UI that records every screen it is asked to show."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def last(self, name: str) -> Optional[Tuple[Any, ...]]:
        for recorded, args in reversed(self.calls):
            if recorded == name:
                return args
        return None

    def hide_all(self) -> None:
        self._record("hide_all")

    def show_connection_screen(self) -> None:
        self._record("show_connection_screen")

    def show_continue_button(self) -> None:
        self._record("show_continue_button")

    def ask_question(self, text: str) -> None:
        self._record("ask_question", text)

    def prompt_ok(self, text: str) -> None:
        self._record("prompt_ok", text)

    def prompt_text(self, text: str) -> None:
        self._record("prompt_text", text)

    def prompt_busy(self, text: str) -> None:
        self._record("prompt_busy", text)

    def list_profiles(self, text: str, profiles: Any) -> None:
        self._record("list_profiles", text, list(profiles))

    def list_images(self, text: str, images: Any) -> None:
        self._record("list_images", text, list(images))

    def show_webcam(self, text: str, button: str) -> None:
        self._record("show_webcam", text, button)

    def picture_window(self, photo: Any, text: str, yes: str, no: str) -> None:
        self._record("picture_window", photo, text, yes, no)

    def sad_face_window(self, text: str, yes: str, no: str) -> None:
        self._record("sad_face_window", text, yes, no)


class FakeCamera:
    def __init__(self, photo: Photo) -> None:
        self.photo = photo
        self.enabled = 0
        self.captures = 0

    def enable(self) -> None:
        self.enabled += 1

    async def capture(self) -> Photo:
        self.captures += 1
        return self.photo


class BrokenCamera(FakeCamera):
    """Camera that cannot be opened, like an unplugged or busy device."""

    def enable(self) -> None:
        self.enabled += 1
        raise CameraError("Could not open camera device 0")


class EnqueueRecorder:
    """Stand-in for :meth:`Dispatcher.enqueue` that keeps every call."""

    def __init__(self) -> None:
        self.calls: List[Tuple[Any, Any]] = []

    def __call__(self, state: Any, parameters: Any = None) -> None:
        self.calls.append((state, parameters))

    @property
    def states(self) -> List[Any]:
        return [state for state, _ in self.calls]


@pytest.fixture
def photo() -> Photo:
    return Photo(data=b"\x89PNG\r\n\x1a\nface", source="test")


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def bridge() -> RecordingBridge:
    return RecordingBridge()


@pytest.fixture
def ui() -> RecordingUI:
    return RecordingUI()


@pytest.fixture
def camera(photo: Photo) -> FakeCamera:
    return FakeCamera(photo)


@pytest.fixture
def enqueue() -> EnqueueRecorder:
    return EnqueueRecorder()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    defaults = Settings()
    return dataclasses.replace(
        defaults,
        storage=dataclasses.replace(defaults.storage, root=str(tmp_path / "profiles")),
        camera=dataclasses.replace(defaults.camera, warmup_delay=0.0),
        training=dataclasses.replace(defaults.training, poll_interval=0.0, max_interval=0.0),
        rosbridge=dataclasses.replace(defaults.rosbridge, enabled=False),
    )


@pytest.fixture
def faces(transport: ScriptedTransport, bridge: RecordingBridge):
    from faceid.face_service import FaceService
    from faceid.gateway import AzureFaceGateway

    return FaceService(AzureFaceGateway("unity", transport), bridge)
