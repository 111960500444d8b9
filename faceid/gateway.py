"""Face API calls, their request/response envelopes, and the Azure REST gateway."""

from __future__ import annotations

import base64
import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Mapping, Optional, TypeVar
from urllib.parse import quote, urlencode

import aiohttp

from .exceptions import TransportError

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOCATION = "eastus"
API_PATH_PREFIX = "/face/v1.0"


class RequestMethod(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    DELETE = "DELETE"


class RequestType(str, enum.Enum):
    CREATE_PERSON = "CREATE_LARGEPERSONGROUP_PERSON"
    COUNT_FACES = "COUNT_FACES"
    ADD_FACE = "ADD_FACE_TO_LARGEPERSONGROUP_PERSON"
    DELETE_FACE = "DELETE_FACE_FROM_LARGEPERSONGROUP_PERSON"
    DETECT = "DETECT_FOR_IDENTIFYING"
    IDENTIFY = "IDENTIFY_FROM_FACEID"
    START_TRAINING = "START_TRAINING_LARGEPERSONGROUP"
    TRAINING_STATUS = "GET_LARGEPERSONGROUP_TRAINING_STATUS"


class ContentType(str, enum.Enum):
    JSON = "application/json"
    STREAM = "application/octet-stream"


class ResponseType(str, enum.Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class TrainingStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    API_ERROR = "api-error"
    PENDING = "pending"

    @classmethod
    def from_service(cls, raw: Any) -> "TrainingStatus":
        text = str(raw or "").strip().lower()
        if text == "succeeded":
            return cls.SUCCEEDED
        if text == "failed":
            return cls.FAILED
        if text in {"running", "notstarted", "pending"}:
            return cls.PENDING
        return cls.API_ERROR

    @property
    def is_terminal(self) -> bool:
        return self is not TrainingStatus.PENDING


@dataclass(frozen=True)
class FaceApiRequest:
    """Outgoing face API request, mirrored onto the bus before it is sent."""

    method: RequestMethod
    request_type: RequestType
    content_type: ContentType
    path: str
    parameters: Mapping[str, str] = field(default_factory=dict)
    json_body: Optional[Any] = None
    data: Optional[bytes] = None

    @property
    def query_string(self) -> str:
        return urlencode(dict(self.parameters))

    @property
    def body_text(self) -> str:
        if self.content_type is ContentType.STREAM:
            return base64.b64encode(self.data or b"").decode("ascii")
        if self.json_body is None:
            return ""
        return json.dumps(self.json_body, separators=(",", ":"))

    def to_message(self) -> Dict[str, str]:
        """Return the ``face_msgs/FaceAPIRequest`` payload."""

        return {
            "request_method": self.method.value,
            "request_type": self.request_type.value,
            "content_type": self.content_type.value,
            "request_parameters": self.query_string,
            "request_body": self.body_text,
        }


@dataclass(frozen=True)
class FaceApiResponse:
    """Raw face API response, mirrored onto the bus after the call completes."""

    response_type: ResponseType
    response: str
    status: int = 0

    @property
    def ok(self) -> bool:
        return self.response_type is ResponseType.SUCCESS

    def json(self) -> Any:
        if not self.response:
            return None
        return json.loads(self.response)

    def to_message(self) -> Dict[str, str]:
        """Return the ``face_msgs/FaceAPIResponse`` payload."""

        return {"response_type": self.response_type.value, "response": self.response}


Transport = Callable[[FaceApiRequest], Awaitable[FaceApiResponse]]


class FaceApiCall(Generic[T]):
    """One face API call: an envelope, a transport, and a result parser.

    :attr:`successful` reports whether the request was delivered and answered
    with a success status and a parseable payload; :attr:`result` falls back to
    ``default`` otherwise. Callers must check the flag before trusting the
    result.
    """

    def __init__(
        self,
        request: FaceApiRequest,
        transport: Transport,
        parse: Callable[[FaceApiResponse], T],
        default: T,
    ) -> None:
        self.request = request
        self._transport = transport
        self._parse = parse
        self._default = default
        self.response: Optional[FaceApiResponse] = None
        self.result: T = default
        self.successful = False

    async def make_call(self) -> T:
        try:
            response = await self._transport(self.request)
        except TransportError as exc:
            _LOGGER.error("Face API %s request failed: %s", self.request.request_type.value, exc)
            self.response = FaceApiResponse(ResponseType.ERROR, str(exc))
            return self.result
        self.response = response
        if not response.ok:
            _LOGGER.error(
                "Face API %s returned an error (HTTP %s): %s",
                self.request.request_type.value,
                response.status,
                response.response,
            )
            return self.result
        try:
            self.result = self._parse(response)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            _LOGGER.error(
                "Face API %s response could not be parsed: %s", self.request.request_type.value, exc
            )
            self.result = self._default
            return self.result
        self.successful = True
        return self.result


# -- response parsers -------------------------------------------------------
def _parse_person_id(response: FaceApiResponse) -> str:
    return str(response.json()["personId"])


def _parse_face_count(response: FaceApiResponse) -> int:
    faces = response.json()
    if not isinstance(faces, list):
        raise ValueError("detect response must be a list")
    return len(faces)


def _parse_persisted_face_id(response: FaceApiResponse) -> str:
    return str(response.json()["persistedFaceId"])


def _parse_deleted(response: FaceApiResponse) -> bool:
    return response.ok


def _parse_face_ids(response: FaceApiResponse) -> List[str]:
    faces = response.json()
    if not isinstance(faces, list):
        raise ValueError("detect response must be a list")
    return [str(face["faceId"]) for face in faces]


def _parse_guesses(response: FaceApiResponse) -> Dict[str, float]:
    results = response.json()
    if not isinstance(results, list):
        raise ValueError("identify response must be a list")
    guesses: Dict[str, float] = {}
    for result in results:
        for candidate in result.get("candidates", []):
            guesses[str(candidate["personId"])] = float(candidate["confidence"])
    return guesses


def _parse_training_started(response: FaceApiResponse) -> bool:
    return response.ok


def _parse_training_status(response: FaceApiResponse) -> TrainingStatus:
    payload = response.json()
    if not isinstance(payload, Mapping):
        raise ValueError("training status response must be an object")
    return TrainingStatus.from_service(payload.get("status"))


class AzureFaceGateway:
    """Build calls against the Azure Face ``LargePersonGroup`` REST API.

    Parameters
    ----------
    person_group_id:
        Identifier of the large person group all persons live in.
    transport:
        Coroutine that delivers a :class:`FaceApiRequest`; usually an
        :class:`AiohttpTransport`.
    max_candidates:
        Upper bound on candidates returned by identification.
    """

    def __init__(self, person_group_id: str, transport: Transport, *, max_candidates: int = 5) -> None:
        if not person_group_id:
            raise ValueError("person_group_id must be provided")
        self._group = person_group_id
        self._transport = transport
        self._max_candidates = max(1, int(max_candidates))

    @property
    def person_group_id(self) -> str:
        return self._group

    def _group_path(self, *parts: str) -> str:
        suffix = "".join(f"/{quote(part, safe='')}" for part in parts)
        return f"{API_PATH_PREFIX}/largepersongroups/{quote(self._group, safe='')}{suffix}"

    def _call(self, request: FaceApiRequest, parse: Callable[[FaceApiResponse], T], default: T) -> FaceApiCall[T]:
        return FaceApiCall(request, self._transport, parse, default)

    def create_person(self, name: str) -> FaceApiCall[str]:
        request = FaceApiRequest(
            RequestMethod.POST,
            RequestType.CREATE_PERSON,
            ContentType.JSON,
            self._group_path("persons"),
            json_body={"name": name},
        )
        return self._call(request, _parse_person_id, "")

    def count_faces(self, image: bytes) -> FaceApiCall[int]:
        request = FaceApiRequest(
            RequestMethod.POST,
            RequestType.COUNT_FACES,
            ContentType.STREAM,
            f"{API_PATH_PREFIX}/detect",
            parameters={"returnFaceId": "false"},
            data=image,
        )
        return self._call(request, _parse_face_count, -1)

    def add_face(self, person_id: str, image: bytes) -> FaceApiCall[str]:
        request = FaceApiRequest(
            RequestMethod.POST,
            RequestType.ADD_FACE,
            ContentType.STREAM,
            self._group_path("persons", person_id, "persistedfaces"),
            data=image,
        )
        return self._call(request, _parse_persisted_face_id, "")

    def delete_face(self, person_id: str, persisted_face_id: str) -> FaceApiCall[bool]:
        request = FaceApiRequest(
            RequestMethod.DELETE,
            RequestType.DELETE_FACE,
            ContentType.JSON,
            self._group_path("persons", person_id, "persistedfaces", persisted_face_id),
        )
        return self._call(request, _parse_deleted, False)

    def detect_faces(self, image: bytes) -> FaceApiCall[Optional[List[str]]]:
        request = FaceApiRequest(
            RequestMethod.POST,
            RequestType.DETECT,
            ContentType.STREAM,
            f"{API_PATH_PREFIX}/detect",
            parameters={"returnFaceId": "true"},
            data=image,
        )
        return self._call(request, _parse_face_ids, None)

    def identify(self, face_id: str) -> FaceApiCall[Optional[Dict[str, float]]]:
        request = FaceApiRequest(
            RequestMethod.POST,
            RequestType.IDENTIFY,
            ContentType.JSON,
            f"{API_PATH_PREFIX}/identify",
            json_body={
                "largePersonGroupId": self._group,
                "faceIds": [face_id],
                "maxNumOfCandidatesReturned": self._max_candidates,
            },
        )
        return self._call(request, _parse_guesses, None)

    def start_training(self) -> FaceApiCall[bool]:
        request = FaceApiRequest(
            RequestMethod.POST,
            RequestType.START_TRAINING,
            ContentType.JSON,
            self._group_path("train"),
        )
        return self._call(request, _parse_training_started, False)

    def training_status(self) -> FaceApiCall[TrainingStatus]:
        request = FaceApiRequest(
            RequestMethod.GET,
            RequestType.TRAINING_STATUS,
            ContentType.JSON,
            self._group_path("training"),
        )
        return self._call(request, _parse_training_status, TrainingStatus.API_ERROR)


def default_endpoint(location: str = DEFAULT_LOCATION) -> str:
    return f"https://{location}.api.cognitive.microsoft.com"


class AiohttpTransport:
    """Deliver face API requests over HTTPS with :mod:`aiohttp`."""

    def __init__(self, endpoint: str, access_key: str, *, timeout: float = 30.0) -> None:
        if not endpoint:
            raise ValueError("endpoint must be provided")
        self._endpoint = endpoint.rstrip("/")
        self._access_key = access_key
        self._timeout = aiohttp.ClientTimeout(total=max(0.1, float(timeout)))
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def __call__(self, request: FaceApiRequest) -> FaceApiResponse:
        session = await self._ensure_session()
        headers = {
            "Ocp-Apim-Subscription-Key": self._access_key,
            "Content-Type": request.content_type.value,
        }
        url = f"{self._endpoint}{request.path}"
        if request.content_type is ContentType.STREAM:
            body: Any = request.data or b""
        elif request.json_body is not None:
            body = json.dumps(request.json_body)
        else:
            body = None
        try:
            async with session.request(
                request.method.value,
                url,
                params=dict(request.parameters) or None,
                data=body,
                headers=headers,
            ) as response:
                text = await response.text()
                status = response.status
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TransportError(f"{request.method.value} {url} failed: {exc}") from exc

        response_type = ResponseType.SUCCESS if 200 <= status < 300 else ResponseType.ERROR
        return FaceApiResponse(response_type=response_type, response=text, status=status)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


__all__ = [
    "AiohttpTransport",
    "AzureFaceGateway",
    "ContentType",
    "FaceApiCall",
    "FaceApiRequest",
    "FaceApiResponse",
    "RequestMethod",
    "RequestType",
    "ResponseType",
    "TrainingStatus",
    "Transport",
    "default_endpoint",
]
