"""Contracts for the kiosk screen and camera, plus headless implementations."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

import cv2
import numpy as np

from .exceptions import CameraError
from .profiles import NO_PROFILE_PICTURE, Profile, ProfileImage

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Photo:
    """PNG-encoded image handed between the camera, UI and face service."""

    data: bytes
    source: str = "memory"

    def __post_init__(self) -> None:
        if not isinstance(self.data, (bytes, bytearray)) or not self.data:
            raise ValueError("photo data must be non-empty bytes")

    @classmethod
    def from_array(cls, frame: np.ndarray, *, source: str = "camera") -> "Photo":
        """Encode a BGR or grayscale frame as PNG."""

        if frame.ndim not in (2, 3):
            raise ValueError("frame must be grayscale or BGR")
        success, buffer = cv2.imencode(".png", frame)
        if not success or buffer.size == 0:
            raise ValueError("failed to encode frame as PNG")
        return cls(data=buffer.tobytes(), source=source)

    @classmethod
    def from_file(cls, path: Union[Path, str]) -> "Photo":
        resolved = Path(path)
        return cls(data=resolved.read_bytes(), source=str(resolved))

    def to_array(self) -> np.ndarray:
        buffer = np.frombuffer(self.data, dtype=np.uint8)
        frame = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if frame is None:
            raise ValueError("photo data is not a decodable image")
        return frame


def load_picture(path: str) -> Optional[Photo]:
    """Return the photo stored at ``path``; ``"none"`` and unreadable files give ``None``."""

    if not path or NO_PROFILE_PICTURE in path:
        return None
    try:
        return Photo.from_file(path)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Unable to load picture %s: %s", path, exc)
        return None


class KioskUI(Protocol):
    """Screens the dispatcher drives. Implementations report input via :mod:`faceid.inputs`."""

    def hide_all(self) -> None: ...

    def show_connection_screen(self) -> None: ...

    def show_continue_button(self) -> None: ...

    def ask_question(self, text: str) -> None: ...

    def prompt_ok(self, text: str) -> None: ...

    def prompt_text(self, text: str) -> None: ...

    def prompt_busy(self, text: str) -> None: ...

    def list_profiles(self, text: str, profiles: Sequence[Profile]) -> None: ...

    def list_images(self, text: str, images: Sequence[ProfileImage]) -> None: ...

    def show_webcam(self, text: str, button: str) -> None: ...

    def picture_window(self, photo: Optional[Photo], text: str, yes: str, no: str) -> None: ...

    def sad_face_window(self, text: str, yes: str, no: str) -> None: ...


class Camera(Protocol):
    """Webcam used to grab verification frames."""

    def enable(self) -> None: ...

    async def capture(self) -> Photo: ...


class LoggingUI:
    """Render every screen as a log record; useful for headless kiosks."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or _LOGGER
        self.last_screen: Optional[str] = None

    def _show(self, screen: str, text: str = "", *details: str) -> None:
        self.last_screen = screen
        suffix = f" [{', '.join(details)}]" if details else ""
        self._logger.info("[%s] %s%s", screen, " ".join(text.split()), suffix)

    def hide_all(self) -> None:
        self._show("hidden")

    def show_connection_screen(self) -> None:
        self._show("connection", "Connecting to rosbridge...")

    def show_continue_button(self) -> None:
        self._show("connection", "Connected.", "Continue")

    def ask_question(self, text: str) -> None:
        self._show("question", text, "Yes", "No")

    def prompt_ok(self, text: str) -> None:
        self._show("dialog", text, "OK")

    def prompt_text(self, text: str) -> None:
        self._show("text-input", text)

    def prompt_busy(self, text: str) -> None:
        self._show("busy", text)

    def list_profiles(self, text: str, profiles: Sequence[Profile]) -> None:
        self._show("profiles", text, *(profile.folder_name for profile in profiles))

    def list_images(self, text: str, images: Sequence[ProfileImage]) -> None:
        self._show("images", text, *(image.display_name for image in images))

    def show_webcam(self, text: str, button: str) -> None:
        self._show("webcam", text, button)

    def picture_window(self, photo: Optional[Photo], text: str, yes: str, no: str) -> None:
        source = photo.source if photo is not None else "unknown"
        self._show("picture", text, source, yes, no)

    def sad_face_window(self, text: str, yes: str, no: str) -> None:
        self._show("picture", text, "sad", yes, no)


class OpenCVCamera:
    """Grab frames from a V4L/USB device with OpenCV.

    The capture handle is opened lazily on :meth:`enable` and reads happen in
    the default executor so the event loop keeps ticking.
    """

    _WARMUP_READS = 3

    def __init__(self, device: Union[int, str] = 0) -> None:
        self._device = device
        self._capture: Optional[cv2.VideoCapture] = None
        self._lock = threading.Lock()

    def enable(self) -> None:
        with self._lock:
            if self._capture is not None and self._capture.isOpened():
                return
            _LOGGER.info("Opening camera device %s", self._device)
            capture = cv2.VideoCapture(self._device)
            if not capture.isOpened():
                capture.release()
                raise CameraError(f"failed to open camera device {self._device}")
            self._capture = capture

    def _read_frame(self) -> np.ndarray:
        with self._lock:
            if self._capture is None:
                raise CameraError("camera has not been enabled")
            frame = None
            for _ in range(self._WARMUP_READS):
                ok, candidate = self._capture.read()
                if ok and candidate is not None:
                    frame = candidate
        if frame is None:
            raise CameraError(f"failed to read frame from {self._device}")
        return frame

    async def capture(self) -> Photo:
        loop = asyncio.get_running_loop()
        frame = await loop.run_in_executor(None, self._read_frame)
        return Photo.from_array(frame, source=f"camera:{self._device}")

    def release(self) -> None:
        with self._lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None


__all__ = [
    "Camera",
    "KioskUI",
    "LoggingUI",
    "OpenCVCamera",
    "Photo",
    "load_picture",
]
