"""Load and persist kiosk settings expressed in TOML."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

import tomli_w
import tomllib

from .exceptions import ConfigError

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "CameraSettings",
    "FaceApiSettings",
    "KioskSettings",
    "RosbridgeSettings",
    "Settings",
    "StorageSettings",
    "TrainingSettings",
    "load_settings",
    "save_settings",
    "settings_to_dict",
]

ENV_API_KEY = "FACEID_API_KEY"
ENV_STORAGE_ROOT = "FACEID_STORAGE_ROOT"
ENV_ROSBRIDGE_HOST = "FACEID_ROSBRIDGE_HOST"
ENV_ROSBRIDGE_PORT = "FACEID_ROSBRIDGE_PORT"


@dataclass(frozen=True)
class StorageSettings:
    root: str = "profiles"


@dataclass(frozen=True)
class FaceApiSettings:
    """Credentials and thresholds for the Azure Face LargePersonGroup API."""

    access_key: str = ""
    access_key_file: str = ""
    person_group_id: str = "unity"
    location: str = "eastus"
    endpoint: str = ""
    timeout: float = 30.0
    confidence_threshold: float = 0.70
    min_images_for_auth: int = 5

    def resolve_access_key(self) -> str:
        """Return the inline key, or the stripped contents of ``access_key_file``."""

        if self.access_key:
            return self.access_key
        if not self.access_key_file:
            return ""
        path = Path(self.access_key_file).expanduser()
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Unable to read face API key file {path}: {exc}") from exc


@dataclass(frozen=True)
class TrainingSettings:
    poll_interval: float = 1.0
    max_polls: int = 60
    backoff: float = 1.5
    max_interval: float = 10.0


@dataclass(frozen=True)
class CameraSettings:
    device: int = 0
    warmup_delay: float = 2.0


@dataclass(frozen=True)
class RosbridgeSettings:
    host: str = "192.168.1.166"
    port: int = 9090
    state_publish_hz: float = 3.0
    connect_delay: float = 1.0
    enabled: bool = True

    @property
    def uri(self) -> str:
        return f"ws://{self.host}:{self.port}"


@dataclass(frozen=True)
class KioskSettings:
    tick_interval: float = 1.0 / 30.0


@dataclass(frozen=True)
class Settings:
    """Complete kiosk configuration, one attribute per TOML table."""

    storage: StorageSettings = field(default_factory=StorageSettings)
    face_api: FaceApiSettings = field(default_factory=FaceApiSettings)
    training: TrainingSettings = field(default_factory=TrainingSettings)
    camera: CameraSettings = field(default_factory=CameraSettings)
    rosbridge: RosbridgeSettings = field(default_factory=RosbridgeSettings)
    kiosk: KioskSettings = field(default_factory=KioskSettings)


_SECTIONS: Dict[str, type] = {
    "storage": StorageSettings,
    "face_api": FaceApiSettings,
    "training": TrainingSettings,
    "camera": CameraSettings,
    "rosbridge": RosbridgeSettings,
    "kiosk": KioskSettings,
}


def _coerce(section: str, name: str, default: Any, value: Any) -> Any:
    expected = type(default)
    if expected is bool:
        if isinstance(value, bool):
            return value
    elif expected is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif expected is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif isinstance(value, expected):
        return value
    raise ConfigError(
        f"Invalid value for [{section}] {name}: expected {expected.__name__}, got {type(value).__name__}"
    )


def _build_section(section: str, cls: type, raw: Any) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Expected [{section}] to be a table, got {type(raw).__name__}")
    defaults = cls()
    known = {item.name: item for item in dataclasses.fields(cls)}
    values: Dict[str, Any] = {}
    for name, value in raw.items():
        if name not in known:
            _LOGGER.warning("Ignoring unknown setting [%s] %s", section, name)
            continue
        values[name] = _coerce(section, name, getattr(defaults, name), value)
    return cls(**values)


def _apply_env(settings: Settings, env: Mapping[str, str]) -> Settings:
    face_api = settings.face_api
    storage = settings.storage
    rosbridge = settings.rosbridge

    if env.get(ENV_API_KEY):
        face_api = dataclasses.replace(face_api, access_key=env[ENV_API_KEY])
    if env.get(ENV_STORAGE_ROOT):
        storage = dataclasses.replace(storage, root=env[ENV_STORAGE_ROOT])
    if env.get(ENV_ROSBRIDGE_HOST):
        rosbridge = dataclasses.replace(rosbridge, host=env[ENV_ROSBRIDGE_HOST])
    if env.get(ENV_ROSBRIDGE_PORT):
        try:
            port = int(env[ENV_ROSBRIDGE_PORT])
        except ValueError as exc:
            raise ConfigError(f"Invalid {ENV_ROSBRIDGE_PORT} value {env[ENV_ROSBRIDGE_PORT]!r}") from exc
        rosbridge = dataclasses.replace(rosbridge, port=port)

    return dataclasses.replace(settings, face_api=face_api, storage=storage, rosbridge=rosbridge)


def load_settings(
    path: Optional[Path | str] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load kiosk settings.

    Parameters
    ----------
    path:
        TOML file to read. A missing file (or ``None``) yields the defaults.
    env:
        Environment used for overrides; defaults to :data:`os.environ`.

    Returns
    -------
    Settings
        Parsed settings with environment overrides applied.
    """

    data: Mapping[str, Any] = {}
    if path is not None:
        resolved = Path(path)
        if resolved.exists():
            try:
                data = tomllib.loads(resolved.read_text(encoding="utf-8"))
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"Failed to parse kiosk configuration {resolved}: {exc}") from exc
            except OSError as exc:
                raise ConfigError(f"Unable to read kiosk configuration {resolved}: {exc}") from exc
        else:
            _LOGGER.info("No configuration at %s; using defaults", resolved)

    sections = {name: _build_section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()}
    settings = Settings(**sections)
    return _apply_env(settings, os.environ if env is None else env)


def settings_to_dict(settings: Settings) -> MutableMapping[str, Any]:
    return dataclasses.asdict(settings)


def save_settings(path: Path | str, settings: Settings) -> None:
    """Write ``settings`` to ``path`` as TOML."""

    resolved = Path(path)
    text = tomli_w.dumps(settings_to_dict(settings))
    if not text.endswith("\n"):
        text += "\n"
    resolved.parent.mkdir(parents=True, exist_ok=True)
    resolved.write_text(text, encoding="utf-8")
