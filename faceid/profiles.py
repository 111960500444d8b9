"""Directory-per-user profile persistence."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

_LOGGER = logging.getLogger(__name__)

INFO_FILE = "info.txt"
IMAGE_LABEL = "Image"
IMAGE_DISPLAY_LABEL = "Photo"
DELETED_IMG_LABEL = "deleted"
NO_PROFILE_PICTURE = "none"

_IMAGE_KEY_PATTERN = re.compile(rf"^{IMAGE_LABEL} (\d+)$")


class ProfileDataError(ValueError):
    """Raised when a stored profile document cannot be parsed."""


@dataclass
class ProfileImage:
    """One enrolled face image belonging to a profile.

    ``index_number`` is the stable slot used in the file name and never reused;
    ``number`` is the position among the profile's live images.
    """

    owner_folder: str
    index_number: int
    number: int
    path: str
    persisted_face_id: str

    @property
    def display_name(self) -> str:
        return f"{IMAGE_DISPLAY_LABEL} {self.number + 1}"

    @property
    def identifying_name(self) -> str:
        return f"{self.owner_folder}/{IMAGE_LABEL} {self.index_number}"


@dataclass
class Profile:
    """Identity record persisted under ``<root>/<folder_name>``."""

    display_name: str
    folder_name: str
    person_id: str
    image_count: int = 0
    images: List[ProfileImage] = field(default_factory=list)
    profile_picture: str = NO_PROFILE_PICTURE

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON document written to ``info.txt``.

        Every slot ever allocated is listed; slots whose image was deleted are
        exported as ``"deleted"`` so their index is not reused.
        """

        live = {image.index_number: image for image in self.images}
        images: Dict[str, Any] = {}
        for index in range(self.image_count):
            image = live.get(index)
            key = f"{IMAGE_LABEL} {index}"
            if image is None:
                images[key] = DELETED_IMG_LABEL
            else:
                images[key] = {"path": image.path, "persistedFaceId": image.persisted_face_id}
        return {
            "personId": self.person_id,
            "displayName": self.display_name,
            "count": self.image_count,
            "profilePic": self.profile_picture or NO_PROFILE_PICTURE,
            "images": images,
        }

    @classmethod
    def from_dict(cls, folder_name: str, data: Mapping[str, Any]) -> "Profile":
        try:
            profile = cls(
                display_name=str(data["displayName"]),
                folder_name=folder_name,
                person_id=str(data["personId"]),
                image_count=int(data["count"]),
                profile_picture=str(data.get("profilePic", NO_PROFILE_PICTURE)),
            )
            raw_images = data["images"]
        except (KeyError, TypeError, ValueError) as exc:
            raise ProfileDataError(f"invalid profile document: {exc}") from exc
        if not isinstance(raw_images, Mapping):
            raise ProfileDataError("images must be a JSON object")
        profile.images = _parse_images(folder_name, raw_images)
        return profile


def _parse_images(folder_name: str, raw_images: Mapping[str, Any]) -> List[ProfileImage]:
    slots: List[tuple[int, Mapping[str, Any]]] = []
    for key, value in raw_images.items():
        if value == DELETED_IMG_LABEL:
            continue
        match = _IMAGE_KEY_PATTERN.match(str(key))
        if match is None:
            raise ProfileDataError(f"unexpected image key {key!r}")
        if not isinstance(value, Mapping):
            raise ProfileDataError(f"image entry {key!r} must be an object")
        slots.append((int(match.group(1)), value))
    slots.sort(key=lambda item: item[0])

    images: List[ProfileImage] = []
    for index, info in slots:
        try:
            path = str(info["path"])
            persisted_face_id = str(info["persistedFaceId"])
        except KeyError as exc:
            raise ProfileDataError(f"image {index} is missing {exc.args[0]!r}") from exc
        images.append(
            ProfileImage(
                owner_folder=folder_name,
                index_number=index,
                number=len(images),
                path=path,
                persisted_face_id=persisted_face_id,
            )
        )
    return images


class ProfileStore:
    """Load and save profiles beneath a storage root directory.

    Each profile owns one folder holding ``info.txt`` (indented JSON) and its
    enrolled ``Image <n>.png`` files.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def ensure_root(self) -> Path:
        self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    def folder_path(self, folder_name: str) -> Path:
        return self._root / folder_name

    def info_path(self, folder_name: str) -> Path:
        return self.folder_path(folder_name) / INFO_FILE

    def image_path(self, profile: Profile, index_number: int) -> Path:
        return self.folder_path(profile.folder_name) / f"{IMAGE_LABEL} {index_number}.png"

    # -- creation ---------------------------------------------------------
    def allocate_folder_name(self, display_name: str) -> str:
        """Return a folder name for ``display_name`` that does not collide.

        When ``<root>/<display_name>`` exists, the name becomes
        ``"<display_name> (<n>)"`` where ``n`` counts existing folders whose
        names start with ``display_name``.
        """

        if not self.folder_path(display_name).exists():
            return display_name
        count = sum(
            1
            for entry in self._root.iterdir()
            if entry.is_dir() and entry.name.startswith(display_name)
        )
        return f"{display_name} ({count})"

    def create_profile(self, display_name: str, person_id: str) -> Profile:
        self.ensure_root()
        folder_name = self.allocate_folder_name(display_name)
        self.folder_path(folder_name).mkdir(parents=True, exist_ok=False)
        profile = Profile(
            display_name=display_name,
            folder_name=folder_name,
            person_id=person_id,
        )
        self.export(profile)
        _LOGGER.info("Created profile %s (personId=%s)", folder_name, person_id)
        return profile

    # -- persistence ------------------------------------------------------
    def export(self, profile: Profile) -> None:
        """Write ``profile`` to its ``info.txt``."""

        _LOGGER.debug(
            "Exporting profile %s (count=%d, live images=%d)",
            profile.folder_name,
            profile.image_count,
            len(profile.images),
        )
        path = self.info_path(profile.folder_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(profile.to_dict(), indent=2), encoding="utf-8")

    def load(self, folder_name: str) -> Optional[Profile]:
        """Return the profile stored in ``folder_name`` or ``None`` when unreadable."""

        path = self.info_path(folder_name)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, Mapping):
                raise ProfileDataError("expected a JSON object")
            return Profile.from_dict(folder_name, data)
        except (OSError, json.JSONDecodeError, ProfileDataError) as exc:
            _LOGGER.error("[data loading] %s: %s", path, exc)
            return None

    def load_all(self) -> List[Profile]:
        if not self._root.is_dir():
            return []
        profiles: List[Profile] = []
        for entry in sorted(self._root.iterdir()):
            if not entry.is_dir() or not (entry / INFO_FILE).exists():
                continue
            profile = self.load(entry.name)
            if profile is not None:
                profiles.append(profile)
        return profiles

    def name_for_person_id(self, person_id: str) -> Optional[str]:
        """Return the display name of the profile owning ``person_id``."""

        wanted = person_id.lower()
        for profile in self.load_all():
            if profile.person_id.lower() == wanted:
                return profile.display_name
        return None

    # -- images -----------------------------------------------------------
    def add_image(self, profile: Profile, data: bytes, persisted_face_id: str) -> ProfileImage:
        """Write ``data`` into the next free slot of ``profile`` and export it."""

        index = profile.image_count
        path = self.image_path(profile, index)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        image = ProfileImage(
            owner_folder=profile.folder_name,
            index_number=index,
            number=len(profile.images),
            path=str(path),
            persisted_face_id=persisted_face_id,
        )
        profile.image_count = index + 1
        profile.images.append(image)
        self.export(profile)
        return image

    def remove_image(self, profile: Profile, image: ProfileImage) -> None:
        """Drop ``image`` from ``profile``, export it, then delete the file."""

        profile.images = [
            entry for entry in profile.images if entry.index_number != image.index_number
        ]
        self.export(profile)
        try:
            Path(image.path).unlink()
        except FileNotFoundError:
            _LOGGER.warning("Image file already gone: %s", image.path)


__all__ = [
    "DELETED_IMG_LABEL",
    "INFO_FILE",
    "NO_PROFILE_PICTURE",
    "Profile",
    "ProfileDataError",
    "ProfileImage",
    "ProfileStore",
]
