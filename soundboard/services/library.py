"""
Sound Library Service

Sound listing, ordering, per-sound metadata, tags and the playback lock,
all kept in the single ``sounds`` document.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import logging
import re
from pathlib import Path
from typing import Awaitable, Callable, Optional

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Sound, UserRole
from .config_store import ConfigStore

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = (".mp3", ".wav", ".ogg")
MEDIA_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
}
SAFE_NAME = re.compile(r"^[A-Za-z0-9._-]+$")
UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
MAX_TAG_LENGTH = 50

# Global keys in the sounds document; never treated as filenames
ORDER_KEY = "_order"
TAG_ORDER_KEY = "_tagOrder"
TAG_HIDDEN_KEY = "_tagHidden"
LOCKED_KEY = "_playbackLocked"
LOCKED_BY_KEY = "_playbackLockedBy"


def is_audio_file(name: str) -> bool:
    """Check if a filename has a supported audio extension."""
    return name.lower().endswith(AUDIO_EXTENSIONS)


def media_type_for(name: str) -> str:
    return MEDIA_TYPES.get(Path(name).suffix.lower(), "application/octet-stream")


def sanitize_filename(original: str) -> str:
    """
    Turn an uploaded file name into a safe sound filename.

    Directory components are dropped, characters outside ``[A-Za-z0-9._-]``
    become underscores and the extension is lowercased.
    """
    base = Path((original or "").replace("\\", "/")).name
    stem, suffix = Path(base).stem, Path(base).suffix.lower()
    if suffix not in AUDIO_EXTENSIONS:
        raise ValidationError("Only .mp3, .wav and .ogg files are allowed")
    stem = UNSAFE_CHARS.sub("_", stem).strip("._") or "sound"
    return f"{stem}{suffix}"


def validate_filename(filename) -> str:
    """Validate a filename supplied by a client (no path components allowed)."""
    if not filename or not isinstance(filename, str):
        raise ValidationError("Filename required")
    if not SAFE_NAME.match(filename) or filename.startswith(".") or not is_audio_file(filename):
        raise ValidationError("Invalid filename")
    return filename


def normalize_tag(name) -> str:
    if not isinstance(name, str):
        raise ValidationError("Tag name must be a string")
    name = name.strip()
    if not name:
        raise ValidationError("Tag name required")
    if len(name) > MAX_TAG_LENGTH:
        raise ValidationError(f"Tag name must be at most {MAX_TAG_LENGTH} characters")
    if name.startswith("_"):
        raise ValidationError("Tag name cannot start with an underscore")
    return name


def entry_tags(entry: dict) -> list[str]:
    """Tags of a metadata entry; a legacy ``folder`` is a single tag."""
    tags = entry.get("tags")
    if isinstance(tags, list):
        return [t for t in tags if isinstance(t, str)]
    folder = entry.get("folder")
    if isinstance(folder, str) and folder:
        return [folder]
    return []


def _set_entry_tags(entry: dict, tags: list[str]):
    entry.pop("folder", None)
    if tags:
        entry["tags"] = tags
    else:
        entry.pop("tags", None)


def _string_list(value, field: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field} must be an array of strings")
    return value


class SoundLibrary:
    """Sounds on disk plus their metadata document."""

    def __init__(
        self,
        store: ConfigStore,
        sounds_dir: Path,
        probe: Callable[[Path], Awaitable[Optional[float]]],
    ):
        self.store = store
        self.sounds_dir = Path(sounds_dir)
        self.probe = probe

    # ============ Document access ============

    def _load(self) -> dict:
        return self.store.load("sounds", {})

    def _save(self, doc: dict):
        if not self.store.save("sounds", doc):
            logger.warning("Failed to persist sound metadata")

    def _entries(self, doc: dict):
        for key, value in doc.items():
            if not key.startswith("_") and isinstance(value, dict):
                yield key, value

    # ============ Files ============

    def path_for(self, filename: str) -> Path:
        """Resolve a client-supplied filename inside the sounds directory."""
        return self.sounds_dir / validate_filename(filename)

    def exists(self, filename: str) -> bool:
        return (self.sounds_dir / filename).is_file()

    def require(self, filename: str) -> Path:
        path = self.path_for(filename)
        if not path.is_file():
            raise NotFoundError("File not found")
        return path

    def list_files(self) -> list[str]:
        if not self.sounds_dir.exists():
            return []
        return sorted(
            p.name for p in self.sounds_dir.iterdir()
            if p.is_file() and is_audio_file(p.name) and not p.name.startswith(".")
        )

    # ============ Sounds ============

    def list_sounds(self) -> list[Sound]:
        """
        Sounds present on disk, in saved order.

        Files missing from the saved order follow alphabetically. Metadata
        entries without a file are skipped but left in the document.
        """
        doc = self._load()
        files = self.list_files()
        present = set(files)

        ordered = []
        seen = set()
        for name in doc.get(ORDER_KEY, []):
            if isinstance(name, str) and name in present and name not in seen:
                ordered.append(name)
                seen.add(name)
        ordered.extend(f for f in files if f not in seen)

        return [self._sound(doc, name) for name in ordered]

    def _sound(self, doc: dict, filename: str) -> Sound:
        entry = doc.get(filename) if isinstance(doc.get(filename), dict) else {}
        return Sound(
            filename=filename,
            display_name=entry.get("displayName") or filename,
            duration=entry.get("duration"),
            tags=entry_tags(entry),
        )

    def get_sound(self, filename: str) -> Sound:
        self.require(filename)
        return self._sound(self._load(), filename)

    def set_order(self, order) -> list[str]:
        order = _string_list(order, "order")
        doc = self._load()
        doc[ORDER_KEY] = list(dict.fromkeys(order))
        self._save(doc)
        return doc[ORDER_KEY]

    def update_metadata(
        self,
        filename: str,
        display_name: Optional[str] = None,
        tags: Optional[list] = None,
    ) -> Sound:
        """Patch display name and/or tags of a sound."""
        self.require(filename)
        if tags is not None:
            tags = list(dict.fromkeys(normalize_tag(t) for t in _string_list(tags, "tags")))

        doc = self._load()
        if not isinstance(doc.get(filename), dict):
            doc[filename] = {}
        entry = doc[filename]

        if display_name is not None:
            display_name = display_name.strip()
            if display_name and display_name != filename:
                entry["displayName"] = display_name
            else:
                entry.pop("displayName", None)

        if tags is not None:
            _set_entry_tags(entry, tags)
            tag_order = doc.setdefault(TAG_ORDER_KEY, [])
            for tag in tags:
                if tag not in tag_order:
                    tag_order.append(tag)

        self._save(doc)
        return self._sound(doc, filename)

    def cached_duration(self, filename: str) -> Optional[float]:
        entry = self._load().get(filename)
        if isinstance(entry, dict):
            return entry.get("duration")
        return None

    def set_duration(self, filename: str, duration: float):
        doc = self._load()
        if not isinstance(doc.get(filename), dict):
            doc[filename] = {}
        doc[filename]["duration"] = duration
        self._save(doc)

    async def ensure_duration(self, filename: str) -> Optional[float]:
        """Cached duration, probing and caching it on first use."""
        duration = self.cached_duration(filename)
        if duration is not None:
            return duration
        duration = await self.probe(self.sounds_dir / filename)
        if duration is not None:
            self.set_duration(filename, duration)
        return duration

    # ============ Tags ============

    def _all_tags(self, doc: dict) -> list[str]:
        tags = [t for t in doc.get(TAG_ORDER_KEY, []) if isinstance(t, str)]
        known = set(tags)
        extra = set()
        for _, entry in self._entries(doc):
            extra.update(t for t in entry_tags(entry) if t not in known)
        return tags + sorted(extra)

    def get_tags(self) -> dict:
        doc = self._load()
        tags = self._all_tags(doc)
        hidden = [t for t in doc.get(TAG_HIDDEN_KEY, []) if t in tags]
        return {"tags": tags, "hidden": hidden}

    def update_tags(self, order: Optional[list] = None, hidden: Optional[list] = None) -> dict:
        """Replace the tag order and/or hidden set."""
        if order is not None:
            order = list(dict.fromkeys(normalize_tag(t) for t in _string_list(order, "order")))
        if hidden is not None:
            hidden = list(dict.fromkeys(normalize_tag(t) for t in _string_list(hidden, "hidden")))

        doc = self._load()
        if order is not None:
            doc[TAG_ORDER_KEY] = order
        if hidden is not None:
            doc[TAG_HIDDEN_KEY] = hidden
        self._save(doc)
        return self.get_tags()

    def create_tag(self, name) -> dict:
        name = normalize_tag(name)
        doc = self._load()
        if name in self._all_tags(doc):
            raise ConflictError(f"Tag '{name}' already exists")
        doc.setdefault(TAG_ORDER_KEY, []).append(name)
        self._save(doc)
        return self.get_tags()

    def rename_tag(self, old_name, new_name) -> dict:
        """
        Rename a tag everywhere it appears.

        Sound entries, the order list and the hidden list are rewritten in a
        single save. Renaming onto an existing tag is refused untouched.
        """
        old_name = normalize_tag(old_name)
        new_name = normalize_tag(new_name)

        doc = self._load()
        tags = self._all_tags(doc)
        if old_name not in tags:
            raise NotFoundError(f"Tag '{old_name}' not found")
        if new_name == old_name:
            return self.get_tags()
        if new_name in tags:
            raise ConflictError(f"Tag '{new_name}' already exists")

        for _, entry in self._entries(doc):
            current = entry_tags(entry)
            if old_name in current:
                _set_entry_tags(entry, [new_name if t == old_name else t for t in current])

        doc[TAG_ORDER_KEY] = [new_name if t == old_name else t for t in tags]
        doc[TAG_HIDDEN_KEY] = [
            new_name if t == old_name else t for t in doc.get(TAG_HIDDEN_KEY, [])
        ]
        self._save(doc)
        return self.get_tags()

    def set_tag_hidden(self, name, hidden: bool) -> dict:
        name = normalize_tag(name)
        doc = self._load()
        if name not in self._all_tags(doc):
            raise NotFoundError(f"Tag '{name}' not found")

        current = [t for t in doc.get(TAG_HIDDEN_KEY, []) if t != name]
        if hidden:
            current.append(name)
        doc[TAG_HIDDEN_KEY] = current
        self._save(doc)
        return self.get_tags()

    def delete_tag(self, name) -> dict:
        name = normalize_tag(name)
        doc = self._load()
        if name not in self._all_tags(doc):
            raise NotFoundError(f"Tag '{name}' not found")

        for _, entry in self._entries(doc):
            current = entry_tags(entry)
            if name in current:
                _set_entry_tags(entry, [t for t in current if t != name])

        doc[TAG_ORDER_KEY] = [t for t in doc.get(TAG_ORDER_KEY, []) if t != name]
        doc[TAG_HIDDEN_KEY] = [t for t in doc.get(TAG_HIDDEN_KEY, []) if t != name]
        self._save(doc)
        return self.get_tags()

    # ============ Playback lock ============

    def get_lock(self) -> tuple[bool, Optional[UserRole]]:
        doc = self._load()
        locked = bool(doc.get(LOCKED_KEY, False))
        if not locked:
            return False, None
        try:
            locked_by = UserRole(doc.get(LOCKED_BY_KEY, UserRole.ADMIN.value))
        except ValueError:
            locked_by = UserRole.ADMIN
        return True, locked_by

    def set_lock(self, locked: bool, role: UserRole):
        doc = self._load()
        doc[LOCKED_KEY] = bool(locked)
        if locked:
            doc[LOCKED_BY_KEY] = role.value
        else:
            doc.pop(LOCKED_BY_KEY, None)
        self._save(doc)
