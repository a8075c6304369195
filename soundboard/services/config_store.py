"""
Document Store Service

File-based persistence for soundboard metadata and settings.
Uses pretty-printed JSON for human readability and easy editing.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import json
import os
import logging
import fcntl
from pathlib import Path
from typing import Any
from copy import deepcopy

logger = logging.getLogger(__name__)

# Document file names, relative to the data directory
DOCUMENT_FILES = {
    "sounds": "sounds-meta.json",        # Per-sound metadata, ordering, tags, lock
    "guests": "guest-data.json",         # Guest access, block list, history, upload caps
    "pending": "pending-uploads.json",   # Moderation queue
    "server": "server-state.json",       # Volume and last voice channel
}


class ConfigStore:
    """
    Whole-document JSON store.

    Reads never fail: a missing or corrupt document yields a copy of the
    supplied default. Writes go to a temp file and are renamed into place.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._ensure_data_dir()

    def _ensure_data_dir(self):
        """Create data directory if it doesn't exist."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Data directory: {self.data_dir}")
        except Exception as e:
            logger.error(f"Failed to create data directory {self.data_dir}: {e}")
            raise

    def _get_path(self, name: str) -> Path:
        if name not in DOCUMENT_FILES:
            raise ValueError(f"Unknown document: {name}. Valid: {list(DOCUMENT_FILES.keys())}")
        return self.data_dir / DOCUMENT_FILES[name]

    def load(self, name: str, default: Any = None) -> Any:
        """
        Load a document.

        Args:
            name: Document name (sounds, guests, pending, server)
            default: Value returned when the file is missing or unreadable

        Returns:
            The parsed document or a deep copy of default
        """
        path = self._get_path(name)

        if not path.exists():
            logger.debug(f"Document {path} not found, using default")
            return deepcopy(default)

        try:
            with open(path, 'r', encoding='utf-8') as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = json.load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {path}: {e}")
            return deepcopy(default)
        except Exception as e:
            logger.error(f"Failed to load document {name}: {e}")
            return deepcopy(default)

        if default is not None and not isinstance(data, type(default)):
            logger.error(f"Unexpected top-level type in {path}, using default")
            return deepcopy(default)
        return data

    def save(self, name: str, data: Any) -> bool:
        """
        Save a document atomically (write-to-temp-then-rename).

        Returns:
            True if successful, False otherwise
        """
        path = self._get_path(name)
        temp_path = path.with_suffix('.tmp')

        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)

            os.replace(temp_path, path)
            logger.debug(f"Saved document: {name}")
            return True

        except Exception as e:
            logger.error(f"Failed to save document {name}: {e}")
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass
            return False
