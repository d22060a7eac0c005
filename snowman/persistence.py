#!/usr/bin/env python3
"""
Persistence Adapter

Copies the save-relevant part of a running story in and out of a key-value
store. One record per story, stored as JSON under "<normalized-name>.save":

    {"state": {...}, "history": [1, 4, 7], "currentCheckpoint": "Chapter 2"}

Stores hold strings only, like browser localStorage:
- MemoryStore: a dict, with an optional byte quota
- JsonFileStore: one file per key in a directory, written under a file lock.
  Key files are named "key-<percent-encoded key>"
"""

import copy
import fcntl
import json
import logging
import os
import re
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .errors import PersistenceError, RestoreFailed

logger = logging.getLogger(__name__)

SAVE_SUFFIX = '.save'

# Key files never start with a dot, so they cannot collide with .lock or .tmp-*
KEY_FILE_PREFIX = 'key-'


# =============================================================================
# SAVE RECORD
# =============================================================================

def save_key(story_name: str) -> str:
    """Derive the store key for a story.

    Lower-cases the name, strips everything that is not a word character or a
    space, and turns each run of spaces into a hyphen.

    Examples:
        >>> save_key("The Lost Lighthouse!")
        'the-lost-lighthouse.save'
    """
    name = story_name.lower()
    name = re.sub(r'[^\w ]+', '', name, flags=re.ASCII)
    name = re.sub(r' +', '-', name)
    return f"{name}{SAVE_SUFFIX}"


@dataclass
class SaveRecord:
    """Serializable snapshot of story state and navigation."""
    state: Dict[str, Any] = field(default_factory=dict)
    history: List[int] = field(default_factory=list)
    current_checkpoint: str = ''

    def to_dict(self) -> Dict:
        return {
            'state': copy.deepcopy(self.state),
            'history': list(self.history),
            'currentCheckpoint': self.current_checkpoint,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> 'SaveRecord':
        """Validate and build a record.

        Raises:
            RestoreFailed: If a field is missing, has the wrong type, or the
                history is empty
        """
        if not isinstance(data, dict):
            raise RestoreFailed("Save record is not an object")

        missing = [key for key in ('state', 'history', 'currentCheckpoint') if key not in data]
        if missing:
            raise RestoreFailed(f"Save record is missing {', '.join(missing)}")

        state = data['state']
        history = data['history']
        checkpoint = data['currentCheckpoint']

        if not isinstance(state, dict):
            raise RestoreFailed("Save record state is not an object")
        if not isinstance(history, list) or not history:
            raise RestoreFailed("Save record history is empty")
        if not all(isinstance(pid, int) and not isinstance(pid, bool) for pid in history):
            raise RestoreFailed("Save record history contains non-integer ids")
        if not isinstance(checkpoint, str):
            raise RestoreFailed("Save record checkpoint is not a string")

        return cls(state=state, history=list(history), current_checkpoint=checkpoint)

    @classmethod
    def from_json(cls, text: str) -> 'SaveRecord':
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RestoreFailed(f"Save record is not valid JSON: {e}") from e
        return cls.from_dict(data)


# =============================================================================
# KEY-VALUE STORES
# =============================================================================

class KeyValueStore:
    """String key-value store interface."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryStore(KeyValueStore):
    """Dict-backed store. A quota (in bytes of stored values) is optional."""

    def __init__(self, quota: Optional[int] = None):
        self.data: Dict[str, str] = {}
        self.quota = quota

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota is not None:
            used = sum(len(v.encode('utf-8')) for k, v in self.data.items() if k != key)
            if used + len(value.encode('utf-8')) > self.quota:
                raise PersistenceError(f"Quota of {self.quota} bytes exceeded writing '{key}'")
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FileLock:
    """Context manager for file-based locking."""

    def __init__(self, lock_path: Path, timeout: float = 10.0):
        self.lock_path = lock_path
        self.timeout = timeout
        self.lock_file = None

    def __enter__(self):
        self.lock_file = open(self.lock_path, 'w')
        start = time.time()
        while True:
            try:
                fcntl.flock(self.lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return self
            except BlockingIOError:
                if time.time() - start > self.timeout:
                    self.lock_file.close()
                    raise PersistenceError(f"Could not acquire lock on {self.lock_path} within {self.timeout}s")
                time.sleep(0.01)

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.lock_file:
            fcntl.flock(self.lock_file.fileno(), fcntl.LOCK_UN)
            self.lock_file.close()


class JsonFileStore(KeyValueStore):
    """One file per key inside a directory.

    Keys are percent-encoded behind a fixed prefix, so any string is a valid
    key and none can name a path outside the directory:

        "the-cave.save" -> <directory>/key-the-cave.save
        ".save"         -> <directory>/key-.save
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.lock_path = self.directory / '.lock'

    def _path(self, key: str) -> Path:
        return self.directory / f"{KEY_FILE_PREFIX}{quote(key, safe='')}"

    def _ensure_dir(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Store directory {self.directory} unavailable: {e}") from e

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding='utf-8')
        except (IOError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        self._ensure_dir()
        with FileLock(self.lock_path):
            try:
                # Write to a temp file first so readers never see a partial record
                fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix='.tmp-')
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except OSError as e:
                raise PersistenceError(f"Failed to write {path}: {e}") from e
        logger.debug(f"Wrote {len(value)} chars to {path}")

    def delete(self, key: str) -> None:
        path = self._path(key)
        if not self.directory.exists():
            return
        with FileLock(self.lock_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise PersistenceError(f"Failed to delete {path}: {e}") from e


# =============================================================================
# SAVE STORE
# =============================================================================

class SaveStore:
    """Reads and writes the SaveRecord of one story."""

    def __init__(self, store: KeyValueStore, story_name: str):
        self.store = store
        self.key = save_key(story_name)

    def exists(self) -> bool:
        """Check for a record.

        Raises:
            PersistenceError: If the store could not be read
        """
        return self.key in self.store

    def write(self, record: SaveRecord) -> None:
        try:
            data = record.to_json()
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Story state is not serializable: {e}") from e
        self.store.set(self.key, data)
        logger.info(f"Saved '{self.key}' ({len(record.history)} passages in history)")

    def read(self) -> SaveRecord:
        """Load the record.

        Raises:
            RestoreFailed: If there is no record, it is malformed, or the
                store could not be read
        """
        try:
            data = self.store.get(self.key)
        except PersistenceError as e:
            raise RestoreFailed(str(e)) from e

        if data is None:
            raise RestoreFailed(f"No save found for '{self.key}'")

        return SaveRecord.from_json(data)

    def delete(self) -> None:
        self.store.delete(self.key)
        logger.info(f"Deleted save '{self.key}'")
