# ============================================
#   CodeCollab — JSON Persistence
#   Keyed collections (users, rooms) + append-only logs (messages, code)
# ============================================

import os
import re
import copy
import json
import threading
from datetime import datetime, timezone

from collab.logger import log_info, log_warning, log_exception


class StorageError(Exception):
    """Raised when a write to the document store fails."""


class DuplicateKeyError(StorageError):
    pass


_KEY_REGEX = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =====================================================
#   FILESYSTEM HELPERS
# =====================================================

def _safe_read_json(path: str, default):
    """
    Safe JSON reader with fallback.
    Returns `default` on missing file or parse errors.
    """
    if not path or not os.path.exists(path):
        return default

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return default
    except Exception:
        log_exception("storage", f"Unreadable JSON file, using default: {path}")
        return default


def _atomic_write_json(path: str, payload):
    """
    Atomic JSON write to avoid corruption on crash/restart:
    write temp file then os.replace().
    """
    if not path:
        raise ValueError("Missing path")

    base = os.path.dirname(path)
    if base:
        os.makedirs(base, exist_ok=True)

    tmp_path = f"{path}.tmp"
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except Exception:
        try:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        except OSError:
            pass
        raise


# =====================================================
#   KEYED COLLECTION
# =====================================================

class JsonCollection:
    """
    A set of documents keyed by a string id, persisted in one JSON file.

    Every write goes through the collection lock and is flushed to disk
    before returning, so a read-modify-write done with `update()` is atomic
    with respect to any other writer of the same collection. Callers always
    receive copies; mutating a returned document never touches the store.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.RLock()

        data = _safe_read_json(path, {})
        if not isinstance(data, dict):
            log_warning("storage", f"{path} invalid format (expected dict), resetting.")
            data = {}
        self._docs = data

    def _flush(self, previous: dict):
        try:
            _atomic_write_json(self.path, self._docs)
        except Exception as e:
            self._docs = previous
            log_exception("storage", f"Failed writing {self.path}")
            raise StorageError(f"Failed writing {os.path.basename(self.path)}") from e

    def get(self, key):
        with self._lock:
            doc = self._docs.get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def find(self, predicate=None):
        with self._lock:
            return [
                copy.deepcopy(doc)
                for doc in self._docs.values()
                if predicate is None or predicate(doc)
            ]

    def values(self):
        return self.find()

    def insert(self, key, doc):
        with self._lock:
            if key in self._docs:
                raise DuplicateKeyError(f"Duplicate key: {key}")

            previous = dict(self._docs)
            self._docs[key] = copy.deepcopy(doc)
            self._flush(previous)
            return copy.deepcopy(doc)

    def update(self, key, mutator):
        """
        Apply `mutator(doc)` to the stored document under the collection lock.

        The mutator edits the document in place and returns True when it
        changed something; nothing is written otherwise. Returns a copy of
        the resulting document, or None when `key` does not exist.
        """
        with self._lock:
            current = self._docs.get(key)
            if current is None:
                return None

            doc = copy.deepcopy(current)
            if not mutator(doc):
                return doc

            previous = dict(self._docs)
            self._docs[key] = doc
            self._flush(previous)
            return copy.deepcopy(doc)

    def delete(self, key):
        with self._lock:
            if key not in self._docs:
                return False
            previous = dict(self._docs)
            self._docs.pop(key, None)
            self._flush(previous)
            return True

    def __len__(self):
        with self._lock:
            return len(self._docs)


# =====================================================
#   APPEND-ONLY LOG (one file per key)
# =====================================================

class JsonLog:
    """
    Append-only record lists, one JSON file per key (e.g. per room).
    """

    def __init__(self, directory: str):
        self.directory = directory
        self._lock = threading.RLock()
        os.makedirs(directory, exist_ok=True)

    def _path(self, key):
        if not isinstance(key, str) or not _KEY_REGEX.fullmatch(key):
            raise StorageError(f"Invalid log key: {key!r}")
        return os.path.join(self.directory, f"{key}.json")

    def read(self, key):
        path = self._path(key)
        with self._lock:
            data = _safe_read_json(path, [])
            return data if isinstance(data, list) else []

    def append(self, key, record):
        path = self._path(key)
        with self._lock:
            records = self.read(key)
            records.append(record)
            try:
                _atomic_write_json(path, records)
            except Exception as e:
                log_exception("storage", f"Error writing log file: {path}")
                raise StorageError(f"Failed appending to {key}") from e
            return len(records)

    def count(self, key):
        return len(self.read(key))


# =====================================================
#   STORE BUNDLE
# =====================================================

class Storage:
    """
    The document store used by the whole server.

    Created once at startup and injected into the realtime router and the
    HTTP routes. `users` and `rooms` are keyed collections; `messages` and
    `code` are per-room append-only logs.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)

        self.users = JsonCollection(os.path.join(data_dir, "users.json"))
        self.rooms = JsonCollection(os.path.join(data_dir, "rooms.json"))
        self.messages = JsonLog(os.path.join(data_dir, "messages"))
        self.code = JsonLog(os.path.join(data_dir, "code"))

        log_info(
            "storage",
            f"Store ready at {data_dir} (users={len(self.users)}, rooms={len(self.rooms)}).",
        )
