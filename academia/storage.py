"""
Persistent key-value storage for the schedule and the study materials.

The engine only needs two operations from its persistence collaborator:

    get(key) -> str | None
    set(key, blob)

and two logical keys, SCHEDULE_KEY and MATERIALS_KEY. JsonFileStore keeps one
<key>.json file per key inside a data directory; MemoryStore keeps the blobs
in a dict and is used by tests and by callers that handle persistence
themselves.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

SCHEDULE_KEY = "schedule"
MATERIALS_KEY = "materials"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, blob: str) -> None: ...


def default_data_dir() -> Path:
    """
    Return the directory that holds schedule.json and materials.json.

    ACADEMIA_DATA_DIR overrides the default package location.
    Using a function instead of a constant makes testing easier,
    because tests can set the environment variable.
    """
    env = os.environ.get("ACADEMIA_DATA_DIR", "").strip()
    if env:
        return Path(env).expanduser()
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data"


class JsonFileStore:
    def __init__(self, data_dir: str | Path | None = None) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else default_data_dir()

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        # First run: file does not exist yet
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return None

    def set(self, key: str, blob: str) -> None:
        """
        Write the blob through a temp file + os.replace, so readers never see
        a half-written file.
        """
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}-", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(blob)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %s (%d bytes)", path, len(blob))


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.blobs: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.blobs.get(key)

    def set(self, key: str, blob: str) -> None:
        self.blobs[key] = blob


def load_records(store: KeyValueStore, key: str) -> list[dict[str, Any]]:
    """
    Load a JSON list of objects stored under key.

    Returns an empty list if the blob is missing, is not valid JSON, or is not
    a list. Non-object entries are dropped. Never raises for bad data.
    """
    blob = store.get(key)
    if blob is None or not blob.strip():
        return []
    try:
        data = json.loads(blob)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.warning("Ignoring corrupt %r state: %s", key, exc)
        return []
    if not isinstance(data, list):
        logger.warning("Ignoring %r state: expected a list, got %s", key, type(data).__name__)
        return []
    return [x for x in data if isinstance(x, dict)]


def save_records(store: KeyValueStore, key: str, records: list[dict[str, Any]]) -> None:
    store.set(key, json.dumps(records, indent=2, ensure_ascii=False))
