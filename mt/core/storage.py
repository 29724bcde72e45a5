import json
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any
from mt.common.logger import log

#region === Results ===

class StorageStatus(Enum):
    OK = "ok"
    MISSING = "missing"
    CORRUPT = "corrupt"
    IO_ERROR = "io_error"

# What every store call hands back instead of raising. `value` is only meaningful when status is OK.
@dataclass(frozen=True)
class StorageResult:
    status: StorageStatus
    value: Any = None
    error: str | None = None

    @property
    def ok(self):
        return self.status is StorageStatus.OK

#endregion === Results ===

#region === JSON file store ===

# Key-value store where each key is one JSON document at <directory>/<key>.json.
class JsonFileStore:

    def __init__(self, directory):
        self.directory = Path(directory)

    def path_for(self, key):
        return self.directory / f"{key}.json"

    # Reads and parses the document under `key`.
    def get(self, key):
        path = self.path_for(key)
        if not path.exists():
            return StorageResult(StorageStatus.MISSING)
        try:
            with open(path, "r", encoding="utf-8") as f:
                value = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            log.warning(f"Stored value for '{key}' at '{path}' could not be parsed: {e}")
            return StorageResult(StorageStatus.CORRUPT, error=str(e))
        except OSError as e:
            log.error(f"Failed to read '{key}' from '{path}': {e}")
            return StorageResult(StorageStatus.IO_ERROR, error=str(e))
        return StorageResult(StorageStatus.OK, value)

    # Serializes `value` under `key`. Written to a temp file first so a failed write never truncates the old document.
    def put(self, key, value):
        path = self.path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            payload = json.dumps(value, indent=2)
        except (TypeError, ValueError) as e:
            log.error(f"Value for '{key}' is not JSON serializable: {e}")
            return StorageResult(StorageStatus.CORRUPT, error=str(e))
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except OSError as e:
            log.error(f"Failed to write '{key}' to '{path}': {e}")
            try: tmp_path.unlink(missing_ok=True)
            except OSError: pass
            return StorageResult(StorageStatus.IO_ERROR, error=str(e))
        log.debug(f"Saved '{key}' to '{path}'")
        return StorageResult(StorageStatus.OK, value)

    def delete(self, key):
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return StorageResult(StorageStatus.MISSING)
        except OSError as e:
            log.error(f"Failed to remove '{key}' at '{path}': {e}")
            return StorageResult(StorageStatus.IO_ERROR, error=str(e))
        log.debug(f"Removed '{key}' from '{path}'")
        return StorageResult(StorageStatus.OK)

#endregion === JSON file store ===
