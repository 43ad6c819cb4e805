"""
I/O utilities: the persistent source tree cache and JSONL output.
"""

import hashlib
import json
import os
import pickle
import sys
import tempfile
from pathlib import Path
from typing import Optional, TextIO, Union

from loguru import logger

from .errors import CacheLoadError, CacheMissError, CacheSaveError, UnreadableLineError
from .models import LogMapping

CACHE_VERSION = 1
CACHE_DIR_ENV = "LOGSOURCE_CACHE_DIR"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "logsource"


class Cache:
    """
    Stores one pickled SourceTree per source root.

    Entries are written to a temporary file and renamed into place, so a
    reader never sees a partial entry.  A missing or unreadable cache only
    costs a full re-extraction.
    """

    def __init__(self, location: Union[str, Path]):
        self.location = Path(location)

    @classmethod
    def open(cls, location: Optional[Union[str, Path]] = None) -> "Cache":
        """Open the cache at ``location``, $LOGSOURCE_CACHE_DIR or the default."""
        return cls(location or os.environ.get(CACHE_DIR_ENV) or DEFAULT_CACHE_DIR)

    def entry_path(self, root: Union[str, Path]) -> Path:
        digest = hashlib.md5(str(root).encode("utf-8")).hexdigest()[:16]
        return self.location / f"cache.{digest}.pkl"

    def load(self, root: Path):
        """
        Load the cached SourceTree of a root.

        Raises:
            CacheMissError: there is no entry for the root
            CacheLoadError: the entry is unreadable or from another version
        """
        path = self.entry_path(root)
        if not path.exists():
            raise CacheMissError(root)
        try:
            with open(path, "rb") as f:
                payload = pickle.load(f)
        except (pickle.PickleError, OSError, EOFError, AttributeError, ImportError,
                TypeError, ValueError) as e:
            raise CacheLoadError(root, str(e)) from e

        if not isinstance(payload, dict) or payload.get("version") != CACHE_VERSION:
            raise CacheLoadError(root, "cache version mismatch")
        if payload.get("root") != str(root):
            raise CacheLoadError(root, f"entry belongs to {payload.get('root')}")
        logger.debug("Loaded cached source tree for {} from {}", root, path)
        return payload["tree"]

    def save(self, root: Path, tree) -> None:
        """
        Save the SourceTree of a root.

        Raises:
            CacheSaveError: the entry could not be written
        """
        path = self.entry_path(root)
        payload = {"version": CACHE_VERSION, "root": str(root), "tree": tree}
        tmp_name = None
        try:
            self.location.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.location, prefix=".cache.", suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
            os.replace(tmp_name, path)
        except (OSError, pickle.PickleError, TypeError, AttributeError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheSaveError(root, str(e)) from e
        logger.debug("Saved source tree for {} to {}", root, path)


class JSONLWriter:
    """
    Writer for JSONL (JSON Lines) output.

    Accepts a file path, or an already open text stream that is left open.
    """

    def __init__(self, target: Union[str, Path, TextIO, None] = None):
        self.target = target if target is not None else sys.stdout
        self.file_handle: Optional[TextIO] = None
        self._owned = False

    def __enter__(self):
        if isinstance(self.target, (str, Path)):
            self.file_handle = open(self.target, "w", encoding="utf-8")
            self._owned = True
        else:
            self.file_handle = self.target
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.file_handle and self._owned:
            self.file_handle.close()
        elif self.file_handle:
            self.file_handle.flush()

    def _write(self, record: dict) -> None:
        if not self.file_handle:
            raise ValueError("JSONLWriter not opened")
        json.dump(record, self.file_handle, ensure_ascii=False)
        self.file_handle.write("\n")

    def write_mapping(self, mapping: Optional[LogMapping]) -> None:
        """Write one mapping; None is written as an empty object."""
        self._write(mapping.to_dict() if mapping is not None else {})

    def write_error(self, error: UnreadableLineError) -> None:
        self._write({"error": {"line": error.line, "message": str(error)}})
