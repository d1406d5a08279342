from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import List, Union

from .errors import PersistenceError
from .storage import FallbackStore


DEFAULT_CACHE_PATH = Path("instance") / "recipes.json"


class JsonFileFallbackStore(FallbackStore):
    """Local recipe cache stored as a single JSON array on disk."""

    def __init__(self, path: Union[str, Path] = DEFAULT_CACHE_PATH) -> None:
        self._path = Path(path)

    @classmethod
    def from_env(cls) -> "JsonFileFallbackStore":
        """Build a cache instance from environment variables."""

        return cls(os.environ.get("RECIPE_CACHE_PATH", str(DEFAULT_CACHE_PATH)))

    @property
    def path(self) -> Path:
        return self._path

    def get_all(self) -> List[dict]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise PersistenceError(f"Cannot read recipe cache {self._path}: {exc}") from exc

        try:
            records = json.loads(raw or "[]")
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Recipe cache {self._path} is corrupt: {exc}") from exc

        if not isinstance(records, list):
            raise PersistenceError(f"Recipe cache {self._path} does not hold a list.")
        return records

    def put_all(self, records: List[dict]) -> None:
        payload = json.dumps(records, ensure_ascii=False, indent=2)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write recipe cache {self._path}: {exc}") from exc


__all__ = ["DEFAULT_CACHE_PATH", "JsonFileFallbackStore"]
