from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from ..utils.utilities import load_json_cache, save_json_cache


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def update(self, values: Mapping[str, str]) -> None: ...

    def delete(self, key: str) -> None: ...


class JsonFileStore:
    """
    String key/value pairs persisted to one JSON file.

    Every mutation is written through immediately (atomic file replace), so a multi-key
    `update` is never observed half-applied after a crash.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data: dict[str, str] = {
            str(k): str(v) for k, v in load_json_cache(self.path).items() if v is not None
        }

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def update(self, values: Mapping[str, str]) -> None:
        self._data.update({str(k): str(v) for k, v in values.items()})
        save_json_cache(self._data, self.path)

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            save_json_cache(self._data, self.path)

    def items(self) -> dict[str, str]:
        return dict(self._data)
