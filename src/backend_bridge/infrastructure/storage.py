"""Key-value storage implementations for infrastructure.

Usage example:
    from pathlib import Path

    from backend_bridge.infrastructure.storage import JsonFileStorage

    storage = JsonFileStorage(Path("~/.backend_bridge/state.json").expanduser())
    storage.set("client_id", "3f1c...")
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import cast, override

from ..observability import get_logger
from ..protocols import KeyValueStorage

logger = get_logger("backend_bridge.infrastructure.storage")


@dataclass
class JsonFileStorage(KeyValueStorage):
    """Single JSON document holding every persisted key.

    Writes replace the file atomically so a crash never leaves half a document.
    A file that is not valid JSON reads as empty and is replaced on the next write.
    """

    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def _read(self) -> dict[str, object]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return cast(dict[str, object], data)

    def _write(self, data: dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    @override
    def get(self, key: str) -> object | None:
        return self._read().get(key)

    @override
    def set(self, key: str, value: object) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    @override
    def remove(self, *keys: str) -> None:
        data = self._read()
        if not any(key in data for key in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._write(data)
