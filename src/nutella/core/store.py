from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from nutella.utils.diagnostics import StorageError


class PersistedDocument:
    """A JSON object persisted as a whole document on local disk.

    Every read loads the file and every write replaces it atomically, so
    separate processes always see a complete document. Read-modify-write
    sequences are not isolated from each other: the last writer wins.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Dict[str, Any]:
        """Return the whole document, or an empty dict when the file is missing."""
        if not self.path.exists():
            return {}

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot read document: {exc}", path=str(self.path)) from exc

        if not raw.strip():
            return {}

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Document is not valid JSON: {exc}", path=str(self.path)) from exc

        if not isinstance(payload, dict):
            raise StorageError("Document root must be a JSON object.", path=str(self.path))
        return payload

    def save(self, document: Dict[str, Any]) -> None:
        """Replace the whole document."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Cannot write document: {exc}", path=str(self.path)) from exc

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self.load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        document = self.load()
        document[key] = value
        self.save(document)

    def add(self, key: str, value: Any) -> bool:
        """Store ``value`` under ``key`` only if the key is absent."""
        document = self.load()
        if key in document:
            return False
        document[key] = value
        self.save(document)
        return True

    def delete(self, key: str) -> bool:
        document = self.load()
        if key not in document:
            return False
        del document[key]
        self.save(document)
        return True

    def empty(self) -> bool:
        return not self.load()

    def remove_file(self) -> bool:
        """Delete the backing file. Returns whether a file was removed."""
        if not self.path.exists():
            return False
        try:
            self.path.unlink()
        except OSError as exc:
            raise StorageError(f"Cannot remove document: {exc}", path=str(self.path)) from exc
        return True

    def __contains__(self, key: str) -> bool:
        return key in self.load()
