"""Key/value storage services scoped globally or per workspace."""

import json
import hashlib
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from .interfaces import StorageScope

logger = structlog.get_logger(__name__)


def _serialize(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value)


class InMemoryStorageService:
    """Storage kept in process memory; values are stored as strings."""

    def __init__(self) -> None:
        self._items: Dict[StorageScope, Dict[str, str]] = {
            StorageScope.GLOBAL: {},
            StorageScope.WORKSPACE: {},
        }

    def get(self, key: str, scope: StorageScope, default: Optional[str] = None) -> Optional[str]:
        return self._items[scope].get(key, default)

    def get_boolean(self, key: str, scope: StorageScope, default: bool = False) -> bool:
        value = self.get(key, scope)
        if value is None:
            return default
        return value == "true"

    def store(self, key: str, value: Any, scope: StorageScope) -> None:
        if value is None:
            self.remove(key, scope)
            return
        self._items[scope][key] = _serialize(value)

    def remove(self, key: str, scope: StorageScope) -> None:
        self._items[scope].pop(key, None)


class JsonFileStorageService(InMemoryStorageService):
    """Storage persisted as JSON documents under a directory.

    Global values go to ``global.json``; workspace values go to a file named
    after a hash of the workspace identifier, so each workspace keeps its own
    ignore flags and cache across restarts.
    """

    def __init__(self, storage_dir: Path, workspace_id: str):
        super().__init__()
        self.storage_dir = storage_dir
        self.workspace_id = workspace_id
        self.logger = structlog.get_logger(self.__class__.__name__)

        self._paths = {
            StorageScope.GLOBAL: storage_dir / "global.json",
            StorageScope.WORKSPACE: storage_dir
            / "workspaces"
            / f"{hashlib.sha1(workspace_id.encode('utf-8')).hexdigest()}.json",
        }
        for scope, path in self._paths.items():
            self._items[scope] = self._load(path)

    def _load(self, path: Path) -> Dict[str, str]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning("Ignoring unreadable storage file", path=str(path), error=str(e))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self, scope: StorageScope) -> None:
        path = self._paths[scope]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self._items[scope], indent=2, sort_keys=True), encoding="utf-8")
        self.logger.debug("Storage flushed", scope=scope.value, path=str(path))

    def store(self, key: str, value: Any, scope: StorageScope) -> None:
        super().store(key, value, scope)
        self._flush(scope)

    def remove(self, key: str, scope: StorageScope) -> None:
        super().remove(key, scope)
        self._flush(scope)

    def clear(self, scope: StorageScope) -> int:
        """Remove every value of a scope; returns the number removed."""
        removed = len(self._items[scope])
        self._items[scope] = {}
        self._flush(scope)
        return removed
