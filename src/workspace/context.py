"""Workspace folder state and resource reachability."""

from pathlib import Path
from typing import Callable, Iterable, List

import structlog

from ..host.events import Disposable, Emitter
from ..host.interfaces import Workspace, WorkbenchState, WorkspaceFolder


class WorkspaceContext:
    """The folders currently opened by the user."""

    def __init__(self, folders: Iterable[WorkspaceFolder] = ()):
        self.logger = structlog.get_logger(self.__class__.__name__)
        self._workspace = Workspace(folders=list(folders))
        self._on_did_change_folders = Emitter[Workspace]()

    @classmethod
    def from_paths(cls, paths: Iterable[Path]) -> "WorkspaceContext":
        return cls(WorkspaceFolder.from_path(path) for path in paths)

    def get_workspace(self) -> Workspace:
        return self._workspace

    def get_workbench_state(self) -> WorkbenchState:
        folder_count = len(self._workspace.folders)
        if folder_count == 0:
            return WorkbenchState.EMPTY
        if folder_count == 1:
            return WorkbenchState.FOLDER
        return WorkbenchState.WORKSPACE

    def set_folders(self, folders: List[WorkspaceFolder]) -> None:
        """Replace the folder set and notify listeners."""
        self._workspace = Workspace(folders=list(folders))
        self.logger.info(
            "Workspace folders changed", folders=[f.name for f in self._workspace.folders]
        )
        self._on_did_change_folders.fire(self._workspace)

    def on_did_change_workspace_folders(
        self, listener: Callable[[Workspace], None]
    ) -> Disposable:
        return self._on_did_change_folders.event(listener)


class LocalFileService:
    """Answers which resource URIs can be read from the local machine."""

    SUPPORTED_SCHEMES = ("file",)

    def can_handle_resource(self, uri: str) -> bool:
        folder = WorkspaceFolder(uri=uri, name="")
        return folder.scheme in self.SUPPORTED_SCHEMES
