"""Collaborator interfaces for the extension recommender.

The recommender never reaches into the host directly. Everything it needs
(storage, telemetry, notifications, installed extensions, tips, workspace
state, lifecycle) is described here as a narrow protocol and passed in
explicitly through ``ServiceDependencies``.
"""

from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, Field

from ..recommender.models import (
    ExecutableTip,
    ExtensionRecommendation,
    ExtensionType,
    InstalledExtension,
    RecommendationReason,
)
from .events import Disposable


class StorageScope(str, Enum):
    """Where a stored value lives."""

    GLOBAL = "global"
    WORKSPACE = "workspace"


class Severity(str, Enum):
    """Notification severities."""

    IGNORE = "ignore"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LifecyclePhase(IntEnum):
    """Host lifecycle phases, in the order they are reached."""

    STARTING = 1
    READY = 2
    RESTORED = 3
    EVENTUALLY = 4


class WorkbenchState(str, Enum):
    """Shape of the opened workspace."""

    EMPTY = "empty"
    FOLDER = "folder"
    WORKSPACE = "workspace"


class WorkspaceFolder(BaseModel):
    """A folder of the opened workspace."""

    uri: str = Field(..., description="Folder resource URI")
    name: str = Field(..., description="Display name of the folder")

    @classmethod
    def from_path(cls, path: Path) -> "WorkspaceFolder":
        resolved = path.expanduser().resolve()
        return cls(uri=resolved.as_uri(), name=resolved.name)

    @property
    def scheme(self) -> str:
        return urlparse(self.uri).scheme

    @property
    def path(self) -> Path:
        return Path(unquote(urlparse(self.uri).path))


class Workspace(BaseModel):
    """The opened workspace and its folders."""

    folders: List[WorkspaceFolder] = Field(default_factory=list)


class PromptChoice(BaseModel):
    """One button of a notification prompt."""

    label: str = Field(..., description="Button label")
    run: Callable[[], None] = Field(..., description="Invoked when chosen")
    is_secondary: bool = Field(False, description="Rendered as a secondary action")


class PromptOptions(BaseModel):
    """Presentation options of a notification prompt."""

    sticky: bool = Field(False, description="Keep visible until acted upon")
    on_cancel: Optional[Callable[[], None]] = Field(
        None, description="Invoked when dismissed without a choice"
    )


class ConfigurationChangeEvent(BaseModel):
    """Payload fired when extension settings change."""

    affected_keys: List[str] = Field(default_factory=list)

    def affects_configuration(self, key: str) -> bool:
        return any(
            affected == key or affected.startswith(key + ".") or key.startswith(affected + ".")
            for affected in self.affected_keys
        )


@runtime_checkable
class StorageService(Protocol):
    def get(self, key: str, scope: StorageScope, default: Optional[str] = None) -> Optional[str]: ...

    def get_boolean(self, key: str, scope: StorageScope, default: bool = False) -> bool: ...

    def store(self, key: str, value: Any, scope: StorageScope) -> None: ...

    def remove(self, key: str, scope: StorageScope) -> None: ...


@runtime_checkable
class TelemetryService(Protocol):
    def public_log(self, event_name: str, data: Optional[Dict[str, Any]] = None) -> None: ...


@runtime_checkable
class NotificationService(Protocol):
    def prompt(
        self,
        severity: Severity,
        message: str,
        choices: List[PromptChoice],
        options: Optional[PromptOptions] = None,
    ) -> None: ...


@runtime_checkable
class ExtensionManagementService(Protocol):
    def get_installed(self, extension_type: Optional[ExtensionType] = None) -> Awaitable[List[InstalledExtension]]: ...


@runtime_checkable
class ExtensionTipsService(Protocol):
    def get_important_executable_based_tips(self) -> Awaitable[List[ExecutableTip]]: ...

    def get_other_executable_based_tips(self) -> Awaitable[List[ExecutableTip]]: ...


@runtime_checkable
class ExtensionActions(Protocol):
    def install_extension(self, extension_id: str) -> None: ...

    def show_recommended_extensions(self) -> None: ...


@runtime_checkable
class BaseRecommendations(Protocol):
    """Recommendations computed by the host's own heuristics."""

    def get_other_recommendations(self) -> Awaitable[List[ExtensionRecommendation]]: ...

    def get_all_recommendations_with_reason(self) -> Dict[str, RecommendationReason]: ...

    def get_ignored_recommendations(self) -> List[str]: ...


@runtime_checkable
class WorkspaceContextService(Protocol):
    def get_workbench_state(self) -> WorkbenchState: ...

    def get_workspace(self) -> Workspace: ...

    def on_did_change_workspace_folders(self, listener: Callable[[Workspace], None]) -> Disposable: ...


@runtime_checkable
class FileService(Protocol):
    def can_handle_resource(self, uri: str) -> bool: ...


@runtime_checkable
class WorkspaceTagsService(Protocol):
    def get_hashed_remotes_from_uri(self, uri: str, strip_ending_dot_git: bool = False) -> Awaitable[List[str]]: ...


@runtime_checkable
class LifecycleService(Protocol):
    def when(self, phase: LifecyclePhase) -> Awaitable[None]: ...
