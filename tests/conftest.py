"""Pytest configuration and shared fixtures for extension recommender tests."""

from pathlib import Path
from typing import Dict, List, Optional

import httpx
import pytest

from src.host.configuration import ConfigurationService, ExtensionsConfiguration
from src.host.interfaces import (
    PromptChoice,
    PromptOptions,
    Severity,
    WorkspaceFolder,
)
from src.host.lifecycle import Lifecycle
from src.host.storage import InMemoryStorageService
from src.host.telemetry import RecordingTelemetryService
from src.recommender.allowlist import AllowListFilter
from src.recommender.models import (
    ExecutableTip,
    ExtensionRecommendation,
    ExtensionRecommendationReason,
    ExtensionType,
    InstalledExtension,
    RecommendationReason,
)
from src.service import ExtensionRecommendationsService, ServiceConfig, ServiceDependencies
from src.workspace.context import LocalFileService, WorkspaceContext

RECOMMENDATIONS_URL = "https://recommendations.example.com/workspaces.json"
FOLDER_URI = "file:///home/user/projects/widget"


def make_tip(
    extension_id: str,
    friendly_name: Optional[str] = None,
    executable_path: str = "/usr/bin/tool",
    exe_friendly_name: Optional[str] = None,
) -> ExecutableTip:
    """Build an executable tip with sensible defaults."""
    return ExecutableTip(
        extension_id=extension_id,
        friendly_name=friendly_name or extension_id.split(".")[-1].title(),
        executable_path=executable_path,
        exe_friendly_name=exe_friendly_name,
    )


class FakeTipsService:
    """Tips collaborator returning fixed tiers."""

    def __init__(
        self,
        important: Optional[List[ExecutableTip]] = None,
        other: Optional[List[ExecutableTip]] = None,
    ):
        self.important = important or []
        self.other = other or []
        self.important_calls = 0
        self.other_calls = 0
        self.other_error: Optional[Exception] = None

    async def get_important_executable_based_tips(self) -> List[ExecutableTip]:
        self.important_calls += 1
        return list(self.important)

    async def get_other_executable_based_tips(self) -> List[ExecutableTip]:
        self.other_calls += 1
        if self.other_error is not None:
            raise self.other_error
        return list(self.other)


class FakeExtensionManagement:
    """Reports a fixed set of installed user extensions."""

    def __init__(self, installed: Optional[List[str]] = None):
        self.installed = installed or []

    async def get_installed(
        self, extension_type: Optional[ExtensionType] = None
    ) -> List[InstalledExtension]:
        return [InstalledExtension(identifier=identifier) for identifier in self.installed]


class FakeBaseRecommendations:
    """Base heuristic with fixed recommendations, reasons and ignore list."""

    def __init__(
        self,
        other: Optional[List[str]] = None,
        reasons: Optional[Dict[str, str]] = None,
        ignored: Optional[List[str]] = None,
    ):
        self.other = other or []
        self.reasons = reasons or {}
        self.ignored = ignored or []

    async def get_other_recommendations(self) -> List[ExtensionRecommendation]:
        return [ExtensionRecommendation(extension_id=extension_id) for extension_id in self.other]

    def get_all_recommendations_with_reason(self) -> Dict[str, RecommendationReason]:
        return {
            extension_id.lower(): RecommendationReason(
                reason_id=ExtensionRecommendationReason.FILE, reason_text=text
            )
            for extension_id, text in self.reasons.items()
        }

    def get_ignored_recommendations(self) -> List[str]:
        return list(self.ignored)


class FakeWorkspaceTags:
    """Returns preset fingerprints for each variant."""

    def __init__(self, hashed: Optional[List[str]] = None, stripped: Optional[List[str]] = None):
        self.hashed = hashed or []
        self.stripped = stripped or []
        self.calls: List[bool] = []

    async def get_hashed_remotes_from_uri(
        self, uri: str, strip_ending_dot_git: bool = False
    ) -> List[str]:
        self.calls.append(strip_ending_dot_git)
        return list(self.stripped if strip_ending_dot_git else self.hashed)


class RecordingNotificationService:
    """Keeps every prompt so tests can pick a choice afterwards."""

    def __init__(self) -> None:
        self.prompts: List[Dict] = []

    def prompt(
        self,
        severity: Severity,
        message: str,
        choices: List[PromptChoice],
        options: Optional[PromptOptions] = None,
    ) -> None:
        self.prompts.append(
            {"severity": severity, "message": message, "choices": choices, "options": options}
        )

    def choose(self, label: str, index: int = -1) -> None:
        """Run the choice with the given label on a recorded prompt."""
        for choice in self.prompts[index]["choices"]:
            if choice.label == label:
                choice.run()
                return
        raise AssertionError(f"No choice labelled {label!r}")

    def dismiss(self, index: int = -1) -> None:
        options = self.prompts[index]["options"]
        assert options is not None and options.on_cancel is not None
        options.on_cancel()


class RecordingActions:
    """Records install and show requests."""

    def __init__(self) -> None:
        self.installed: List[str] = []
        self.show_calls = 0

    def install_extension(self, extension_id: str) -> None:
        self.installed.append(extension_id)

    def show_recommended_extensions(self) -> None:
        self.show_calls += 1


def recommendations_transport(payload, status_code: int = 200, calls: Optional[List] = None):
    """MockTransport serving a recommendations document."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


@pytest.fixture
def storage() -> InMemoryStorageService:
    return InMemoryStorageService()


@pytest.fixture
def telemetry() -> RecordingTelemetryService:
    return RecordingTelemetryService()


@pytest.fixture
def notifications() -> RecordingNotificationService:
    return RecordingNotificationService()


@pytest.fixture
def actions() -> RecordingActions:
    return RecordingActions()


@pytest.fixture
def configuration() -> ConfigurationService:
    return ConfigurationService(ExtensionsConfiguration())


@pytest.fixture
def base_recommendations() -> FakeBaseRecommendations:
    return FakeBaseRecommendations()


@pytest.fixture
def allow_list(base_recommendations: FakeBaseRecommendations) -> AllowListFilter:
    return AllowListFilter(base_recommendations.get_ignored_recommendations)


@pytest.fixture
def folder_context() -> WorkspaceContext:
    """A single-folder workspace."""
    return WorkspaceContext([WorkspaceFolder(uri=FOLDER_URI, name="widget")])


@pytest.fixture
def tips_service() -> FakeTipsService:
    return FakeTipsService()


@pytest.fixture
def extension_management() -> FakeExtensionManagement:
    return FakeExtensionManagement()


@pytest.fixture
def workspace_tags() -> FakeWorkspaceTags:
    return FakeWorkspaceTags()


@pytest.fixture
def test_config() -> ServiceConfig:
    """Create a test configuration with safe defaults."""
    return ServiceConfig(
        gallery_enabled=True,
        recommendations_url=RECOMMENDATIONS_URL,
        request_timeout_seconds=1.0,
        ignore_recommendations=False,
        show_recommendations_only_on_demand=False,
        important_tips_delay_seconds=0,
        cache_ttl_days=14,
        development_mode=True,
    )


@pytest.fixture
def make_dependencies(
    storage,
    telemetry,
    notifications,
    actions,
    configuration,
    base_recommendations,
    folder_context,
    tips_service,
    extension_management,
    workspace_tags,
):
    """Factory for service dependencies built from the shared fakes."""

    def factory(
        http_client: Optional[httpx.AsyncClient] = None,
        lifecycle: Optional[Lifecycle] = None,
    ) -> ServiceDependencies:
        return ServiceDependencies(
            storage=storage,
            telemetry=telemetry,
            notifications=notifications,
            extension_management=extension_management,
            tips=tips_service,
            actions=actions,
            base_recommendations=base_recommendations,
            context_service=folder_context,
            file_service=LocalFileService(),
            workspace_tags=workspace_tags,
            lifecycle=lifecycle or Lifecycle(),
            configuration=configuration,
            http_client=http_client,
        )

    return factory


@pytest.fixture
def make_service(test_config: ServiceConfig, make_dependencies):
    """Factory for a service with a fixed session seed."""

    def factory(
        config: Optional[ServiceConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        lifecycle: Optional[Lifecycle] = None,
        session_seed: int = 42,
    ) -> ExtensionRecommendationsService:
        return ExtensionRecommendationsService(
            config or test_config,
            make_dependencies(http_client=http_client, lifecycle=lifecycle),
            session_seed=session_seed,
        )

    return factory


@pytest.fixture
def git_workspace(tmp_path: Path) -> Path:
    """A workspace folder with a git config declaring two remotes."""
    workspace = tmp_path / "widget"
    (workspace / ".git").mkdir(parents=True)
    (workspace / ".git" / "config").write_text(
        "[core]\n"
        "\trepositoryformatversion = 0\n"
        '[remote "origin"]\n'
        "\turl = git@github.com:example/widget.git\n"
        "\tfetch = +refs/heads/*:refs/remotes/origin/*\n"
        '[remote "mirror"]\n'
        "\turl = https://gitlab.example.com/mirrors/widget\n",
        encoding="utf-8",
    )
    return workspace
