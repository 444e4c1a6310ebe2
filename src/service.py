"""Extension Recommendations Service - main service implementation.

This module wires the recommendation engine together: executable tips,
remote workspace matches and the base heuristic are merged into one list, and
the important executable tips drive a single install notification. It also
provides the command line entry point.
"""

import asyncio
import json
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import structlog
import typer
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from .host.configuration import (
    SHOW_RECOMMENDATIONS_ONLY_ON_DEMAND_KEY,
    ConfigurationService,
    ExtensionsConfiguration,
)
from .host.console import ConsoleExtensionActions, ConsoleNotificationService
from .host.events import Disposable
from .host.interfaces import (
    BaseRecommendations,
    ConfigurationChangeEvent,
    ExtensionActions,
    ExtensionManagementService,
    ExtensionTipsService,
    FileService,
    LifecyclePhase,
    LifecycleService,
    NotificationService,
    StorageScope,
    StorageService,
    TelemetryService,
    Workspace,
    WorkspaceContextService,
    WorkspaceTagsService,
)
from .host.lifecycle import Lifecycle
from .host.local import (
    RecommendationProfile,
    StaticBaseRecommendations,
    StaticExtensionManagementService,
    StaticTipsService,
)
from .host.storage import JsonFileStorageService
from .host.telemetry import StructlogTelemetryService
from .notification.models import ImportantTipNotification
from .notification.prompt_manager import ImportantTipPrompter
from .recommender.aggregator import RecommendationAggregator
from .recommender.allowlist import AllowListFilter
from .recommender.cache import DynamicRecommendationsCache
from .recommender.models import ConfigurationError, ExtensionRecommendation, RecommendationReason
from .recommender.remote_resolver import RemoteMatchResolver
from .recommender.shuffle import new_session_seed
from .recommender.tips import ExecutableTipCollector
from .workspace.context import LocalFileService, WorkspaceContext
from .workspace.tags import GitWorkspaceTagsService

# Load environment variables
load_dotenv()

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_number(name: str, default: str, cast: Callable[[str], Any] = float) -> Any:
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", setting=name) from e


class ServiceConfig(BaseModel):
    """Configuration for the extension recommendations service."""

    # Gallery Configuration
    gallery_enabled: bool = Field(
        default_factory=lambda: _env_flag("EXTENSIONS_GALLERY_ENABLED", "true"),
        description="Whether extension recommendations are enabled at all",
    )
    recommendations_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("EXTENSIONS_RECOMMENDATIONS_URL") or None,
        description="Remote endpoint serving workspace recommendation sets",
    )
    request_timeout_seconds: float = Field(
        default_factory=lambda: _env_number("RECOMMENDATIONS_REQUEST_TIMEOUT_SECONDS", "10"),
        description="Timeout for the remote recommendations request",
    )

    # Recommendation Settings
    ignore_recommendations: bool = Field(
        default_factory=lambda: _env_flag("EXTENSIONS_IGNORE_RECOMMENDATIONS"),
        description="Initial value of the ignoreRecommendations setting",
    )
    show_recommendations_only_on_demand: bool = Field(
        default_factory=lambda: _env_flag("EXTENSIONS_SHOW_RECOMMENDATIONS_ONLY_ON_DEMAND"),
        description="Initial value of the showRecommendationsOnlyOnDemand setting",
    )

    # Timing and Caching
    important_tips_delay_seconds: float = Field(
        default_factory=lambda: _env_number("IMPORTANT_TIPS_DELAY_SECONDS", "3"),
        description="Delay before important executable tips are fetched",
    )
    cache_ttl_days: int = Field(
        default_factory=lambda: _env_number("DYNAMIC_RECOMMENDATIONS_CACHE_DAYS", "14", int),
        description="Days a cached remote match stays valid",
    )

    # Development Settings
    development_mode: bool = Field(
        default_factory=lambda: _env_flag("DEVELOPMENT_MODE"),
        description="Enable development mode with additional logging",
    )

    def validate_settings(self) -> None:
        """Check settings that pydantic types alone cannot express.

        Raises:
            ConfigurationError: If a duration is out of range
        """
        if self.cache_ttl_days <= 0:
            raise ConfigurationError(
                f"Cache TTL must be positive, got {self.cache_ttl_days} days",
                setting="DYNAMIC_RECOMMENDATIONS_CACHE_DAYS",
            )
        if self.request_timeout_seconds <= 0:
            raise ConfigurationError(
                f"Request timeout must be positive, got {self.request_timeout_seconds}",
                setting="RECOMMENDATIONS_REQUEST_TIMEOUT_SECONDS",
            )
        if self.important_tips_delay_seconds < 0:
            raise ConfigurationError(
                f"Important tips delay cannot be negative, got {self.important_tips_delay_seconds}",
                setting="IMPORTANT_TIPS_DELAY_SECONDS",
            )

    def extensions_configuration(self) -> ExtensionsConfiguration:
        return ExtensionsConfiguration(
            ignore_recommendations=self.ignore_recommendations,
            show_recommendations_only_on_demand=self.show_recommendations_only_on_demand,
        )


class ServiceDependencies(BaseModel):
    """Collaborators the service is built from."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    storage: StorageService
    telemetry: TelemetryService
    notifications: NotificationService
    extension_management: ExtensionManagementService
    tips: ExtensionTipsService
    actions: ExtensionActions
    base_recommendations: BaseRecommendations
    context_service: WorkspaceContextService
    file_service: FileService
    workspace_tags: WorkspaceTagsService
    lifecycle: LifecycleService
    configuration: ConfigurationService
    http_client: Optional[httpx.AsyncClient] = None


class ExtensionRecommendationsService:
    """Recommends extensions from executables, workspace popularity and the base heuristic.

    Call ``start()`` from a running event loop to schedule the startup fetches
    and ``dispose()`` when the workspace session ends.
    """

    def __init__(
        self,
        config: ServiceConfig,
        dependencies: ServiceDependencies,
        session_seed: Optional[int] = None,
    ):
        """Initialize the recommendations service.

        Args:
            config: Service configuration settings
            dependencies: Host collaborators
            session_seed: Shuffle seed; defaults to the process start time
        """
        config.validate_settings()
        self.config = config
        self.deps = dependencies
        self.logger = structlog.get_logger(self.__class__.__name__)

        if not self.is_enabled():
            self.session_seed = 0
        else:
            self.session_seed = session_seed if session_seed is not None else new_session_seed()

        self.allow_list = AllowListFilter(dependencies.base_recommendations.get_ignored_recommendations)
        self.tip_collector = ExecutableTipCollector(dependencies.tips)
        self.cache = DynamicRecommendationsCache(
            dependencies.storage, ttl=timedelta(days=config.cache_ttl_days)
        )
        self.resolver = RemoteMatchResolver(
            context_service=dependencies.context_service,
            file_service=dependencies.file_service,
            workspace_tags=dependencies.workspace_tags,
            allow_list=self.allow_list,
            cache=self.cache,
            telemetry=dependencies.telemetry,
            recommendations_url=config.recommendations_url,
            request_timeout_seconds=config.request_timeout_seconds,
            http_client=dependencies.http_client,
        )
        self.aggregator = RecommendationAggregator(self.allow_list, self.session_seed)
        self.prompter = ImportantTipPrompter(
            storage=dependencies.storage,
            configuration=dependencies.configuration,
            extension_management=dependencies.extension_management,
            notifications=dependencies.notifications,
            telemetry=dependencies.telemetry,
            actions=dependencies.actions,
            allow_list=self.allow_list,
        )

        self._proactive_task: Optional[asyncio.Future] = None
        self.important_task: Optional[asyncio.Task] = None
        self._disposables: List[Disposable] = []
        self._started = False

    def is_enabled(self) -> bool:
        return self.config.gallery_enabled

    def start(self) -> None:
        """Schedule startup fetches and register change listeners."""
        if self._started:
            self.logger.warning("Recommendations service is already started")
            return
        self._started = True

        if not self.is_enabled():
            self.logger.info("Extension recommendations are disabled")
            return

        self.important_task = asyncio.create_task(self._fetch_important_after_delay())

        if not self.deps.configuration.get_value(SHOW_RECOMMENDATIONS_ONLY_ON_DEMAND_KEY):
            self.ensure_proactive_recommendations_fetched()

        self._disposables.append(
            self.deps.configuration.on_did_change_configuration(self._on_configuration_changed)
        )
        self._disposables.append(
            self.deps.context_service.on_did_change_workspace_folders(self._on_folders_changed)
        )

        self.logger.info(
            "Extension recommendations service started",
            session_seed=self.session_seed,
            recommendations_url=self.config.recommendations_url,
        )

    def dispose(self) -> None:
        if self.important_task and not self.important_task.done():
            self.important_task.cancel()
        for disposable in self._disposables:
            disposable.dispose()
        self._disposables = []
        self.logger.info("Extension recommendations service disposed")

    def _on_configuration_changed(self, event: ConfigurationChangeEvent) -> None:
        if event.affects_configuration(
            SHOW_RECOMMENDATIONS_ONLY_ON_DEMAND_KEY
        ) and not self.deps.configuration.get_value(SHOW_RECOMMENDATIONS_ONLY_ON_DEMAND_KEY):
            self.ensure_proactive_recommendations_fetched()

    def _on_folders_changed(self, workspace: Workspace) -> None:
        # Remote matches depend on the folder identity
        self.resolver.clear()

    async def _fetch_important_after_delay(self) -> Optional[ImportantTipNotification]:
        await asyncio.sleep(self.config.important_tips_delay_seconds)
        try:
            return await self.fetch_important_exe_based_recommendations()
        except Exception as e:
            self.logger.error(
                "Failed to process important executable tips", error=str(e), exc_info=True
            )
            return None

    async def fetch_important_exe_based_recommendations(self) -> ImportantTipNotification:
        """Fetch the important tier and run one notification cycle for it."""
        tips = await self.tip_collector.fetch_important()
        return await self.prompter.prompt_for_important_tips(tips)

    def ensure_proactive_recommendations_fetched(self) -> asyncio.Future:
        """Start the proactive fetch once and return the shared task.

        The first call loads cached remote matches immediately; the task then
        waits for the idle lifecycle phase before resolving remote matches and
        fetching the other executable tips concurrently.
        """
        if self._proactive_task is None:
            self.resolver.load_cached()
            self._proactive_task = asyncio.ensure_future(self._fetch_proactive_recommendations())
        return self._proactive_task

    async def _fetch_proactive_recommendations(self) -> None:
        await self.deps.lifecycle.when(LifecyclePhase.EVENTUALLY)
        await asyncio.gather(self.resolver.resolve(), self.tip_collector.fetch_other())

    async def get_other_recommendations(self) -> List[ExtensionRecommendation]:
        """Merged, deduplicated, shuffled and source-tagged recommendations."""
        base = await self.deps.base_recommendations.get_other_recommendations()
        await self.ensure_proactive_recommendations_fetched()
        return self.aggregator.merge(
            self.tip_collector.extension_ids(),
            self.resolver.recommendations,
            list(base),
        )

    def get_all_recommendations_with_reason(self) -> Dict[str, RecommendationReason]:
        """Reasons for every recommended extension, keyed by lower-cased id."""
        base = self.deps.base_recommendations.get_all_recommendations_with_reason()
        folders = self.deps.context_service.get_workspace().folders
        folder_name = folders[0].name if len(folders) == 1 else None
        return self.aggregator.compose_reasons(
            base,
            self.resolver.recommendations,
            self.tip_collector.pool,
            folder_name=folder_name,
        )

    @property
    def dynamic_workspace_recommendations(self) -> List[str]:
        return list(self.resolver.recommendations)


def configure_logging(development_mode: bool = False) -> None:
    """Route structlog output through the standard library at the right level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=logging.DEBUG if development_mode else logging.WARNING,
    )


def build_local_service(
    config: ServiceConfig,
    workspace_path: Path,
    storage_dir: Path,
    profile: RecommendationProfile,
    interactive: bool = False,
) -> ExtensionRecommendationsService:
    """Assemble a service for a folder on the local machine."""
    context = WorkspaceContext.from_paths([workspace_path])
    folder = context.get_workspace().folders[0]
    dependencies = ServiceDependencies(
        storage=JsonFileStorageService(storage_dir, folder.uri),
        telemetry=StructlogTelemetryService(),
        notifications=ConsoleNotificationService(interactive=interactive),
        extension_management=StaticExtensionManagementService(profile),
        tips=StaticTipsService(profile),
        actions=ConsoleExtensionActions(),
        base_recommendations=StaticBaseRecommendations(profile),
        context_service=context,
        file_service=LocalFileService(),
        workspace_tags=GitWorkspaceTagsService(),
        lifecycle=Lifecycle(),
        configuration=ConfigurationService(config.extensions_configuration()),
    )
    return ExtensionRecommendationsService(config, dependencies)


DEFAULT_STORAGE_DIR = Path("~/.extension-recommender").expanduser()


def create_app() -> typer.Typer:
    """Create the Typer CLI application."""
    app = typer.Typer(
        name="extension-recommender",
        help="Recommend extensions from detected executables and workspace popularity",
        add_completion=False,
    )

    @app.command()
    def recommend(
        workspace: Path = typer.Argument(..., exists=True, file_okay=False, help="Workspace folder"),
        tips_file: Optional[Path] = typer.Option(
            None,
            "--tips",
            "-t",
            exists=True,
            dir_okay=False,
            help="YAML file describing tips, installed and base recommendations",
        ),
        url: Optional[str] = typer.Option(
            None, "--url", help="Remote recommendations endpoint"
        ),
        storage_dir: Path = typer.Option(
            DEFAULT_STORAGE_DIR, "--storage-dir", help="Where workspace state is kept"
        ),
        interactive: bool = typer.Option(
            False, "--interactive", "-i", help="Answer notification prompts"
        ),
        as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
        development: bool = typer.Option(False, "--dev", help="Enable development mode"),
    ) -> None:
        """Run one recommendation session for a workspace folder."""
        try:
            config = ServiceConfig(important_tips_delay_seconds=0)
            if url:
                config.recommendations_url = url
            if development:
                config.development_mode = True
            configure_logging(config.development_mode)

            profile = RecommendationProfile.load(tips_file)
            service = build_local_service(config, workspace, storage_dir, profile, interactive)
        except ConfigurationError as e:
            typer.echo(f"❌ Invalid configuration ({e.details['setting']}): {e.message}")
            sys.exit(1)

        async def run_session() -> Dict[str, Any]:
            service.start()
            try:
                notification = None
                if service.important_task is not None:
                    notification = await service.important_task
                service.deps.lifecycle.set_phase(LifecyclePhase.EVENTUALLY)
                others = await service.get_other_recommendations()
                reasons = service.get_all_recommendations_with_reason()
            finally:
                service.dispose()
            return {
                "notification": {
                    "state": notification.state.value if notification else None,
                    "extension_id": notification.extension_id if notification else None,
                },
                "recommendations": [
                    {
                        "extension_id": entry.extension_id,
                        "sources": [source.value for source in entry.sources],
                        "reason": reasons[entry.extension_id.lower()].reason_text
                        if entry.extension_id.lower() in reasons
                        else None,
                    }
                    for entry in others
                ],
            }

        try:
            result = asyncio.run(run_session())
        except Exception as e:
            logger.error("Recommendation session failed", error=str(e), exc_info=True)
            typer.echo(f"❌ Recommendation session failed: {e}")
            sys.exit(1)

        if as_json:
            typer.echo(json.dumps(result, indent=2))
            return

        typer.echo(f"Notification: {result['notification']['state']}")
        for entry in result["recommendations"]:
            sources = ", ".join(entry["sources"]) or "base"
            typer.echo(f"- {entry['extension_id']} [{sources}]")
            if entry["reason"]:
                typer.echo(f"    {entry['reason']}")

    @app.command()
    def fingerprints(
        workspace: Path = typer.Argument(..., exists=True, file_okay=False, help="Workspace folder"),
    ) -> None:
        """Print the remote fingerprints computed for a workspace folder."""
        configure_logging()
        context = WorkspaceContext.from_paths([workspace])
        folder = context.get_workspace().folders[0]
        tags = GitWorkspaceTagsService()

        async def compute() -> List[List[str]]:
            return list(
                await asyncio.gather(
                    tags.get_hashed_remotes_from_uri(folder.uri, False),
                    tags.get_hashed_remotes_from_uri(folder.uri, True),
                )
            )

        hashed, hashed_stripped = asyncio.run(compute())
        if not hashed and not hashed_stripped:
            typer.echo("No version-control remotes found")
            return
        for fingerprint in hashed:
            typer.echo(f"{fingerprint}  (as configured)")
        for fingerprint in hashed_stripped:
            typer.echo(f"{fingerprint}  (without .git suffix)")

    @app.command("clear-cache")
    def clear_cache(
        workspace: Path = typer.Argument(..., exists=True, file_okay=False, help="Workspace folder"),
        storage_dir: Path = typer.Option(
            DEFAULT_STORAGE_DIR, "--storage-dir", help="Where workspace state is kept"
        ),
    ) -> None:
        """Remove cached matches and ignore decisions of a workspace."""
        configure_logging()
        folder = WorkspaceContext.from_paths([workspace]).get_workspace().folders[0]
        storage = JsonFileStorageService(storage_dir, folder.uri)
        removed = storage.clear(StorageScope.WORKSPACE)
        typer.echo(f"✅ Removed {removed} stored value(s) for {folder.name}")

    return app


def main() -> None:
    """Main entry point for the extension recommender."""
    app = create_app()
    app()


if __name__ == "__main__":
    main()
