"""Remote popularity index client for dynamic workspace recommendations.

This module resolves extensions that are popular among other users of the
same repository. The workspace is identified only by hashed remote
fingerprints, which are matched locally against the sets returned by the
recommendations endpoint. Results are cached per workspace.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import httpx
import structlog
from pydantic import ValidationError

from ..host.interfaces import (
    FileService,
    TelemetryService,
    WorkbenchState,
    WorkspaceContextService,
    WorkspaceTagsService,
)
from ..host.telemetry import log_event
from .allowlist import AllowListFilter
from .cache import DynamicRecommendationsCache
from .models import (
    CachedRecommendations,
    DynamicWorkspaceRecommendationSet,
    RemoteRecommendationsError,
)

logger = structlog.get_logger(__name__)

DYNAMIC_WORKSPACE_RECOMMENDATIONS_EVENT = "dynamicWorkspaceRecommendations"


def find_first_match(
    fingerprints: Sequence[str],
    entries: Sequence[Dict[str, Any]],
) -> Optional[Dict[str, Any]]:
    """Return the first raw entry whose ``remoteSet`` holds a fingerprint.

    Fingerprints are tried in order; for each one the entries are scanned in
    order and the first entry containing it wins. Later matches are ignored,
    including well-formed ones that follow a malformed winner.
    """
    for fingerprint in fingerprints:
        for entry in entries:
            if fingerprint in entry["remoteSet"]:
                return entry
    return None


class RemoteMatchResolver:
    """Resolves and holds the dynamic workspace recommendations."""

    def __init__(
        self,
        context_service: WorkspaceContextService,
        file_service: FileService,
        workspace_tags: WorkspaceTagsService,
        allow_list: AllowListFilter,
        cache: DynamicRecommendationsCache,
        telemetry: TelemetryService,
        recommendations_url: Optional[str] = None,
        request_timeout_seconds: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the resolver.

        Args:
            context_service: Workspace folder state
            file_service: Decides whether the folder can be read
            workspace_tags: Computes remote fingerprints of the folder
            allow_list: Filter applied to matched recommendations
            cache: Workspace cache of previous matches
            telemetry: Telemetry sink
            recommendations_url: Remote index endpoint; resolution is disabled if unset
            request_timeout_seconds: Timeout for the index request
            http_client: Client to use instead of a per-request one
        """
        self.context_service = context_service
        self.file_service = file_service
        self.workspace_tags = workspace_tags
        self.allow_list = allow_list
        self.cache = cache
        self.telemetry = telemetry
        self.recommendations_url = recommendations_url
        self.request_timeout_seconds = request_timeout_seconds
        self._http_client = http_client

        self.logger = structlog.get_logger(self.__class__.__name__)

        self.recommendations: List[str] = []

    def clear(self) -> None:
        """Forget the in-memory result; the cache is left as is."""
        if self.recommendations:
            self.logger.info("Clearing dynamic workspace recommendations")
        self.recommendations = []

    def load_cached(self) -> bool:
        """Populate recommendations from the workspace cache.

        Returns:
            True if a valid cache entry was used
        """
        if self.context_service.get_workbench_state() != WorkbenchState.FOLDER:
            return False

        cached = self.cache.read()
        if cached is None:
            return False

        self.recommendations = list(cached.recommendations)
        self._log_telemetry(cache=1)
        return True

    def _can_resolve(self) -> bool:
        if self.context_service.get_workbench_state() != WorkbenchState.FOLDER:
            return False
        folder = self.context_service.get_workspace().folders[0]
        return (
            self.file_service.can_handle_resource(folder.uri)
            and not self.recommendations
            and bool(self.recommendations_url)
        )

    async def resolve(self) -> None:
        """Fetch matches from the remote index; failures leave state untouched."""
        if not self._can_resolve():
            return

        folder = self.context_service.get_workspace().folders[0]
        try:
            hashed_remotes, hashed_remotes_stripped = await asyncio.gather(
                self.workspace_tags.get_hashed_remotes_from_uri(folder.uri, False),
                self.workspace_tags.get_hashed_remotes_from_uri(folder.uri, True),
            )
        except Exception as e:
            self.logger.debug("Cannot compute workspace fingerprints", error=str(e))
            return
        fingerprints = list(hashed_remotes or []) + list(hashed_remotes_stripped or [])
        if not fingerprints:
            self.logger.debug("No remote fingerprints for workspace", folder=folder.name)
            return

        try:
            entries = await self._fetch_recommendation_entries()
        except RemoteRecommendationsError as e:
            self.logger.debug(
                "Dynamic workspace recommendations unavailable",
                error=e.message,
                **e.details,
            )
            return

        if not entries:
            return

        matched_entry = find_first_match(fingerprints, entries)
        if matched_entry is None:
            self.logger.debug("No remote recommendation set matches workspace")
            return

        try:
            matched = DynamicWorkspaceRecommendationSet(
                remote_set=[r for r in matched_entry["remoteSet"] if isinstance(r, str)],
                recommendations=matched_entry.get("recommendations"),
            )
        except ValidationError as e:
            self.logger.warning(
                "Matching workspace recommendation set is malformed",
                error=str(e),
            )
            return

        self.recommendations = self.allow_list.filter(matched.recommendations)
        self.cache.write(CachedRecommendations(recommendations=self.recommendations))
        self._log_telemetry(cache=0)

        self.logger.info(
            "Resolved dynamic workspace recommendations",
            count=len(self.recommendations),
        )

    async def _request(self, url: str) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(url)
        async with httpx.AsyncClient(timeout=self.request_timeout_seconds) as client:
            return await client.get(url)

    async def _fetch_recommendation_entries(self) -> List[Dict[str, Any]]:
        """Query the remote index.

        Returns:
            Raw recommendation entries, possibly empty

        Raises:
            RemoteRecommendationsError: On transport, status or parse failures
        """
        url = self.recommendations_url or ""
        try:
            response = await self._request(url)
        except httpx.HTTPError as e:
            raise RemoteRecommendationsError(
                f"Request to recommendations endpoint failed: {e}", url=url
            ) from e

        if response.status_code != 200:
            raise RemoteRecommendationsError(
                "Recommendations endpoint returned an error status",
                url=url,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteRecommendationsError(
                f"Recommendations endpoint returned invalid JSON: {e}",
                url=url,
                status_code=response.status_code,
            ) from e

        return self._recommendation_entries(body)

    def _recommendation_entries(self, body: Any) -> List[Dict[str, Any]]:
        """Keep the raw entries whose ``remoteSet`` is a list.

        The rest of an entry is validated only once it wins the match.
        """
        if not isinstance(body, dict):
            return []
        raw_sets = body.get("workspaceRecommendations")
        if not isinstance(raw_sets, list):
            return []
        return [
            raw_set
            for raw_set in raw_sets
            if isinstance(raw_set, dict) and isinstance(raw_set.get("remoteSet"), list)
        ]

    def _log_telemetry(self, cache: int) -> None:
        log_event(
            self.telemetry,
            DYNAMIC_WORKSPACE_RECOMMENDATIONS_EVENT,
            {"count": len(self.recommendations), "cache": cache},
        )
