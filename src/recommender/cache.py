"""Workspace-scoped cache of dynamic workspace recommendations."""

import json
import math
from datetime import timedelta
from typing import Any, Dict, Optional

import structlog

from ..host.interfaces import StorageScope, StorageService
from .models import MILLISECONDS_IN_A_DAY, CacheCorruptedError, CachedRecommendations, now_ms

DYNAMIC_WORKSPACE_RECOMMENDATIONS_KEY = "extensionsAssistant/dynamicWorkspaceRecommendations"
DEFAULT_CACHE_TTL = timedelta(days=14)


class DynamicRecommendationsCache:
    """Reads and writes remote-match results for the current workspace.

    Entries are stored as ``{"recommendations": [...], "timestamp": <ms>}``.
    A read only returns an entry when its shape is right and it is younger
    than the TTL; unparseable entries are removed from storage.
    """

    def __init__(self, storage: StorageService, ttl: timedelta = DEFAULT_CACHE_TTL):
        self.storage = storage
        self.ttl = ttl
        self.logger = structlog.get_logger(self.__class__.__name__)

    def _parse(self, raw: str) -> Dict[str, Any]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CacheCorruptedError(
                f"Cached recommendations are not valid JSON: {e}",
                key=DYNAMIC_WORKSPACE_RECOMMENDATIONS_KEY,
            ) from e
        if not isinstance(data, dict):
            return {}
        timestamp = data.get("timestamp")
        if isinstance(timestamp, float) and not math.isfinite(timestamp):
            raise CacheCorruptedError(
                "Cached recommendations have a non-finite timestamp",
                key=DYNAMIC_WORKSPACE_RECOMMENDATIONS_KEY,
            )
        return data

    def read(self, now: Optional[int] = None) -> Optional[CachedRecommendations]:
        raw = self.storage.get(DYNAMIC_WORKSPACE_RECOMMENDATIONS_KEY, StorageScope.WORKSPACE, "{}")
        try:
            data = self._parse(raw or "{}")
        except CacheCorruptedError as e:
            self.logger.warning("Removing corrupted cache entry", key=e.details["key"])
            self.storage.remove(DYNAMIC_WORKSPACE_RECOMMENDATIONS_KEY, StorageScope.WORKSPACE)
            return None

        recommendations = data.get("recommendations")
        timestamp = data.get("timestamp")
        if not isinstance(recommendations, list):
            return None
        # bool is an int subclass but never a valid timestamp
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return None

        cached = CachedRecommendations(
            recommendations=[r for r in recommendations if isinstance(r, str)],
            timestamp=int(timestamp),
        )
        if cached.is_expired(self.ttl, now):
            self.logger.debug(
                "Cached recommendations expired",
                age_days=((now or now_ms()) - cached.timestamp) / MILLISECONDS_IN_A_DAY,
            )
            return None

        self.logger.info("Using cached recommendations", count=len(cached.recommendations))
        return cached

    def write(self, cached: CachedRecommendations) -> None:
        self.storage.store(
            DYNAMIC_WORKSPACE_RECOMMENDATIONS_KEY,
            json.dumps(cached.model_dump()),
            StorageScope.WORKSPACE,
        )
        self.logger.debug(
            "Cached dynamic recommendations",
            count=len(cached.recommendations),
            timestamp=cached.timestamp,
        )

    def clear(self) -> None:
        self.storage.remove(DYNAMIC_WORKSPACE_RECOMMENDATIONS_KEY, StorageScope.WORKSPACE)
