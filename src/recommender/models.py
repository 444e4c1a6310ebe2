"""Recommendation models for the extension recommender.

This module defines data models for executable tips, remote workspace
recommendation sets, cached results, and the error hierarchy.
"""

import time
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

MILLISECONDS_IN_A_DAY = 1000 * 60 * 60 * 24


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class ExtensionRecommendationReason(str, Enum):
    """Why an extension is being recommended."""

    WORKSPACE = "workspace"
    FILE = "file"
    EXECUTABLE = "executable"
    DYNAMIC_WORKSPACE = "dynamicWorkspace"
    EXPERIMENTAL = "experimental"
    APPLICATION = "application"


class ExtensionRecommendationSource(str, Enum):
    """Signals that contributed an extension to the merged list."""

    EXECUTABLE = "executable"
    DYNAMIC = "dynamic"


class ExtensionType(str, Enum):
    """Installed extension types."""

    SYSTEM = "system"
    USER = "user"


class ExecutableTip(BaseModel):
    """A suggestion sourced from an executable found on the machine."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    extension_id: str = Field(..., alias="extensionId", description="Extension identifier")
    friendly_name: str = Field(
        ..., alias="friendlyName", description="Display name of the extension"
    )
    exe_friendly_name: Optional[str] = Field(
        None, alias="exeFriendlyName", description="Display name of the executable"
    )
    executable_path: str = Field(
        ..., alias="executablePath", description="Path of the detected executable"
    )

    @property
    def key(self) -> str:
        """Lower-cased extension id used for pooling."""
        return self.extension_id.lower()


class DynamicWorkspaceRecommendationSet(BaseModel):
    """A remote popularity entry mapping repository fingerprints to extensions."""

    model_config = ConfigDict(populate_by_name=True)

    remote_set: List[str] = Field(
        default_factory=list, alias="remoteSet", description="Repository fingerprints"
    )
    recommendations: List[str] = Field(
        default_factory=list, description="Recommended extension ids, in order"
    )


class CachedRecommendations(BaseModel):
    """Dynamic workspace recommendations persisted per workspace."""

    recommendations: List[str] = Field(..., description="Cached extension ids")
    timestamp: int = Field(
        default_factory=now_ms, description="Epoch milliseconds when cached"
    )

    def is_expired(self, ttl: timedelta = timedelta(days=14), now: Optional[int] = None) -> bool:
        """Check whether the entry is outside its validity window."""
        if self.timestamp <= 0:
            return True
        current = now if now is not None else now_ms()
        ttl_ms = ttl.total_seconds() * 1000
        return current - self.timestamp >= ttl_ms


class ExtensionRecommendation(BaseModel):
    """One entry of the merged "other recommendations" list."""

    extension_id: str = Field(..., description="Extension identifier")
    sources: List[ExtensionRecommendationSource] = Field(
        default_factory=list,
        description="Signals that contributed this id; empty means base heuristic only",
    )


class RecommendationReason(BaseModel):
    """A reason attached to a recommended extension."""

    reason_id: ExtensionRecommendationReason = Field(..., description="Reason kind")
    reason_text: str = Field(..., description="Human-readable justification")


class InstalledExtension(BaseModel):
    """Minimal descriptor of an installed extension."""

    identifier: str = Field(..., description="Extension identifier")
    type: ExtensionType = Field(ExtensionType.USER, description="Extension type")


class ExtensionRecommendationError(Exception):
    """Base exception for recommendation errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "RECOMMENDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class RemoteRecommendationsError(ExtensionRecommendationError):
    """Raised when the remote recommendation index cannot be used."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, "REMOTE_RECOMMENDATIONS_ERROR")
        self.details = {"url": url, "status_code": status_code}


class CacheCorruptedError(ExtensionRecommendationError):
    """Raised when a cached entry cannot be parsed."""

    def __init__(self, message: str, key: str):
        super().__init__(message, "CACHE_CORRUPTED")
        self.details = {"key": key}


class ConfigurationError(ExtensionRecommendationError):
    """Raised when the service is configured inconsistently."""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(message, "CONFIGURATION_ERROR")
        self.details = {"setting": setting}
