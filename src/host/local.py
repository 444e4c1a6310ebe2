"""Collaborators backed by a local YAML profile.

A profile describes what the host would normally supply: detected
executables, installed extensions, the base heuristic's recommendations and
the user's ignored recommendations::

    important:
      - extensionId: ms-python.python
        friendlyName: Python
        executablePath: /usr/bin/python3
    other: []
    installed: [eamodio.gitlens]
    base:
      - extensionId: redhat.vscode-yaml
        reason: This extension is recommended based on the files you recently opened.
    ignored: [some.publisher-extension]
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field

from ..recommender.models import (
    ExecutableTip,
    ExtensionRecommendation,
    ExtensionRecommendationReason,
    ExtensionType,
    InstalledExtension,
    RecommendationReason,
)

logger = structlog.get_logger(__name__)


class BaseRecommendationEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    extension_id: str = Field(..., alias="extensionId")
    reason: str = Field("", description="Reason text from the base heuristic")
    reason_id: ExtensionRecommendationReason = Field(
        ExtensionRecommendationReason.FILE, alias="reasonId"
    )


class RecommendationProfile(BaseModel):
    """Everything the host collaborators report, as one document."""

    important: List[ExecutableTip] = Field(default_factory=list)
    other: List[ExecutableTip] = Field(default_factory=list)
    installed: List[str] = Field(default_factory=list)
    base: List[BaseRecommendationEntry] = Field(default_factory=list)
    ignored: List[str] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Optional[Path]) -> "RecommendationProfile":
        if path is None:
            return cls()
        with open(path, encoding="utf-8") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
        profile = cls.model_validate(data)
        logger.info(
            "Loaded recommendation profile",
            path=str(path),
            important=len(profile.important),
            other=len(profile.other),
        )
        return profile


class StaticTipsService:
    def __init__(self, profile: RecommendationProfile):
        self.profile = profile

    async def get_important_executable_based_tips(self) -> List[ExecutableTip]:
        return list(self.profile.important)

    async def get_other_executable_based_tips(self) -> List[ExecutableTip]:
        return list(self.profile.other)


class StaticExtensionManagementService:
    def __init__(self, profile: RecommendationProfile):
        self.profile = profile

    async def get_installed(
        self, extension_type: Optional[ExtensionType] = None
    ) -> List[InstalledExtension]:
        return [
            InstalledExtension(identifier=extension_id, type=ExtensionType.USER)
            for extension_id in self.profile.installed
            if extension_type in (None, ExtensionType.USER)
        ]


class StaticBaseRecommendations:
    def __init__(self, profile: RecommendationProfile):
        self.profile = profile

    async def get_other_recommendations(self) -> List[ExtensionRecommendation]:
        return [
            ExtensionRecommendation(extension_id=entry.extension_id)
            for entry in self.profile.base
        ]

    def get_all_recommendations_with_reason(self) -> Dict[str, RecommendationReason]:
        return {
            entry.extension_id.lower(): RecommendationReason(
                reason_id=entry.reason_id, reason_text=entry.reason
            )
            for entry in self.profile.base
        }

    def get_ignored_recommendations(self) -> List[str]:
        return list(self.profile.ignored)
