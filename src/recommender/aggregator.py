"""Merging of recommendation sources.

The merged list is built from three sources in precedence order: the
executable tip pool, the dynamic workspace list, then the base heuristic.
Duplicates keep their first position; the allow-list and the session shuffle
are applied afterwards, and every surviving id is tagged with the signals that
contributed it.
"""

from typing import Collection, Dict, Iterable, List, Mapping, Optional

import structlog

from .allowlist import AllowListFilter
from .models import (
    ExtensionRecommendation,
    ExtensionRecommendationReason,
    ExtensionRecommendationSource,
    ExecutableTip,
    RecommendationReason,
)
from .shuffle import shuffle

logger = structlog.get_logger(__name__)

DYNAMIC_WORKSPACE_REASON = (
    "This extension may interest you because it's popular among users of the {0} repository."
)
EXECUTABLE_REASON = "This extension is recommended because you have {0} installed."


def merge_distinct(*sources: Iterable[str]) -> List[str]:
    """Concatenate sources, keeping only the first occurrence of each id."""
    seen = set()
    merged = []
    for source in sources:
        for extension_id in source:
            if extension_id not in seen:
                seen.add(extension_id)
                merged.append(extension_id)
    return merged


def recommendation_sources(
    extension_id: str,
    executable_ids: Collection[str],
    dynamic_ids: Collection[str],
) -> List[ExtensionRecommendationSource]:
    sources = []
    if extension_id in executable_ids:
        sources.append(ExtensionRecommendationSource.EXECUTABLE)
    if extension_id in dynamic_ids:
        sources.append(ExtensionRecommendationSource.DYNAMIC)
    return sources


class RecommendationAggregator:
    """Combines executable, dynamic workspace and base recommendations."""

    def __init__(self, allow_list: AllowListFilter, session_seed: int):
        self.allow_list = allow_list
        self.session_seed = session_seed
        self.logger = structlog.get_logger(self.__class__.__name__)

    def merge(
        self,
        executable_ids: List[str],
        dynamic_ids: List[str],
        base: List[ExtensionRecommendation],
    ) -> List[ExtensionRecommendation]:
        """Build the ordered, deduplicated, source-tagged list."""
        others = merge_distinct(
            executable_ids, dynamic_ids, (entry.extension_id for entry in base)
        )
        others = shuffle(self.allow_list.filter(others), self.session_seed)

        executable_set = set(executable_ids)
        dynamic_set = set(dynamic_ids)
        result = [
            ExtensionRecommendation(
                extension_id=extension_id,
                sources=recommendation_sources(extension_id, executable_set, dynamic_set),
            )
            for extension_id in others
        ]

        self.logger.debug(
            "Merged other recommendations",
            executable=len(executable_ids),
            dynamic=len(dynamic_ids),
            base=len(base),
            merged=len(result),
        )
        return result

    def compose_reasons(
        self,
        base: Dict[str, RecommendationReason],
        dynamic_ids: List[str],
        executable_tips: Mapping[str, ExecutableTip],
        folder_name: Optional[str] = None,
    ) -> Dict[str, RecommendationReason]:
        """Overlay dynamic and executable reasons on the base reasons.

        Executable reasons win over dynamic workspace reasons, which win over
        base reasons. Dynamic workspace reasons are only added when a folder
        name is given (single-folder workspaces).
        """
        output = dict(base)

        if folder_name is not None:
            for extension_id in dynamic_ids:
                output[extension_id.lower()] = RecommendationReason(
                    reason_id=ExtensionRecommendationReason.DYNAMIC_WORKSPACE,
                    reason_text=DYNAMIC_WORKSPACE_REASON.format(folder_name),
                )

        for extension_id, tip in executable_tips.items():
            output[extension_id.lower()] = RecommendationReason(
                reason_id=ExtensionRecommendationReason.EXECUTABLE,
                reason_text=EXECUTABLE_REASON.format(tip.friendly_name),
            )

        return {
            extension_id: reason
            for extension_id, reason in output.items()
            if self.allow_list.is_allowed(extension_id)
        }
