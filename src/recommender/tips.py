"""Executable-based tip collection.

Tips come from an external collaborator in two tiers. The important tier is
fetched shortly after startup and may raise a notification; the other tier
only feeds the general recommendation list. Both land in one pool keyed by
lower-cased extension id.
"""

from collections.abc import MutableMapping
from typing import Any, Dict, Iterable, Iterator, List

import structlog

from ..host.interfaces import ExtensionTipsService
from .models import ExecutableTip

logger = structlog.get_logger(__name__)


class CaseInsensitiveDict(MutableMapping):
    """Mapping whose string keys are lower-cased on insert and lookup.

    Insertion order of first insert is kept; overwriting a key keeps its
    position.
    """

    def __init__(self, items: Any = None):
        self._data: Dict[str, Any] = {}
        if items:
            self.update(items)

    def __getitem__(self, key: str) -> Any:
        return self._data[key.lower()]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key.lower()] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._data!r})"


def pool_tips(tips: Iterable[ExecutableTip]) -> "CaseInsensitiveDict":
    """Build a fresh pool from tips; a later tip for the same id wins."""
    pool = CaseInsensitiveDict()
    for tip in tips:
        pool[tip.extension_id] = tip
    return pool


class ExecutableTipCollector:
    """Fetches executable-based tips and keeps the merged pool."""

    def __init__(self, tips_service: ExtensionTipsService):
        self.tips_service = tips_service
        self.logger = structlog.get_logger(self.__class__.__name__)
        self.pool = CaseInsensitiveDict()

    def merge(self, tips: Iterable[ExecutableTip]) -> None:
        """Overwrite pool entries with the given tips."""
        for tip in tips:
            self.pool[tip.extension_id] = tip

    async def fetch_important(self) -> List[ExecutableTip]:
        tips = list(await self.tips_service.get_important_executable_based_tips())
        self.merge(tips)
        self.logger.info("Fetched important executable tips", count=len(tips))
        return tips

    async def fetch_other(self) -> List[ExecutableTip]:
        tips = list(await self.tips_service.get_other_executable_based_tips())
        self.merge(tips)
        self.logger.info("Fetched other executable tips", count=len(tips))
        return tips

    def extension_ids(self) -> List[str]:
        return list(self.pool)
