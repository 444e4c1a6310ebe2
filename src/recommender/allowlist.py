"""Allow-list predicate applied wherever recommendations are emitted."""

from typing import Callable, Iterable, List


class AllowListFilter:
    """Decides whether an extension may ever be recommended.

    An id is allowed unless it appears, case-insensitively, in the ignored
    recommendations reported by ``ignored_provider``. The provider is queried
    on every call so that ignore decisions take effect immediately.
    """

    def __init__(self, ignored_provider: Callable[[], Iterable[str]]):
        self._ignored_provider = ignored_provider

    def _ignored(self) -> set:
        return {extension_id.lower() for extension_id in self._ignored_provider()}

    def is_allowed(self, extension_id: str) -> bool:
        return extension_id.lower() not in self._ignored()

    def filter(self, extension_ids: Iterable[str]) -> List[str]:
        """Keep allowed ids, preserving order."""
        ignored = self._ignored()
        return [
            extension_id for extension_id in extension_ids if extension_id.lower() not in ignored
        ]
