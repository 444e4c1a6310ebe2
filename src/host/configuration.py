"""Runtime extension settings with change notifications."""

from typing import Callable, Dict, Optional

import structlog
from pydantic import BaseModel, Field

from .events import Disposable, Emitter
from .interfaces import ConfigurationChangeEvent

IGNORE_RECOMMENDATIONS_KEY = "extensions.ignoreRecommendations"
SHOW_RECOMMENDATIONS_ONLY_ON_DEMAND_KEY = "extensions.showRecommendationsOnlyOnDemand"

_FIELD_KEYS: Dict[str, str] = {
    "ignore_recommendations": IGNORE_RECOMMENDATIONS_KEY,
    "show_recommendations_only_on_demand": SHOW_RECOMMENDATIONS_ONLY_ON_DEMAND_KEY,
}


class ExtensionsConfiguration(BaseModel):
    """User settings that gate extension recommendations."""

    ignore_recommendations: bool = Field(
        False, description="Never show extension recommendation notifications"
    )
    show_recommendations_only_on_demand: bool = Field(
        False, description="Only compute recommendations when explicitly asked"
    )


class ConfigurationService:
    """Holds the current extensions configuration and fires change events."""

    def __init__(self, configuration: Optional[ExtensionsConfiguration] = None):
        self.logger = structlog.get_logger(self.__class__.__name__)
        self._configuration = configuration or ExtensionsConfiguration()
        self._on_did_change = Emitter[ConfigurationChangeEvent]()

    def get_extensions_configuration(self) -> ExtensionsConfiguration:
        return self._configuration.model_copy()

    def get_value(self, key: str) -> bool:
        for field_name, field_key in _FIELD_KEYS.items():
            if field_key == key:
                return bool(getattr(self._configuration, field_name))
        raise KeyError(f"Unknown configuration key: {key}")

    def update(self, **changes: bool) -> ConfigurationChangeEvent:
        """Apply setting changes and notify listeners about the affected keys."""
        affected = []
        for field_name, value in changes.items():
            if field_name not in _FIELD_KEYS:
                raise KeyError(f"Unknown configuration field: {field_name}")
            if getattr(self._configuration, field_name) != value:
                affected.append(_FIELD_KEYS[field_name])

        self._configuration = self._configuration.model_copy(update=changes)
        event = ConfigurationChangeEvent(affected_keys=affected)
        if affected:
            self.logger.info("Extensions configuration changed", affected_keys=affected)
            self._on_did_change.fire(event)
        return event

    def on_did_change_configuration(
        self, listener: Callable[[ConfigurationChangeEvent], None]
    ) -> Disposable:
        return self._on_did_change.event(listener)
