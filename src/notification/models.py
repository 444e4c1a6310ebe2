"""Notification models for the extension recommender.

This module defines the states and transitions of the important-tip
notification, and the records kept for each notification cycle.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field

from ..recommender.models import ExecutableTip, ExtensionRecommendationError

EXE_RECOMMENDED_MESSAGE = (
    "The '{0}' extension is recommended as you have {1} installed on your system."
)
IGNORE_ALL_MESSAGE = "Do you want to ignore all extension recommendations?"
INSTALL_LABEL = "Install"
SHOW_RECOMMENDATIONS_LABEL = "Show Recommendations"
NEVER_SHOW_AGAIN_LABEL = "Don't Show Again"
IGNORE_ALL_LABEL = "Yes, Ignore All"
NO_LABEL = "No"


class PromptState(str, Enum):
    """States of one important-tip notification cycle."""

    COLLECTED = "collected"
    FILTERED = "filtered"
    SUPPRESSED = "suppressed"
    PROMPTED = "prompted"
    INSTALLED = "installed"
    SHOW_ALL = "show_all"
    NEVER_SHOW_AGAIN = "never_show_again"
    IGNORE_ALL_CONFIRMED = "ignore_all_confirmed"
    IGNORE_ALL_DECLINED = "ignore_all_declined"
    CANCELLED = "cancelled"


class PromptAction(str, Enum):
    """User reactions to the notification and its follow-up question."""

    INSTALL = "install"
    SHOW_RECOMMENDATIONS = "show"
    NEVER_SHOW_AGAIN = "neverShowAgain"
    CANCEL = "cancelled"
    IGNORE_ALL = "ignoreAll"
    KEEP_RECOMMENDATIONS = "keepRecommendations"


class SuppressionReason(str, Enum):
    """Why no notification was raised."""

    ALL_INSTALLED = "all_installed"
    IGNORE_RECOMMENDATIONS_CONFIGURED = "ignore_recommendations_configured"
    ON_DEMAND_ONLY = "on_demand_only"
    WORKSPACE_IGNORED = "workspace_ignored"
    ALL_IGNORED = "all_ignored"


TRANSITIONS: Dict[PromptState, FrozenSet[PromptState]] = {
    PromptState.COLLECTED: frozenset({PromptState.FILTERED}),
    PromptState.FILTERED: frozenset({PromptState.SUPPRESSED, PromptState.PROMPTED}),
    PromptState.PROMPTED: frozenset(
        {
            PromptState.INSTALLED,
            PromptState.SHOW_ALL,
            PromptState.NEVER_SHOW_AGAIN,
            PromptState.CANCELLED,
        }
    ),
    PromptState.NEVER_SHOW_AGAIN: frozenset(
        {PromptState.IGNORE_ALL_CONFIRMED, PromptState.IGNORE_ALL_DECLINED}
    ),
}

ACTION_TARGETS: Dict[PromptAction, PromptState] = {
    PromptAction.INSTALL: PromptState.INSTALLED,
    PromptAction.SHOW_RECOMMENDATIONS: PromptState.SHOW_ALL,
    PromptAction.NEVER_SHOW_AGAIN: PromptState.NEVER_SHOW_AGAIN,
    PromptAction.CANCEL: PromptState.CANCELLED,
    PromptAction.IGNORE_ALL: PromptState.IGNORE_ALL_CONFIRMED,
    PromptAction.KEEP_RECOMMENDATIONS: PromptState.IGNORE_ALL_DECLINED,
}


class InvalidTransitionError(ExtensionRecommendationError):
    """Raised when a notification is driven into a state it cannot reach."""

    def __init__(self, current: PromptState, target: PromptState):
        super().__init__(
            f"Cannot move notification from {current.value} to {target.value}",
            "INVALID_TRANSITION",
        )
        self.details = {"current": current.value, "target": target.value}


class TransitionRecord(BaseModel):
    """One state change of a notification."""

    from_state: PromptState = Field(..., description="State before the change")
    to_state: PromptState = Field(..., description="State after the change")
    extension_id: Optional[str] = Field(None, description="Extension surfaced at the time")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the change happened",
    )


class ImportantTipNotification(BaseModel):
    """Tracks one notification cycle for the important executable tips."""

    notification_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Unique cycle ID"
    )
    state: PromptState = Field(PromptState.COLLECTED, description="Current state")
    candidates: List[str] = Field(
        default_factory=list, description="Candidate ids remaining after filtering"
    )
    extension_id: Optional[str] = Field(None, description="Extension surfaced, if any")
    tip: Optional[ExecutableTip] = Field(None, description="Tip of the surfaced extension")
    suppression_reason: Optional[SuppressionReason] = Field(
        None, description="Why the cycle ended without a prompt"
    )
    history: List[TransitionRecord] = Field(
        default_factory=list, description="State changes, oldest first"
    )

    @property
    def prompted(self) -> bool:
        return any(record.to_state == PromptState.PROMPTED for record in self.history)

    def is_terminal(self) -> bool:
        return self.state not in TRANSITIONS

    def transition(self, target: PromptState) -> None:
        if target not in TRANSITIONS.get(self.state, frozenset()):
            raise InvalidTransitionError(self.state, target)
        self.history.append(
            TransitionRecord(
                from_state=self.state, to_state=target, extension_id=self.extension_id
            )
        )
        self.state = target
