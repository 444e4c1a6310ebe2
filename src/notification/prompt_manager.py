"""Notification management for important executable tips.

This module turns the important tip pool into at most one notification,
drives the notification through its states as the user reacts, and persists
the user's ignore decisions for the workspace.
"""

import json
import ntpath
from typing import Callable, List, Optional

import structlog

from ..host.configuration import ConfigurationService
from ..host.interfaces import (
    ExtensionActions,
    ExtensionManagementService,
    NotificationService,
    PromptChoice,
    PromptOptions,
    Severity,
    StorageScope,
    StorageService,
    TelemetryService,
)
from ..host.telemetry import log_event
from ..recommender.allowlist import AllowListFilter
from ..recommender.models import ExecutableTip, ExtensionType
from ..recommender.tips import pool_tips
from .models import (
    ACTION_TARGETS,
    EXE_RECOMMENDED_MESSAGE,
    IGNORE_ALL_LABEL,
    IGNORE_ALL_MESSAGE,
    INSTALL_LABEL,
    NEVER_SHOW_AGAIN_LABEL,
    NO_LABEL,
    SHOW_RECOMMENDATIONS_LABEL,
    ImportantTipNotification,
    PromptAction,
    PromptState,
    SuppressionReason,
)

logger = structlog.get_logger(__name__)

WORKSPACE_RECOMMENDATIONS_IGNORE_KEY = "extensionsAssistant/workspaceRecommendationsIgnore"
IMPORTANT_RECOMMENDATIONS_IGNORE_KEY = "extensionsAssistant/importantRecommendationsIgnore"

ALREADY_INSTALLED_EVENT = "exeExtensionRecommendations:alreadyInstalled"
NOT_INSTALLED_EVENT = "exeExtensionRecommendations:notInstalled"
POPUP_EVENT = "exeExtensionRecommendations:popup"


def executable_name(tip: ExecutableTip) -> str:
    """Basename of the tip's executable, for either path separator."""
    return ntpath.basename(tip.executable_path)


class ImportantTipPrompter:
    """Manages the important-tip notification and the ignore state."""

    def __init__(
        self,
        storage: StorageService,
        configuration: ConfigurationService,
        extension_management: ExtensionManagementService,
        notifications: NotificationService,
        telemetry: TelemetryService,
        actions: ExtensionActions,
        allow_list: AllowListFilter,
    ):
        self.storage = storage
        self.configuration = configuration
        self.extension_management = extension_management
        self.notifications = notifications
        self.telemetry = telemetry
        self.actions = actions
        self.allow_list = allow_list
        self.logger = structlog.get_logger(self.__class__.__name__)

        self._notifications: List[ImportantTipNotification] = []

    # Persisted ignore state

    def is_workspace_ignored(self) -> bool:
        return self.storage.get_boolean(
            WORKSPACE_RECOMMENDATIONS_IGNORE_KEY, StorageScope.WORKSPACE, False
        )

    def set_ignore_recommendations(self, ignore: bool) -> None:
        """Set or clear the workspace-wide "ignore all" flag."""
        self.storage.store(WORKSPACE_RECOMMENDATIONS_IGNORE_KEY, ignore, StorageScope.WORKSPACE)
        self.logger.info("Workspace recommendations ignore flag updated", ignore=ignore)

    def get_ignored_important_recommendations(self) -> List[str]:
        raw = self.storage.get(IMPORTANT_RECOMMENDATIONS_IGNORE_KEY, StorageScope.WORKSPACE, "[]")
        try:
            ignored = json.loads(raw or "[]")
        except json.JSONDecodeError:
            self.logger.warning("Resetting unreadable ignored recommendations")
            self.storage.remove(IMPORTANT_RECOMMENDATIONS_IGNORE_KEY, StorageScope.WORKSPACE)
            return []
        if not isinstance(ignored, list):
            return []
        return [str(extension_id).lower() for extension_id in ignored]

    def add_to_important_recommendations_ignore(self, extension_id: str) -> None:
        ignored = self.get_ignored_important_recommendations()
        if extension_id.lower() not in ignored:
            ignored.append(extension_id.lower())
        self.storage.store(
            IMPORTANT_RECOMMENDATIONS_IGNORE_KEY, json.dumps(ignored), StorageScope.WORKSPACE
        )

    def filter_ignored_or_not_allowed(self, extension_ids: List[str]) -> List[str]:
        ignored = set(self.get_ignored_important_recommendations())
        return [
            extension_id
            for extension_id in self.allow_list.filter(extension_ids)
            if extension_id.lower() not in ignored
        ]

    # Notification cycle

    async def prompt_for_important_tips(
        self, tips: List[ExecutableTip]
    ) -> ImportantTipNotification:
        """Run one notification cycle for the important tips.

        Args:
            tips: Important executable tips, in collaborator order

        Returns:
            The notification record; ``prompted`` tells whether a prompt was shown
        """
        pool = pool_tips(tips)
        notification = ImportantTipNotification(candidates=list(pool))
        self._notifications.append(notification)

        installed = await self.extension_management.get_installed(ExtensionType.USER)
        installed_ids = {extension.identifier.lower() for extension in installed}

        candidates = []
        for extension_id in notification.candidates:
            if extension_id in installed_ids:
                log_event(
                    self.telemetry,
                    ALREADY_INSTALLED_EVENT,
                    {"extensionId": extension_id, "exeName": executable_name(pool[extension_id])},
                )
            else:
                candidates.append(extension_id)
        notification.candidates = candidates
        notification.transition(PromptState.FILTERED)

        if not candidates:
            return self._suppress(notification, SuppressionReason.ALL_INSTALLED)

        for extension_id in candidates:
            log_event(
                self.telemetry,
                NOT_INSTALLED_EVENT,
                {"extensionId": extension_id, "exeName": executable_name(pool[extension_id])},
            )

        config = self.configuration.get_extensions_configuration()
        if config.ignore_recommendations:
            return self._suppress(notification, SuppressionReason.IGNORE_RECOMMENDATIONS_CONFIGURED)
        if config.show_recommendations_only_on_demand:
            return self._suppress(notification, SuppressionReason.ON_DEMAND_ONLY)
        if self.is_workspace_ignored():
            return self._suppress(notification, SuppressionReason.WORKSPACE_IGNORED)

        notification.candidates = self.filter_ignored_or_not_allowed(candidates)
        if not notification.candidates:
            return self._suppress(notification, SuppressionReason.ALL_IGNORED)

        # Only the first candidate is offered; the rest wait for a later session
        extension_id = notification.candidates[0]
        tip = pool[extension_id]
        notification.extension_id = extension_id
        notification.tip = tip
        notification.transition(PromptState.PROMPTED)

        message = EXE_RECOMMENDED_MESSAGE.format(
            tip.friendly_name, tip.exe_friendly_name or executable_name(tip)
        )
        self.notifications.prompt(
            Severity.INFO,
            message,
            [
                PromptChoice(
                    label=INSTALL_LABEL,
                    run=self._reaction(notification, PromptAction.INSTALL),
                ),
                PromptChoice(
                    label=SHOW_RECOMMENDATIONS_LABEL,
                    run=self._reaction(notification, PromptAction.SHOW_RECOMMENDATIONS),
                ),
                PromptChoice(
                    label=NEVER_SHOW_AGAIN_LABEL,
                    run=self._reaction(notification, PromptAction.NEVER_SHOW_AGAIN),
                    is_secondary=True,
                ),
            ],
            PromptOptions(
                sticky=True,
                on_cancel=self._reaction(notification, PromptAction.CANCEL),
            ),
        )

        self.logger.info(
            "Prompted for important executable tip",
            notification_id=notification.notification_id,
            extension_id=extension_id,
            dropped=len(notification.candidates) - 1,
        )
        return notification

    def _suppress(
        self, notification: ImportantTipNotification, reason: SuppressionReason
    ) -> ImportantTipNotification:
        notification.suppression_reason = reason
        notification.transition(PromptState.SUPPRESSED)
        self.logger.debug(
            "Important tip notification suppressed",
            notification_id=notification.notification_id,
            reason=reason.value,
        )
        return notification

    def _reaction(
        self, notification: ImportantTipNotification, action: PromptAction
    ) -> Callable[[], None]:
        def run() -> None:
            self.handle(notification, action)

        return run

    def handle(self, notification: ImportantTipNotification, action: PromptAction) -> None:
        """Apply a user reaction to a prompted notification.

        Raises:
            InvalidTransitionError: If the notification cannot take this reaction
        """
        notification.transition(ACTION_TARGETS[action])
        extension_id = notification.extension_id or ""

        self.logger.info(
            "Important tip notification reaction",
            notification_id=notification.notification_id,
            extension_id=extension_id,
            action=action.value,
        )

        if action == PromptAction.INSTALL:
            self._log_reaction(action, extension_id)
            self.actions.install_extension(extension_id)
        elif action == PromptAction.SHOW_RECOMMENDATIONS:
            self._log_reaction(action, extension_id)
            self.actions.show_recommended_extensions()
        elif action == PromptAction.NEVER_SHOW_AGAIN:
            self.add_to_important_recommendations_ignore(extension_id)
            self._log_reaction(action, extension_id)
            self.notifications.prompt(
                Severity.INFO,
                IGNORE_ALL_MESSAGE,
                [
                    PromptChoice(
                        label=IGNORE_ALL_LABEL,
                        run=self._reaction(notification, PromptAction.IGNORE_ALL),
                    ),
                    PromptChoice(
                        label=NO_LABEL,
                        run=self._reaction(notification, PromptAction.KEEP_RECOMMENDATIONS),
                    ),
                ],
            )
        elif action == PromptAction.CANCEL:
            self._log_reaction(action, extension_id)
        elif action == PromptAction.IGNORE_ALL:
            self.set_ignore_recommendations(True)
        elif action == PromptAction.KEEP_RECOMMENDATIONS:
            self.set_ignore_recommendations(False)

    def _log_reaction(self, action: PromptAction, extension_id: str) -> None:
        log_event(
            self.telemetry,
            POPUP_EVENT,
            {"userReaction": action.value, "extensionId": extension_id},
        )

    def get_notification_history(
        self, state: Optional[PromptState] = None
    ) -> List[ImportantTipNotification]:
        """Notification cycles of this session, optionally filtered by state."""
        if state is None:
            return list(self._notifications)
        return [n for n in self._notifications if n.state == state]
