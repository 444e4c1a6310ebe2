"""Terminal implementations of the notification and action collaborators."""

from typing import List, Optional

import structlog
import typer

from .interfaces import PromptChoice, PromptOptions, Severity


class ConsoleNotificationService:
    """Shows prompts on the terminal.

    In interactive mode the user picks a choice by number and ``0`` dismisses
    the prompt. Otherwise prompts are only printed and left unanswered.
    """

    def __init__(self, interactive: bool = False):
        self.interactive = interactive
        self.logger = structlog.get_logger(self.__class__.__name__)
        self.shown: List[str] = []

    def prompt(
        self,
        severity: Severity,
        message: str,
        choices: List[PromptChoice],
        options: Optional[PromptOptions] = None,
    ) -> None:
        self.shown.append(message)
        typer.echo(f"[{severity.value}] {message}")
        for index, choice in enumerate(choices, start=1):
            secondary = " (secondary)" if choice.is_secondary else ""
            typer.echo(f"  {index}. {choice.label}{secondary}")

        if not self.interactive:
            return

        typer.echo("  0. Dismiss")
        selected = typer.prompt("Choice", type=int, default=0)
        while not 0 <= selected <= len(choices):
            typer.echo(f"Enter a number between 0 and {len(choices)}")
            selected = typer.prompt("Choice", type=int, default=0)
        if selected == 0:
            if options and options.on_cancel:
                options.on_cancel()
            return
        choices[selected - 1].run()


class ConsoleExtensionActions:
    """Reports the actions the host would perform."""

    def __init__(self) -> None:
        self.logger = structlog.get_logger(self.__class__.__name__)
        self.installed: List[str] = []

    def install_extension(self, extension_id: str) -> None:
        self.installed.append(extension_id)
        self.logger.info("Install requested", extension_id=extension_id)
        typer.echo(f"Install requested for {extension_id}")

    def show_recommended_extensions(self) -> None:
        self.logger.info("Recommended extensions view requested")
        typer.echo("Showing recommended extensions")
