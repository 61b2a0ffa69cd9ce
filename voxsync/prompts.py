"""Presentation hooks used by the login flow, and a console implementation."""

from __future__ import annotations

from typing import Any, Callable, Protocol

import typer

SubmitCallback = Callable[[str], Any]


class Presenter(Protocol):
    def show_email_prompt(self, on_submit: SubmitCallback) -> None: ...

    def show_otp_prompt(self, on_submit: SubmitCallback) -> None: ...

    def dismiss_email_prompt(self) -> None: ...

    def dismiss_otp_prompt(self) -> None: ...

    def notify(self, message: str) -> None: ...


class ConsolePresenter:
    """Ask for the email and code on the terminal.

    Each prompt keeps asking until the flow dismisses it, so a rejected email
    or a wrong code simply re-prompts. Ctrl-C raises :class:`typer.Abort`,
    which the caller turns into an abandoned login.
    """

    def __init__(self) -> None:
        self._email_open = False
        self._otp_open = False

    def show_email_prompt(self, on_submit: SubmitCallback) -> None:
        self._email_open = True
        while self._email_open:
            on_submit(typer.prompt("Email"))

    def show_otp_prompt(self, on_submit: SubmitCallback) -> None:
        self._otp_open = True
        while self._otp_open:
            on_submit(typer.prompt("One-time code"))

    def dismiss_email_prompt(self) -> None:
        self._email_open = False

    def dismiss_otp_prompt(self) -> None:
        self._otp_open = False

    def notify(self, message: str) -> None:
        typer.secho(message, fg=typer.colors.BLUE, err=True)


class SilentPresenter:
    """Presenter for unattended runs: it records messages and never prompts."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def show_email_prompt(self, on_submit: SubmitCallback) -> None:
        self.notify("Not logged in. Run `voxsync login` first.")

    def show_otp_prompt(self, on_submit: SubmitCallback) -> None:
        self.notify("Run `voxsync login` to enter the one-time code.")

    def dismiss_email_prompt(self) -> None:
        pass

    def dismiss_otp_prompt(self) -> None:
        pass

    def notify(self, message: str) -> None:
        self.messages.append(message)
