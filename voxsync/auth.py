"""Email + one-time-code login flow."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .client import GENERIC_ERROR, ServiceClient, ServiceError
from .config import ConfigError
from .credentials import CredentialStore
from .prompts import Presenter


class AuthState(str, Enum):
    IDLE = "idle"
    AWAITING_EMAIL = "awaiting_email"
    AWAITING_OTP = "awaiting_otp"
    AUTHENTICATED = "authenticated"


class InvalidState(RuntimeError):
    """Raised when a login step is attempted out of order."""


@dataclass(slots=True, frozen=True)
class AuthResult:
    ok: bool
    message: str
    state: AuthState
    error: Optional[Exception] = None


class AuthFlow:
    """Drive the two-step login and store the resulting token.

    The flow never raises past its public methods: every outcome is reported
    as an :class:`AuthResult` and echoed to the presenter with ``notify``.
    Failures leave the flow in the state it was in, so the user can simply
    submit again.
    """

    def __init__(self, client: ServiceClient, credentials: CredentialStore, presenter: Presenter) -> None:
        self.client = client
        self.credentials = credentials
        self.presenter = presenter
        self._guard = threading.Lock()
        self._request_lock = threading.Lock()
        self._login_open = False
        if credentials.is_authenticated():
            self._state = AuthState.AUTHENTICATED
        elif credentials.get().pending_auth_request_id:
            self._state = AuthState.AWAITING_OTP
        else:
            self._state = AuthState.IDLE

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def login_open(self) -> bool:
        return self._login_open

    def start(self) -> bool:
        """Open the email prompt unless a login flow is already showing."""
        with self._guard:
            if self._login_open:
                logging.debug("Login flow already open; not prompting again.")
                return False
            self._login_open = True
            self._state = AuthState.AWAITING_EMAIL
        self.presenter.show_email_prompt(self.submit_email)
        return True

    def submit_email(self, email: str) -> AuthResult:
        email = (email or "").strip()
        if not email:
            return self._fail("Please enter your email address.")
        if not self._request_lock.acquire(blocking=False):
            logging.debug("Login request already in flight; ignoring submission.")
            return AuthResult(False, "A login request is already in progress.", self._state)
        try:
            try:
                auth_request_id = self.client.login(email)
                self.credentials.set_pending_auth_request(auth_request_id)
            except (ServiceError, ConfigError) as exc:
                return self._fail(str(exc) or GENERIC_ERROR, exc)
            self._state = AuthState.AWAITING_OTP
        finally:
            self._request_lock.release()

        logging.info("One-time code requested for %s", email)
        self.presenter.notify("OTP sent to your email.")
        self.presenter.dismiss_email_prompt()
        self.presenter.show_otp_prompt(self.submit_otp)
        return AuthResult(True, "OTP sent to your email.", AuthState.AWAITING_OTP)

    def submit_otp(self, code: str) -> AuthResult:
        try:
            auth_request_id = self._pending_request_id()
        except InvalidState as exc:
            return self._fail(str(exc), exc)
        code = (code or "").strip()
        if not code:
            return self._fail("Please enter the code from your email.")

        try:
            token = self.client.verify_code(auth_request_id, code)
            self.credentials.set_token(token)
        except (ServiceError, ConfigError) as exc:
            return self._fail(str(exc) or GENERIC_ERROR, exc)

        with self._guard:
            self._state = AuthState.AUTHENTICATED
            self._login_open = False
        self.presenter.dismiss_otp_prompt()
        self.presenter.notify("Login successful!")
        return AuthResult(True, "Login successful!", AuthState.AUTHENTICATED)

    def abandon(self) -> None:
        """Close any open prompt and forget the pending login."""
        with self._guard:
            was_open = self._login_open
            self._login_open = False
            self._state = AuthState.AUTHENTICATED if self.credentials.is_authenticated() else AuthState.IDLE
        if not was_open:
            return
        self.presenter.dismiss_email_prompt()
        self.presenter.dismiss_otp_prompt()
        try:
            self.credentials.clear_pending_auth_request()
        except ConfigError as exc:
            logging.warning("Could not clear pending login: %s", exc)

    def _pending_request_id(self) -> str:
        pending = self.credentials.get().pending_auth_request_id
        if not pending:
            raise InvalidState("No auth request ID found. Please start the process again.")
        return pending

    def _fail(self, message: str, error: Optional[Exception] = None) -> AuthResult:
        logging.warning("Login step failed: %s", message)
        self.presenter.notify(message)
        return AuthResult(False, message, self._state, error)
