"""HTTP client for the transcription service."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import httpx
from pydantic import ValidationError

from .models import Config, Upload

LOGIN_PATH = "/api/auth/login"
VERIFY_PATH = "/api/auth/verify-code"
UPLOADS_PATH = "/api/uploads/obsidian"
SYNC_PATH = "/api/uploads/obsidian/sync/{upload_id}"

GENERIC_ERROR = "Unknown error"


class ServiceError(RuntimeError):
    """Base class for failures talking to the service."""


class TransportError(ServiceError):
    """The request never produced a usable response (network, timeout, bad body)."""


class ApplicationError(ServiceError):
    """The service answered with a structured error or a failure status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


class ServiceClient:
    """Thin wrapper around the four endpoints the sync client relies on."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        verify: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.verify = verify
        self._transport = transport

    @classmethod
    def from_config(cls, cfg: Config, transport: Optional[httpx.BaseTransport] = None) -> "ServiceClient":
        return cls(cfg.base_url, timeout=cfg.api_timeout, verify=cfg.verify_ssl, transport=transport)

    @contextmanager
    def _client(self, token: Optional[str] = None) -> Iterator[httpx.Client]:
        if not self.base_url:
            raise TransportError("No service URL configured. Run `voxsync config --base-url https://host` first.")
        headers: Dict[str, str] = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        with httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            verify=self.verify,
            transport=self._transport,
        ) as client:
            yield client

    def _request(self, method: str, path: str, *, token: Optional[str] = None, json: Any = None) -> Any:
        try:
            with self._client(token) as client:
                response = client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            target = f"{method} {path}"
            logging.debug("Request %s failed: %s", target, exc)
            raise TransportError(f"Request to {target} failed: {exc}") from exc

        try:
            payload = response.json() if response.content else None
        except ValueError as exc:
            if response.is_error:
                raise ApplicationError(
                    response.text or f"Service returned HTTP {response.status_code}",
                    response.status_code,
                ) from exc
            raise TransportError(f"Service returned a non-JSON response for {method} {path}") from exc

        if response.is_error:
            raise ApplicationError(
                _error_message(payload, f"Service returned HTTP {response.status_code}"),
                response.status_code,
            )
        if isinstance(payload, dict) and payload.get("error"):
            raise ApplicationError(_error_message(payload, GENERIC_ERROR), response.status_code)
        return payload

    def login(self, email: str) -> str:
        """Ask the service to email a one-time code; return the auth request id."""
        payload = self._request("POST", LOGIN_PATH, json={"email": email})
        auth_request_id = payload.get("auth_request_id") if isinstance(payload, dict) else None
        if not auth_request_id:
            raise ApplicationError("Login response did not include an auth request id")
        return str(auth_request_id)

    def verify_code(self, auth_request_id: str, code: str) -> str:
        """Exchange the one-time code for a bearer token."""
        payload = self._request("POST", VERIFY_PATH, json={"auth_request_id": auth_request_id, "code": code})
        token = payload.get("jwt_token") if isinstance(payload, dict) else None
        if not token:
            raise ApplicationError("Verification response did not include a token")
        return str(token)

    def list_uploads(self, token: str, errors: Optional[List[str]] = None) -> List[Upload]:
        """Return the pending uploads.

        Items that fail validation are skipped; a message for each is appended
        to ``errors`` when given.
        """
        payload = self._request("GET", UPLOADS_PATH, token=token)
        if not payload:
            return []
        if not isinstance(payload, list):
            raise ApplicationError("Unexpected response when listing uploads")
        uploads = []
        for index, item in enumerate(payload):
            try:
                uploads.append(Upload.model_validate(item))
            except ValidationError as exc:
                message = f"Skipping malformed upload #{index} in response: {exc.error_count()} validation error(s)"
                logging.warning("%s: %s", message, exc)
                if errors is not None:
                    errors.append(message)
        return uploads

    def acknowledge(self, token: str, upload_id: str) -> None:
        self._request("POST", SYNC_PATH.format(upload_id=upload_id), token=token)
