"""Bearer token and pending login state, persisted in the configuration file."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from . import config as config_mod
from .models import Credential


class CredentialStore:
    """Keep the current :class:`Credential` in memory and on disk.

    Every mutation is written to the configuration file first; the in-memory
    snapshot only changes once the write succeeded. A failed write raises
    :class:`~voxsync.config.ConfigError` and leaves the previous state intact.
    """

    def __init__(self, credential: Optional[Credential] = None) -> None:
        self._lock = threading.Lock()
        if credential is None:
            cfg = config_mod.load_config()
            credential = Credential(token=cfg.jwt_token, pending_auth_request_id=cfg.pending_auth_request_id)
        self._credential = credential

    def get(self) -> Credential:
        return self._credential

    def is_authenticated(self) -> bool:
        return bool(self._credential.token)

    def set_pending_auth_request(self, auth_request_id: str) -> None:
        self._commit(Credential(token=self._credential.token, pending_auth_request_id=auth_request_id))
        logging.debug("Stored pending auth request %s", auth_request_id)

    def clear_pending_auth_request(self) -> None:
        if self._credential.pending_auth_request_id is None:
            return
        self._commit(Credential(token=self._credential.token, pending_auth_request_id=None))

    def set_token(self, token: str) -> None:
        self._commit(Credential(token=token, pending_auth_request_id=None))
        logging.info("Bearer token stored.")

    def _commit(self, credential: Credential) -> None:
        with self._lock:
            config_mod.update_config(
                jwt_token=credential.token,
                pending_auth_request_id=credential.pending_auth_request_id,
            )
            self._credential = credential
