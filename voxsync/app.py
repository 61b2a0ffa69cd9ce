"""Wire the components together and own their lifecycle."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx

from .auth import AuthFlow
from .client import ServiceClient
from .credentials import CredentialStore
from .models import Config, Credential, SyncReport
from .notes import NoteMaterializer, NoteStorage, VaultStorage
from .prompts import Presenter
from .storage import Ledger
from .sync import SyncEngine, SyncScheduler


class VoxSyncApp:
    """One login/sync session.

    ``load`` opens the login flow when no token is stored and starts the
    scheduled sync; ``unload`` must be called before the process exits or the
    objects are discarded, otherwise the timer keeps firing.
    """

    def __init__(
        self,
        config: Config,
        presenter: Presenter,
        *,
        storage: Optional[NoteStorage] = None,
        ledger: Optional[Ledger] = None,
        transport: Optional[httpx.BaseTransport] = None,
        credentials: Optional[CredentialStore] = None,
    ) -> None:
        self.config = config
        self.presenter = presenter
        self.client = ServiceClient.from_config(config, transport=transport)
        self.credentials = credentials or CredentialStore(
            Credential(token=config.jwt_token, pending_auth_request_id=config.pending_auth_request_id)
        )
        self.auth = AuthFlow(self.client, self.credentials, presenter)
        self.storage = storage or VaultStorage(Path(config.vault_path))
        self.materializer = NoteMaterializer(
            self.storage,
            combined_note_path=config.combined_note_path,
            notes_folder=config.notes_folder,
        )
        self.ledger = ledger if ledger is not None else Ledger()
        self.engine = SyncEngine(
            self.client,
            self.credentials,
            self.auth,
            self.materializer,
            create_separate_notes=config.create_separate_notes,
            ledger=self.ledger,
        )
        self.scheduler = SyncScheduler(self.engine, interval=config.sync_interval)

    @classmethod
    def from_config(cls, config: Config, presenter: Presenter, **kwargs) -> "VoxSyncApp":
        """Build a session whose credentials are read back from the settings file."""
        return cls(config, presenter, credentials=CredentialStore(), **kwargs)

    def load(self) -> None:
        if not self.credentials.is_authenticated():
            self.auth.start()
        self.scheduler.start()

    def unload(self) -> None:
        self.scheduler.stop()
        self.auth.abandon()
        logging.debug("voxsync unloaded.")

    def login(self) -> bool:
        """Run the login flow now; returns whether a token is stored afterwards."""
        self.auth.start()
        return self.credentials.is_authenticated()

    def sync_now(self) -> SyncReport:
        return self.engine.run_once()
