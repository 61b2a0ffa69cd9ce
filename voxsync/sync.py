"""Poll the service for new uploads and write them into the vault."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Set

from .auth import AuthFlow
from .client import ServiceClient, ServiceError
from .credentials import CredentialStore
from .models import SyncReport, Upload
from .notes import NoteMaterializer, NoteStorageError, format_note_body, format_section
from .storage import Ledger, StorageError

SKIPPED_IN_FLIGHT = "in_flight"
SKIPPED_UNAUTHENTICATED = "unauthenticated"


class SyncEngine:
    """Fetch pending uploads, materialize them, acknowledge them.

    Only one cycle runs at a time; :meth:`run_once` returns immediately with
    ``skipped="in_flight"`` when another cycle holds the lock. Errors are
    collected on the returned :class:`SyncReport` rather than raised.
    """

    def __init__(
        self,
        client: ServiceClient,
        credentials: CredentialStore,
        auth: AuthFlow,
        materializer: NoteMaterializer,
        *,
        create_separate_notes: bool = False,
        ledger: Optional[Ledger] = None,
    ) -> None:
        self.client = client
        self.credentials = credentials
        self.auth = auth
        self.materializer = materializer
        self.create_separate_notes = create_separate_notes
        self.ledger = ledger
        self._in_flight = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    def run_once(self) -> SyncReport:
        if not self._in_flight.acquire(blocking=False):
            logging.debug("Sync already running; skipping this tick.")
            return SyncReport(skipped=SKIPPED_IN_FLIGHT)
        try:
            return self._cycle()
        finally:
            self._in_flight.release()

    def _cycle(self) -> SyncReport:
        report = SyncReport()
        if not self.credentials.is_authenticated():
            report.skipped = SKIPPED_UNAUTHENTICATED
            if not self.auth.login_open:
                logging.info("Not logged in; opening the login flow.")
                self.auth.start()
            return report

        token = self.credentials.get().token or ""
        try:
            uploads = self.client.list_uploads(token, errors=report.errors)
        except ServiceError as exc:
            logging.warning("Fetching uploads failed: %s", exc)
            report.errors.append(f"Fetching uploads failed: {exc}")
            return report

        report.fetched = len(uploads)
        if not uploads:
            logging.debug("No new uploads.")
            return report

        fresh: List[Upload] = []
        ready: List[Upload] = []
        seen: Set[str] = set()
        for upload in uploads:
            if upload.id in seen:
                logging.warning("Upload %s listed more than once; ignoring the repeat.", upload.id)
                continue
            seen.add(upload.id)
            if self._already_materialized(upload, report):
                logging.warning("Upload %s was already written; acknowledging it again.", upload.id)
                ready.append(upload)
            else:
                fresh.append(upload)

        if fresh:
            if self.create_separate_notes:
                ready.extend(self._create_separate_notes(fresh, report))
            else:
                ready.extend(self._append_combined(fresh, report))

        for upload in ready:
            self._acknowledge(token, upload, report)

        logging.info(
            "Sync finished: %d fetched, %d written, %d acknowledged, %d error(s).",
            report.fetched,
            len(report.materialized),
            len(report.acknowledged),
            len(report.errors),
        )
        return report

    def _create_separate_notes(self, uploads: List[Upload], report: SyncReport) -> List[Upload]:
        written = []
        for upload in uploads:
            try:
                self.materializer.create_note(upload.title, format_note_body(upload))
            except NoteStorageError as exc:
                logging.warning("Could not write note for upload %s: %s", upload.id, exc)
                report.errors.append(f"Could not write '{upload.title}': {exc}")
                continue
            self._record_materialized(upload, report)
            written.append(upload)
        return written

    def _append_combined(self, uploads: List[Upload], report: SyncReport) -> List[Upload]:
        try:
            self.materializer.append_to_combined_note([format_section(upload) for upload in uploads])
        except NoteStorageError as exc:
            logging.warning("Could not update the combined note: %s", exc)
            report.errors.append(f"Could not update the combined note: {exc}")
            return []
        for upload in uploads:
            self._record_materialized(upload, report)
        return list(uploads)

    def _acknowledge(self, token: str, upload: Upload, report: SyncReport) -> None:
        try:
            self.client.acknowledge(token, upload.id)
        except ServiceError as exc:
            logging.warning("Acknowledging upload %s failed: %s", upload.id, exc)
            report.errors.append(f"Acknowledging '{upload.title}' failed: {exc}")
            return
        report.acknowledged.append(upload.id)
        if self.ledger is not None:
            try:
                self.ledger.mark_acknowledged(upload.id)
            except StorageError as exc:
                logging.warning("Ledger update failed for %s: %s", upload.id, exc)

    def _already_materialized(self, upload: Upload, report: SyncReport) -> bool:
        if self.ledger is None:
            return False
        try:
            return self.ledger.is_materialized(upload.id)
        except StorageError as exc:
            logging.warning("Ledger lookup failed for %s: %s", upload.id, exc)
            report.errors.append(f"Ledger lookup failed: {exc}")
            return False

    def _record_materialized(self, upload: Upload, report: SyncReport) -> None:
        report.materialized.append(upload.id)
        if self.ledger is None:
            return
        try:
            self.ledger.mark_materialized(upload)
        except StorageError as exc:
            logging.warning("Ledger update failed for %s: %s", upload.id, exc)


class SyncScheduler:
    """Run :meth:`SyncEngine.run_once` every ``interval`` seconds.

    The next timer is armed before the current cycle starts, so a slow cycle
    does not delay the schedule; the engine's own lock turns an overlapping
    tick into a no-op.
    """

    def __init__(self, engine: SyncEngine, interval: float = 300.0) -> None:
        if interval <= 0:
            raise ValueError("Sync interval must be positive")
        self.engine = engine
        self.interval = interval
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._arm()
        logging.info("Scheduled sync every %.0f seconds.", self.interval)

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _arm(self) -> None:
        timer = threading.Timer(self.interval, self._tick)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _tick(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._arm()
        try:
            self.engine.run_once()
        except Exception:  # noqa: BLE001
            logging.exception("Scheduled sync failed")
