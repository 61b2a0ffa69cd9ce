"""Turn uploads into Markdown notes inside the vault."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Sequence

from .models import Upload

_ILLEGAL_NAME_CHARS = re.compile(r'[\\/:*?"<>|#^\[\]]+')


class NoteStorageError(RuntimeError):
    """Raised when a note cannot be read or written."""


class StorageConflict(NoteStorageError):
    """The note could not be created because one already exists at that path."""


class StorageUnavailable(NoteStorageError):
    """The underlying storage failed with an I/O error."""


class NoteStorage(Protocol):
    def read_by_path(self, path: str) -> Optional[str]: ...

    def create(self, path: str, content: str) -> str: ...

    def modify(self, handle: str, content: str) -> None: ...


class VaultStorage:
    """Note storage backed by a plain directory of Markdown files."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser()

    def _resolve(self, path: str) -> Path:
        return self.root / path

    def read_by_path(self, path: str) -> Optional[str]:
        target = self._resolve(path)
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageUnavailable(f"Could not read {path}: {exc}") from exc

    def create(self, path: str, content: str) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("x", encoding="utf-8") as handle:
                handle.write(content)
        except FileExistsError as exc:
            raise StorageConflict(f"A note already exists at {path}") from exc
        except OSError as exc:
            raise StorageUnavailable(f"Could not create {path}: {exc}") from exc
        return path

    def modify(self, handle: str, content: str) -> None:
        target = self._resolve(handle)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".voxsync-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(content)
            os.replace(tmp_name, target)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageUnavailable(f"Could not write {handle}: {exc}") from exc


def note_filename(name: str) -> str:
    cleaned = _ILLEGAL_NAME_CHARS.sub(" ", name).strip().strip(".")
    cleaned = re.sub(r"\s+", " ", cleaned)
    return f"{cleaned or 'Untitled'}.md"


def format_note_body(upload: Upload) -> str:
    return f"{upload.transcription.rstrip()}\n\n[Audio]({upload.url})\n"


def format_section(upload: Upload) -> str:
    return f"## {upload.title}\n\n{format_note_body(upload)}"


class NoteMaterializer:
    def __init__(
        self,
        storage: NoteStorage,
        combined_note_path: str = "Voice Transcriptions.md",
        notes_folder: str = "",
    ) -> None:
        self.storage = storage
        self.combined_note_path = combined_note_path
        self.notes_folder = notes_folder.strip("/")

    def note_path(self, name: str) -> str:
        filename = note_filename(name)
        return f"{self.notes_folder}/{filename}" if self.notes_folder else filename

    def create_note(self, name: str, body: str) -> str:
        path = self.note_path(name)
        handle = self.storage.create(path, body)
        logging.info("Created note %s", path)
        return handle

    def append_to_combined_note(self, sections: Sequence[str]) -> str:
        """Append ``sections`` in order to the combined note in one write.

        The note is re-read just before writing; if it changed in the
        meantime the sections go after the newer content instead.
        """
        path = self.combined_note_path
        existing = self.storage.read_by_path(path)
        handle = path
        if existing is None:
            try:
                handle = self.storage.create(path, "")
                existing = ""
            except StorageConflict:
                existing = self.storage.read_by_path(path) or ""

        content = _join_sections(existing, sections)
        latest = self.storage.read_by_path(path)
        if latest is not None and latest != existing:
            logging.info("%s changed during sync; appending to the newer content.", path)
            content = _join_sections(latest, sections)

        self.storage.modify(handle, content)
        logging.info("Appended %d section(s) to %s", len(sections), path)
        return handle


def _join_sections(existing: str, sections: Sequence[str]) -> str:
    parts = [existing.rstrip("\n")] if existing.strip() else []
    parts.extend(section.rstrip("\n") for section in sections)
    return "\n\n".join(parts) + "\n"
