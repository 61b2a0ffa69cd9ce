import pytest

from voxsync.models import Upload
from voxsync.notes import (
    NoteMaterializer,
    StorageConflict,
    VaultStorage,
    format_note_body,
    format_section,
    note_filename,
)


def test_note_filename_strips_illegal_characters():
    assert note_filename("Call w/ Sam: 10:30?") == "Call w Sam 10 30.md"
    assert note_filename("  ") == "Untitled.md"


def test_vault_create_refuses_to_overwrite(tmp_path):
    storage = VaultStorage(tmp_path)
    storage.create("Notes/A.md", "first")

    with pytest.raises(StorageConflict):
        storage.create("Notes/A.md", "second")
    assert storage.read_by_path("Notes/A.md") == "first"


def test_vault_read_missing_returns_none(tmp_path):
    assert VaultStorage(tmp_path).read_by_path("nope.md") is None


def test_create_note_uses_folder(tmp_path):
    materializer = NoteMaterializer(VaultStorage(tmp_path), notes_folder="Voice/")

    handle = materializer.create_note("Standup", "body")

    assert handle == "Voice/Standup.md"
    assert (tmp_path / "Voice" / "Standup.md").read_text() == "body"


def test_append_creates_combined_note_and_keeps_order(tmp_path):
    materializer = NoteMaterializer(VaultStorage(tmp_path), combined_note_path="Log.md")

    materializer.append_to_combined_note(["## A\n\nta\n", "## B\n\ntb\n"])
    materializer.append_to_combined_note(["## C\n\ntc\n"])

    content = (tmp_path / "Log.md").read_text()
    assert content == "## A\n\nta\n\n## B\n\ntb\n\n## C\n\ntc\n"


def test_append_keeps_existing_content(tmp_path):
    (tmp_path / "Log.md").write_text("# My log\n")
    materializer = NoteMaterializer(VaultStorage(tmp_path), combined_note_path="Log.md")

    materializer.append_to_combined_note(["## A\n\nta\n"])

    assert (tmp_path / "Log.md").read_text() == "# My log\n\n## A\n\nta\n"


def test_append_picks_up_edit_made_during_sync(tmp_path):
    class EditingStorage(VaultStorage):
        reads = 0

        def read_by_path(self, path):
            self.reads += 1
            if self.reads == 2:
                (self.root / path).write_text("# Log\n\nedited elsewhere\n")
            return super().read_by_path(path)

    (tmp_path / "Log.md").write_text("# Log\n")
    materializer = NoteMaterializer(EditingStorage(tmp_path), combined_note_path="Log.md")

    materializer.append_to_combined_note(["## A\n\nta\n"])

    assert (tmp_path / "Log.md").read_text() == "# Log\n\nedited elsewhere\n\n## A\n\nta\n"


def test_formatting_includes_transcription_and_audio_link():
    upload = Upload(id="1", label="A", transcription="ta", url="ua")

    assert format_note_body(upload) == "ta\n\n[Audio](ua)\n"
    assert format_section(upload) == "## A\n\nta\n\n[Audio](ua)\n"
