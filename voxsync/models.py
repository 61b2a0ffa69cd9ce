"""Data objects shared across voxsync."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


@dataclass(slots=True)
class Config:
    """User configuration stored on disk."""

    base_url: str = ""
    jwt_token: Optional[str] = None
    pending_auth_request_id: Optional[str] = None
    create_separate_notes: bool = False
    vault_path: str = "~/VoxSync"
    combined_note_path: str = "Voice Transcriptions.md"
    notes_folder: str = ""
    sync_interval: float = 300.0
    api_timeout: float = 30.0
    verify_ssl: bool = True


@dataclass(slots=True, frozen=True)
class Credential:
    """Snapshot of the authentication state."""

    token: Optional[str] = None
    pending_auth_request_id: Optional[str] = None


class Upload(BaseModel):
    """A transcribed voice upload as returned by the service."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    user_id: str = Field(default="", validation_alias=AliasChoices("user_id", "userId"))
    label: Optional[str] = None
    url: str = ""
    transcription: str = ""
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )

    @property
    def title(self) -> str:
        if self.label and self.label.strip():
            return self.label.strip()
        if self.created_at is not None:
            return f"Voice note {self.created_at:%Y-%m-%d %H-%M}"
        return f"Voice note {self.id}"


@dataclass(slots=True)
class SyncReport:
    """Outcome of a single sync cycle."""

    skipped: Optional[str] = None
    fetched: int = 0
    materialized: List[str] = field(default_factory=list)
    acknowledged: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(slots=True)
class LedgerEntry:
    """Represents an upload recorded in the acknowledgement ledger."""

    upload_id: str
    title: str
    materialized_at: datetime
    acknowledged_at: Optional[datetime] = None
