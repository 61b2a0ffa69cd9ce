from typing import Dict, List, Optional

import pytest

from voxsync import config
from voxsync.client import ApplicationError
from voxsync.models import Upload


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path)
    return cfg_path


class FakePresenter:
    """Records which prompts are open instead of asking anybody."""

    def __init__(self) -> None:
        self.email_prompts = 0
        self.otp_prompts = 0
        self.email_open = False
        self.otp_open = False
        self.messages: List[str] = []

    def show_email_prompt(self, on_submit) -> None:
        self.email_prompts += 1
        self.email_open = True

    def show_otp_prompt(self, on_submit) -> None:
        self.otp_prompts += 1
        self.otp_open = True

    def dismiss_email_prompt(self) -> None:
        self.email_open = False

    def dismiss_otp_prompt(self) -> None:
        self.otp_open = False

    def notify(self, message: str) -> None:
        self.messages.append(message)


class FakeClient:
    """In-memory stand-in for ServiceClient."""

    def __init__(self, uploads: Optional[List[Dict]] = None) -> None:
        self.uploads = [Upload.model_validate(item) for item in uploads or []]
        self.login_calls: List[str] = []
        self.verify_calls: List[tuple] = []
        self.list_calls = 0
        self.acknowledged: List[str] = []
        self.fail_ack_for: set = set()
        self.valid_code = "123456"

    def login(self, email: str) -> str:
        self.login_calls.append(email)
        return "r1"

    def verify_code(self, auth_request_id: str, code: str) -> str:
        self.verify_calls.append((auth_request_id, code))
        if code != self.valid_code:
            raise ApplicationError("Invalid code")
        return "t1"

    def list_uploads(self, token: str, errors: Optional[List[str]] = None) -> List[Upload]:
        self.list_calls += 1
        return list(self.uploads)

    def acknowledge(self, token: str, upload_id: str) -> None:
        if upload_id in self.fail_ack_for:
            raise ApplicationError(f"Upload {upload_id} not found")
        self.acknowledged.append(upload_id)


@pytest.fixture
def presenter():
    return FakePresenter()


@pytest.fixture
def two_uploads():
    return [
        {"id": "1", "userId": "u", "label": "A", "transcription": "ta", "url": "ua"},
        {"id": "2", "userId": "u", "label": "B", "transcription": "tb", "url": "ub"},
    ]
