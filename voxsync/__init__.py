"""Top-level package for voxsync."""

__version__ = "0.1.0"

from . import auth, client, config, credentials, notes, storage, sync  # noqa: E402

__all__ = ["auth", "client", "config", "credentials", "notes", "storage", "sync", "__version__"]
