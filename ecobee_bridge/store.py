"""Durable JSON snapshot of credentials and device state."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from .models import CredentialSnapshot

_LOGGER = logging.getLogger(__name__)


class CredentialStore:
    """Read and atomically rewrite the credential snapshot file.

    The file is not locked; runs must not overlap.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def load(self) -> CredentialSnapshot:
        """Load the snapshot, creating an empty file on first run.

        Raises:
            OSError: If the file exists but cannot be read or replaced.

        """
        if not self.path.exists():
            _LOGGER.info("No snapshot at %s, creating a new one", self.path)
            snapshot = CredentialSnapshot()
            self.save(snapshot)
            return snapshot

        try:
            with open(self.path, encoding="utf-8") as file:
                data = json.load(file)
        except ValueError:
            _LOGGER.exception("Snapshot %s is corrupt, starting empty", self.path)
            data = None

        if not isinstance(data, dict):
            _LOGGER.warning("Snapshot %s is not a JSON object, resetting", self.path)
            snapshot = CredentialSnapshot()
            self.save(snapshot)
            return snapshot

        return CredentialSnapshot.from_dict(data)

    def save(self, snapshot: CredentialSnapshot) -> None:
        """Persist the whole snapshot via a temp file and os.replace."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                json.dump(snapshot.to_dict(), tmp_file, indent=2, sort_keys=True)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_name, self.path)
        except OSError:
            _LOGGER.exception("Failed writing snapshot %s", self.path)
            try:
                os.remove(tmp_name)
            except OSError:
                _LOGGER.debug("Temp file %s already gone", tmp_name)
            raise
        _LOGGER.debug("Saved snapshot to %s", self.path)
