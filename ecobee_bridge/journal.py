"""Append-only, human-readable run journal."""

from __future__ import annotations

import logging
import os
from pathlib import Path

_FORMAT = logging.Formatter("[%(asctime)s] %(message)s", "%Y-%m-%d %H:%M:%S")


class Journal:
    """Timestamped journal of run events, one entry per line.

    Entries go to a dedicated logger with a plain append-mode FileHandler so
    the file is never truncated or rotated here. They are not propagated to
    the application log; ``echo`` mirrors them to the console instead.
    """

    def __init__(self, path: str | os.PathLike[str], *, echo: bool = True) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._logger = logging.getLogger(f"{__name__}.{id(self)}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False

        self._handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        self._handler.setFormatter(_FORMAT)
        self._logger.addHandler(self._handler)

        self._console: logging.Handler | None = None
        if echo:
            self._console = logging.StreamHandler()
            self._console.setFormatter(_FORMAT)
            self._logger.addHandler(self._console)

    def write(self, message: str, *args: object) -> None:
        """Append an entry."""
        self._logger.info(message, *args)

    def warning(self, message: str, *args: object) -> None:
        """Append an entry flagged with '!'."""
        self._logger.warning("! " + message, *args)

    def close(self) -> None:
        for handler in (self._handler, self._console):
            if handler is not None:
                self._logger.removeHandler(handler)
                handler.close()

    def __enter__(self) -> Journal:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
