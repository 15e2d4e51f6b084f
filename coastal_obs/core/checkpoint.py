"""Durable, append-only record of completed hours for one ingestion job."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Iterable, Set

from .hours import HourKey


logger = logging.getLogger(__name__)


class CheckpointError(RuntimeError):
    """Raised when the checkpoint log cannot be read or durably appended to."""


class CheckpointStore:
    """
    Newline-delimited ``YYYYMMDDTHH`` tokens, one job per file.

    The file is read once when the store is created; afterwards ``is_done`` is answered
    from memory. ``mark_done`` returns only after the line is flushed and fsynced.
    """

    def __init__(self, checkpoint_dir: Path, job_id: str) -> None:
        self.job_id = job_id
        self.path = Path(checkpoint_dir) / f"{job_id}.checkpoint"
        self._done: Set[HourKey] = set()
        self._unterminated = False
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CheckpointError(f"Cannot read checkpoint {self.path}: {exc}") from exc
        # The next append must start on a fresh line.
        self._unterminated = bool(text) and not text.endswith("\n")
        for line in text.splitlines():
            token = line.strip()
            if not token:
                continue
            try:
                self._done.add(HourKey.parse(token))
            except ValueError:
                # A torn final line from a crash mid-append.
                logger.warning("Ignoring unreadable checkpoint entry %r in %s", token, self.path)
        logger.info("Checkpoint loaded: %d hours already completed for %s", len(self._done), self.job_id)

    def __len__(self) -> int:
        return len(self._done)

    def is_done(self, hour: HourKey) -> bool:
        return hour in self._done

    def pending(self, hours: Iterable[HourKey]) -> list:
        return [hour for hour in hours if hour not in self._done]

    def mark_done(self, hour: HourKey) -> None:
        with self._lock:
            if hour in self._done:
                return
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as fh:
                    if self._unterminated:
                        fh.write("\n")
                    fh.write(f"{hour.token}\n")
                    fh.flush()
                    os.fsync(fh.fileno())
            except OSError as exc:
                raise CheckpointError(f"Cannot append {hour.token} to checkpoint {self.path}: {exc}") from exc
            self._unterminated = False
            self._done.add(hour)

    def prune(self, keep_from: HourKey) -> int:
        """Drop hours before ``keep_from`` by atomically rewriting the log. Returns the count removed."""
        with self._lock:
            stale = {hour for hour in self._done if hour < keep_from}
            if not stale:
                return 0
            kept = sorted(self._done - stale)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as fh:
                    fh.writelines(f"{hour.token}\n" for hour in kept)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_path, self.path)
            except OSError as exc:
                raise CheckpointError(f"Cannot rewrite checkpoint {self.path}: {exc}") from exc
            self._done = set(kept)
            self._unterminated = False
            logger.debug("Pruned %d hours before %s from %s", len(stale), keep_from.token, self.path.name)
            return len(stale)

    def discard(self) -> None:
        """Delete the checkpoint once the whole job range has completed."""
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise CheckpointError(f"Cannot remove checkpoint {self.path}: {exc}") from exc
            self._done.clear()
            logger.info("Checkpoint %s discarded (job complete)", self.path.name)
