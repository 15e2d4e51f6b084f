"""Bundle finished hourly files into one compressed archive."""

from __future__ import annotations

import logging
import os
import tarfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import zstandard as zstd


logger = logging.getLogger(__name__)


@dataclass
class ArchiveResult:
    success: bool
    bundle_path: Optional[Path]
    file_count: int
    error: Optional[str] = None


class Archiver(ABC):
    """Contract the pipeline calls into once a day or month is complete."""

    @abstractmethod
    def bundle(self, label: str, files: Sequence[Path]) -> ArchiveResult:
        """Produce one bundle named after ``label`` containing ``files``."""


class TarZstdArchiver(Archiver):
    """
    Write ``{label}.tar.zst`` into ``target_dir``.

    Members are stored under their basenames. The bundle is built under a temp name and
    renamed into place, so a failed run never leaves a truncated bundle behind.
    """

    def __init__(self, target_dir: Path, *, level: int = 19) -> None:
        self.target_dir = Path(target_dir)
        self.level = level

    def bundle_path(self, label: str) -> Path:
        return self.target_dir / f"{label}.tar.zst"

    def bundle(self, label: str, files: Sequence[Path]) -> ArchiveResult:
        files = [Path(path) for path in files]
        if not files:
            logger.info("No files found for %s - skipping", label)
            return ArchiveResult(success=False, bundle_path=None, file_count=0, error="no files")

        target = self.bundle_path(label)
        temp = target.with_name(f".{target.name}.tmp")
        try:
            self.target_dir.mkdir(parents=True, exist_ok=True)
            compressor = zstd.ZstdCompressor(level=self.level)
            with open(temp, "wb") as raw:
                with compressor.stream_writer(raw, closefd=False) as writer:
                    with tarfile.open(fileobj=writer, mode="w|") as tar:
                        for path in files:
                            tar.add(str(path), arcname=path.name)
                raw.flush()
                os.fsync(raw.fileno())
            os.replace(temp, target)
        except (OSError, tarfile.TarError, zstd.ZstdError) as exc:
            logger.error("Bundle %s failed: %s", target, exc)
            if temp.exists():
                temp.unlink()
            return ArchiveResult(success=False, bundle_path=None, file_count=0, error=str(exc))

        size_kb = target.stat().st_size / 1024
        logger.info("Bundle created: %s (%d files, %.1f KB)", target, len(files), size_kb)
        return ArchiveResult(success=True, bundle_path=target, file_count=len(files))


def remove_files(files: Sequence[Path]) -> int:
    """Delete bundled originals; returns how many were removed."""
    removed = 0
    for path in files:
        try:
            Path(path).unlink()
            removed += 1
        except FileNotFoundError:
            continue
    return removed
