"""Record assembly, publication, verification and archiving."""

from .aggregator import HourlyAggregator, ObservationRecord
from .archiver import ArchiveResult, Archiver, TarZstdArchiver
from .base import HourlyFileWriter, PublishError
from .driver import IngestionDriver, RunSummary
from .verifier import CompletenessVerifier, VerificationReport

__all__ = [
    "HourlyAggregator",
    "ObservationRecord",
    "Archiver",
    "ArchiveResult",
    "TarZstdArchiver",
    "HourlyFileWriter",
    "PublishError",
    "IngestionDriver",
    "RunSummary",
    "CompletenessVerifier",
    "VerificationReport",
]
