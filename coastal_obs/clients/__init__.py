"""Upstream observation source adapters."""

from .base import BatchExecutorMixin, ConfigurationError, SourceAdapter
from .ndbc import NdbcBuoyAdapter
from .noaa import NoaaCoopsAdapter
from .registry import build_adapters, create_adapter
from .request_utils import ApiError
from .smn import SmnStationAdapter

__all__ = [
    "SourceAdapter",
    "BatchExecutorMixin",
    "ConfigurationError",
    "ApiError",
    "NoaaCoopsAdapter",
    "NdbcBuoyAdapter",
    "SmnStationAdapter",
    "create_adapter",
    "build_adapters",
]
