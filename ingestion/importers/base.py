"""
Ingestion - Base Importer.

============================================================
PURPOSE
============================================================
An importer fetches raw items for one source and tags each with its
provenance. It never persists and never interprets payloads.

============================================================
LIFECYCLE
============================================================
1. validate_params(params) rejects unusable parameters
2. import_batches(params) yields one batch per time window
3. The ingestion service stores each batch before asking for the next

============================================================
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import AsyncIterator, List, Optional, Tuple

from core.clock import ClockProtocol, SystemClock
from ingestion.exceptions import InvalidImportParamsError
from ingestion.types import ImportParams, SourcedRawData
from providers.models import SourceType


class BaseImporter(ABC):
    """Abstract base class for raw data importers."""

    source_type: SourceType

    def __init__(self, source_name: str, clock: Optional[ClockProtocol] = None) -> None:
        self._source_name = source_name
        self._clock = clock or SystemClock()
        self._logger = logging.getLogger(f"importer.{source_name}")

    @property
    def source_name(self) -> str:
        return self._source_name

    def validate_params(self, params: ImportParams) -> None:
        """
        Raises:
            InvalidImportParamsError: parameters unusable for this importer
        """
        if params.since and params.until and params.since > params.until:
            raise InvalidImportParamsError(
                "since must not be after until",
                source_name=self._source_name,
                context=params.to_dict(),
            )

    @abstractmethod
    def import_batches(self, params: ImportParams) -> AsyncIterator[List[SourcedRawData]]:
        """Yield raw items, one list per time window."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(source={self._source_name})"


def time_windows(
    since: Optional[datetime],
    until: datetime,
    window_days: Optional[int],
) -> List[Tuple[Optional[datetime], datetime]]:
    """
    Split [since, until] into consecutive windows of window_days.

    Without a start or a window size the whole range is one window.
    """
    if since is None or not window_days:
        return [(since, until)]

    step = timedelta(days=window_days)
    windows = []
    start = since
    while start < until:
        end = min(start + step, until)
        windows.append((start, end))
        start = end
    return windows or [(since, until)]
