"""
Kraken CSV importer.

Reads ledgers*.csv exports from the given directories. Each ledger row
becomes one raw item whose external id is the ledger txid. One batch
is yielded per file.
"""

import csv
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

from core.clock import ClockProtocol, to_utc
from ingestion.exceptions import InvalidImportParamsError
from ingestion.importers.base import BaseImporter
from ingestion.processors.kraken import KRAKEN_TIME_FORMAT
from ingestion.types import ImportParams, SourcedRawData
from providers.models import SourceType


LEDGER_FILE_PATTERN = "ledgers*.csv"


class KrakenCsvImporter(BaseImporter):
    """Kraken ledger exports from local CSV files."""

    source_type = SourceType.EXCHANGE
    provider_name = "kraken"

    def __init__(self, source_name: str = "kraken", clock: Optional[ClockProtocol] = None) -> None:
        super().__init__(source_name, clock)

    def validate_params(self, params: ImportParams) -> None:
        super().validate_params(params)
        if not params.csv_directories:
            raise InvalidImportParamsError(
                "At least one csv directory is required",
                source_name=self._source_name,
            )
        for directory in params.csv_directories:
            if not Path(directory).is_dir():
                raise InvalidImportParamsError(
                    f"CSV directory not found: {directory}",
                    source_name=self._source_name,
                    context={"directory": directory},
                )

    async def import_batches(self, params: ImportParams) -> AsyncIterator[List[SourcedRawData]]:
        self.validate_params(params)

        for directory in params.csv_directories:
            for path in sorted(Path(directory).glob(LEDGER_FILE_PATTERN)):
                rows = self._read_rows(path)
                fetched_at = self._clock.now()
                batch = []
                for row in rows:
                    txid = (row.get("txid") or "").strip()
                    if not txid:
                        self._logger.warning(f"[{self._source_name}] {path.name}: row without txid skipped")
                        continue
                    if not self._in_range(row, params):
                        continue
                    batch.append(
                        SourcedRawData(
                            payload=row,
                            provider_name=self.provider_name,
                            fetched_at=fetched_at,
                            source_type=self.source_type,
                            external_id=txid,
                        )
                    )
                self._logger.info(f"[{self._source_name}] {path.name}: {len(batch)} ledger rows")
                yield batch

    def _read_rows(self, path: Path) -> List[Dict[str, str]]:
        with path.open(newline="", encoding="utf-8-sig") as f:
            return [dict(row) for row in csv.DictReader(f)]

    def _in_range(self, row: Dict[str, str], params: ImportParams) -> bool:
        if params.since is None and params.until is None:
            return True
        try:
            when = to_utc(datetime.strptime((row.get("time") or "").strip(), KRAKEN_TIME_FORMAT))
        except ValueError:
            # keep it; the processor reports the bad timestamp
            return True
        if params.since and when < params.since:
            return False
        if params.until and when > params.until:
            return False
        return True
