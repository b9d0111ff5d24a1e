"""CSV loader for event schema records."""
import csv
import logging
import os
from typing import Optional

from processor.models import LoadResult

logger = logging.getLogger(__name__)


class CsvLoader:
    """Loader that reads a CSV file into flat string-keyed records."""

    BOM = '\ufeff'

    def load(self, path: Optional[str]) -> LoadResult:
        """
        Read a CSV file into RawRecords.

        A missing, unset or unreadable file is not an error: an empty
        result flagged as unavailable is returned instead.

        Args:
            path: Path to the CSV file

        Returns:
            LoadResult with records and the count of skipped rows
        """
        if not path:
            logger.warning("No CSV file path configured")
            return LoadResult(source_available=False)

        if not os.path.isfile(path) or not os.access(path, os.R_OK):
            logger.warning(f"CSV file not found or unreadable: {path}")
            return LoadResult(source_available=False)

        try:
            with open(path, 'r', encoding='utf-8', newline='') as handle:
                result = self._read_rows(csv.reader(handle))
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.warning(f"Failed to read CSV file {path}: {e}")
            return LoadResult(source_available=False)

        logger.info(
            f"Loaded {len(result.records)} records from {path} "
            f"({result.skipped_rows} rows skipped)"
        )
        return result

    def _read_rows(self, reader) -> LoadResult:
        """
        Combine header and data rows into records.

        Args:
            reader: csv.reader over the open file

        Returns:
            LoadResult with records in file order
        """
        headers = next(reader, None)
        if headers is None:
            return LoadResult()

        if headers and headers[0].startswith(self.BOM):
            headers[0] = headers[0][len(self.BOM):]
        headers = [header.strip() for header in headers]

        records = []
        skipped = 0
        for row in reader:
            # Ragged rows are dropped, never fatal
            if len(row) != len(headers):
                logger.debug(
                    f"Skipping line {reader.line_num}: expected {len(headers)} "
                    f"fields, got {len(row)}"
                )
                skipped += 1
                continue
            records.append(dict(zip(headers, row)))

        return LoadResult(records=records, skipped_rows=skipped)
