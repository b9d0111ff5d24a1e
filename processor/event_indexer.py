"""Indexer that keys CSV records by the page they belong to."""
import logging
from typing import Iterable, List

from processor.models import RawRecord, UrlIndex

logger = logging.getLogger(__name__)

MAIN_PAGE_URL_FIELD = 'MainPageURL'


class EventIndexer:
    """Builds a page URL -> records lookup from raw CSV records."""

    def build(self, records: Iterable[RawRecord]) -> UrlIndex:
        """
        Group records by their trimmed MainPageURL.

        Records without a main page URL are left out. Each list keeps
        the order the records were given in.

        Args:
            records: RawRecords in file order

        Returns:
            UrlIndex mapping page URL to its records
        """
        index: UrlIndex = {}
        excluded = 0

        for record in records:
            url = (record.get(MAIN_PAGE_URL_FIELD) or '').strip()
            if not url:
                excluded += 1
                continue
            index.setdefault(url, []).append(record)

        logger.info(
            f"Indexed {sum(len(rows) for rows in index.values())} records "
            f"across {len(index)} pages ({excluded} without a page URL)"
        )
        return index


def lookup(canonical_url: str, index: UrlIndex) -> List[RawRecord]:
    """Return the records for a page, or an empty list."""
    return index.get(canonical_url, [])
