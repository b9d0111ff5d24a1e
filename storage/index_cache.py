"""Two-tier cache in front of the CSV page index."""
import logging
from typing import Callable, Optional

from loader.csv_loader import CsvLoader
from processor.event_indexer import EventIndexer
from processor.models import UrlIndex
from storage.cache_backends import CacheBackend, MemoryCache

logger = logging.getLogger(__name__)


class IndexCache:
    """
    Serves the page index from memory, the durable cache, or the CSV.

    Sources are consulted in that order and the first hit wins. A cold
    rebuild is written to both tiers.

    Replacing the CSV only clears the process-local slot (see
    invalidate_local); the durable entry keeps serving the previous
    index until it expires or invalidate() is called.
    """

    CACHE_KEY = 'esi_processed_events_data'
    INDEX_TTL_SECONDS = 12 * 60 * 60

    def __init__(
        self,
        durable: CacheBackend,
        csv_path_provider: Callable[[], Optional[str]],
        loader: Optional[CsvLoader] = None,
        indexer: Optional[EventIndexer] = None,
        local: Optional[CacheBackend] = None,
    ):
        """
        Initialize the cache.

        Args:
            durable: Shared cache with expiry support
            csv_path_provider: Returns the current CSV file path
            loader: CSV loader (default: CsvLoader())
            indexer: Record indexer (default: EventIndexer())
            local: Process-local slot (default: MemoryCache())
        """
        self.durable = durable
        self.csv_path_provider = csv_path_provider
        self.loader = loader or CsvLoader()
        self.indexer = indexer or EventIndexer()
        self.local = local if local is not None else MemoryCache()

    def get_index(self) -> UrlIndex:
        """
        Return the page index, rebuilding it from the CSV if needed.

        Returns:
            UrlIndex mapping page URL to records
        """
        index = self.local.get(self.CACHE_KEY)
        if index is not None:
            return index

        index = self.durable.get(self.CACHE_KEY)
        if index is not None:
            logger.info(f"Using cached index with {len(index)} pages")
            self.local.set(self.CACHE_KEY, index)
            return index

        return self._rebuild()

    def _rebuild(self) -> UrlIndex:
        """Load the CSV, index it and populate both cache tiers."""
        csv_path = self.csv_path_provider()
        logger.info(f"Rebuilding event index from CSV: {csv_path}")

        result = self.loader.load(csv_path)
        index = self.indexer.build(result.records)

        # A missing source is only remembered for this lifetime
        if result.source_available:
            self.durable.set(self.CACHE_KEY, index, ttl=self.INDEX_TTL_SECONDS)
        else:
            logger.info("No CSV source available; skipping durable cache write")

        self.local.set(self.CACHE_KEY, index)
        return index

    def invalidate_local(self) -> None:
        """Forget the process-local index."""
        self.local.delete(self.CACHE_KEY)

    def invalidate(self) -> None:
        """Forget the index in both cache tiers."""
        logger.info("Invalidating event index cache")
        self.local.delete(self.CACHE_KEY)
        self.durable.delete(self.CACHE_KEY)
