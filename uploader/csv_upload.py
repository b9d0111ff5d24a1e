"""Upload workflow for replacing the events CSV."""
import logging
import mimetypes
import os
import shutil
import time
from typing import Optional

import requests

from processor.models import UploadResult
from storage.index_cache import IndexCache
from storage.settings_store import SettingsStore
from uploader.remote_csv import CSV_MIME_TYPES, RemoteCsvFetcher, UnsupportedContentTypeError

logger = logging.getLogger(__name__)


class CsvUploadHandler:
    """Validates an uploaded CSV and makes it the active data source."""

    ALLOWED_MIME_TYPES = CSV_MIME_TYPES
    SNIFF_BYTES = 8192

    INVALID_TYPE_MESSAGE = 'Security Error: Invalid file type. Please upload a valid CSV file.'
    SUCCESS_MESSAGE = 'CSV file uploaded successfully!'
    FAILURE_MESSAGE = 'Failed to upload CSV file.'

    def __init__(
        self,
        upload_dir: str,
        settings_store: SettingsStore,
        index_cache: Optional[IndexCache] = None,
    ):
        """
        Initialize the upload handler.

        Args:
            upload_dir: Directory uploaded CSV files are moved into
            settings_store: Store that records the active CSV path
            index_cache: Cache whose process-local slot is cleared on upload
        """
        self.upload_dir = upload_dir
        self.settings_store = settings_store
        self.index_cache = index_cache

    def handle_upload(self, source_path: str, filename: Optional[str] = None) -> UploadResult:
        """
        Validate and store an uploaded CSV file.

        Only the process-local index is cleared; the durable cache keeps
        serving the previous index until it expires.

        Args:
            source_path: Temporary location of the uploaded file
            filename: Client-supplied file name (default: basename of source_path)

        Returns:
            UploadResult with the admin-facing message
        """
        if not self._is_csv(source_path, filename or os.path.basename(source_path)):
            logger.warning(f"Rejected upload with invalid file type: {filename or source_path}")
            return UploadResult(success=False, message=self.INVALID_TYPE_MESSAGE)

        target_path = os.path.join(self.upload_dir, f"events-{int(time.time())}.csv")

        try:
            os.makedirs(self.upload_dir, exist_ok=True)
            shutil.move(source_path, target_path)
        except OSError as e:
            logger.error(f"Failed to move uploaded CSV to {target_path}: {e}")
            return UploadResult(success=False, message=self.FAILURE_MESSAGE)

        self.settings_store.update(csv_file_path=target_path)
        if self.index_cache is not None:
            self.index_cache.invalidate_local()

        logger.info(f"Stored uploaded CSV at {target_path}")
        return UploadResult(
            success=True,
            message=self.SUCCESS_MESSAGE,
            csv_file_path=target_path,
        )

    def handle_remote_upload(self, url: str, fetcher: RemoteCsvFetcher) -> UploadResult:
        """
        Download a CSV and run it through the upload workflow.

        Args:
            url: Address of the CSV file
            fetcher: Fetcher used to download the file

        Returns:
            UploadResult with the admin-facing message
        """
        try:
            tmp_path = fetcher.fetch(url)
        except requests.RequestException as e:
            logger.error(
                f"Failed to fetch remote CSV from {url}: {e}",
                extra={'error_type': type(e).__name__}
            )
            return UploadResult(success=False, message=self.FAILURE_MESSAGE)
        except UnsupportedContentTypeError as e:
            logger.warning(f"Rejected remote CSV: {e}")
            return UploadResult(success=False, message=self.INVALID_TYPE_MESSAGE)

        result = self.handle_upload(tmp_path)
        if not result.success and os.path.exists(tmp_path):
            os.remove(tmp_path)
        return result

    def _is_csv(self, path: str, filename: str) -> bool:
        """
        Check the file name's MIME type and reject binary content.

        Args:
            path: Location of the file to inspect
            filename: Name used to guess the MIME type

        Returns:
            True if the file looks like a CSV
        """
        mime_type, _ = mimetypes.guess_type(filename)
        if mime_type not in self.ALLOWED_MIME_TYPES:
            return False

        try:
            with open(path, 'rb') as handle:
                head = handle.read(self.SNIFF_BYTES)
        except OSError as e:
            logger.warning(f"Could not inspect uploaded file {path}: {e}")
            return False

        return b'\x00' not in head
