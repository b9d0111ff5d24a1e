"""Fetcher for CSV files published at a remote URL."""
import logging
import tempfile
import time
from typing import Iterable

import requests

logger = logging.getLogger(__name__)

CSV_MIME_TYPES = (
    'text/csv',
    'text/plain',
    'application/csv',
    'application/vnd.ms-excel',
)


class UnsupportedContentTypeError(ValueError):
    """Raised when a remote file is not served as CSV."""

    def __init__(self, url: str, content_type: str):
        super().__init__(f"Unsupported content type {content_type!r} for {url}")
        self.url = url
        self.content_type = content_type


class RemoteCsvFetcher:
    """Downloads a CSV file so it can go through the upload workflow."""

    def __init__(self, timeout: int = 30, allowed_types: Iterable[str] = CSV_MIME_TYPES):
        """
        Initialize the fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            allowed_types: Accepted response media types (default: CSV_MIME_TYPES)
        """
        self.timeout = timeout
        self.allowed_types = tuple(allowed_types)

    def fetch(self, url: str) -> str:
        """
        Download a CSV file to a temporary location.

        Args:
            url: Address of the CSV file

        Returns:
            Path of the downloaded temporary .csv file

        Raises:
            requests.RequestException: If all retry attempts fail
            UnsupportedContentTypeError: If the response is not served as CSV
        """
        content = self._download(url)

        with tempfile.NamedTemporaryFile(suffix='.csv', delete=False) as handle:
            handle.write(content)

        logger.info(f"Downloaded {len(content)} bytes from {url} to {handle.name}")
        return handle.name

    def _download(self, url: str) -> bytes:
        """
        Fetch the raw CSV bytes with retry logic.

        A response with the wrong content type is not retried.

        Args:
            url: Address of the CSV file

        Returns:
            Response body

        Raises:
            requests.RequestException: If all retry attempts fail
            UnsupportedContentTypeError: If the response is not served as CSV
        """
        max_retries = 3
        base_delay = 1  # seconds

        for attempt in range(max_retries):
            try:
                logger.info(f"Fetching CSV from {url} (attempt {attempt + 1}/{max_retries})")
                response = requests.get(url, timeout=self.timeout)
                response.raise_for_status()
                self._check_content_type(url, response)
                return response.content

            except requests.RequestException as e:
                if attempt < max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {max_retries} retry attempts failed. Last error: {e}"
                    )
                    raise

    def _check_content_type(self, url: str, response: requests.Response) -> None:
        """Reject responses whose media type is not an accepted CSV type."""
        header = response.headers.get('Content-Type', '')
        media_type = header.split(';', 1)[0].strip().lower()
        if media_type not in self.allowed_types:
            raise UnsupportedContentTypeError(url, header)
