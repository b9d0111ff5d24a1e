"""Cache backends for the processed event index."""
import gzip
import json
import logging
import time
import uuid
import zlib
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.types import Binary
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class CacheBackend:
    """Key-value cache interface shared by the cache tiers."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryCache(CacheBackend):
    """
    Process-local cache slot.

    Lives as long as the object; expiry is ignored since the slot is
    discarded with the request or process that owns it.
    """

    def __init__(self):
        self._values: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._values.get(key)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class DynamoDBCache(CacheBackend):
    """
    Durable cache stored as DynamoDB items with a TTL attribute.

    Values are JSON, gzip-compressed into a Binary attribute. Payloads that
    still exceed MAX_CHUNK_BYTES are split across chunk items keyed
    ``<key>#<generation>#<n>``; the item under ``<key>`` then holds the
    chunk count and generation instead of the payload. Chunks are written
    before the item that points at them.
    """

    KEY_ATTRIBUTE = 'cache_key'
    VALUE_ATTRIBUTE = 'payload'
    TTL_ATTRIBUTE = 'ttl'
    CHUNKS_ATTRIBUTE = 'chunks'
    GENERATION_ATTRIBUTE = 'generation'

    # DynamoDB caps an item at 400 KB including key and attribute names
    MAX_CHUNK_BYTES = 350 * 1024

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBCache for table: {table_name}")

    def get(self, key: str) -> Optional[Any]:
        """
        Read a cached value.

        DynamoDB removes expired items lazily, so the TTL is checked here
        as well. Read errors, missing chunks and corrupt payloads are
        logged and reported as a miss.

        Args:
            key: Cache key

        Returns:
            Cached value, or None on miss, expiry or error
        """
        try:
            item = self._get_item(key)
            if not item:
                logger.debug(f"Cache miss for key: {key}")
                return None

            expires_at = item.get(self.TTL_ATTRIBUTE)
            if expires_at is not None and int(expires_at) <= int(time.time()):
                logger.debug(f"Cache entry expired for key: {key}")
                return None

            payload = self._read_payload(key, item)
        except ClientError as e:
            logger.error(f"Error reading cache key {key}: {e}")
            return None
        except KeyError as e:
            logger.warning(f"Discarding incomplete cache entry {key}: missing {e}")
            return None

        try:
            return json.loads(gzip.decompress(payload).decode('utf-8'))
        except (TypeError, ValueError, OSError, EOFError, zlib.error) as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store a value, optionally expiring after ttl seconds.

        Chunks left behind by the value being replaced are deleted once the
        new value is in place. Write errors are logged and otherwise ignored.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Lifetime in seconds, or None to keep indefinitely
        """
        payload = gzip.compress(json.dumps(value).encode('utf-8'))
        chunks = [
            payload[start:start + self.MAX_CHUNK_BYTES]
            for start in range(0, len(payload), self.MAX_CHUNK_BYTES)
        ]
        expires_at = int(time.time()) + ttl if ttl is not None else None

        item = {self.KEY_ATTRIBUTE: key}
        if expires_at is not None:
            item[self.TTL_ATTRIBUTE] = expires_at

        try:
            previous = self._get_item(key)

            if len(chunks) == 1:
                item[self.VALUE_ATTRIBUTE] = payload
            else:
                generation = uuid.uuid4().hex
                with self.table.batch_writer() as writer:
                    for number, chunk in enumerate(chunks):
                        chunk_item = {
                            self.KEY_ATTRIBUTE: self._chunk_key(key, generation, number),
                            self.VALUE_ATTRIBUTE: chunk,
                        }
                        if expires_at is not None:
                            chunk_item[self.TTL_ATTRIBUTE] = expires_at
                        writer.put_item(Item=chunk_item)
                item[self.CHUNKS_ATTRIBUTE] = len(chunks)
                item[self.GENERATION_ATTRIBUTE] = generation

            self.table.put_item(Item=item)
            logger.info(
                f"Stored cache key {key} (ttl={ttl}, {len(payload)} bytes "
                f"in {len(chunks)} chunk(s))"
            )

            if previous:
                self._delete_chunks(key, previous)
        except ClientError as e:
            logger.error(f"Error writing cache key {key}: {e}")

    def delete(self, key: str) -> None:
        """Remove a cached value and its chunks; errors are logged."""
        try:
            item = self._get_item(key)
            self.table.delete_item(Key={self.KEY_ATTRIBUTE: key})
            if item:
                self._delete_chunks(key, item)
            logger.info(f"Deleted cache key {key}")
        except ClientError as e:
            logger.error(f"Error deleting cache key {key}: {e}")

    def _get_item(self, key: str) -> Optional[Dict[str, Any]]:
        response = self.table.get_item(Key={self.KEY_ATTRIBUTE: key})
        return response.get('Item')

    def _read_payload(self, key: str, item: Dict[str, Any]) -> bytes:
        """
        Return the compressed payload, reassembling chunks if needed.

        Raises:
            KeyError: If the payload or one of its chunks is missing
        """
        if self.CHUNKS_ATTRIBUTE not in item:
            return _as_bytes(item[self.VALUE_ATTRIBUTE])

        generation = item[self.GENERATION_ATTRIBUTE]
        parts = []
        for number in range(int(item[self.CHUNKS_ATTRIBUTE])):
            chunk_key = self._chunk_key(key, generation, number)
            chunk = self._get_item(chunk_key)
            if not chunk:
                raise KeyError(chunk_key)
            parts.append(_as_bytes(chunk[self.VALUE_ATTRIBUTE]))
        return b''.join(parts)

    def _delete_chunks(self, key: str, item: Dict[str, Any]) -> None:
        """Delete the chunk items referenced by a stored item."""
        if self.CHUNKS_ATTRIBUTE not in item:
            return

        generation = item[self.GENERATION_ATTRIBUTE]
        with self.table.batch_writer() as writer:
            for number in range(int(item[self.CHUNKS_ATTRIBUTE])):
                writer.delete_item(
                    Key={self.KEY_ATTRIBUTE: self._chunk_key(key, generation, number)}
                )

    @staticmethod
    def _chunk_key(key: str, generation: str, number: int) -> str:
        return f"{key}#{generation}#{number}"


def _as_bytes(value: Any) -> bytes:
    """Unwrap boto3's Binary type; other values pass through."""
    if isinstance(value, Binary):
        return value.value
    return value
