"""Unit tests for the two-tier IndexCache."""
import os
import random
import string
from unittest.mock import Mock, patch

import boto3
import pytest
from moto import mock_aws

from loader.csv_loader import CsvLoader
from processor.models import LoadResult
from storage.cache_backends import CacheBackend, DynamoDBCache, MemoryCache
from storage.index_cache import IndexCache
from storage.settings_store import SettingsStore
from uploader.csv_upload import CsvUploadHandler


HEADER = "MainPageURL,EventInstanceURL,EventName,OfferPrice\n"


@pytest.fixture
def csv_file(tmp_path):
    """Create a CSV file with one page of events."""
    path = tmp_path / 'events.csv'
    path.write_text(
        HEADER
        + "/show,/show#1,Show,25.00\n"
        + "/show,/show#1,Show,abc\n",
        encoding='utf-8'
    )
    return str(path)


@pytest.fixture
def durable():
    """Create a spy around an in-memory durable cache."""
    return Mock(wraps=MemoryCache(), spec=CacheBackend)


@pytest.fixture
def loader():
    """Create a spy around a real CsvLoader."""
    return Mock(wraps=CsvLoader())


class TestIndexCache:
    """Test cases for IndexCache class."""

    def test_cold_path_builds_and_stores(self, csv_file, durable, loader):
        """Test that a cold cache loads the CSV and fills both tiers."""
        cache = IndexCache(durable, lambda: csv_file, loader=loader)

        index = cache.get_index()

        assert list(index.keys()) == ['/show']
        assert len(index['/show']) == 2
        loader.load.assert_called_once_with(csv_file)
        durable.set.assert_called_once_with(
            'esi_processed_events_data', index, ttl=43200
        )
        assert cache.local.get('esi_processed_events_data') == index

    def test_ttl_is_twelve_hours(self):
        """Test the durable expiry constant."""
        assert IndexCache.INDEX_TTL_SECONDS == 12 * 3600

    def test_second_call_uses_local_slot(self, csv_file, durable, loader):
        """Test that repeated calls do not re-read the file."""
        cache = IndexCache(durable, lambda: csv_file, loader=loader)

        first = cache.get_index()
        second = cache.get_index()

        assert first == second
        loader.load.assert_called_once()
        durable.get.assert_called_once()

    def test_durable_hit_skips_loader(self, durable, loader):
        """Test that a durable entry is adopted without touching the CSV."""
        cached = {'/cached': [{'MainPageURL': '/cached'}]}
        durable.set('esi_processed_events_data', cached, ttl=43200)
        cache = IndexCache(durable, lambda: '/nonexistent.csv', loader=loader)

        assert cache.get_index() == cached
        assert cache.local.get('esi_processed_events_data') == cached
        loader.load.assert_not_called()

    def test_durable_empty_index_is_a_hit(self, durable, loader):
        """Test that a cached empty index still bypasses the loader."""
        durable.set('esi_processed_events_data', {}, ttl=43200)
        cache = IndexCache(durable, lambda: '/nonexistent.csv', loader=loader)

        assert cache.get_index() == {}
        loader.load.assert_not_called()

    def test_local_empty_marker_prevents_repeat_lookups(self, durable, loader):
        """Test that an empty result is remembered for the lifetime of the cache."""
        cache = IndexCache(durable, lambda: None, loader=loader)

        assert cache.get_index() == {}
        assert cache.get_index() == {}

        loader.load.assert_called_once_with(None)
        durable.get.assert_called_once()

    def test_missing_source_not_persisted(self, tmp_path, durable, loader):
        """Test that a missing CSV is not written to the durable cache."""
        cache = IndexCache(durable, lambda: str(tmp_path / 'missing.csv'), loader=loader)

        assert cache.get_index() == {}
        durable.set.assert_not_called()

    def test_empty_csv_is_persisted(self, tmp_path, durable):
        """Test that a readable CSV without page URLs is cached as empty."""
        path = tmp_path / 'empty.csv'
        path.write_text(HEADER + ",/x#1,Orphan,10\n", encoding='utf-8')
        cache = IndexCache(durable, lambda: str(path))

        assert cache.get_index() == {}
        durable.set.assert_called_once_with('esi_processed_events_data', {}, ttl=43200)

    def test_path_provider_read_on_rebuild_only(self, csv_file, durable):
        """Test that the CSV path is resolved lazily on the cold path."""
        provider = Mock(return_value=csv_file)
        cache = IndexCache(durable, provider)

        cache.get_index()
        cache.get_index()

        provider.assert_called_once()

    def test_invalidate_local_keeps_durable(self, csv_file, durable, loader):
        """Test that clearing the local slot falls back to the durable entry."""
        cache = IndexCache(durable, lambda: csv_file, loader=loader)
        cache.get_index()

        cache.invalidate_local()
        index = cache.get_index()

        assert '/show' in index
        loader.load.assert_called_once()
        assert durable.get.call_count == 2

    def test_invalidate_clears_both_tiers(self, csv_file, durable, loader):
        """Test that a full invalidation forces a rebuild."""
        cache = IndexCache(durable, lambda: csv_file, loader=loader)
        cache.get_index()

        cache.invalidate()
        cache.get_index()

        durable.delete.assert_called_once_with('esi_processed_events_data')
        assert loader.load.call_count == 2

    def test_loader_result_flags_unavailable(self, durable):
        """Test that the loader's availability flag decides persistence."""
        loader = Mock()
        loader.load.return_value = LoadResult(source_available=False)
        cache = IndexCache(durable, lambda: 'anything.csv', loader=loader)

        cache.get_index()

        durable.set.assert_not_called()


def test_replaced_csv_served_stale_until_durable_invalidated(tmp_path, durable):
    """
    Test the staleness window after an upload.

    Uploading a new CSV clears only the process-local slot, so a
    durable entry keeps serving the previous index until it expires
    or is invalidated explicitly.
    """
    settings_store = SettingsStore(tmp_path / 'settings.json')
    old_csv = tmp_path / 'old.csv'
    old_csv.write_text(HEADER + "/old,/old#1,Old,10\n", encoding='utf-8')
    settings_store.update(csv_file_path=str(old_csv))

    cache = IndexCache(durable, lambda: settings_store.load().csv_file_path)
    assert list(cache.get_index().keys()) == ['/old']

    new_csv = tmp_path / 'new.csv'
    new_csv.write_text(HEADER + "/new,/new#1,New,20\n", encoding='utf-8')
    uploader = CsvUploadHandler(str(tmp_path / 'uploads'), settings_store, cache)
    with patch('uploader.csv_upload.time.time', return_value=1700000000):
        result = uploader.handle_upload(str(new_csv))

    assert result.success is True
    assert settings_store.load().csv_file_path.endswith('events-1700000000.csv')
    # Still the old index: only the local slot was cleared
    assert list(cache.get_index().keys()) == ['/old']

    cache.invalidate()
    assert list(cache.get_index().keys()) == ['/new']


@pytest.fixture
def cache_table(monkeypatch):
    """Create a mock DynamoDB cache table for testing."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')

    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        table = dynamodb.create_table(
            TableName='test-event-schema-cache',
            KeySchema=[{'AttributeName': 'cache_key', 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': 'cache_key', 'AttributeType': 'S'}],
            BillingMode='PAY_PER_REQUEST'
        )
        yield table


@pytest.fixture
def large_csv_file(tmp_path):
    """Create a CSV well past DynamoDB's 400 KB item limit, even gzipped."""
    rng = random.Random(7)
    alphabet = string.ascii_letters + string.digits
    lines = ["MainPageURL,EventInstanceURL,EventName,EventDescription,OfferPrice\n"]
    for row in range(2000):
        description = ''.join(rng.choices(alphabet, k=600))
        lines.append(f"/show-{row % 50},/show-{row % 50}#{row},Show {row},{description},25.00\n")

    path = tmp_path / 'large.csv'
    path.write_text(''.join(lines), encoding='utf-8')
    return str(path)


def test_large_csv_loaded_once_across_instances(cache_table, large_csv_file):
    """
    Test that an index too big for one DynamoDB item is still cached.

    Each invocation builds a fresh IndexCache, so only the durable tier
    can spare the later ones from re-parsing the CSV.
    """
    assert os.path.getsize(large_csv_file) > 400 * 1024
    loader = Mock(wraps=CsvLoader())

    indexes = [
        IndexCache(
            DynamoDBCache('test-event-schema-cache'),
            lambda: large_csv_file,
            loader=loader,
        ).get_index()
        for _ in range(3)
    ]

    assert loader.load.call_count == 1
    assert len(indexes[0]) == 50
    assert indexes[1] == indexes[0]
    assert indexes[2] == indexes[0]

    stored = cache_table.get_item(Key={'cache_key': 'esi_processed_events_data'})['Item']
    assert int(stored['chunks']) > 1
