"""Unit tests for EventIndexer and lookup."""
from processor.event_indexer import EventIndexer, lookup


class TestEventIndexer:
    """Test cases for EventIndexer class."""

    def test_build_groups_by_main_page_url(self):
        """Test that records are grouped by page URL in input order."""
        records = [
            {'MainPageURL': '/a', 'EventName': 'A1'},
            {'MainPageURL': '/b', 'EventName': 'B1'},
            {'MainPageURL': '/a', 'EventName': 'A2'},
        ]

        index = EventIndexer().build(records)

        assert list(index.keys()) == ['/a', '/b']
        assert [r['EventName'] for r in index['/a']] == ['A1', 'A2']
        assert [r['EventName'] for r in index['/b']] == ['B1']

    def test_build_trims_url_key(self):
        """Test that the page URL is trimmed before use as a key."""
        records = [
            {'MainPageURL': '  /a  ', 'EventName': 'A1'},
            {'MainPageURL': '/a', 'EventName': 'A2'},
        ]

        index = EventIndexer().build(records)

        assert list(index.keys()) == ['/a']
        assert len(index['/a']) == 2
        # The record itself is kept as loaded
        assert index['/a'][0]['MainPageURL'] == '  /a  '

    def test_build_excludes_records_without_url(self):
        """Test that records with an empty or missing page URL are excluded."""
        records = [
            {'MainPageURL': '', 'EventInstanceURL': '/x#1', 'EventName': 'Empty'},
            {'MainPageURL': '   ', 'EventInstanceURL': '/x#2', 'EventName': 'Blank'},
            {'EventInstanceURL': '/x#3', 'EventName': 'Missing'},
            {'MainPageURL': '/a', 'EventName': 'Kept'},
        ]

        index = EventIndexer().build(records)

        assert index == {'/a': [{'MainPageURL': '/a', 'EventName': 'Kept'}]}

    def test_build_empty_input(self):
        """Test that no records produce an empty index."""
        assert EventIndexer().build([]) == {}

    def test_build_does_not_modify_input(self):
        """Test that building the index leaves the input untouched."""
        records = [{'MainPageURL': ' /a ', 'EventName': 'A1'}]
        snapshot = [dict(r) for r in records]

        EventIndexer().build(records)

        assert records == snapshot


class TestLookup:
    """Test cases for lookup function."""

    def test_lookup_hit(self):
        """Test lookup returns the records for a known page."""
        index = {'/a': [{'MainPageURL': '/a'}]}

        assert lookup('/a', index) == [{'MainPageURL': '/a'}]

    def test_lookup_miss(self):
        """Test lookup returns an empty list for an unknown page."""
        assert lookup('/missing', {'/a': [{'MainPageURL': '/a'}]}) == []
