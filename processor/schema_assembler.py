"""Assembler that turns grouped CSV records into Schema.org Event objects."""
import logging
import math
import re
from typing import Any, Dict, List, Optional

from processor.models import RawRecord
from processor.schema_tree import prune_empty

logger = logging.getLogger(__name__)


class SchemaAssembler:
    """Builds JSON-LD Event objects from the records matching one page."""

    SCHEMA_CONTEXT = 'https://schema.org'
    SCHEMA_PREFIX = 'https://schema.org/'
    INSTANCE_KEY_FIELD = 'EventInstanceURL'
    DEFAULT_PERFORMER_TYPE = 'PerformingGroup'

    PRICE_PATTERN = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')

    def assemble(self, records: List[RawRecord]) -> Optional[List[Dict[str, Any]]]:
        """
        Group records by event instance and build one Event per group.

        The first record seen for an instance supplies the event-level
        fields; every record in the group contributes one Offer.

        Args:
            records: RawRecords for a single page, in file order

        Returns:
            List of pruned Event objects, or None if there are none
        """
        if not records:
            return None

        # dicts keep first-occurrence order of instance keys
        grouped_events: Dict[str, Dict[str, Any]] = {}
        ungrouped = 0

        for record in records:
            instance_key = record.get(self.INSTANCE_KEY_FIELD)
            if not instance_key:
                ungrouped += 1
                continue

            if instance_key not in grouped_events:
                grouped_events[instance_key] = self._build_event(instance_key, record)

            grouped_events[instance_key]['offers'].append(self._build_offer(record))

        if ungrouped:
            logger.debug(f"Skipped {ungrouped} records without an event instance URL")

        final_events = []
        for event in grouped_events.values():
            pruned = prune_empty(event)
            if pruned is not None:
                final_events.append(pruned)

        logger.info(
            f"Assembled {len(final_events)} events from {len(records)} records"
        )
        return final_events or None

    def _build_event(self, instance_key: str, record: RawRecord) -> Dict[str, Any]:
        """
        Build the event-level fields for a new group.

        Args:
            instance_key: Event instance URL shared by the group
            record: First record seen for the instance

        Returns:
            Unpruned Event dict with an empty offers list
        """
        return {
            '@context': self.SCHEMA_CONTEXT,
            '@type': 'Event',
            '@id': instance_key,
            'name': record.get('EventName'),
            'description': record.get('EventDescription'),
            'startDate': record.get('EventStartDate'),
            'endDate': record.get('EventEndDate'),
            'url': instance_key,
            'eventStatus': self._schema_uri(record.get('EventStatus')),
            'image': record.get('EventImageURL'),
            'location': self._entity('Place', {
                'name': record.get('VenueName'),
                '@id': record.get('VenueID'),
                'address': self._entity('PostalAddress', {
                    'streetAddress': record.get('VenueStreetAddress'),
                    'addressLocality': record.get('VenueLocality'),
                    'addressRegion': record.get('VenueRegion'),
                    'postalCode': record.get('VenuePostalCode'),
                    'addressCountry': record.get('VenueCountry'),
                }),
            }),
            'performer': self._entity(
                record.get('PerformerType') or self.DEFAULT_PERFORMER_TYPE,
                {
                    'name': record.get('PerformerName'),
                    '@id': record.get('PerformerID'),
                },
            ),
            'organizer': self._entity('Organization', {
                'name': record.get('OrganizerName'),
                'url': record.get('OrganizerURL'),
                '@id': record.get('OrganizerID'),
            }),
            'offers': [],
        }

    def _build_offer(self, record: RawRecord) -> Dict[str, Any]:
        """Build the Offer contributed by a single record."""
        offer = {
            '@type': 'Offer',
            'name': record.get('OfferName'),
            'url': record.get('OfferURL'),
            'price': self.parse_price(record.get('OfferPrice')),
            'priceCurrency': record.get('OfferCurrency'),
            'availability': self._schema_uri(record.get('OfferAvailability')),
        }
        if record.get('OfferID'):
            offer['@id'] = record['OfferID']
        return offer

    def _entity(self, schema_type: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Build a typed nested entity.

        An entity with no surviving data fields is dropped; its type
        alone is not worth emitting.

        Args:
            schema_type: Value for @type
            fields: Data fields of the entity

        Returns:
            Entity dict, or None if every field is empty
        """
        pruned = prune_empty(fields)
        if pruned is None:
            return None
        return {'@type': schema_type, **pruned}

    def _schema_uri(self, value: Optional[str]) -> Optional[str]:
        # No check that the value is a real schema.org enum member
        if not value:
            return None
        return self.SCHEMA_PREFIX + value

    def parse_price(self, value: Optional[str]) -> Optional[float]:
        """
        Parse an offer price.

        Args:
            value: Raw price string

        Returns:
            Price as float, or None if missing or not a number
        """
        if value is None:
            return None
        value = value.strip()
        if not self.PRICE_PATTERN.match(value):
            return None
        price = float(value)
        return price if math.isfinite(price) else None
