"""AWS Lambda handler for Event Schema Injector."""
import json
import logging
import os
import time
from typing import Dict, Any, Optional

from page.head_injector import extract_canonical_url, inject_into_head
from processor.event_indexer import lookup
from processor.jsonld import to_script_tag
from processor.schema_assembler import SchemaAssembler
from storage.cache_backends import DynamoDBCache
from storage.index_cache import IndexCache
from storage.settings_store import SettingsStore
from uploader.csv_upload import CsvUploadHandler
from uploader.remote_csv import RemoteCsvFetcher


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'body': json.dumps(body)
    }


TRUE_STRINGS = ('true', '1', 'yes', 'on')
FALSE_STRINGS = ('false', '0', 'no', 'off', '')


def _parse_bool(value: Any) -> bool:
    """
    Interpret a flag from a JSON or form-encoded payload.

    Raises:
        ValueError: If the value is not a recognised boolean
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUE_STRINGS:
            return True
        if normalized in FALSE_STRINGS:
            return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def handle_inject(
    event: Dict[str, Any],
    settings_store: SettingsStore,
    index_cache: IndexCache
) -> Dict[str, Any]:
    """
    Build JSON-LD markup for a page and inject it into the page head.

    Every short-circuit (disabled, no canonical URL, no data, no
    matching records, no events) leaves the page untouched.

    Args:
        event: Request payload with 'canonical_url' and/or 'html'
        settings_store: Store holding the enable flag
        index_cache: Cache serving the page index

    Returns:
        Response dict; the body reports whether markup was injected
    """
    logger = logging.getLogger(__name__)
    html: Optional[str] = event.get('html')

    def skipped(reason: str) -> Dict[str, Any]:
        logger.info(f"No structured data injected: {reason}")
        body = {'injected': False, 'reason': reason, 'events': 0, 'markup': ''}
        if html is not None:
            body['html'] = html
        return _response(200, body)

    if not settings_store.load().enabled:
        return skipped('disabled')

    canonical_url = event.get('canonical_url')
    if not canonical_url and html:
        canonical_url = extract_canonical_url(html)
    if not canonical_url:
        return skipped('no canonical URL')

    index = index_cache.get_index()
    if not index:
        return skipped('no event data')

    matching_rows = lookup(canonical_url, index)
    if not matching_rows:
        return skipped('no matching records')

    schema_data = SchemaAssembler().assemble(matching_rows)
    if not schema_data:
        return skipped('no events')

    markup = to_script_tag(schema_data)
    logger.info(f"Injecting {len(schema_data)} events for {canonical_url}")

    body = {
        'injected': True,
        'canonical_url': canonical_url,
        'events': len(schema_data),
        'markup': markup
    }
    if html is not None:
        body['html'] = inject_into_head(html, markup)
    return _response(200, body)


def handle_upload(
    event: Dict[str, Any],
    upload_handler: CsvUploadHandler,
    timeout_seconds: int
) -> Dict[str, Any]:
    """
    Replace the events CSV from a local file or a remote URL.

    Args:
        event: Request payload with 'file_path' (and optional 'filename')
            or 'source_url'
        upload_handler: Upload workflow
        timeout_seconds: HTTP timeout for remote downloads

    Returns:
        Response dict with the admin message
    """
    if event.get('source_url'):
        result = upload_handler.handle_remote_upload(
            event['source_url'],
            RemoteCsvFetcher(timeout=timeout_seconds)
        )
    elif event.get('file_path'):
        result = upload_handler.handle_upload(
            event['file_path'],
            filename=event.get('filename')
        )
    else:
        return _response(400, {'message': "Upload requires 'file_path' or 'source_url'"})

    return _response(
        200 if result.success else 400,
        {'message': result.message, 'csv_file_path': result.csv_file_path}
    )


def handle_update_settings(
    event: Dict[str, Any],
    settings_store: SettingsStore,
) -> Dict[str, Any]:
    """Apply the admin settings form; an unreadable enable flag is a 400."""
    logger = logging.getLogger(__name__)
    enabled = event.get('enabled')
    if enabled is not None:
        try:
            enabled = _parse_bool(enabled)
        except ValueError as e:
            logger.warning(f"Rejected settings update: {e}")
            return _response(400, {'message': str(e)})

    settings = settings_store.update(enabled=enabled)
    return _response(200, {
        'message': 'Settings Saved!',
        'settings': {
            'enabled': settings.enabled,
            'csv_file_path': settings.csv_file_path
        }
    })


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for Event Schema Injector.

    Args:
        event: Request payload; 'action' selects inject (default),
            upload, update_settings or invalidate_cache
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    # Read configuration from environment variables
    table_name = os.environ.get('CACHE_TABLE_NAME', 'event-schema-cache')
    settings_path = os.environ.get(
        'SETTINGS_PATH', '/tmp/event-schema-injector/settings.json'
    )
    upload_dir = os.environ.get('UPLOAD_DIR', '/tmp/event-schema-injector/uploads')
    csv_path_override = os.environ.get('CSV_FILE_PATH')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    event = event or {}
    action = event.get('action', 'inject')
    start_time = time.time()
    logger.info(
        f"Lambda execution started",
        extra={'action': action, 'table_name': table_name}
    )

    try:
        settings_store = SettingsStore(settings_path)
        index_cache = IndexCache(
            durable=DynamoDBCache(table_name=table_name),
            csv_path_provider=lambda: csv_path_override or settings_store.load().csv_file_path
        )

        if action == 'inject':
            response = handle_inject(event, settings_store, index_cache)
        elif action == 'upload':
            upload_handler = CsvUploadHandler(upload_dir, settings_store, index_cache)
            response = handle_upload(event, upload_handler, timeout_seconds)
        elif action == 'update_settings':
            response = handle_update_settings(event, settings_store)
        elif action == 'invalidate_cache':
            index_cache.invalidate()
            response = _response(200, {'message': 'Event index cache cleared'})
        else:
            logger.warning(f"Unknown action requested: {action}")
            response = _response(400, {'message': f"Unknown action: {action}"})

        duration = time.time() - start_time
        logger.info(
            f"Lambda execution completed",
            extra={
                'action': action,
                'status_code': response['statusCode'],
                'duration_seconds': round(duration, 2)
            }
        )
        return response

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return _response(500, {
            'message': 'Request failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })
