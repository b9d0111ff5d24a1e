"""JSON-LD serialization safe for inline script elements."""
import json
import re
from typing import Any, Dict, List

SCRIPT_TYPE = 'application/ld+json'

# Characters that could close the script element or break out of attributes
_HTML_UNSAFE = {
    '<': '\\u003C',
    '>': '\\u003E',
    '&': '\\u0026',
    "'": '\\u0027',
}
_ESCAPE_SEQUENCE = re.compile(r'\\(.)')


def to_json_ld(objects: List[Dict[str, Any]]) -> str:
    """
    Serialize Event objects as pretty-printed, HTML-safe JSON.

    Slashes are left unescaped. Quotes and markup characters inside
    strings are written as unicode escapes.

    Args:
        objects: Pruned Event objects

    Returns:
        JSON text
    """
    text = json.dumps(objects, indent=4, ensure_ascii=True, allow_nan=False)

    # Outside of strings JSON never contains these characters
    for char, escaped in _HTML_UNSAFE.items():
        text = text.replace(char, escaped)

    # Escaped quotes only occur inside strings; walk escape pairs so a
    # trailing backslash is never mistaken for one
    return _ESCAPE_SEQUENCE.sub(
        lambda m: '\\u0022' if m.group(1) == '"' else m.group(0),
        text,
    )


def to_script_tag(objects: List[Dict[str, Any]]) -> str:
    """Wrap serialized Event objects in a JSON-LD script element."""
    return f'<script type="{SCRIPT_TYPE}">{to_json_ld(objects)}</script>\n'
