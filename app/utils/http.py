"""
Response helpers shared by the remote platform clients.
"""
import json
from typing import Any

import httpx


def parse_json_body(response: httpx.Response) -> Any | None:
    """
    Parse a JSON body, returning None for HTML error pages and other non-JSON
    content that some hosts serve with a 200 status.
    """
    text = response.text.strip()
    if not text.startswith(("[", "{")):
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def header_int(response: httpx.Response, name: str) -> int | None:
    """Read an integer response header (e.g. X-WP-Total), or None."""
    if not name:
        return None
    value = response.headers.get(name)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None
