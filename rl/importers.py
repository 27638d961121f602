"""
JSON import for rl.

Parses the backup format written by rl.exporters into LinkRecord objects
and hands them to LinkStore.import_links.
"""
import json
from pathlib import Path
from typing import List, Dict, Any, Union

from rl import timeutil
from rl.db import LinkStore, ImportReport
from rl.errors import InvalidInputError
from rl.models import LinkRecord

TEXT_FIELDS = ("id", "title", "note", "tags")


def _text(item: Dict[str, Any], key: str, index: int) -> str:
    value = item.get(key)
    if value is None:
        return ""
    if isinstance(value, list):
        # Tolerate tags written as a JSON array
        if key == "tags" and all(isinstance(v, str) for v in value):
            return ",".join(value)
    if not isinstance(value, str):
        raise InvalidInputError(f"record {index}: {key!r} must be a string")
    return value


def _timestamp(item: Dict[str, Any], key: str, index: int):
    value = item.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidInputError(f"record {index}: {key!r} must be a string or null")
    try:
        return timeutil.parse_timestamp(value)
    except ValueError as e:
        raise InvalidInputError(f"record {index}: {e}") from e


def record_from_dict(item: Any, index: int = 0) -> LinkRecord:
    """
    Build a LinkRecord from one decoded JSON object.

    URL and id are not checked here; the store validates them per record
    so one bad entry does not sink the whole file. A missing or non-string
    url becomes "", which the store skips as an invalid URL.

    Raises:
        InvalidInputError: If the entry is not an object or has other
            fields of the wrong type
    """
    if not isinstance(item, dict):
        raise InvalidInputError(f"record {index}: expected an object, got {type(item).__name__}")
    url = item.get("url")
    if not isinstance(url, str):
        url = ""

    fields = {key: _text(item, key, index) for key in TEXT_FIELDS}
    return LinkRecord(
        url=url,
        id=fields["id"] or None,
        title=fields["title"],
        note=fields["note"],
        tags=fields["tags"],
        created_at=_timestamp(item, "created_at", index),
        read_at=_timestamp(item, "read_at", index),
    )


def parse_json(data: Union[str, bytes]) -> List[LinkRecord]:
    """
    Parse a JSON export document.

    Raises:
        InvalidInputError: On malformed JSON or a non-array document
    """
    try:
        decoded = json.loads(data)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"malformed JSON: {e}") from e
    if not isinstance(decoded, list):
        raise InvalidInputError("expected a JSON array of links")
    return [record_from_dict(item, index) for index, item in enumerate(decoded)]


def load_json(path: Path) -> List[LinkRecord]:
    """Read and parse a JSON export file."""
    with open(path, "r", encoding="utf-8") as f:
        return parse_json(f.read())


def import_file(store: LinkStore, path: Path) -> ImportReport:
    """
    Import links from a JSON export file.

    Args:
        store: Destination store
        path: File to read

    Returns:
        ImportReport from the store
    """
    return store.import_links(load_json(Path(path)))
