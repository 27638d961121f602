"""
JSON export for rl.

Writes the backup format read back by rl.importers: an array of objects
with canonical UTC timestamps, omitting empty title/note/tags and a null
read_at.
"""
import json
from pathlib import Path
from typing import List, Dict, Any, TextIO

from rl.models import Link


def links_to_data(links: List[Link]) -> List[Dict[str, Any]]:
    """Convert links to their wire dictionaries."""
    return [link.to_dict() for link in links]


def export_to_string(links: List[Link], pretty: bool = True) -> str:
    """Serialize links to a JSON string."""
    return json.dumps(links_to_data(links), indent=2 if pretty else None, ensure_ascii=False)


def export_json(links: List[Link], out: TextIO, pretty: bool = True) -> None:
    """
    Write links as JSON to an open text stream.

    Args:
        links: Links to export
        out: Destination stream (e.g. sys.stdout)
        pretty: Indent the output
    """
    out.write(export_to_string(links, pretty=pretty))
    out.write("\n")


def export_file(links: List[Link], path: Path, pretty: bool = True) -> None:
    """
    Export links to a JSON file.

    Args:
        links: Links to export
        path: Output file path (parent directories are created)
        pretty: Indent the output
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        export_json(links, f, pretty=pretty)
