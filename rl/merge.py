"""
Merge policies for upserts.

Add and Import resolve conflicts on the same URL differently:

- Add ("new data wins"): a non-empty incoming title/note replaces the
  stored one; identity, created_at and read_at are untouched.
- Import ("existing data wins"): a non-empty stored title/note is kept;
  created_at keeps the stored value when set; read_at is taken from the
  incoming record unconditionally (see imported_read_at).

Both share the same case-insensitive tag union.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from rl.models import Link, LinkRecord, split_tags, join_tags


@dataclass
class MergedFields:
    """Field values to write back onto an existing link."""
    title: str
    note: str
    tags: str
    created_at: datetime
    read_at: Optional[datetime]


def union_tags(existing: Optional[str], incoming: Optional[str]) -> str:
    """
    Case-insensitive union of two tag strings.

    Existing labels come first, in order; incoming labels are appended
    only if no label differing only by case is already present. The
    first-seen casing wins.

    Args:
        existing: Stored tag string, e.g. "Python,web"
        incoming: New tag string, e.g. "python,api"

    Returns:
        Merged tag string, e.g. "Python,web,api"
    """
    seen = set()
    merged = []
    for tag in split_tags(existing) + split_tags(incoming):
        key = tag.lower()
        if key not in seen:
            seen.add(key)
            merged.append(tag)
    return join_tags(merged)


def normalize_tags(tags: Optional[str]) -> str:
    """Collapse blanks and case-duplicates in a single tag string."""
    return union_tags(tags, "")


def _prefer_new(old: Optional[str], new: Optional[str]) -> str:
    return new if new else (old or "")


def _prefer_existing(old: Optional[str], new: Optional[str]) -> str:
    return old if old else (new or "")


def merge_for_add(existing: Link, title: str, note: str, tags: str) -> MergedFields:
    """Interactive upsert: new non-empty text replaces old text."""
    return MergedFields(
        title=_prefer_new(existing.title, title),
        note=_prefer_new(existing.note, note),
        tags=union_tags(existing.tags, tags),
        created_at=existing.created_at,
        read_at=existing.read_at,
    )


def imported_read_at(existing_read_at: Optional[datetime],
                     incoming_read_at: Optional[datetime]) -> Optional[datetime]:
    """
    Read state to store when an import hits an existing link.

    The incoming value always wins, so importing an unread snapshot over
    a link that was since marked read clears its read state.
    """
    return incoming_read_at


def merge_for_import(existing: Link, incoming: LinkRecord,
                     default_created_at: datetime) -> MergedFields:
    """
    Bulk restore: stored text wins, incoming text only fills gaps.

    Args:
        existing: Link currently stored for the URL
        incoming: Record from the backup being imported
        default_created_at: Used when neither side has a creation time
    """
    created_at = existing.created_at or incoming.created_at or default_created_at
    return MergedFields(
        title=_prefer_existing(existing.title, incoming.title),
        note=_prefer_existing(existing.note, incoming.note),
        tags=union_tags(existing.tags, incoming.tags),
        created_at=created_at,
        read_at=imported_read_at(existing.read_at, incoming.read_at),
    )
