"""Encode/decode for the ``note_laser`` append-only log.

The store keeps the log as one text blob: entries joined by a blank line,
each shaped ``[dd/mm/yyyy, HH:MM] [author] text``. Every reader and writer
of that blob goes through this module.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .layouts import INCIDENTS_TABLE
from .store import RecordStore, eq


LOGGER = logging.getLogger("laserdesk.notes")

ENTRY_SEPARATOR = "\n\n"
TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M"
DEFAULT_AUTHOR = "Utente"

_ENTRY_RE = re.compile(r"^\[(?P<ts>[^\]]*)\] \[(?P<author>[^\]]*)\] ?(?P<text>.*)$", re.DOTALL)


@dataclass(frozen=True)
class NoteEntry:
    timestamp: Optional[datetime]
    author: Optional[str]
    text: str

    def render(self) -> str:
        stamp = self.timestamp.strftime(TIMESTAMP_FORMAT) if self.timestamp else ""
        return f"[{stamp}] [{self.author or DEFAULT_AUTHOR}] {self.text}"


def _parse_stamp(raw: str) -> Optional[datetime]:
    try:
        return datetime.strptime(raw.strip(), TIMESTAMP_FORMAT)
    except ValueError:
        return None


def decode_notes(blob: Optional[str]) -> List[NoteEntry]:
    """Split a stored log into entries.

    Chunks that do not follow the entry shape (hand-edited text, legacy
    notes) come back as author-less entries holding the raw text.
    """
    if not blob:
        return []
    entries: List[NoteEntry] = []
    for chunk in blob.split(ENTRY_SEPARATOR):
        if not chunk.strip():
            continue
        match = _ENTRY_RE.match(chunk)
        if match is None:
            entries.append(NoteEntry(timestamp=None, author=None, text=chunk))
            continue
        entries.append(
            NoteEntry(
                timestamp=_parse_stamp(match.group("ts")),
                author=match.group("author") or None,
                text=match.group("text"),
            )
        )
    return entries


def encode_notes(entries: List[NoteEntry]) -> str:
    return ENTRY_SEPARATOR.join(e.render() if e.author is not None else e.text for e in entries)


def append_entry(blob: Optional[str], entry: NoteEntry) -> str:
    """Append without re-encoding existing entries, so the old text is kept byte for byte."""
    rendered = entry.render()
    return f"{blob}{ENTRY_SEPARATOR}{rendered}" if blob else rendered


def append_note(
    store: RecordStore,
    incident: Mapping[str, Any],
    text: str,
    author: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Append one note to an incident and persist the whole log.

    Blank text is ignored. A store failure propagates as ``StoreError`` and
    the incident passed in is left untouched.
    """
    text = (text or "").strip()
    if not text:
        return dict(incident)
    entry = NoteEntry(timestamp=now or datetime.now(), author=author or DEFAULT_AUTHOR, text=text)
    updated = append_entry(incident.get("note_laser"), entry)
    store.update(INCIDENTS_TABLE, {"note_laser": updated}, [eq("numero", incident["numero"])])
    LOGGER.debug("Note appended to %s by %s", incident["numero"], entry.author)
    return {**incident, "note_laser": updated}
