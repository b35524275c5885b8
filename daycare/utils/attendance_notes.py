"""Encoding of drop-off, pick-up and general notes in one attendance text field.

Stored layout, one item per line::

    DROP_OFF_NOTE::<text>
    PICK_UP_NOTE::<text>
    <general lines...>
"""

from dataclasses import dataclass
from typing import Optional

DROP_OFF_PREFIX = "DROP_OFF_NOTE::"
PICK_UP_PREFIX = "PICK_UP_NOTE::"


@dataclass
class AttendanceNotes:
    drop_off: str = ""
    pick_up: str = ""
    general: str = ""


def parse_attendance_notes(raw: Optional[str]) -> AttendanceNotes:
    """Split a stored notes field into its tagged parts."""
    parsed = AttendanceNotes()
    value = (raw or "").strip()
    if not value:
        return parsed

    general_lines = []
    for line in value.split("\n"):
        entry = line.strip()
        if not entry:
            continue
        if entry.startswith(DROP_OFF_PREFIX):
            parsed.drop_off = entry[len(DROP_OFF_PREFIX):].strip()
        elif entry.startswith(PICK_UP_PREFIX):
            parsed.pick_up = entry[len(PICK_UP_PREFIX):].strip()
        else:
            general_lines.append(entry)

    parsed.general = "\n".join(general_lines).strip()
    return parsed


def build_attendance_notes(notes: AttendanceNotes) -> Optional[str]:
    """Serialize notes back to the stored layout; None when all parts are empty."""
    lines = []
    if notes.drop_off:
        lines.append(f"{DROP_OFF_PREFIX}{notes.drop_off}")
    if notes.pick_up:
        lines.append(f"{PICK_UP_PREFIX}{notes.pick_up}")
    if notes.general:
        lines.append(notes.general)
    return "\n".join(lines).strip() or None


def merge_attendance_notes(
    raw: Optional[str],
    drop_off: Optional[str] = None,
    pick_up: Optional[str] = None,
    general: Optional[str] = None,
) -> Optional[str]:
    """Replace only the parts that were given, keeping the rest of the stored notes."""
    notes = parse_attendance_notes(raw)
    # Single-line fields: collapse embedded newlines so they stay one tagged line
    if drop_off is not None:
        notes.drop_off = " ".join(drop_off.split())
    if pick_up is not None:
        notes.pick_up = " ".join(pick_up.split())
    if general is not None:
        notes.general = general.strip()
    return build_attendance_notes(notes)
