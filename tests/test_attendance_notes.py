from daycare.utils.attendance_notes import (
    build_attendance_notes,
    merge_attendance_notes,
    parse_attendance_notes,
)


def test_parse_splits_tagged_lines_from_general_notes():
    raw = "DROP_OFF_NOTE::Grandma dropping off\nPICK_UP_NOTE::Dad at 5\nBrought extra diapers\nNap was short"

    notes = parse_attendance_notes(raw)

    assert notes.drop_off == "Grandma dropping off"
    assert notes.pick_up == "Dad at 5"
    assert notes.general == "Brought extra diapers\nNap was short"


def test_empty_notes_build_to_none():
    assert build_attendance_notes(parse_attendance_notes(None)) is None
    assert merge_attendance_notes(None, general="   ") is None


def test_pick_up_update_keeps_drop_off_and_general():
    raw = merge_attendance_notes(None, drop_off="Mom, running late", general="Has a cold")

    merged = merge_attendance_notes(raw, pick_up="Aunt Sue")
    notes = parse_attendance_notes(merged)

    assert notes.drop_off == "Mom, running late"
    assert notes.pick_up == "Aunt Sue"
    assert notes.general == "Has a cold"


def test_tagged_note_with_newlines_stays_one_line():
    merged = merge_attendance_notes(None, drop_off="first line\nsecond line")

    assert merged == "DROP_OFF_NOTE::first line second line"
    assert parse_attendance_notes(merged).general == ""
