import pytest

from batchdesk.services.meeting_export import (
    decode_upload, parse_meeting_export, read_export_metadata, MeetingExportError
)

MEET_EXPORT = """"* Meet","abc-defg-hij"
"* Created by","coordinator@example.com"

"Full Name","First Seen","Time in Call"
"Jane Doe","10:03:12 AM","55 min"
"Jon Smith BCR69","10:15:00 AM","40 min"
"","10:20:00 AM","1 min"
"""


def test_google_meet_export_with_metadata_lines():
    participants = parse_meeting_export(MEET_EXPORT)
    assert [(p.full_name, p.first_seen, p.time_in_call) for p in participants] == [
        ("Jane Doe", "10:03:12 AM", "55 min"),
        ("Jon Smith BCR69", "10:15:00 AM", "40 min"),
    ]


def test_alternative_header_names():
    text = "Name,Join Time,Duration\nJane Doe,2024-05-06 10:02:00,50\nCarlos Mendes,,12\n"
    participants = parse_meeting_export(text)
    assert [p.full_name for p in participants] == ["Jane Doe", "Carlos Mendes"]
    assert participants[0].first_seen == "2024-05-06 10:02:00"
    assert participants[1].first_seen == ""


def test_missing_time_column_is_tolerated():
    participants = parse_meeting_export("Full Name\nJane Doe\n")
    assert participants[0].first_seen == ""


def test_header_only_file_has_no_participants():
    assert parse_meeting_export('"Full Name","First Seen"\n') == []


@pytest.mark.parametrize("text", ["", "   \n\n", "foo,bar\n1,2\n"])
def test_unreadable_files_raise_one_error(text):
    with pytest.raises(MeetingExportError):
        parse_meeting_export(text)


def test_decode_upload_handles_bom_and_utf16():
    assert decode_upload("\ufeffFull Name\nJane".encode("utf-8")) == "Full Name\nJane"
    assert decode_upload("Full Name\nJane".encode("utf-16")) == "Full Name\nJane"


@pytest.mark.parametrize("name", ["José Pérez", "José Pérez Jr"])
def test_cp1252_export_decodes_whatever_its_length(name):
    raw = "Full Name,First Seen\n{},10:01 AM\n".format(name).encode("cp1252")
    participants = parse_meeting_export(decode_upload(raw))
    assert [p.full_name for p in participants] == [name]


def test_cp1252_lengths_cover_both_parities():
    lengths = {len("Full Name,First Seen\n{},10:01 AM\n".format(n).encode("cp1252")) % 2
               for n in ["José Pérez", "José Pérez Jr"]}
    assert lengths == {0, 1}


def test_utf16_without_bom_is_detected_by_nul_bytes():
    assert decode_upload("Full Name\nJane".encode("utf-16-le")) == "Full Name\nJane"


def test_metadata_above_header():
    metadata = read_export_metadata(MEET_EXPORT)
    assert metadata == {"meet": "abc-defg-hij", "created by": "coordinator@example.com"}
    assert read_export_metadata("Full Name\nJane Doe\n") == {}
    assert read_export_metadata("foo,bar\n") == {}
