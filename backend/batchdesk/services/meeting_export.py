"""
Meeting Export Parser - reads participant lists exported by video-call tools.

Exports usually start with a few metadata lines ("* Meet","...") before
the real header row, and header names differ between tools and versions.
The parser locates the header row, reads the table with pandas, and
returns one Participant per row that has a name.
"""

import io
import re
from typing import Dict, List, Optional

import pandas as pd

from batchdesk.services.name_matching import Participant
from batchdesk.logging_config import get_logger, log_with_context

logger = get_logger("matching")

NAME_HEADERS = ["full name", "name", "participant", "display name", "name (original name)", "user name"]
TIME_HEADERS = ["first seen", "join time", "first join time", "joined at", "join time (utc)", "first join time (utc)"]
DURATION_HEADERS = ["time in call", "duration", "duration (minutes)", "time in meeting (minutes)"]


class MeetingExportError(ValueError):
    """The export could not be read at all; nothing should be applied."""


UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")
METADATA_LINE = re.compile(r'^\s*"?\*\s*([^",]+?)\s*"?\s*,\s*"?(.*?)"?\s*$')


def _utf16_variant(data: bytes) -> Optional[str]:
    # Any even-length byte string decodes as UTF-16, so require a BOM or NULs
    if data.startswith(UTF16_BOMS):
        return "utf-16"
    if b"\x00" in data:
        return "utf-16-le" if data[1:2] == b"\x00" else "utf-16-be"
    return None


def decode_upload(data: bytes) -> str:
    """
    Decode uploaded bytes, trying the encodings export tools use.

    UTF-16 only for data that carries a UTF-16 BOM or NUL bytes, then
    UTF-8 (with or without BOM), then cp1252 for spreadsheet re-saves.
    """
    utf16 = _utf16_variant(data)
    encodings = ([utf16] if utf16 else []) + ["utf-8-sig", "cp1252"]
    for encoding in encodings:
        try:
            return data.decode(encoding)
        except UnicodeError:
            continue
    return data.decode("latin-1")


def _header_cells(line: str) -> List[str]:
    return [cell.strip().strip('"').strip().lower() for cell in line.split(",")]


def _locate_header(lines: List[str]) -> int:
    for index, line in enumerate(lines):
        if any(cell in NAME_HEADERS for cell in _header_cells(line)):
            return index
    return -1


def _pick(columns, candidates) -> Optional[str]:
    lookup = {str(c).strip().lower(): c for c in columns}
    for candidate in candidates:
        if candidate in lookup:
            return lookup[candidate]
    return None


def _cell(row, column) -> str:
    if column is None:
        return ""
    value = row.get(column)
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


def _export_lines(text: str) -> List[str]:
    return [ln for ln in re.split(r"\r\n|\r|\n", text) if ln.strip()]


def read_export_metadata(text: str) -> Dict[str, str]:
    """
    Key/value lines such as "* Meet","abc-defg-hij" above the header row.

    Keys are lowercased ({"meet": "abc-defg-hij", "created by": ...}).
    Files without a header row, or without metadata, give {}.
    """
    if not text:
        return {}
    lines = _export_lines(text)
    header_index = _locate_header(lines)
    metadata = {}
    for line in lines[:max(header_index, 0)]:
        match = METADATA_LINE.match(line)
        if match:
            metadata[match.group(1).strip().lower()] = match.group(2).strip()
    return metadata


def parse_meeting_export(text: str) -> List[Participant]:
    """
    Parse a meeting attendance export into participants.

    Rows without a name are skipped. A file that is empty, has no
    recognisable header row, or cannot be tokenised raises a single
    MeetingExportError.

    Args:
        text: Decoded CSV text

    Returns:
        Participants in file order
    """
    if not text or not text.strip():
        raise MeetingExportError("The attendance file is empty.")

    lines = _export_lines(text)
    header_index = _locate_header(lines)
    if header_index == -1:
        raise MeetingExportError(
            "Could not locate the participants header row. Expected a 'Full Name' or 'Name' column.")

    payload = "\n".join(lines[header_index:])
    try:
        df = pd.read_csv(io.StringIO(payload), dtype=str, skipinitialspace=True,
                         on_bad_lines="skip", engine="python")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise MeetingExportError("Error processing the attendance file: {}".format(e)) from e

    name_col = _pick(df.columns, NAME_HEADERS)
    if name_col is None:
        raise MeetingExportError(
            "Could not detect the participant name column. Found: {}".format(list(df.columns)))
    time_col = _pick(df.columns, TIME_HEADERS)
    duration_col = _pick(df.columns, DURATION_HEADERS)

    participants = []
    skipped = 0
    for _, row in df.iterrows():
        name = _cell(row, name_col)
        if not name:
            skipped += 1
            continue
        participants.append(Participant(
            full_name=name,
            first_seen=_cell(row, time_col),
            time_in_call=_cell(row, duration_col) or None
        ))

    log_with_context(logger, "INFO",
        "Parsed meeting export: {} participants".format(len(participants)),
        extra_data={
            "skipped_rows": skipped,
            "name_column": name_col,
            "time_column": time_col,
            "metadata_lines": header_index
        })
    return participants
