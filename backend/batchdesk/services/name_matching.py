"""
Name Matching Service - resolves meeting participants to roster students.

Implements the matching pipeline used when importing a meeting export:
1. Name normalization (lowercase, alphanumerics only, single spaces)
2. Optional removal of a trailing batch code ("Jane Doe BCR69")
3. Pairwise scoring with a fixed rule priority:
   exact (1.0) > first_name (0.9) > partial (0.8) > fuzzy (similarity)
4. Greedy one-pass assignment in participant order

Design Decision: assignment is greedy and order-dependent. Each
participant takes the best still-unused student, and ties go to the
earlier roster entry. This is not a global optimum (a weighted bipartite
matching could do better on crowded rosters), but callers rely on its
exact tie-breaking, so it stays the default.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from batchdesk.config import MATCH_ACCEPT_THRESHOLD, NON_HUMAN_MARKERS
from batchdesk.logging_config import get_logger, log_with_context

logger = get_logger("matching")

FIRST_NAME_CONFIDENCE = 0.9
PARTIAL_CONFIDENCE = 0.8
FUZZY_MIN_SIMILARITY = 0.6
MIN_TOKEN_LENGTH = 3

_DISALLOWED_CHARS = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class Participant:
    """One row of a meeting attendance export."""
    full_name: str
    first_seen: str = ""
    time_in_call: Optional[str] = None


@dataclass
class NameMatch:
    confidence: float
    match_type: str


@dataclass
class MatchedPair:
    participant: Participant
    student: object
    confidence: float
    match_type: str


@dataclass
class MatchingResult:
    matched: List[MatchedPair] = field(default_factory=list)
    unmatched: List[Participant] = field(default_factory=list)
    unmatched_students: list = field(default_factory=list)


def normalize(name: str) -> str:
    """
    Normalize a person name for comparison.

    Examples:
        "  Jane   Doe " → "jane doe"
        "O'Brien, Pat"  → "obrien pat"
    """
    if not name:
        return ""
    name = _DISALLOWED_CHARS.sub("", name.lower())
    return _WHITESPACE.sub(" ", name).strip()


def first_token(normalized: str) -> str:
    return normalized.split(" ")[0] if normalized else ""


def strip_batch_code(name: str, batch_code: Optional[str]) -> str:
    """
    Remove a trailing batch code from a participant name.

    Some participants append their batch code to their display name
    ("Jane Doe BCR69"). Only a whitespace-delimited trailing occurrence
    is removed, case-insensitively.
    """
    if not name or not batch_code or not batch_code.strip():
        return name or ""
    pattern = r"\s+" + re.escape(batch_code.strip()) + r"\s*$"
    return re.sub(pattern, "", name, flags=re.IGNORECASE)


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(
                current[j - 1] + 1,
                previous[j] + 1,
                previous[j - 1] + cost
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1 - distance / longer length; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(a, b) / longest


def compare_names(participant_name: str, student_name: str) -> Optional[NameMatch]:
    """
    Score one participant name against one student name.

    Rules are tried in priority order and the first one that fires wins:
    1. exact: normalized forms equal → 1.0
    2. first_name: first tokens equal and longer than 2 chars → 0.9
    3. partial: either full name contains the other's first token
       (longer than 2 chars) → 0.8
    4. fuzzy: Levenshtein similarity above 0.6 → the similarity

    Returns:
        NameMatch, or None when no rule fires or either name is empty
        after normalization
    """
    p_norm = normalize(participant_name)
    s_norm = normalize(student_name)
    if not p_norm or not s_norm:
        return None

    if p_norm == s_norm:
        return NameMatch(1.0, "exact")

    p_first = first_token(p_norm)
    s_first = first_token(s_norm)
    if p_first == s_first and len(p_first) >= MIN_TOKEN_LENGTH:
        return NameMatch(FIRST_NAME_CONFIDENCE, "first_name")

    if len(p_first) >= MIN_TOKEN_LENGTH and p_first in s_norm:
        return NameMatch(PARTIAL_CONFIDENCE, "partial")
    if len(s_first) >= MIN_TOKEN_LENGTH and s_first in p_norm:
        return NameMatch(PARTIAL_CONFIDENCE, "partial")

    score = similarity(p_norm, s_norm)
    if score > FUZZY_MIN_SIMILARITY:
        return NameMatch(score, "fuzzy")
    return None


def is_non_human(name: str) -> bool:
    """True for meeting artifacts such as transcription bots."""
    normalized = normalize(name)
    return any(marker in normalized for marker in NON_HUMAN_MARKERS)


def match_participants(participants: List[Participant], students: list,
                       batch_code: Optional[str] = None) -> MatchingResult:
    """
    Assign meeting participants to roster students.

    Args:
        participants: Parsed export rows, in file order
        students: Roster entries (anything with `id` and `name`), in
            roster order
        batch_code: When given, stripped from the end of participant
            names before comparing

    Returns:
        MatchingResult with matched pairs, unmatched participants and
        students no participant claimed. Non-human participants appear
        in none of the lists.
    """
    result = MatchingResult()
    used_ids = set()
    dropped = 0

    for participant in participants:
        # The batch code may itself contain a marker such as "ai"
        candidate_name = strip_batch_code(participant.full_name, batch_code)
        if is_non_human(candidate_name):
            dropped += 1
            continue

        best_student = None
        best_match = None

        for student in students:
            if student.id in used_ids:
                continue
            match = compare_names(candidate_name, student.name)
            if match and (best_match is None or match.confidence > best_match.confidence):
                best_student = student
                best_match = match

        if best_match and best_match.confidence > MATCH_ACCEPT_THRESHOLD:
            used_ids.add(best_student.id)
            result.matched.append(MatchedPair(
                participant=participant,
                student=best_student,
                confidence=best_match.confidence,
                match_type=best_match.match_type
            ))
            log_with_context(logger, "DEBUG",
                "Matched '{}' → '{}' ({}, {:.2f})".format(
                    participant.full_name, best_student.name,
                    best_match.match_type, best_match.confidence),
                context={"student_id": str(best_student.id)})
        else:
            result.unmatched.append(participant)

    result.unmatched_students = [s for s in students if s.id not in used_ids]

    log_with_context(logger, "INFO",
        "Matching complete: {} matched, {} unmatched participants, {} unmatched students".format(
            len(result.matched), len(result.unmatched), len(result.unmatched_students)),
        extra_data={
            "participants": len(participants),
            "dropped_non_human": dropped,
            "roster_size": len(students)
        })
    return result
