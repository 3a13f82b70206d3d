import pytest

from batchdesk.models import Student
from batchdesk.services.name_matching import (
    Participant, normalize, strip_batch_code, levenshtein_distance, similarity,
    compare_names, is_non_human, match_participants
)


def roster(*names):
    return [Student(id="s{}".format(i), name=name, position=i) for i, name in enumerate(names, 1)]


def people(*names):
    return [Participant(full_name=name, first_seen="10:01:00 AM") for name in names]


@pytest.mark.parametrize("raw", [
    "  Jane   Doe ",
    "O'Brien,\tPat",
    "José Ñúñez",
    "!!!",
    "",
    "MARY-ANN   smith\n jr.",
])
def test_normalize_is_idempotent(raw):
    once = normalize(raw)
    assert normalize(once) == once


def test_normalize_strips_punctuation_and_collapses_spaces():
    assert normalize("  Jane   Doe ") == "jane doe"
    assert normalize("O'Brien, Pat") == "obrien pat"
    assert normalize("Mary-Ann\tSmith") == "maryann smith"


def test_strip_batch_code_only_removes_trailing_token():
    assert strip_batch_code("Jane Doe BCR69", "BCR69") == "Jane Doe"
    assert strip_batch_code("Jane Doe bcr69  ", "BCR69") == "Jane Doe"
    assert strip_batch_code("BCR69 Jane Doe", "BCR69") == "BCR69 Jane Doe"
    assert strip_batch_code("Jane DoeBCR69", "BCR69") == "Jane DoeBCR69"
    assert strip_batch_code("Jane Doe", None) == "Jane Doe"


def test_levenshtein_and_similarity():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert similarity("", "") == 1.0
    assert similarity("jon doe", "jane doe") == pytest.approx(0.75)


def test_exact_match_ignores_case_and_spacing():
    match = compare_names("jane   doe", "Jane Doe")
    assert match.match_type == "exact"
    assert match.confidence == 1.0


def test_first_name_match():
    match = compare_names("Jane", "Jane Doe")
    assert match.match_type == "first_name"
    assert match.confidence == 0.9


def test_first_name_needs_more_than_two_letters():
    assert compare_names("Al Smith", "Al Jones") is None


def test_partial_match_on_contained_first_token():
    match = compare_names("Kumar Rahul", "Rahul Kumar")
    assert match.match_type == "partial"
    assert match.confidence == 0.8


def test_fuzzy_match_uses_similarity_as_confidence():
    match = compare_names("Jon Doe", "Jane Doe")
    assert match.match_type == "fuzzy"
    assert match.confidence == pytest.approx(0.75)


def test_no_match_for_unrelated_names():
    assert compare_names("Zed Quill", "Jane Doe") is None


def test_names_empty_after_normalizing_never_match():
    assert compare_names("???", "!!!") is None


def test_non_human_participants():
    assert is_non_human("AI Notetaker")
    assert is_non_human("Meeting Bot")
    assert is_non_human("System")
    assert not is_non_human("Jane Doe")


def test_exact_match_wins_over_earlier_weaker_candidates():
    students = roster("Jane Doe", "Jane Smith")
    result = match_participants(people("Jane Smith"), students)
    assert [(m.student.id, m.match_type) for m in result.matched] == [("s2", "exact")]


def test_filtered_participant_appears_nowhere():
    students = roster("Jane Doe")
    result = match_participants(people("AI Notetaker", "Jane Doe"), students)
    names = [m.participant.full_name for m in result.matched] + [p.full_name for p in result.unmatched]
    assert "AI Notetaker" not in names
    assert names == ["Jane Doe"]


def test_each_student_is_matched_at_most_once():
    students = roster("Sam Lee", "Sam Lee", "Jane Doe")
    result = match_participants(people("Sam Lee", "Sam Lee", "Sam Lee", "Jane Doe"), students)
    ids = [m.student.id for m in result.matched]
    assert len(ids) == len(set(ids))
    assert ids == ["s1", "s2", "s3"]
    assert [p.full_name for p in result.unmatched] == ["Sam Lee"]
    assert result.unmatched_students == []


def test_greedy_assignment_follows_participant_order():
    # "Jane" grabs the first tied candidate, leaving "Jane Doe" with Jane Smith.
    students = roster("Jane Doe", "Jane Smith")
    result = match_participants(people("Jane", "Jane Doe"), students)
    assert [(m.participant.full_name, m.student.id, m.match_type) for m in result.matched] == [
        ("Jane", "s1", "first_name"),
        ("Jane Doe", "s2", "first_name"),
    ]


def test_unmatched_participants_and_students_are_reported():
    students = roster("Jane Doe", "Carlos Mendes")
    result = match_participants(people("Jane Doe", "Zed Quill"), students)
    assert [p.full_name for p in result.unmatched] == ["Zed Quill"]
    assert [s.id for s in result.unmatched_students] == ["s2"]


def test_batch_code_is_stripped_before_matching():
    students = roster("Jane Doe")
    result = match_participants(people("Jane Doe BCR69"), students, batch_code="BCR69")
    assert result.matched[0].match_type == "exact"


def test_batch_code_with_marker_letters_does_not_hide_participants():
    students = roster("Jane Doe", "John Smith")
    result = match_participants(people("Jane Doe RAI5", "John Smith rai5", "Meeting Bot RAI5"),
                                students, batch_code="RAI5")
    assert [(m.student.id, m.match_type) for m in result.matched] == [("s1", "exact"), ("s2", "exact")]
    assert result.unmatched == []
