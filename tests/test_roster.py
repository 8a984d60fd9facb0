import pytest

import registry
import roster
from errors import ElectionLocked, NotFound
from models import FEMALE, MALE
from helpers import setup_election, student


def test_bulk_insert_adds_non_candidates(db):
    election = registry.create_election(db, name="Class rep")
    report = roster.bulk_insert(db, election.id, [
        student("R1", "Male", contact="Ravi@School.Example.EDU"),
        student("R2", "Female"),
    ])
    assert (report.processed, report.total, report.errors) == (2, 2, [])

    entries = roster.list_all(db, election.id)
    assert [entry.roll_number for entry in entries] == ["R1", "R2"]
    assert entries[0].contact == "ravi@school.example.edu"
    assert not any(entry.is_candidate or entry.has_voted for entry in entries)
    assert registry.get_election(db, election.id).student_count == 2


def test_bulk_insert_skips_malformed_rows(db):
    election = registry.create_election(db, name="Class rep")
    rows = [
        student("R1", "Male"),
        {"roll_number": "R2", "name": "No contact", "gender": "Male"},
        student("R3", "Female", contact="not-an-email@"),
        student("R4", "Female", contact="12ab"),
        {"roll_number": "", "name": "No roll", "contact": "noroll@school.example.edu"},
        {"roll_number": "R6", "name": "  ", "contact": "blank@school.example.edu"},
        student("R7", "Female", contact="+91 98765-43210"),
    ]
    report = roster.bulk_insert(db, election.id, rows)

    assert report.processed == 2
    assert report.total == 7
    assert [error.row for error in report.errors] == [2, 3, 4, 5, 6]
    assert report.errors[0].roll_number == "R2"
    assert "contact" in report.errors[0].reason
    assert roster.find_by_identity(db, election.id, "+919876543210").roll_number == "R7"


def test_bulk_insert_reports_non_string_gender(db):
    election = registry.create_election(db, name="Class rep")
    rows = [
        {"roll_number": "A1", "name": "Asha", "contact": "asha@school.example.edu", "gender": 1},
        student("B2", "Male"),
    ]
    report = roster.bulk_insert(db, election.id, rows)

    assert report.processed == 1
    assert len(report.errors) == 1
    assert report.errors[0].row == 1
    assert report.errors[0].roll_number == "A1"
    assert [entry.roll_number for entry in roster.list_all(db, election.id)] == ["B2"]


def test_bulk_insert_reports_rows_that_are_not_mappings(db):
    election = registry.create_election(db, name="Class rep")
    report = roster.bulk_insert(db, election.id, [None, "R1,Ravi", student("R2", "Male")])

    assert report.processed == 1
    assert [error.row for error in report.errors] == [1, 2]


def test_bulk_insert_skips_duplicates(db):
    election = registry.create_election(db, name="Class rep")
    roster.bulk_insert(db, election.id, [student("R1", "Male", contact="r1@school.example.edu")])
    report = roster.bulk_insert(db, election.id, [
        student("R1", "Male", contact="other@school.example.edu"),
        student("R2", "Male", contact="R1@SCHOOL.example.edu"),
        student("R3", "Female"),
        student("R3", "Female", contact="again@school.example.edu"),
    ])
    assert report.processed == 1
    assert [error.reason for error in report.errors] == [
        "duplicate roll number R1",
        "duplicate contact r1@school.example.edu",
        "duplicate roll number R3",
    ]
    assert registry.get_election(db, election.id).student_count == 2


def test_bulk_insert_accepts_camel_case_rows(db):
    election = registry.create_election(db, name="Class rep")
    report = roster.bulk_insert(db, election.id, [
        {"rollNumber": "R1", "name": "Ravi", "email": "ravi@school.example.edu", "gender": "M"},
    ])
    assert report.processed == 1
    assert roster.list_all(db, election.id)[0].gender == MALE


@pytest.mark.parametrize(('given', 'stored'), [
    ("Male", MALE),
    ("male", MALE),
    ("m", MALE),
    (" F ", FEMALE),
    ("female", FEMALE),
    ("Other", "Other"),
    ("", ""),
])
def test_gender_canonical_form(db, given, stored):
    election = registry.create_election(db, name="Class rep")
    roster.bulk_insert(db, election.id, [student("R1", given)])
    assert roster.list_all(db, election.id)[0].gender == stored


def test_bulk_insert_after_open_is_locked(db):
    code = setup_election(db, [student("R1", "Male")], candidates=["R1"])
    with pytest.raises(ElectionLocked):
        roster.bulk_insert(db, code, [student("R2", "Male")])


def test_toggle_candidate_updates_count(db):
    code = setup_election(db, [student("R1", "Male"), student("R2", "Female")], open_election=False)

    entry = roster.toggle_candidate(db, code, roll_number="R1")
    assert entry.is_candidate
    assert registry.get_election(db, code).candidate_count == 1

    other = roster.list_all(db, code)[1]
    roster.toggle_candidate(db, code, record_id=other.id)
    assert registry.get_election(db, code).candidate_count == 2

    entry = roster.toggle_candidate(db, code, roll_number="R1")
    assert not entry.is_candidate
    assert registry.get_election(db, code).candidate_count == 1
    assert [c.roll_number for c in roster.list_candidates(db, code)] == ["R2"]


def test_toggle_unknown_entry(db):
    code = setup_election(db, [student("R1", "Male")], open_election=False)
    with pytest.raises(NotFound):
        roster.toggle_candidate(db, code, roll_number="R9")
    with pytest.raises(NotFound):
        roster.toggle_candidate(db, "NOPE00", roll_number="R1")


@pytest.mark.parametrize('close', [False, True])
def test_toggle_after_open_is_locked(db, close):
    code = setup_election(db, [student("R1", "Male"), student("R2", "Male")], candidates=["R1"])
    if close:
        registry.close_election(db, code)
    with pytest.raises(ElectionLocked):
        roster.toggle_candidate(db, code, roll_number="R2")
    assert registry.get_election(db, code).candidate_count == 1


def test_find_by_identity_ignores_case(db):
    code = setup_election(db, [student("R1", "Male", contact="ravi@school.example.edu")], open_election=False)
    assert roster.find_by_identity(db, code, "RAVI@School.Example.edu").roll_number == "R1"
    assert roster.find_by_identity(db, code, "nobody@school.example.edu") is None
    assert roster.find_by_identity(db, "NOPE00", "ravi@school.example.edu") is None


def test_lists_need_existing_election(db):
    with pytest.raises(NotFound):
        roster.list_all(db, "NOPE00")
    with pytest.raises(NotFound):
        roster.list_candidates(db, "NOPE00")
