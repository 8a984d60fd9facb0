import datetime

import pytest

import ledger
import registry
from errors import ElectionLocked, InvalidConfiguration, InvalidTransition, NoCandidates, NotFound
from models import STATUS_CLOSED, STATUS_CREATED, STATUS_OPEN, RosterEntry, Vote, utcnow
from helpers import setup_election, student

STUDENTS = [student("Alice", "Female"), student("Bob", "Male"), student("Carol", "Female")]


def test_create_assigns_short_code(db):
    election = registry.create_election(db, name="Class rep", class_name="CSE-A")
    assert len(election.id) == registry.CODE_LENGTH
    assert all(ch in registry.CODE_ALPHABET for ch in election.id)
    assert election.status == STATUS_CREATED
    assert election.candidate_count == 0
    assert election.student_count == 0


def test_create_regenerates_code_on_collision(db):
    registry.create_election(db, name="First", code_factory=lambda: "AAAAAA")
    codes = iter(["AAAAAA", "AAAAAA", "BBBBBB"])
    election = registry.create_election(db, name="Second", code_factory=lambda: next(codes))
    assert election.id == "BBBBBB"


@pytest.mark.parametrize(('rules', 'message'), [
    ({"total_votes_per_voter": 0}, "at least 1"),
    ({"min_votes_per_gender": {"male": -1, "female": 0}}, "negative"),
    ({"start_time": datetime.datetime(2026, 5, 2), "end_time": datetime.datetime(2026, 5, 1)}, "after"),
])
def test_create_rejects_bad_rules(db, rules, message):
    with pytest.raises(InvalidConfiguration, match=message):
        registry.create_election(db, name="Broken", **rules)


def test_open_without_candidates_fails(db):
    code = setup_election(db, STUDENTS, open_election=False)
    with pytest.raises(NoCandidates):
        registry.open_election(db, code)
    assert registry.get_election(db, code).status == STATUS_CREATED


def test_open_records_start_time(db):
    code = setup_election(db, STUDENTS, candidates=["Alice"], open_election=False)
    started = datetime.datetime(2026, 3, 1, 9, 0)
    election = registry.open_election(db, code, now=started)
    assert election.status == STATUS_OPEN
    assert election.start_time == started
    assert election.candidate_count == 1


def test_close_records_end_time(db):
    code = setup_election(db, STUDENTS, candidates=["Alice"])
    ended = datetime.datetime(2026, 3, 1, 17, 0)
    election = registry.close_election(db, code, now=ended)
    assert election.status == STATUS_CLOSED
    assert election.end_time == ended


def test_lifecycle_never_moves_backward(db):
    code = setup_election(db, STUDENTS, candidates=["Alice"], open_election=False)
    with pytest.raises(InvalidTransition):
        registry.close_election(db, code)
    registry.open_election(db, code)
    with pytest.raises(InvalidTransition):
        registry.open_election(db, code)
    registry.close_election(db, code)
    with pytest.raises(InvalidTransition):
        registry.open_election(db, code)
    with pytest.raises(InvalidTransition):
        registry.close_election(db, code)
    assert registry.get_election(db, code).status == STATUS_CLOSED


def test_auto_close_after_end_time(db):
    end = utcnow() + datetime.timedelta(hours=1)
    code = setup_election(db, STUDENTS, candidates=["Alice"], end_time=end)

    assert not registry.auto_close_if_expired(db, code, now=end - datetime.timedelta(seconds=1))
    assert registry.get_election(db, code).status == STATUS_OPEN

    assert registry.auto_close_if_expired(db, code, now=end)
    assert registry.get_election(db, code).status == STATUS_CLOSED
    # Idempotent
    assert not registry.auto_close_if_expired(db, code, now=end)


def test_auto_close_ignores_unopened_and_open_ended(db):
    past = utcnow() - datetime.timedelta(days=1)
    created = setup_election(db, STUDENTS, candidates=["Alice"], open_election=False, end_time=past)
    assert not registry.auto_close_if_expired(db, created)
    assert registry.get_election(db, created).status == STATUS_CREATED

    no_end = setup_election(db, STUDENTS, candidates=["Alice"])
    assert not registry.auto_close_if_expired(db, no_end)


def test_update_before_open(db):
    code = setup_election(db, STUDENTS, open_election=False)
    start = datetime.datetime(2026, 4, 1, 8, 0)
    end = datetime.datetime(2026, 4, 1, 16, 0)
    election = registry.update_election(
        db, code,
        start_time=start,
        end_time=end,
        multi_vote=True,
        total_votes_per_voter=2,
        min_votes_per_gender={"male": 1, "female": 1},
    )
    assert (election.start_time, election.end_time) == (start, end)
    assert election.multi_vote
    assert election.min_votes_per_gender == {"male": 1, "female": 1}



def test_update_clears_window_before_open(db):
    code = setup_election(db, STUDENTS, open_election=False, end_time=datetime.datetime(2030, 1, 1))
    election = registry.update_election(db, code, end_time=None, class_name=None)
    assert election.end_time is None
    assert election.class_name is None

    # Omitted fields and null required fields leave the stored values alone
    election = registry.update_election(db, code, name=None, total_votes_per_voter=None)
    assert election.name
    assert election.total_votes_per_voter == 1

def test_update_after_open_is_locked(db):
    code = setup_election(db, STUDENTS, candidates=["Alice"])
    with pytest.raises(ElectionLocked):
        registry.update_election(db, code, name="Renamed")


def test_delete_cascades(db):
    code = setup_election(db, STUDENTS, candidates=["Alice", "Bob"])
    ledger.cast_vote(db, code, "carol@school.example.edu", ["Alice"])

    registry.delete_election(db, code)

    with pytest.raises(NotFound):
        registry.get_election(db, code)
    assert db.query(RosterEntry).filter(RosterEntry.election_id == code).count() == 0
    assert db.query(Vote).filter(Vote.election_id == code).count() == 0


def test_missing_election(db):
    with pytest.raises(NotFound):
        registry.get_election(db, "NOPE00")
    with pytest.raises(NotFound):
        registry.open_election(db, "NOPE00")
    with pytest.raises(NotFound):
        registry.delete_election(db, "NOPE00")


def test_list_elections(db):
    assert registry.list_elections(db) == []
    first = registry.create_election(db, name="Class rep").id
    second = registry.create_election(db, name="Sports captain").id
    assert {e.id for e in registry.list_elections(db)} == {first, second}


def test_set_candidate_count(db):
    code = setup_election(db, STUDENTS, candidates=["Alice"], open_election=False)
    registry.set_candidate_count(db, code, 5)
    db.commit()
    assert registry.get_election(db, code).candidate_count == 5
