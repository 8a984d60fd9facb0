# registry.py

import logging
import secrets
import string

from sqlalchemy.orm import Session

from database import write_transaction
from errors import ElectionLocked, InvalidConfiguration, InvalidTransition, NoCandidates, NotFound
from models import (
    STATUS_CLOSED,
    STATUS_CREATED,
    STATUS_OPEN,
    Election,
    RosterEntry,
    Vote,
    utcnow,
)

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6

REQUIRED_FIELDS = ("name", "multi_vote", "total_votes_per_voter")
CLEARABLE_FIELDS = ("class_name", "start_time", "end_time")


def generate_code():
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def get_election(db: Session, election_id: str, lock: bool = False) -> Election:
    query = db.query(Election).filter(Election.id == election_id)
    if lock:
        query = query.with_for_update()
    election = query.first()
    if election is None:
        raise NotFound(f"Election {election_id} not found")
    return election


def list_elections(db: Session):
    return db.query(Election).order_by(Election.created_at.desc(), Election.id).all()


def _check_rules(total_votes_per_voter, min_male, min_female):
    if total_votes_per_voter is None or total_votes_per_voter < 1:
        raise InvalidConfiguration("Total votes per voter must be at least 1")
    if min_male < 0 or min_female < 0:
        raise InvalidConfiguration("Minimum votes per gender cannot be negative")


def _check_window(start_time, end_time):
    if start_time and end_time and end_time <= start_time:
        raise InvalidConfiguration("End time must be after start time")


def create_election(
    db: Session,
    name: str,
    class_name=None,
    start_time=None,
    end_time=None,
    multi_vote: bool = False,
    total_votes_per_voter: int = 1,
    min_votes_per_gender=None,
    code_factory=generate_code,
) -> Election:
    """
    Create an election in the ``created`` state under a fresh short code.

    Args:
        db (Session): The database session.
        name (str): Display name.
        class_name (str): The class or cohort the election belongs to.
        start_time, end_time (datetime): Optional voting window, naive UTC.
        multi_vote (bool): Whether each voter selects several candidates.
        total_votes_per_voter (int): Ballot size in multi-vote mode.
        min_votes_per_gender (dict): ``{"male": int, "female": int}`` minimums.
        code_factory (callable): Produces candidate codes; retried until unused.

    Returns:
        Election: The new election.
    """
    minimums = min_votes_per_gender or {}
    min_male = minimums.get("male", 0)
    min_female = minimums.get("female", 0)
    _check_rules(total_votes_per_voter, min_male, min_female)
    _check_window(start_time, end_time)
    if not (name or "").strip():
        raise InvalidConfiguration("Election name is required")

    with write_transaction(db):
        code = code_factory()
        while db.get(Election, code) is not None:
            logger.info(f"Election code {code} already taken, generating another.")
            code = code_factory()

        election = Election(
            id=code,
            name=name.strip(),
            class_name=class_name,
            start_time=start_time,
            end_time=end_time,
            status=STATUS_CREATED,
            student_count=0,
            candidate_count=0,
            multi_vote=multi_vote,
            total_votes_per_voter=total_votes_per_voter,
            min_male_votes=min_male,
            min_female_votes=min_female,
        )
        db.add(election)

    logger.info(f"Created election {code} '{election.name}'.")
    return election


def update_election(db: Session, election_id: str, **changes) -> Election:
    """Edit the window or voting rules of an election that has not been opened yet."""
    with write_transaction(db):
        election = get_election(db, election_id, lock=True)
        if election.status != STATUS_CREATED:
            raise ElectionLocked(f"Election {election_id} can no longer be edited")

        minimums = changes.pop("min_votes_per_gender", None)
        for field in REQUIRED_FIELDS:
            if changes.get(field) is not None:
                setattr(election, field, changes[field])
        for field in CLEARABLE_FIELDS:
            if field in changes:
                setattr(election, field, changes[field])
        if minimums is not None:
            election.min_male_votes = minimums.get("male", 0)
            election.min_female_votes = minimums.get("female", 0)

        _check_rules(election.total_votes_per_voter, election.min_male_votes, election.min_female_votes)
        _check_window(election.start_time, election.end_time)

    logger.info(f"Updated election {election_id}.")
    return election


def set_candidate_count(db: Session, election_id: str, count: int):
    """Store the denormalized candidate count; runs inside the caller's transaction."""
    election = get_election(db, election_id)
    election.candidate_count = count
    db.flush()


def open_election(db: Session, election_id: str, now=None) -> Election:
    with write_transaction(db):
        election = get_election(db, election_id, lock=True)
        if election.status != STATUS_CREATED:
            raise InvalidTransition(f"Election {election_id} has already been started or ended")

        candidates = (
            db.query(RosterEntry)
            .filter(RosterEntry.election_id == election_id, RosterEntry.is_candidate.is_(True))
            .count()
        )
        election.candidate_count = candidates
        if candidates == 0:
            raise NoCandidates("Cannot start election without any candidates. Please add candidates first.")

        election.status = STATUS_OPEN
        election.start_time = now or utcnow()

    logger.info(f"Election {election_id} opened with {candidates} candidates.")
    return election


def close_election(db: Session, election_id: str, now=None) -> Election:
    with write_transaction(db):
        election = get_election(db, election_id, lock=True)
        if election.status != STATUS_OPEN:
            raise InvalidTransition(f"Election {election_id} is not currently open")
        election.status = STATUS_CLOSED
        election.end_time = now or utcnow()

    logger.info(f"Election {election_id} closed.")
    return election


def _expired(election: Election, now) -> bool:
    return election.status == STATUS_OPEN and election.end_time is not None and now >= election.end_time


def auto_close_if_expired(db: Session, election_id: str, now=None) -> bool:
    """
    Close an open election whose end time has passed.

    Nothing schedules this; callers invoke it whenever they read an election.
    Returns True when this call performed the transition.
    """
    now = now or utcnow()
    if not _expired(get_election(db, election_id), now):
        return False

    with write_transaction(db):
        election = get_election(db, election_id, lock=True)
        # Someone else may have closed it between the read and the lock
        if not _expired(election, now):
            return False
        election.status = STATUS_CLOSED

    logger.info(f"Election {election_id} closed automatically, end time {election.end_time} has passed.")
    return True


def delete_election(db: Session, election_id: str):
    """Delete an election together with its roster and every vote cast in it."""
    with write_transaction(db):
        election = get_election(db, election_id, lock=True)
        votes = db.query(Vote).filter(Vote.election_id == election_id).delete(synchronize_session=False)
        entries = len(election.roster)
        # Roster entries go with the election through the relationship cascade
        db.delete(election)

    logger.info(f"Deleted election {election_id} ({entries} roster entries, {votes} votes).")
