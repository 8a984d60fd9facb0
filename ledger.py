# ledger.py

import logging

from sqlalchemy.orm import Session

from ballot import validate_ballot
from database import write_transaction
from eligibility import check_eligibility, raise_for_reason
from errors import AlreadyVoted, VotingError
from models import Election, RosterEntry, Vote, utcnow
from roster import list_candidates, lookup_key
from schemas import BallotReceipt

logger = logging.getLogger(__name__)


def cast_vote(db: Session, election_id: str, voter_identity: str, candidate_roll_numbers, now=None) -> BallotReceipt:
    """
    Record one voter's ballot, at most once per voter and election.

    Eligibility and ballot rules are checked again inside the write transaction,
    so two concurrent submissions by the same voter cannot both pass on a stale
    ``has_voted``. The ``has_voted`` flag is flipped with a conditional update;
    if another transaction got there first nothing is written.

    Args:
        db (Session): The database session.
        election_id (str): The election code.
        voter_identity (str): Verified email or phone of the voter.
        candidate_roll_numbers (list): Roll numbers the voter selected.
        now (datetime): Timestamp shared by every row of this ballot, defaults to now.

    Returns:
        BallotReceipt: Number of vote rows written and their timestamp.

    Raises:
        NotFound, NotOpenYet, Ended, NotRegistered, AlreadyVoted,
        InvalidCandidate, WrongBallotSize, QuotaNotMet
    """
    identity = lookup_key(voter_identity)
    proposed = [str(roll_number) for roll_number in candidate_roll_numbers]

    try:
        with write_transaction(db):
            raise_for_reason(check_eligibility(db, election_id, identity))

            entry = (
                db.query(RosterEntry)
                .filter(RosterEntry.election_id == election_id, RosterEntry.contact == identity)
                .with_for_update()
                .populate_existing()
                .one()
            )
            if entry.has_voted:
                raise AlreadyVoted()

            election = db.get(Election, election_id)
            validate_ballot(election, list_candidates(db, election_id), proposed)

            timestamp = now or utcnow()
            for roll_number in proposed:
                db.add(Vote(
                    election_id=election_id,
                    voter_identity=identity,
                    candidate_roll_number=roll_number,
                    timestamp=timestamp,
                ))

            flipped = (
                db.query(RosterEntry)
                .filter(RosterEntry.id == entry.id, RosterEntry.has_voted.is_(False))
                .update({RosterEntry.has_voted: True}, synchronize_session=False)
            )
            if flipped != 1:
                raise AlreadyVoted()
    except VotingError as e:
        logger.warning(f"Vote by {identity} in election {election_id} rejected ({e.code}): {e.message}")
        raise

    logger.info(f"Vote cast by {identity} in election {election_id}: {len(proposed)} selections recorded.")
    return BallotReceipt(votes_recorded=len(proposed), timestamp=timestamp)


def get_votes_for_election(db: Session, election_id: str):
    return db.query(Vote).filter(Vote.election_id == election_id).order_by(Vote.id).all()


def get_votes_for_candidate(db: Session, election_id: str, roll_number: str):
    return (
        db.query(Vote)
        .filter(Vote.election_id == election_id, Vote.candidate_roll_number == roll_number)
        .order_by(Vote.id)
        .all()
    )
