# eligibility.py

from sqlalchemy.orm import Session

from errors import AlreadyVoted, Ended, NotFound, NotOpenYet, NotRegistered
from models import STATUS_CLOSED, STATUS_CREATED, Election
from roster import find_by_identity, list_candidates
from schemas import BallotCandidate, EligibilityReason, EligibilityResult, RosterEntryOut

REASON_ERRORS = {
    EligibilityReason.ELECTION_NOT_FOUND: NotFound,
    EligibilityReason.NOT_OPEN_YET: NotOpenYet,
    EligibilityReason.ENDED: Ended,
    EligibilityReason.NOT_REGISTERED: NotRegistered,
    EligibilityReason.ALREADY_VOTED: AlreadyVoted,
}


def check_eligibility(db: Session, election_id: str, identity: str) -> EligibilityResult:
    """
    Decide whether ``identity`` may vote in the election right now.

    Failures are returned as a reason rather than raised so the ballot page can
    explain exactly why the voter is turned away.
    """
    election = db.get(Election, election_id)
    if election is None:
        return EligibilityResult(eligible=False, reason=EligibilityReason.ELECTION_NOT_FOUND)
    if election.status == STATUS_CREATED:
        return EligibilityResult(eligible=False, reason=EligibilityReason.NOT_OPEN_YET)
    if election.status == STATUS_CLOSED:
        return EligibilityResult(eligible=False, reason=EligibilityReason.ENDED)

    entry = find_by_identity(db, election_id, identity)
    if entry is None:
        return EligibilityResult(eligible=False, reason=EligibilityReason.NOT_REGISTERED)
    if entry.has_voted:
        return EligibilityResult(
            eligible=False,
            reason=EligibilityReason.ALREADY_VOTED,
            entry=RosterEntryOut.model_validate(entry),
        )
    return EligibilityResult(eligible=True, entry=RosterEntryOut.model_validate(entry))


def raise_for_reason(result: EligibilityResult):
    """Turn a failed eligibility check into the matching exception."""
    if not result.eligible:
        raise REASON_ERRORS[result.reason]()


def list_ballot_candidates(db: Session, election_id: str):
    """Candidates as shown on the ballot, without contact details or voting status."""
    return [BallotCandidate.model_validate(entry) for entry in list_candidates(db, election_id)]
