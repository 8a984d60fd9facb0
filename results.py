# results.py

import logging
from collections import Counter

from sqlalchemy.orm import Session

from ledger import get_votes_for_election
from models import FEMALE, MALE, RosterEntry
from registry import get_election
from roster import list_candidates
from schemas import CandidateResult, TallyResult, Winners

logger = logging.getLogger(__name__)


def tally(db: Session, election_id: str) -> TallyResult:
    """
    Count votes per candidate, most votes first.

    Every candidate is listed, including those without votes. Candidates with
    equal counts keep their roster order.
    """
    get_election(db, election_id)
    candidates = list_candidates(db, election_id)
    votes = get_votes_for_election(db, election_id)

    counts = Counter(vote.candidate_roll_number for vote in votes)
    results = [
        CandidateResult(
            roll_number=candidate.roll_number,
            name=candidate.name,
            gender=candidate.gender,
            votes=counts.get(candidate.roll_number, 0),
        )
        for candidate in candidates
    ]

    # Votes for someone who is no longer flagged as a candidate still have to be accounted for
    listed = {candidate.roll_number for candidate in candidates}
    strays = [roll_number for roll_number in counts if roll_number not in listed]
    if strays:
        entries = {
            entry.roll_number: entry
            for entry in db.query(RosterEntry).filter(
                RosterEntry.election_id == election_id, RosterEntry.roll_number.in_(strays)
            )
        }
        for roll_number in strays:
            entry = entries.get(roll_number)
            logger.warning(f"Election {election_id} has votes for non-candidate {roll_number}.")
            results.append(CandidateResult(
                roll_number=roll_number,
                name=entry.name if entry else roll_number,
                gender=entry.gender if entry else "",
                votes=counts[roll_number],
            ))

    results.sort(key=lambda result: result.votes, reverse=True)

    return TallyResult(
        results=results,
        total_votes=len(votes),
        total_voters=len({vote.voter_identity for vote in votes}),
    )


def winners(db: Session, election_id: str, results: TallyResult = None) -> Winners:
    """
    Pick the winners from the tally.

    With a gender quota the top ``min male`` male candidates and the top
    ``min female`` female candidates win. Without one, the single candidate
    with the most votes wins.
    """
    election = get_election(db, election_id)
    if results is None:
        results = tally(db, election_id)

    if election.has_gender_quota:
        return Winners(
            quota_mode=True,
            male_winners=[r for r in results.results if r.gender == MALE][:election.min_male_votes],
            female_winners=[r for r in results.results if r.gender == FEMALE][:election.min_female_votes],
        )

    return Winners(
        quota_mode=False,
        overall_winner=results.results[0] if results.results else None,
    )
