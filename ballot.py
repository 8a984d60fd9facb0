# ballot.py

from collections import Counter

from errors import InvalidCandidate, QuotaNotMet, WrongBallotSize
from models import FEMALE, MALE


def validate_ballot(election, candidates, proposed):
    """
    Check a proposed ballot against the election's rules.

    Checks run in a fixed order and the first failure is raised:
    unknown candidate, repeated candidate, ballot size, gender minimums.
    Candidates whose gender is neither Male nor Female count toward no minimum.

    Args:
        election (Election): Supplies ``multi_vote``, ``total_votes_per_voter``
            and the per-gender minimums.
        candidates (list): The election's candidates; anything with
            ``roll_number`` and ``gender`` attributes.
        proposed (list): Roll numbers selected by the voter.

    Raises:
        InvalidCandidate, WrongBallotSize, QuotaNotMet
    """
    by_roll_number = {candidate.roll_number: candidate for candidate in candidates}

    for roll_number in proposed:
        if roll_number not in by_roll_number:
            raise InvalidCandidate(f"Invalid candidate: {roll_number}")

    repeated = [roll_number for roll_number, count in Counter(proposed).items() if count > 1]
    if repeated:
        raise InvalidCandidate(f"Candidate selected more than once: {', '.join(repeated)}")

    if election.multi_vote:
        if len(proposed) != election.total_votes_per_voter:
            raise WrongBallotSize(f"You must select exactly {election.total_votes_per_voter} candidates")
    elif len(proposed) != 1:
        raise WrongBallotSize("You must select exactly one candidate")

    min_male = election.min_male_votes or 0
    min_female = election.min_female_votes or 0
    if min_male > 0 or min_female > 0:
        genders = Counter(by_roll_number[roll_number].gender for roll_number in proposed)
        if genders[MALE] < min_male:
            raise QuotaNotMet(f"You must vote for at least {min_male} male candidates")
        if genders[FEMALE] < min_female:
            raise QuotaNotMet(f"You must vote for at least {min_female} female candidates")
