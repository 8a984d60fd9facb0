# errors.py

class VotingError(Exception):
    """Base class for every caller-correctable failure raised by the voting core."""
    code = "voting_error"

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

class NotFound(VotingError):
    """The referenced election or roster entry does not exist."""
    code = "not_found"

class InvalidTransition(VotingError):
    """The election is not in a state that allows this lifecycle operation."""
    code = "invalid_transition"

class NoCandidates(VotingError):
    """Cannot open an election without any candidates."""
    code = "no_candidates"

class ElectionLocked(VotingError):
    """The election can no longer be modified once it has been opened."""
    code = "election_locked"

class InvalidConfiguration(VotingError):
    """The election settings or roster input are not acceptable."""
    code = "invalid_configuration"

class InvalidCredentials(VotingError):
    """Invalid username or password."""
    code = "invalid_credentials"

# Eligibility failures, raised by cast_vote and returned as data by check_eligibility

class NotEligible(VotingError):
    """The voter may not vote in this election."""
    code = "not_eligible"

class NotRegistered(NotEligible):
    """Your identity is not registered for this election."""
    code = "not_registered"

class AlreadyVoted(NotEligible):
    """You have already voted in this election."""
    code = "already_voted"

class NotOpenYet(NotEligible):
    """This election is not open for voting yet."""
    code = "not_open_yet"

class Ended(NotEligible):
    """This election has ended."""
    code = "ended"

# Ballot validation failures

class BallotError(VotingError):
    """The submitted ballot is not valid."""
    code = "invalid_ballot"

class InvalidCandidate(BallotError):
    """The ballot names someone who is not a candidate in this election."""
    code = "invalid_candidate"

class WrongBallotSize(BallotError):
    """The ballot does not select the required number of candidates."""
    code = "wrong_ballot_size"

class QuotaNotMet(BallotError):
    """The ballot does not meet the minimum votes per gender."""
    code = "quota_not_met"
