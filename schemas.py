# schemas.py

import datetime
import enum
import re
from typing import Any, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from models import FEMALE, MALE

PHONE_SEPARATORS = re.compile(r"[\s\-().]")
PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")

GENDER_ALIASES = {
    "m": MALE,
    "male": MALE,
    "f": FEMALE,
    "female": FEMALE,
}


def normalize_contact(value: str) -> str:
    """
    Normalize an email address or phone number to the form stored in the roster.

    Raises:
        ValueError: if the value is neither a valid email address nor a phone number.
    """
    value = (value or "").strip()
    if not value:
        raise ValueError("missing contact")
    if "@" in value:
        try:
            return validate_email(value, check_deliverability=False).normalized.lower()
        except EmailNotValidError as e:
            raise ValueError(f"malformed email: {e}")
    phone = PHONE_SEPARATORS.sub("", value)
    if not PHONE_PATTERN.match(phone):
        raise ValueError(f"malformed contact: {value}")
    return phone


def normalize_gender(value: Optional[str]) -> str:
    value = (value or "").strip()
    return GENDER_ALIASES.get(value.lower(), value)


def check_rule_consistency(multi_vote, total_votes_per_voter, min_male, min_female):
    """
    Voting rules accepted from the admin console.

    Multi-vote minimums must add up to the ballot size; single-vote elections
    allow exactly one vote.
    """
    if multi_vote:
        if min_male + min_female != total_votes_per_voter:
            raise ValueError(
                f"male ({min_male}) + female ({min_female}) "
                f"minimums must equal total votes per voter ({total_votes_per_voter})"
            )
    elif total_votes_per_voter != 1:
        raise ValueError("single-vote elections allow exactly one vote per voter")


def to_naive_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


class EligibilityReason(str, enum.Enum):
    ELECTION_NOT_FOUND = "election_not_found"
    NOT_OPEN_YET = "not_open_yet"
    ENDED = "ended"
    NOT_REGISTERED = "not_registered"
    ALREADY_VOTED = "already_voted"


# Input payloads

class GenderMinimums(BaseModel):
    male: int = Field(0, ge=0)
    female: int = Field(0, ge=0)

class RosterRow(BaseModel):
    """One already-parsed roster line, as handed over by roster ingestion."""
    model_config = ConfigDict(str_strip_whitespace=True)

    roll_number: str = Field(validation_alias=AliasChoices("roll_number", "rollNumber"))
    name: str
    contact: str = Field(validation_alias=AliasChoices("contact", "email", "phone"))
    gender: str = ""

    @field_validator("roll_number", "name")
    @classmethod
    def not_blank(cls, value):
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("contact")
    @classmethod
    def valid_contact(cls, value):
        return normalize_contact(value)

    @field_validator("gender", mode="before")
    @classmethod
    def canonical_gender(cls, value):
        if value is not None and not isinstance(value, str):
            raise ValueError("must be a string")
        return normalize_gender(value)

class ElectionCreate(BaseModel):
    name: str = Field(min_length=1)
    class_name: Optional[str] = None
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    multi_vote: bool = False
    total_votes_per_voter: int = Field(1, ge=1)
    min_votes_per_gender: GenderMinimums = Field(default_factory=GenderMinimums)
    # Raw rows: each is validated on its own so one bad line does not reject the batch
    students: List[Any] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def utc(cls, value):
        return to_naive_utc(value)

    @model_validator(mode="after")
    def consistent_rules(self):
        check_rule_consistency(
            self.multi_vote,
            self.total_votes_per_voter,
            self.min_votes_per_gender.male,
            self.min_votes_per_gender.female,
        )
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end time must be after start time")
        return self

class ElectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    class_name: Optional[str] = None
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    multi_vote: Optional[bool] = None
    total_votes_per_voter: Optional[int] = Field(None, ge=1)
    min_votes_per_gender: Optional[GenderMinimums] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def utc(cls, value):
        return to_naive_utc(value)

class RosterUpload(BaseModel):
    rows: List[Any]

class BallotIn(BaseModel):
    candidates: List[str]

class LoginIn(BaseModel):
    username: str
    password: str


# Outputs

class ElectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    class_name: Optional[str] = None
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    status: str
    student_count: int
    candidate_count: int
    multi_vote: bool
    total_votes_per_voter: int
    min_votes_per_gender: GenderMinimums

class PublicElectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    class_name: Optional[str] = None
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    status: str
    multi_vote: bool
    ballot_size: int
    min_votes_per_gender: GenderMinimums

class RosterEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    roll_number: str
    name: str
    contact: str
    gender: str
    is_candidate: bool
    has_voted: bool

class BallotCandidate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    roll_number: str
    name: str
    gender: str

class EligibilityResult(BaseModel):
    eligible: bool
    reason: Optional[EligibilityReason] = None
    entry: Optional[RosterEntryOut] = None

class RowError(BaseModel):
    row: int
    roll_number: Optional[str] = None
    reason: str

class IngestReport(BaseModel):
    processed: int = 0
    total: int = 0
    errors: List[RowError] = Field(default_factory=list)

class VoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    election_id: str
    voter_identity: str
    candidate_roll_number: str
    timestamp: datetime.datetime

class BallotReceipt(BaseModel):
    success: bool = True
    votes_recorded: int
    timestamp: datetime.datetime

class CandidateResult(BaseModel):
    roll_number: str
    name: str
    gender: str
    votes: int

class TallyResult(BaseModel):
    results: List[CandidateResult]
    total_votes: int
    total_voters: int

class Winners(BaseModel):
    quota_mode: bool
    male_winners: List[CandidateResult] = Field(default_factory=list)
    female_winners: List[CandidateResult] = Field(default_factory=list)
    overall_winner: Optional[CandidateResult] = None

class ElectionResults(BaseModel):
    election: ElectionOut
    tally: TallyResult
    winners: Winners

class CreatedElection(BaseModel):
    election: ElectionOut
    roster: IngestReport

class TokenOut(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
