# models.py

import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from database import Base  # Import Base from database.py

STATUS_CREATED = "created"
STATUS_OPEN = "open"
STATUS_CLOSED = "closed"

MALE = "Male"
FEMALE = "Female"


def utcnow():
    """Naive UTC timestamp, the form every DateTime column is stored in."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class Election(Base):
    __tablename__ = 'elections'
    id = Column(String(6), primary_key=True)  # short human-typeable code
    name = Column(String, nullable=False)
    class_name = Column(String)
    start_time = Column(DateTime)
    end_time = Column(DateTime)
    status = Column(String, nullable=False, default=STATUS_CREATED, index=True)
    student_count = Column(Integer, nullable=False, default=0)
    candidate_count = Column(Integer, nullable=False, default=0)
    multi_vote = Column(Boolean, nullable=False, default=False)
    total_votes_per_voter = Column(Integer, nullable=False, default=1)
    min_male_votes = Column(Integer, nullable=False, default=0)
    min_female_votes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    roster = relationship(
        "RosterEntry", back_populates="election", order_by="RosterEntry.id", cascade="all, delete-orphan"
    )

    @property
    def min_votes_per_gender(self):
        return {"male": self.min_male_votes or 0, "female": self.min_female_votes or 0}

    @property
    def has_gender_quota(self):
        return (self.min_male_votes or 0) > 0 or (self.min_female_votes or 0) > 0

    @property
    def ballot_size(self):
        return self.total_votes_per_voter if self.multi_vote else 1

class RosterEntry(Base):
    __tablename__ = 'roster_entries'
    id = Column(Integer, primary_key=True, index=True)
    election_id = Column(String(6), ForeignKey('elections.id', ondelete='CASCADE'), nullable=False)
    roll_number = Column(String, nullable=False)
    name = Column(String, nullable=False)
    contact = Column(String, nullable=False)  # normalized email or phone
    gender = Column(String, nullable=False, default="")
    is_candidate = Column(Boolean, nullable=False, default=False)
    has_voted = Column(Boolean, nullable=False, default=False)

    election = relationship("Election", back_populates="roster")

    __table_args__ = (
        UniqueConstraint('election_id', 'roll_number', name='uq_roster_election_roll'),
        UniqueConstraint('election_id', 'contact', name='uq_roster_election_contact'),
        Index('ix_roster_election', 'election_id'),
    )

class Vote(Base):
    __tablename__ = 'votes'
    id = Column(Integer, primary_key=True, index=True)
    election_id = Column(String(6), ForeignKey('elections.id', ondelete='CASCADE'), nullable=False)
    voter_identity = Column(String, nullable=False)
    candidate_roll_number = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint('election_id', 'voter_identity', 'candidate_roll_number', name='uq_vote_ballot_line'),
        Index('ix_votes_election', 'election_id'),
        Index('ix_votes_candidate', 'candidate_roll_number'),
    )

class Admin(Base):
    __tablename__ = 'admins'
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
