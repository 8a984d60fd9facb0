# populate_dummy_data.py

import logging

from sqlalchemy.orm import Session

import registry
import roster
from models import Election

logger = logging.getLogger(__name__)

DEMO_ELECTION_ID = "DEMO01"

DEMO_STUDENTS = [
    {"roll_number": "001", "name": "Alice Johnson", "contact": "alice.johnson@student.example.edu", "gender": "Female"},
    {"roll_number": "002", "name": "Bob Smith", "contact": "bob.smith@student.example.edu", "gender": "Male"},
    {"roll_number": "003", "name": "Charlie Brown", "contact": "charlie.brown@student.example.edu", "gender": "Male"},
    {"roll_number": "004", "name": "Diana Prince", "contact": "diana.prince@student.example.edu", "gender": "Female"},
]
DEMO_CANDIDATES = ["001", "002"]


def create_demo_election(db: Session) -> str:
    """Create and open the demo election unless it already exists; returns its code."""
    if db.get(Election, DEMO_ELECTION_ID) is not None:
        logger.info("Demo election already exists.")
        return DEMO_ELECTION_ID

    registry.create_election(
        db,
        name="Demo Election",
        class_name="Demo-A",
        code_factory=lambda: DEMO_ELECTION_ID,
    )
    roster.bulk_insert(db, DEMO_ELECTION_ID, DEMO_STUDENTS)
    for roll_number in DEMO_CANDIDATES:
        roster.toggle_candidate(db, DEMO_ELECTION_ID, roll_number=roll_number)
    registry.open_election(db, DEMO_ELECTION_ID)
    logger.info("Demo election created.")
    return DEMO_ELECTION_ID


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    from database import Base, SessionLocal, engine

    # Create database tables
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        print(f"Demo election ready: {create_demo_election(db)}")
    finally:
        db.close()
