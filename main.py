# main.py

# Server Instructions:
# Run the server using:
# uvicorn main:app --reload
# Access the API docs at:
# http://127.0.0.1:8000/docs
# Set ENV=testing to load .env.test and the testing configuration.

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Header, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from itsdangerous import URLSafeTimedSerializer
from sqlalchemy.orm import Session

from auth import AdminSession, authenticate_admin, ensure_default_admin
from database import Base, SessionLocal, app_config, engine, get_db
from eligibility import check_eligibility, list_ballot_candidates
from errors import (
    AlreadyVoted,
    BallotError,
    ElectionLocked,
    InvalidConfiguration,
    InvalidCredentials,
    InvalidTransition,
    NoCandidates,
    NotEligible,
    NotFound,
    VotingError,
)
from ingest import read_roster
from ledger import cast_vote
from models import STATUS_CREATED, Election
import registry
import results
import roster
from schemas import (
    BallotCandidate,
    BallotIn,
    BallotReceipt,
    CreatedElection,
    EligibilityResult,
    ElectionCreate,
    ElectionOut,
    ElectionResults,
    ElectionUpdate,
    IngestReport,
    LoginIn,
    PublicElectionOut,
    RosterEntryOut,
    RosterUpload,
    TokenOut,
    check_rule_consistency,
)

# Initialize logging
logging.basicConfig(level=app_config.LOG_LEVEL)
logger = logging.getLogger(__name__)

SECRET_KEY = app_config.SECRET_KEY
if not SECRET_KEY:
    raise ValueError("SECRET_KEY is not set in the configuration.")
serializer = URLSafeTimedSerializer(SECRET_KEY)

Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app_config.ADMIN_PASSWORD:
        db = SessionLocal()
        try:
            ensure_default_admin(db, app_config.ADMIN_USERNAME, app_config.ADMIN_PASSWORD)
        finally:
            db.close()
    else:
        logger.warning("ADMIN_PASSWORD is not set; no default admin account was created.")
    yield


# Initialize app
app = FastAPI(title="ClassVote", lifespan=lifespan)

# Most specific kinds first
ERROR_STATUS = [
    (NotFound, 404),
    (InvalidCredentials, 401),
    (AlreadyVoted, 409),
    (NotEligible, 403),
    (BallotError, 422),
    (InvalidConfiguration, 422),
    (InvalidTransition, 409),
    (NoCandidates, 409),
    (ElectionLocked, 409),
]


@app.exception_handler(VotingError)
async def voting_error_handler(request: Request, exc: VotingError):
    status_code = next((code for kind, code in ERROR_STATUS if isinstance(exc, kind)), 400)
    return JSONResponse(status_code=status_code, content={"error": exc.code, "detail": exc.message})


def require_admin(authorization: Optional[str] = Header(None)) -> AdminSession:
    """Admin session from the ``Authorization: Bearer <token>`` header."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise InvalidCredentials("Admin login required")
    return AdminSession.load(serializer, token.strip(), app_config.SESSION_MAX_AGE)


def voter_identity(x_voter_identity: Optional[str] = Header(None)) -> str:
    """Identity verified by the authentication gateway in front of this service."""
    if not x_voter_identity or not x_voter_identity.strip():
        logger.warning("Ballot request without a verified voter identity.")
        raise HTTPException(status_code=401, detail="Voter identity missing")
    return x_voter_identity.strip()


def load_election(db: Session, election_id: str) -> Election:
    registry.auto_close_if_expired(db, election_id)
    return registry.get_election(db, election_id)

# Admin console

@app.post("/admin/login", response_model=TokenOut)
def admin_login(payload: LoginIn, db: Session = Depends(get_db)):
    session = authenticate_admin(db, payload.username, payload.password)
    return TokenOut(token=session.dump(serializer), expires_in=app_config.SESSION_MAX_AGE)

@app.post("/admin/elections", response_model=CreatedElection, status_code=201)
def create_election(
    payload: ElectionCreate,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    election = registry.create_election(
        db,
        name=payload.name,
        class_name=payload.class_name,
        start_time=payload.start_time,
        end_time=payload.end_time,
        multi_vote=payload.multi_vote,
        total_votes_per_voter=payload.total_votes_per_voter,
        min_votes_per_gender=payload.min_votes_per_gender.model_dump(),
    )
    report = IngestReport()
    if payload.students:
        report = roster.bulk_insert(db, election.id, payload.students)
    logger.info(f"Admin {admin.username} created election {election.id}.")
    return CreatedElection(election=ElectionOut.model_validate(election), roster=report)

@app.get("/admin/elections", response_model=List[ElectionOut])
def list_elections(admin: AdminSession = Depends(require_admin), db: Session = Depends(get_db)):
    elections = registry.list_elections(db)
    for election in elections:
        registry.auto_close_if_expired(db, election.id)
    return [ElectionOut.model_validate(election) for election in elections]

@app.get("/admin/elections/{election_id}", response_model=ElectionOut)
def get_election(election_id: str, admin: AdminSession = Depends(require_admin), db: Session = Depends(get_db)):
    return ElectionOut.model_validate(load_election(db, election_id))

@app.patch("/admin/elections/{election_id}", response_model=ElectionOut)
def update_election(
    election_id: str,
    payload: ElectionUpdate,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    current = registry.get_election(db, election_id)
    minimums = changes.get("min_votes_per_gender") or current.min_votes_per_gender
    # Locked elections are rejected by the registry itself
    if current.status == STATUS_CREATED:
        try:
            check_rule_consistency(
                current.multi_vote if changes.get("multi_vote") is None else changes["multi_vote"],
                changes.get("total_votes_per_voter") or current.total_votes_per_voter,
                minimums.get("male", 0),
                minimums.get("female", 0),
            )
        except ValueError as e:
            raise InvalidConfiguration(str(e))
    election = registry.update_election(db, election_id, **changes)
    return ElectionOut.model_validate(election)

@app.delete("/admin/elections/{election_id}")
def delete_election(election_id: str, admin: AdminSession = Depends(require_admin), db: Session = Depends(get_db)):
    registry.delete_election(db, election_id)
    logger.info(f"Admin {admin.username} deleted election {election_id}.")
    return {"success": True}

@app.post("/admin/elections/{election_id}/open", response_model=ElectionOut)
def open_election(election_id: str, admin: AdminSession = Depends(require_admin), db: Session = Depends(get_db)):
    return ElectionOut.model_validate(registry.open_election(db, election_id))

@app.post("/admin/elections/{election_id}/close", response_model=ElectionOut)
def close_election(election_id: str, admin: AdminSession = Depends(require_admin), db: Session = Depends(get_db)):
    return ElectionOut.model_validate(registry.close_election(db, election_id))

@app.post("/admin/elections/{election_id}/roster", response_model=IngestReport)
def add_roster(
    election_id: str,
    payload: RosterUpload,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return roster.bulk_insert(db, election_id, payload.rows)

@app.post("/admin/elections/{election_id}/roster/upload", response_model=IngestReport)
def upload_roster(
    election_id: str,
    file: UploadFile = File(...),
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows = read_roster(file.file, file.filename)
    return roster.bulk_insert(db, election_id, rows)

@app.get("/admin/elections/{election_id}/roster", response_model=List[RosterEntryOut])
def get_roster(election_id: str, admin: AdminSession = Depends(require_admin), db: Session = Depends(get_db)):
    return [RosterEntryOut.model_validate(entry) for entry in roster.list_all(db, election_id)]

@app.post("/admin/elections/{election_id}/candidates/{roll_number}/toggle", response_model=RosterEntryOut)
def toggle_candidate(
    election_id: str,
    roll_number: str,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return RosterEntryOut.model_validate(roster.toggle_candidate(db, election_id, roll_number=roll_number))

@app.get("/admin/elections/{election_id}/results", response_model=ElectionResults)
def election_results(election_id: str, admin: AdminSession = Depends(require_admin), db: Session = Depends(get_db)):
    election = load_election(db, election_id)
    counted = results.tally(db, election_id)
    return ElectionResults(
        election=ElectionOut.model_validate(election),
        tally=counted,
        winners=results.winners(db, election_id, counted),
    )

# Public ballot endpoint

@app.get("/elections/{election_id}", response_model=PublicElectionOut)
def public_election(election_id: str, db: Session = Depends(get_db)):
    return PublicElectionOut.model_validate(load_election(db, election_id))

@app.get("/elections/{election_id}/eligibility", response_model=EligibilityResult)
def eligibility(election_id: str, identity: str = Depends(voter_identity), db: Session = Depends(get_db)):
    if db.get(Election, election_id) is not None:
        registry.auto_close_if_expired(db, election_id)
    result = check_eligibility(db, election_id, identity)
    if not result.eligible:
        logger.info(f"{identity} is not eligible in election {election_id}: {result.reason.value}")
    return result

@app.get("/elections/{election_id}/candidates", response_model=List[BallotCandidate])
def ballot_candidates(election_id: str, db: Session = Depends(get_db)):
    load_election(db, election_id)
    return list_ballot_candidates(db, election_id)

@app.post("/elections/{election_id}/ballot", response_model=BallotReceipt)
def submit_ballot(
    election_id: str,
    payload: BallotIn,
    identity: str = Depends(voter_identity),
    db: Session = Depends(get_db),
):
    load_election(db, election_id)
    return cast_vote(db, election_id, identity, payload.candidates)
