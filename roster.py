# roster.py

import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from database import write_transaction
from errors import ElectionLocked, NotFound
from models import STATUS_CREATED, RosterEntry
from registry import get_election, set_candidate_count
from schemas import IngestReport, RosterRow, RowError, normalize_contact

logger = logging.getLogger(__name__)


def lookup_key(identity: str) -> str:
    """Normalize an identity for lookup the same way contacts are normalized on insert."""
    try:
        return normalize_contact(identity)
    except ValueError:
        return (identity or "").strip().lower()


def _raw_roll_number(raw) -> Optional[str]:
    if isinstance(raw, RosterRow):
        return raw.roll_number
    if isinstance(raw, dict):
        value = raw.get("roll_number") or raw.get("rollNumber")
        return str(value).strip() if value is not None else None
    return None


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'row'}: {err['msg']}" for err in error.errors()
    )


def bulk_insert(db: Session, election_id: str, rows) -> IngestReport:
    """
    Add roster rows to an election as non-candidates who have not voted.

    Ingestion is best effort: rows that fail validation or clash with an
    existing roll number or contact are skipped and listed in the report.

    Args:
        db (Session): The database session.
        election_id (str): Code of an election that is still ``created``.
        rows (list): Dicts shaped ``{roll_number, name, contact, gender}`` or RosterRow objects.

    Returns:
        IngestReport: Counts of processed and total rows plus per-row errors.
    """
    report = IngestReport(total=len(rows))

    with write_transaction(db):
        election = get_election(db, election_id, lock=True)
        if election.status != STATUS_CREATED:
            raise ElectionLocked(f"Cannot add voters to election {election_id} after it has started")

        existing = db.query(RosterEntry.roll_number, RosterEntry.contact).filter(
            RosterEntry.election_id == election_id
        )
        roll_numbers = set()
        contacts = set()
        for roll_number, contact in existing:
            roll_numbers.add(roll_number)
            contacts.add(contact)

        for index, raw in enumerate(rows, start=1):
            try:
                row = RosterRow.model_validate(raw)
            except ValidationError as e:
                reason = _describe(e)
                report.errors.append(RowError(row=index, roll_number=_raw_roll_number(raw), reason=reason))
                logger.warning(f"Skipping roster row {index} for election {election_id}: {reason}")
                continue

            if row.roll_number in roll_numbers:
                reason = f"duplicate roll number {row.roll_number}"
            elif row.contact in contacts:
                reason = f"duplicate contact {row.contact}"
            else:
                reason = None
            if reason:
                report.errors.append(RowError(row=index, roll_number=row.roll_number, reason=reason))
                logger.warning(f"Skipping roster row {index} for election {election_id}: {reason}")
                continue

            db.add(RosterEntry(
                election_id=election_id,
                roll_number=row.roll_number,
                name=row.name,
                contact=row.contact,
                gender=row.gender,
                is_candidate=False,
                has_voted=False,
            ))
            roll_numbers.add(row.roll_number)
            contacts.add(row.contact)
            report.processed += 1

        election.student_count = len(roll_numbers)

    logger.info(
        f"Roster for election {election_id}: {report.processed}/{report.total} rows added, "
        f"{len(report.errors)} skipped."
    )
    return report


def toggle_candidate(db: Session, election_id: str, roll_number: str = None, record_id: int = None) -> RosterEntry:
    """Flip whether a roster entry stands as a candidate, while the election is still being set up."""
    if roll_number is None and record_id is None:
        raise ValueError("toggle_candidate needs a roll number or a record id")

    with write_transaction(db):
        election = get_election(db, election_id, lock=True)
        query = db.query(RosterEntry).filter(RosterEntry.election_id == election_id)
        if record_id is not None:
            query = query.filter(RosterEntry.id == record_id)
        else:
            query = query.filter(RosterEntry.roll_number == roll_number)
        entry = query.with_for_update().first()
        if entry is None:
            raise NotFound(f"Student {roll_number or record_id} not found in election {election_id}")
        if election.status != STATUS_CREATED:
            raise ElectionLocked("Cannot modify candidates after election has started")

        entry.is_candidate = not entry.is_candidate
        db.flush()
        count = (
            db.query(RosterEntry)
            .filter(RosterEntry.election_id == election_id, RosterEntry.is_candidate.is_(True))
            .count()
        )
        set_candidate_count(db, election_id, count)

    logger.info(
        f"Roster entry {entry.roll_number} in election {election_id} is "
        f"{'now' if entry.is_candidate else 'no longer'} a candidate ({count} candidates)."
    )
    return entry


def find_by_identity(db: Session, election_id: str, identity: str) -> Optional[RosterEntry]:
    return (
        db.query(RosterEntry)
        .filter(RosterEntry.election_id == election_id, RosterEntry.contact == lookup_key(identity))
        .first()
    )


def list_candidates(db: Session, election_id: str):
    get_election(db, election_id)
    return (
        db.query(RosterEntry)
        .filter(RosterEntry.election_id == election_id, RosterEntry.is_candidate.is_(True))
        .order_by(RosterEntry.id)
        .all()
    )


def list_all(db: Session, election_id: str):
    get_election(db, election_id)
    return db.query(RosterEntry).filter(RosterEntry.election_id == election_id).order_by(RosterEntry.id).all()
