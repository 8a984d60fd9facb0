import registry
import roster


def student(roll_number, gender, contact=None, name=None):
    return {
        "roll_number": roll_number,
        "name": name or roll_number,
        "contact": contact or f"{roll_number.lower()}@school.example.edu",
        "gender": gender,
    }


def setup_election(db, students, candidates=(), open_election=True, **rules):
    """Create an election with a roster and candidates; opened unless told otherwise."""
    election = registry.create_election(db, name="Class representative", class_name="CSE-A", **rules)
    roster.bulk_insert(db, election.id, students)
    for roll_number in candidates:
        roster.toggle_candidate(db, election.id, roll_number=roll_number)
    if open_election:
        registry.open_election(db, election.id)
    return election.id
