# ingest.py
#
# Turns an uploaded roster spreadsheet into plain rows for roster.bulk_insert.
# Only column detection happens here; row validation belongs to the roster.

import logging

import pandas as pd

from errors import InvalidConfiguration

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("roll_number", "name", "contact")

DEFAULT_SYNONYMS = {
    "roll_number": ["roll number", "rollno", "roll", "student id", "id", "index number"],
    "name": ["name", "full name", "student name"],
    "contact": ["email", "email address", "mail", "phone", "phone number", "mobile", "contact"],
    "gender": ["gender", "sex"],
}


def _norm(s):
    return ''.join(ch for ch in str(s or '').lower() if ch.isalnum())


def _cell(value):
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


class ColumnMapping:
    """Header synonyms per roster field; headers are compared ignoring case, spaces and punctuation."""

    def __init__(self, synonyms=None, required=REQUIRED_FIELDS):
        self.synonyms = synonyms or DEFAULT_SYNONYMS
        self.required = required

    def resolve(self, columns):
        norm_map = {}
        for column in columns:
            norm_map.setdefault(_norm(column), column)

        mapped = {}
        for field, variants in self.synonyms.items():
            for variant in variants:
                key = _norm(variant)
                if key in norm_map:
                    mapped[field] = norm_map[key]
                    break

        missing = [field for field in self.required if field not in mapped]
        if missing:
            detected = ', '.join(str(c) for c in columns) if len(columns) else 'none'
            raise InvalidConfiguration(
                f"Uploaded file is missing required column(s) {', '.join(missing)}. Detected columns: {detected}."
            )
        return mapped


def read_roster(file, filename: str, mapping: ColumnMapping = None):
    """
    Read a CSV or Excel roster into dicts shaped ``{roll_number, name, contact, gender}``.

    Completely blank lines are dropped; every other line is returned as-is so
    the roster can report it if it is malformed.
    """
    mapping = mapping or ColumnMapping()
    filename = (filename or "").lower()
    try:
        if filename.endswith('.csv'):
            df = pd.read_csv(file, dtype=str, keep_default_na=False)
        elif filename.endswith(('.xlsx', '.xls')):
            df = pd.read_excel(file, dtype=str, keep_default_na=False)
        else:
            raise InvalidConfiguration("Please upload a CSV or Excel file")
    except InvalidConfiguration:
        raise
    except Exception as e:
        logger.warning(f"Unable to read uploaded roster {filename}: {e}")
        raise InvalidConfiguration(f"Unable to read uploaded file: {e}")

    columns = mapping.resolve(list(df.columns))

    rows = []
    for _, record in df.iterrows():
        row = {field: _cell(record.get(column)) for field, column in columns.items()}
        if not any(row.values()):
            continue
        row.setdefault("gender", "")
        rows.append(row)

    logger.info(f"Read {len(rows)} roster rows from {filename}.")
    return rows
