"""CSV export loading: case records and case-number lists."""
import asyncio
import logging
from pathlib import Path

import pandas as pd

from .conversation import as_bool, assemble_case
from .exceptions import CaseNotFound
from .models import Case, short_case_number


logger = logging.getLogger(__name__)

EXPORT_FILES = {
    "cases": "cases.csv",
    "comments": "comments.csv",
    "emails": "emails.csv",
    "events": "events.csv",
}
# Column on each child export that holds the parent case id.
PARENT_COLUMNS = {
    "comments": "parent__c",
    "emails": "parentid",
    "events": "case__c",
}


def _read_export(csv_path: Path) -> pd.DataFrame:
    """Read an export as text columns with empty cells as None; drop deleted rows."""
    if not csv_path.exists():
        return pd.DataFrame()
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=True)
    df.columns = [str(c).strip().lower() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)
    if "isdeleted" in df.columns:
        df = df[~df["isdeleted"].map(lambda v: as_bool(v) is True)]
    return df


def _rows(df: pd.DataFrame, column: str, value: str | None) -> list[dict]:
    if df.empty or column not in df.columns or value is None:
        return []
    return df[df[column] == value].to_dict("records")


class CaseSource:
    """Serves Case records from a directory of store exports.

    Expects cases.csv plus optional comments.csv, emails.csv and events.csv.
    """

    def __init__(self, export_dir: Path):
        self.export_dir = Path(export_dir)
        cases_file = self.export_dir / EXPORT_FILES["cases"]
        if not cases_file.exists():
            raise FileNotFoundError(f"{cases_file} not found")
        self.cases = _read_export(cases_file)
        self.comments = _read_export(self.export_dir / EXPORT_FILES["comments"])
        self.emails = _read_export(self.export_dir / EXPORT_FILES["emails"])
        self.events = _read_export(self.export_dir / EXPORT_FILES["events"])
        logger.info(
            "Loaded %d cases, %d comments, %d emails, %d events from %s",
            len(self.cases), len(self.comments), len(self.emails), len(self.events), self.export_dir,
        )

    def _find_row(self, case_number: str) -> dict:
        wanted = short_case_number(case_number)
        for row in self.cases.to_dict("records"):
            numbers = [row.get("casenumber"), row.get("casenumbershort__c")]
            if any(n and (n == case_number or short_case_number(n) == wanted) for n in numbers):
                return row
        raise CaseNotFound(case_number)

    def get_case(self, case_number: str) -> Case:
        """Assemble a case by full or leading-zero-stripped number."""
        row = self._find_row(str(case_number).strip())
        case_id = row.get("id")
        return assemble_case(
            row,
            _rows(self.comments, PARENT_COLUMNS["comments"], case_id),
            _rows(self.emails, PARENT_COLUMNS["emails"], case_id),
            _rows(self.events, PARENT_COLUMNS["events"], case_id),
        )

    async def fetch_case(self, case_number: str) -> Case:
        return await asyncio.to_thread(self.get_case, case_number)


def read_case_numbers(path: Path) -> list[str]:
    """One case number per line; blank lines and '#' comments are skipped."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]
