"""
Report input and output: asset-tag CSV reader, console tables and CSV/JSON export.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from tabulate import tabulate

from .models import BatchReport

ASSET_TAG_COLUMN = "Asset Tag"
REPORT_HEADERS = ["ComputerName", "ActiveDirectory", "Intune", "Autopilot"]


class InputFileError(Exception):
    """Raised when a device input file is missing or malformed."""


def read_asset_tags(path: Path) -> List[str]:
    """
    Read the 'Asset Tag' column of a CSV file, one entry per row.

    Blank cells are kept so the batch driver can report them as skipped.
    Files saved by Excel carry a byte-order mark, hence utf-8-sig.
    """
    try:
        with Path(path).open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle)
            fieldnames = [f.strip() for f in (reader.fieldnames or [])]
            if ASSET_TAG_COLUMN not in fieldnames:
                raise InputFileError(
                    f"{path} has no '{ASSET_TAG_COLUMN}' column (found: {', '.join(fieldnames) or 'none'})"
                )
            reader.fieldnames = fieldnames
            return [(row.get(ASSET_TAG_COLUMN) or "") for row in reader]
    except OSError as exc:
        raise InputFileError(f"Failed to read input file {path}: {exc}") from exc
    except csv.Error as exc:
        raise InputFileError(f"Invalid CSV in {path}: {exc}") from exc


def report_table(report: BatchReport) -> str:
    rows = [[r.computer_name, r.active_directory, r.intune, r.autopilot] for r in report]
    return tabulate(rows, headers=REPORT_HEADERS, tablefmt="github")


def write_csv(path: Path, headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8-sig", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(headers)
        for row in rows:
            writer.writerow(["" if value is None else value for value in row])
    return path


def export_report(report: BatchReport, path: Path, logger: Optional[logging.Logger] = None) -> Path:
    log = logger or logging.getLogger(__name__)
    rows = [[r.computer_name, r.active_directory, r.intune, r.autopilot] for r in report]
    write_csv(path, REPORT_HEADERS, rows)
    log.info("Wrote %d report rows to %s", len(rows), path)
    return path


def write_json(path: Path, data: Dict[str, Any], logger: Optional[logging.Logger] = None) -> None:
    log = logger or logging.getLogger(__name__)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    log.info("Wrote JSON output to %s", path)
