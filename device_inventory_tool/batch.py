"""
Batch driver: run the correlator or the deleter over an ordered list of names.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .adapters import BackendAdapters
from .config import RunConfig, RunMode
from .correlator import Correlator
from .deletion import DeviceDeleter
from .models import (
    STATUS_SKIPPED_EMPTY,
    BatchReport,
    DeletionOutcome,
    DevicePresenceRecord,
    ReportRow,
)
from .reporting import export_report, read_asset_tags
from .utils import timestamped_filename


def lookup_row(record: DevicePresenceRecord) -> ReportRow:
    return ReportRow(
        computer_name=record.input_name,
        active_directory=record.legacy_status,
        intune=record.management_status,
        autopilot=record.provisioning_status,
    )


def deletion_row(outcome: DeletionOutcome) -> ReportRow:
    return ReportRow(
        computer_name=outcome.input_name,
        active_directory=outcome.legacy_status,
        intune=outcome.management_status,
        autopilot=outcome.provisioning_status,
    )


def skipped_row(name: str) -> ReportRow:
    return ReportRow(name, STATUS_SKIPPED_EMPTY, STATUS_SKIPPED_EMPTY, STATUS_SKIPPED_EMPTY)


def run_batch(
    names: Iterable[str],
    process: Callable[[str], ReportRow],
    *,
    mode: str = RunMode.LOOKUP.value,
    logger: Optional[logging.Logger] = None,
) -> BatchReport:
    """
    Process names strictly in input order, exactly once each.

    Blank entries produce a skipped row. Every input yields one row.
    """
    log = logger or logging.getLogger(__name__)
    names = list(names)
    report = BatchReport(mode=mode)
    total = len(names)
    for idx, raw in enumerate(names, start=1):
        name = (raw or "").strip()
        if not name:
            log.warning("Row %d/%d is empty; skipping", idx, total)
            report.append(skipped_row(raw or ""))
            continue
        log.debug("Processing %d/%d: %s", idx, total, name)
        report.append(process(name))
    log.info("Processed %d entries (%d skipped)", total, sum(1 for n in names if not (n or "").strip()))
    return report


def resolve_names(run_config: RunConfig) -> List[str]:
    if run_config.input_file is not None:
        return read_asset_tags(run_config.input_file)
    if run_config.device_name is not None:
        return [run_config.device_name]
    raise ValueError("Either a device name or an input file is required")


def execute_run(
    run_config: RunConfig,
    adapters: BackendAdapters,
    logger: Optional[logging.Logger] = None,
    names: Optional[List[str]] = None,
) -> tuple[BatchReport, Optional[Path]]:
    """
    Run lookup or deletion for every resolved name and export the report.

    Returns the report and the export path (None when export is disabled).
    """
    log = logger or logging.getLogger(__name__)
    if names is None:
        names = resolve_names(run_config)

    if run_config.mode == RunMode.DELETE:
        deleter = DeviceDeleter(adapters, log, dry_run=run_config.dry_run)
        report = run_batch(names, lambda n: deletion_row(deleter.delete(n)), mode=RunMode.DELETE.value, logger=log)
        prefix = "DeviceDeletion"
    else:
        correlator = Correlator(adapters, log)
        report = run_batch(names, lambda n: lookup_row(correlator.correlate(n)), mode=RunMode.LOOKUP.value, logger=log)
        prefix = "DeviceLookup"

    export_path: Optional[Path] = None
    if run_config.export:
        export_path = export_report(report, Path(run_config.export_dir) / timestamped_filename(prefix), log)
    return report, export_path
