"""
Typer CLI entrypoint for Device Inventory Tool.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from tabulate import tabulate

from .adapters import BackendAdapters
from .batch import execute_run
from .config import Config, ConfigError, RunConfig, RunMode, load_config
from .graph_client import DataModelError, GraphApiError, GraphRequestError
from .inventory import (
    DeviceResolutionError,
    list_device_apps,
    list_noncompliant_devices,
    list_stale_devices,
    list_user_devices,
)
from .logging_utils import setup_logging
from .models import BatchReport
from .reporting import InputFileError, read_asset_tags, report_table, write_csv, write_json
from .session import Session, SessionError, open_session

app = typer.Typer(add_completion=False, help="Look up, report on and delete devices across AD, Intune and Autopilot.")

DEVICE_HEADERS = ["Device Name", "Serial", "User", "OS", "OS Version", "Compliance", "Last Sync", "Days Since Sync"]
DEVICE_KEYS = [
    "deviceName",
    "serialNumber",
    "userPrincipalName",
    "operatingSystem",
    "osVersion",
    "complianceState",
    "lastSyncDateTime",
    "daysSinceSync",
]


@dataclass
class CliState:
    logger: Any
    config: Config
    output_json: Optional[Path]
    verbose: bool = False


def _open_session(state: CliState, need_directory: bool) -> Session:
    try:
        return open_session(state.config, state.logger, need_directory=need_directory, debug_api=state.verbose)
    except SessionError as exc:
        state.logger.error("%s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=3)


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(None, help="Optional YAML config file to load defaults."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Reduce log verbosity."),
    output_json: Optional[Path] = typer.Option(None, "--output-json", help="Write command output to JSON file."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Append a DEBUG-level log of the run to this file."),
):
    """
    Configure global options and shared context.
    """
    logger = setup_logging(verbose=verbose, quiet=quiet, logger_name="device-inventory-tool", log_file=log_file)
    try:
        config = load_config(config_file=str(config_file) if config_file else None)
    except ConfigError as exc:
        typer.echo(f"Config error: {exc}", err=True)
        raise typer.Exit(code=2)

    ctx.obj = CliState(logger=logger, config=config, output_json=output_json, verbose=verbose)


def _build_run_config(
    state: CliState,
    mode: RunMode,
    device_name: Optional[str],
    input_file: Optional[Path],
    no_export: bool,
    export_dir: Optional[Path],
    dry_run: bool = False,
) -> RunConfig:
    if device_name and input_file:
        typer.echo("Error: pass either a device name or --input-file, not both", err=True)
        raise typer.Exit(code=2)
    if not device_name and not input_file:
        device_name = typer.prompt("Device name or asset tag").strip()
        if not device_name:
            typer.echo("Error: a device name is required", err=True)
            raise typer.Exit(code=2)
    return RunConfig(
        mode=mode,
        device_name=device_name,
        input_file=input_file,
        export=not no_export,
        export_dir=export_dir or state.config.export_dir,
        dry_run=dry_run,
    )


def _load_names(state: CliState, run_config: RunConfig) -> List[str]:
    if run_config.input_file is None:
        return [run_config.device_name or ""]
    try:
        names = read_asset_tags(run_config.input_file)
    except InputFileError as exc:
        state.logger.error("%s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)
    if not names:
        typer.echo(f"Error: {run_config.input_file} contains no rows", err=True)
        raise typer.Exit(code=2)
    return names


def _finish_batch(state: CliState, report: BatchReport, export_path: Optional[Path]) -> None:
    typer.echo(report_table(report))
    if export_path:
        typer.echo(f"\nReport exported to {export_path}")
    if state.output_json:
        payload: Dict[str, Any] = {
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "mode": report.mode,
            "rows": [
                {
                    "computerName": r.computer_name,
                    "activeDirectory": r.active_directory,
                    "intune": r.intune,
                    "autopilot": r.autopilot,
                }
                for r in report
            ],
        }
        write_json(state.output_json, payload, state.logger)


@app.command("lookup")
def lookup_cmd(
    ctx: typer.Context,
    device_name: Optional[str] = typer.Argument(None, help="Device name or asset tag. Prompted for when omitted."),
    input_file: Optional[Path] = typer.Option(None, "--input-file", "-i", help="CSV file with an 'Asset Tag' column."),
    no_export: bool = typer.Option(False, "--no-export", help="Do not write the CSV report."),
    export_dir: Optional[Path] = typer.Option(None, "--export-dir", help="Directory for the CSV report."),
):
    """
    Report whether each device exists in Active Directory, Intune and Autopilot.

    Examples:
        device-inventory-tool lookup P12345
        device-inventory-tool lookup --input-file devices.csv
    """
    state: CliState = ctx.obj
    run_config = _build_run_config(state, RunMode.LOOKUP, device_name, input_file, no_export, export_dir)
    names = _load_names(state, run_config)
    session = _open_session(state, need_directory=True)
    try:
        adapters = BackendAdapters.from_session(session, state.logger)
        report, export_path = execute_run(run_config, adapters, state.logger, names=names)
        _finish_batch(state, report, export_path)
    except OSError as exc:
        state.logger.error("Failed to write report: %s", exc)
        raise typer.Exit(code=3)
    finally:
        session.close()


@app.command("delete")
def delete_cmd(
    ctx: typer.Context,
    device_name: Optional[str] = typer.Argument(None, help="Device name or asset tag. Prompted for when omitted."),
    input_file: Optional[Path] = typer.Option(None, "--input-file", "-i", help="CSV file with an 'Asset Tag' column."),
    no_export: bool = typer.Option(False, "--no-export", help="Do not write the CSV report."),
    export_dir: Optional[Path] = typer.Option(None, "--export-dir", help="Directory for the CSV report."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Look up every record but do not delete anything."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
):
    """
    Delete each device from Active Directory, Intune and Autopilot.

    Only records that resolve to exactly one match are deleted. Autopilot
    identities are located by the serial number of the Intune record.
    """
    state: CliState = ctx.obj
    run_config = _build_run_config(state, RunMode.DELETE, device_name, input_file, no_export, export_dir, dry_run)
    names = _load_names(state, run_config)
    targets = [n.strip() for n in names if n and n.strip()]

    typer.echo("\n" + "=" * 60)
    typer.echo("⚠️  DELETE DEVICES")
    typer.echo("=" * 60)
    typer.echo(f"\nThe following {len(targets)} device(s) will be removed from AD, Intune and Autopilot:\n")
    for name in targets[:10]:
        typer.echo(f"  • {name}")
    if len(targets) > 10:
        typer.echo(f"  ... and {len(targets) - 10} more devices")

    if dry_run:
        typer.echo("\n⚠️  DRY RUN MODE - No changes will be made")
    elif not yes:
        response = typer.prompt("\nType 'DELETE' to confirm", default="")
        if response != "DELETE":
            typer.echo("Cancelled.")
            raise typer.Exit(code=0)

    session = _open_session(state, need_directory=True)
    try:
        adapters = BackendAdapters.from_session(session, state.logger)
        report, export_path = execute_run(run_config, adapters, state.logger, names=names)
        _finish_batch(state, report, export_path)
    except OSError as exc:
        state.logger.error("Failed to write report: %s", exc)
        raise typer.Exit(code=3)
    finally:
        session.close()


def _print_devices(devices: List[Dict[str, Any]]) -> None:
    rows = [[d.get(k) for k in DEVICE_KEYS] for d in devices]
    typer.echo(tabulate(rows, headers=DEVICE_HEADERS, tablefmt="github"))


def _emit_device_report(state: CliState, results: Dict[str, Any], output_csv: Optional[Path]) -> None:
    devices = results["devices"]
    _print_devices(devices)
    typer.echo(f"\n{len(devices)} device(s)")
    if output_csv:
        write_csv(output_csv, DEVICE_HEADERS, ([d.get(k) for k in DEVICE_KEYS] for d in devices))
        typer.echo(f"Report exported to {output_csv}")
    if state.output_json:
        write_json(state.output_json, results, state.logger)


@app.command("user-devices")
def user_devices_cmd(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="User principal name, e.g. jane.doe@example.com."),
    output_csv: Optional[Path] = typer.Option(None, "--output-csv", help="Write the device list to CSV."),
):
    """
    List Intune devices whose primary user is USER.
    """
    state: CliState = ctx.obj
    session = _open_session(state, need_directory=False)
    try:
        results, exit_code = list_user_devices(session.graph, user, logger=state.logger)
        _emit_device_report(state, results, output_csv)
        raise typer.Exit(code=exit_code)
    except (GraphRequestError, GraphApiError, DataModelError, ValueError) as exc:
        state.logger.error("User devices error: %s", exc)
        raise typer.Exit(code=3)
    finally:
        session.close()


@app.command("noncompliant")
def noncompliant_cmd(
    ctx: typer.Context,
    os_filter: Optional[str] = typer.Option(None, "--os", help="Only devices running this OS (e.g. Windows, iOS)."),
    output_csv: Optional[Path] = typer.Option(None, "--output-csv", help="Write the device list to CSV."),
):
    """
    List Intune devices that are currently noncompliant.
    """
    state: CliState = ctx.obj
    session = _open_session(state, need_directory=False)
    try:
        results, exit_code = list_noncompliant_devices(session.graph, os_filter, logger=state.logger)
        _emit_device_report(state, results, output_csv)
        raise typer.Exit(code=exit_code)
    except (GraphRequestError, GraphApiError, DataModelError) as exc:
        state.logger.error("Noncompliant devices error: %s", exc)
        raise typer.Exit(code=3)
    finally:
        session.close()


@app.command("stale-devices")
def stale_devices_cmd(
    ctx: typer.Context,
    days: int = typer.Option(30, "--days", "-d", help="Minimum days since last Intune sync."),
    output_csv: Optional[Path] = typer.Option(None, "--output-csv", help="Write the device list to CSV."),
):
    """
    List Intune devices that have not synced for at least DAYS days.
    """
    state: CliState = ctx.obj
    if days <= 0:
        typer.echo("Error: --days must be a positive integer", err=True)
        raise typer.Exit(code=2)
    session = _open_session(state, need_directory=False)
    try:
        results, exit_code = list_stale_devices(session.graph, days, logger=state.logger)
        _emit_device_report(state, results, output_csv)
        raise typer.Exit(code=exit_code)
    except (GraphRequestError, GraphApiError, DataModelError, ValueError) as exc:
        state.logger.error("Stale devices error: %s", exc)
        raise typer.Exit(code=3)
    finally:
        session.close()


@app.command("device-apps")
def device_apps_cmd(
    ctx: typer.Context,
    device_name: str = typer.Argument(..., help="Exact Intune device name."),
    output_csv: Optional[Path] = typer.Option(None, "--output-csv", help="Write the application list to CSV."),
):
    """
    List applications Intune has detected on a single device.
    """
    state: CliState = ctx.obj
    session = _open_session(state, need_directory=False)
    try:
        results, exit_code = list_device_apps(session.graph, device_name, logger=state.logger)
    except DeviceResolutionError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)
    except (GraphRequestError, GraphApiError, DataModelError) as exc:
        state.logger.error("Device apps error: %s", exc)
        raise typer.Exit(code=3)
    finally:
        session.close()

    headers = ["Application", "Version", "Publisher"]
    rows = [[a["name"], a["version"], a["publisher"]] for a in results["applications"]]
    device = results["device"]
    typer.echo(f"{device['deviceName']} ({device['serialNumber'] or 'no serial'})\n")
    typer.echo(tabulate(rows, headers=headers, tablefmt="github"))
    typer.echo(f"\n{len(rows)} application(s)")
    if output_csv:
        write_csv(output_csv, headers, rows)
        typer.echo(f"Report exported to {output_csv}")
    if state.output_json:
        write_json(state.output_json, results, state.logger)
    raise typer.Exit(code=exit_code)


def run():
    try:
        app()
    except Exception as exc:  # pylint: disable=broad-except
        typer.echo(f"Fatal error: {exc}", err=True)
        sys.exit(2)


if __name__ == "__main__":
    run()
