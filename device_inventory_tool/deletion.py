"""
Per-device deletion across the directory, Intune and Autopilot.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .adapters import BackendAdapters
from .correlator import warn_if_ambiguous
from .models import (
    STATUS_DELETE_FAILED,
    STATUS_DELETED,
    STATUS_NO_SERIAL,
    STATUS_NOT_ATTEMPTED,
    STATUS_WOULD_DELETE,
    DeletionOutcome,
)


class DeletionStage(str, Enum):
    START = "START"
    AD_LOOKUP = "AD_LOOKUP"
    AD_DELETE = "AD_DELETE"
    MGMT_LOOKUP = "MGMT_LOOKUP"
    MGMT_DELETE = "MGMT_DELETE"
    PROVISIONING_LOOKUP = "PROVISIONING_LOOKUP"
    PROVISIONING_DELETE = "PROVISIONING_DELETE"
    DONE = "DONE"


class DeviceDeleter:
    """
    Run the deletion chain for one device.

    Each backend's delete is gated on its own lookup resolving exactly one
    record. Autopilot is additionally gated on the Intune serial number. A
    failed delete is recorded and the next backend's chain still runs.
    """

    def __init__(self, adapters: BackendAdapters, logger: Optional[logging.Logger] = None, *, dry_run: bool = False):
        self.adapters = adapters
        self.logger = logger or logging.getLogger(__name__)
        self.dry_run = dry_run

    def _deleted_status(self, error: Optional[str], outcome: DeletionOutcome, stage: DeletionStage) -> str:
        if error is None:
            return STATUS_DELETED
        outcome.errors.append(f"{stage.value}: {error}")
        return STATUS_DELETE_FAILED

    def delete(self, name: str) -> DeletionOutcome:
        log = self.logger
        outcome = DeletionOutcome(input_name=name)
        outcome.stages.append(DeletionStage.START.value)

        outcome.stages.append(DeletionStage.AD_LOOKUP.value)
        legacy = self.adapters.legacy.find_by_name(name)
        warn_if_ambiguous(legacy, name, log)
        outcome.legacy_status = legacy.status
        if legacy.single is not None:
            outcome.stages.append(DeletionStage.AD_DELETE.value)
            if self.dry_run:
                outcome.legacy_status = STATUS_WOULD_DELETE
                log.info("[DRY RUN] Would delete %s", legacy.single.distinguished_name)
            else:
                error = self.adapters.legacy.delete(legacy.single)
                outcome.legacy_status = self._deleted_status(error, outcome, DeletionStage.AD_DELETE)

        outcome.stages.append(DeletionStage.MGMT_LOOKUP.value)
        management = self.adapters.management.find_by_name(name)
        warn_if_ambiguous(management, name, log)
        outcome.management_status = management.status
        device = management.single
        if device is not None:
            outcome.stages.append(DeletionStage.MGMT_DELETE.value)
            if self.dry_run:
                outcome.management_status = STATUS_WOULD_DELETE
                log.info("[DRY RUN] Would delete Intune device %s (%s)", device.device_name, device.id)
            else:
                error = self.adapters.management.delete(device)
                outcome.management_status = self._deleted_status(error, outcome, DeletionStage.MGMT_DELETE)

        if device is None:
            outcome.provisioning_status = STATUS_NOT_ATTEMPTED
        elif not device.serial_number:
            outcome.provisioning_status = STATUS_NO_SERIAL
        else:
            outcome.stages.append(DeletionStage.PROVISIONING_LOOKUP.value)
            provisioning = self.adapters.provisioning.find_by_serial(device.serial_number)
            warn_if_ambiguous(provisioning, device.serial_number, log)
            outcome.provisioning_status = provisioning.status
            if provisioning.single is not None:
                outcome.stages.append(DeletionStage.PROVISIONING_DELETE.value)
                if self.dry_run:
                    outcome.provisioning_status = STATUS_WOULD_DELETE
                    log.info("[DRY RUN] Would delete Autopilot identity %s", provisioning.single.serial_number)
                else:
                    error = self.adapters.provisioning.delete(provisioning.single)
                    outcome.provisioning_status = self._deleted_status(
                        error, outcome, DeletionStage.PROVISIONING_DELETE
                    )

        outcome.stages.append(DeletionStage.DONE.value)
        log.info(
            "%s: ActiveDirectory=%s Intune=%s Autopilot=%s",
            name,
            outcome.legacy_status,
            outcome.management_status,
            outcome.provisioning_status,
        )
        return outcome
