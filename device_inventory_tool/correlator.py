"""
Cross-directory device correlation.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .adapters import BackendAdapters
from .models import (
    STATUS_NO_SERIAL,
    STATUS_NOT_FOUND,
    BackendMatch,
    DevicePresenceRecord,
)


def describe_match(record: Any) -> str:
    """Short human label for a record inside an ambiguity warning."""
    for attr in ("distinguished_name", "device_name", "serial_number"):
        value = getattr(record, attr, None)
        if value:
            return str(value)
    return repr(record)


def warn_if_ambiguous(match: BackendMatch, key: str, log: logging.Logger) -> None:
    if match.ambiguous:
        log.warning(
            "%s returned %d matches for '%s'; not selecting any: %s",
            match.backend,
            len(match.records),
            key,
            ", ".join(describe_match(r) for r in match.records),
        )


class Correlator:
    """
    Resolve one device name across the directory, Intune and Autopilot.

    Backends are queried once each, in that order. Autopilot is keyed by the
    serial number of the single Intune match, so it is only queried when one
    was captured.
    """

    def __init__(self, adapters: BackendAdapters, logger: Optional[logging.Logger] = None):
        self.adapters = adapters
        self.logger = logger or logging.getLogger(__name__)

    def correlate(self, name: str) -> DevicePresenceRecord:
        log = self.logger
        fields: Dict[str, Any] = {"input_name": name}

        legacy = self.adapters.legacy.find_by_name(name)
        warn_if_ambiguous(legacy, name, log)
        fields["legacy_status"] = legacy.status
        if legacy.single is not None:
            fields["legacy_directory_found"] = True
            fields["legacy_directory_name"] = legacy.single.name
            fields["legacy_distinguished_name"] = legacy.single.distinguished_name

        management = self.adapters.management.find_by_name(name)
        warn_if_ambiguous(management, name, log)
        fields["management_status"] = management.status
        serial: Optional[str] = None
        if management.single is not None:
            device = management.single
            serial = device.serial_number
            fields["management_found"] = True
            fields["management_device_name"] = device.device_name
            fields["management_serial_number"] = serial
            fields["management_device_id"] = device.id

        if serial:
            provisioning = self.adapters.provisioning.find_by_serial(serial)
            warn_if_ambiguous(provisioning, serial, log)
            fields["provisioning_status"] = provisioning.status
            if provisioning.single is not None:
                fields["provisioning_found"] = True
                fields["provisioning_serial_number"] = provisioning.single.serial_number
                fields["provisioning_device_id"] = provisioning.single.id
        elif management.single is not None:
            fields["provisioning_status"] = STATUS_NO_SERIAL
        else:
            fields["provisioning_status"] = STATUS_NOT_FOUND

        record = DevicePresenceRecord(**fields)
        log.info(
            "%s: ActiveDirectory=%s Intune=%s Autopilot=%s",
            name,
            record.legacy_status,
            record.management_status,
            record.provisioning_status,
        )
        return record
