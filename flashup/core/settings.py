"""Layered merge of upgrade settings."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import fields, replace
from typing import Any

from flashup.core.errors import ConfigValidationError, InsufficientFlashError
from flashup.core.model import UNKNOWN, DeviceProfile, UpgradeSettings, VersionInfo

FALLBACK = UpgradeSettings()
SETTING_NAMES = frozenset(f.name for f in fields(UpgradeSettings))

_SIZE_RE = re.compile(r"^\s*(\d+)\s*([KMG]?)B?\s*$", re.IGNORECASE)
_SIZE_FACTORS = {"": 1, "K": 1, "M": 1024, "G": 1024 * 1024}


def merge_settings(*layers: Mapping[str, Any] | None, base: UpgradeSettings = FALLBACK) -> UpgradeSettings:
    """Apply each layer over base in order; None values leave the field as it was."""
    merged = base
    for layer in layers:
        if not layer:
            continue
        unknown = set(layer) - SETTING_NAMES
        if unknown:
            raise ConfigValidationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        explicit = {name: value for name, value in layer.items() if value is not None}
        merged = replace(merged, **explicit)
    return merged


def build_settings(
    defaults: Mapping[str, Any] | None,
    profile: DeviceProfile | None,
    overrides: Mapping[str, Any] | None,
) -> UpgradeSettings:
    return merge_settings(defaults, profile.overrides if profile else None, overrides)


def size_in_kb(size: str | int) -> int:
    """Parse "65536K", "64M" or a bare number of kilobytes."""
    if isinstance(size, int):
        return size
    match = _SIZE_RE.match(size)
    if not match:
        raise ConfigValidationError(f"Unrecognised flash size '{size}'")
    return int(match.group(1)) * _SIZE_FACTORS[match.group(2).upper()]


def check_flash(settings: UpgradeSettings, version: VersionInfo, host: str) -> bool:
    """Raise InsufficientFlashError when the device is below min_flash.

    Returns False when the comparison could not be made.
    """
    if settings.min_flash is None or version.flash_size == UNKNOWN:
        return False
    required = size_in_kb(settings.min_flash)
    reported = size_in_kb(version.flash_size)
    if required > reported:
        raise InsufficientFlashError(
            f"{host}: {version.flash_size} of flash reported, {settings.min_flash} required"
        )
    return True
